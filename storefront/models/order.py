import uuid
from enum import Enum

from sqlalchemy import JSON, Column, ForeignKey, Integer, String, TIMESTAMP, Uuid
from sqlalchemy.sql import func

from storefront.db import Base


class PaymentMethod(str, Enum):
    WALLET = "WALLET"
    CREDIT_CARD = "CREDIT_CARD"
    PAYPAL = "PAYPAL"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class Order(Base):
    __tablename__ = "orders"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    customer_id = Column(Uuid(as_uuid=True), ForeignKey("customers.id"), nullable=False, index=True)

    order_date = Column(TIMESTAMP, nullable=False)  # naive UTC
    total_cents = Column(Integer, nullable=False, default=0)

    payment_method = Column(String(20), nullable=False)
    transaction_id = Column(String(64), nullable=False, unique=True)
    payment_status = Column(String(20), nullable=False, default=PaymentStatus.PENDING.value)

    failure_code = Column(String(50))

    # Legacy embedded line items, read-only: new orders always use order_details.
    items = Column(JSON(none_as_null=True))

    created_at = Column(TIMESTAMP, server_default=func.now())
    updated_at = Column(TIMESTAMP, server_default=func.now(), onupdate=func.now())
