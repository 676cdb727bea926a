import uuid
from enum import Enum

from sqlalchemy import Column, ForeignKey, String, TIMESTAMP, Uuid

from storefront.db import Base


class RefundStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class RefundRequest(Base):
    __tablename__ = "refund_requests"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    order_id = Column(Uuid(as_uuid=True), ForeignKey("orders.id"), nullable=False, index=True)
    customer_id = Column(Uuid(as_uuid=True), ForeignKey("customers.id"), nullable=False, index=True)

    status = Column(String(20), nullable=False, default=RefundStatus.PENDING.value)
    reason = Column(String(500))

    requested_at = Column(TIMESTAMP, nullable=False)
    resolved_at = Column(TIMESTAMP)
    resolution_note = Column(String(500))
    processed_by_admin_id = Column(Uuid(as_uuid=True))
