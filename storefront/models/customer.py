import uuid
from enum import Enum

from sqlalchemy import Column, Integer, String, TIMESTAMP, Uuid
from sqlalchemy.sql import func

from storefront.db import Base


class AccountStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    SUSPENDED = "SUSPENDED"


class Customer(Base):
    __tablename__ = "customers"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    email = Column(String(255), nullable=False, unique=True)
    display_name = Column(String(100))

    status = Column(String(20), nullable=False, default=AccountStatus.ACTIVE.value)
    balance_cents = Column(Integer, nullable=False, default=0)

    created_at = Column(TIMESTAMP, server_default=func.now())
    updated_at = Column(TIMESTAMP, server_default=func.now(), onupdate=func.now())
