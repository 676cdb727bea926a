import uuid
from enum import Enum

from sqlalchemy import Column, ForeignKey, Integer, String, TIMESTAMP, Uuid
from sqlalchemy.sql import func

from storefront.db import Base


class ReleaseStatus(str, Enum):
    RELEASED = "RELEASED"
    UPCOMING = "UPCOMING"
    DELISTED = "DELISTED"


class Game(Base):
    __tablename__ = "games"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    publisher_id = Column(Uuid(as_uuid=True), ForeignKey("publishers.id"), nullable=False, index=True)

    name = Column(String(200), nullable=False)
    version = Column(String(30), nullable=False, default="1.0")
    release_status = Column(String(20), nullable=False, default=ReleaseStatus.UPCOMING.value)

    original_price_cents = Column(Integer, nullable=False, default=0)
    discount_price_cents = Column(Integer)  # NULL = no discount running

    created_at = Column(TIMESTAMP, server_default=func.now())
    updated_at = Column(TIMESTAMP, server_default=func.now(), onupdate=func.now())
