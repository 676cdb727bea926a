import uuid
from enum import Enum

from sqlalchemy import Column, ForeignKey, Index, String, TIMESTAMP, UniqueConstraint, Uuid
from sqlalchemy.sql import func

from storefront.db import Base


class KeyStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    RESERVED = "RESERVED"
    SOLD = "SOLD"


class ActivationStatus(str, Enum):
    NOT_ACTIVATED = "NOT_ACTIVATED"
    ACTIVATED = "ACTIVATED"


class GameKey(Base):
    __tablename__ = "game_keys"

    __table_args__ = (
        UniqueConstraint("game_id", "key_code", name="uq_game_keys_game_id_key_code"),
        # One copy of a game per customer; NULL owners (unsold keys) never collide.
        UniqueConstraint("game_id", "owner_customer_id", name="uq_game_keys_game_id_owner"),
        Index("ix_game_keys_game_id_business_status", "game_id", "business_status"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    game_id = Column(Uuid(as_uuid=True), ForeignKey("games.id"), nullable=False)
    game_version = Column(String(30), nullable=False)
    key_code = Column(String(19), nullable=False)

    business_status = Column(String(20), nullable=False, default=KeyStatus.AVAILABLE.value)
    activation_status = Column(String(20), nullable=False, default=ActivationStatus.NOT_ACTIVATED.value)

    # set iff business_status == SOLD
    owner_customer_id = Column(Uuid(as_uuid=True), ForeignKey("customers.id"), index=True)
    ownership_date = Column(TIMESTAMP)

    created_at = Column(TIMESTAMP, server_default=func.now())
    updated_at = Column(TIMESTAMP, server_default=func.now(), onupdate=func.now())
