import uuid

from sqlalchemy import Column, ForeignKey, Integer, TIMESTAMP, Uuid
from sqlalchemy.sql import func

from storefront.db import Base


class OrderDetail(Base):
    __tablename__ = "order_details"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    order_id = Column(Uuid(as_uuid=True), ForeignKey("orders.id"), nullable=False, index=True)
    game_id = Column(Uuid(as_uuid=True), ForeignKey("games.id"), nullable=False, index=True)
    game_key_id = Column(Uuid(as_uuid=True), ForeignKey("game_keys.id"), nullable=False, unique=True)

    value_cents = Column(Integer, nullable=False)  # price snapshot at purchase time

    created_at = Column(TIMESTAMP, server_default=func.now())
