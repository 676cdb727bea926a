import uuid

from sqlalchemy import Column, String, TIMESTAMP, Uuid
from sqlalchemy.sql import func

from storefront.db import Base
from storefront.models.customer import AccountStatus


class Publisher(Base):
    __tablename__ = "publishers"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    name = Column(String(150), nullable=False)
    status = Column(String(20), nullable=False, default=AccountStatus.ACTIVE.value)

    created_at = Column(TIMESTAMP, server_default=func.now())
