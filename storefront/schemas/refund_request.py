from datetime import datetime
from typing import Optional

from uuid import UUID

from pydantic import BaseModel, Field


class RefundRequestCreate(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=500)


class RefundResolve(BaseModel):
    approve: bool
    note: Optional[str] = Field(default=None, max_length=500)


class RefundRequestOut(BaseModel):
    id: UUID
    order_id: UUID
    customer_id: UUID

    status: str
    reason: Optional[str] = None

    requested_at: datetime
    resolved_at: Optional[datetime] = None
    resolution_note: Optional[str] = None
    processed_by_admin_id: Optional[UUID] = None

    class Config:
        from_attributes = True
