from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from uuid import UUID

from pydantic import BaseModel

from storefront.money import from_cents


class OrderCreate(BaseModel):
    paymentMethod: str
    gameIds: List[UUID] = []


class OrderDetailOut(BaseModel):
    id: UUID
    order_id: UUID
    game_id: UUID
    game_key_id: UUID
    value: Decimal

    created_at: Optional[datetime] = None


class OrderOut(BaseModel):
    id: UUID
    customer_id: UUID
    order_date: datetime

    total_value: Decimal
    payment_method: str
    transaction_id: str
    payment_status: str
    failure_code: Optional[str] = None

    details: List[OrderDetailOut] = []
    legacy_items: Optional[List[Dict[str, Any]]] = None

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_receipt(cls, receipt) -> "OrderOut":
        order = receipt.order
        return cls(
            id=order.id,
            customer_id=order.customer_id,
            order_date=order.order_date,
            total_value=from_cents(order.total_cents),
            payment_method=order.payment_method,
            transaction_id=order.transaction_id,
            payment_status=order.payment_status,
            failure_code=order.failure_code,
            details=[
                OrderDetailOut(
                    id=d.id,
                    order_id=d.order_id,
                    game_id=d.game_id,
                    game_key_id=d.game_key_id,
                    value=from_cents(d.value_cents),
                    created_at=d.created_at,
                )
                for d in receipt.details
            ],
            legacy_items=order.items or None,
            created_at=order.created_at,
            updated_at=order.updated_at,
        )


class LibraryEntryOut(BaseModel):
    key_id: UUID
    key_code: str
    game_id: UUID
    game_name: str
    game_version: str
    activation_status: str
    ownership_date: Optional[datetime] = None

    class Config:
        from_attributes = True
