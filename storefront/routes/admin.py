import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.db import get_db
from storefront.deps.principal import Principal, require_admin
from storefront.deps.services import get_ledger
from storefront.errors import BadRequest
from storefront.models.order import PaymentStatus
from storefront.models.refund_request import RefundStatus
from storefront.schemas.order import OrderOut
from storefront.schemas.refund_request import RefundRequestOut, RefundResolve
from storefront.services.dashboard_service import platform_counts
from storefront.services.order_ledger import OrderLedger
from storefront.services.refund_service import list_refund_requests, resolve_refund

router = APIRouter(prefix="/admin", tags=["admin"])


def _status_filter(value: str | None, allowed) -> str | None:
    if not value:
        return None
    value = value.upper()
    if value not in {s.value for s in allowed}:
        raise BadRequest(f"Unknown status: {value}")
    return value


@router.get("/orders", response_model=list[OrderOut])
def list_orders(
    status: str | None = None,
    customer_id: uuid.UUID | None = None,
    limit: int = 50,
    offset: int = 0,
    _: Principal = Depends(require_admin),
    ledger: OrderLedger = Depends(get_ledger),
):
    receipts = ledger.list_orders(
        customer_id=customer_id,
        status=_status_filter(status, PaymentStatus),
        limit=max(1, min(200, limit)),
        offset=max(0, offset),
    )
    return [OrderOut.from_receipt(r) for r in receipts]


@router.get("/orders/{order_id}", response_model=OrderOut)
def get_order(
    order_id: uuid.UUID,
    _: Principal = Depends(require_admin),
    ledger: OrderLedger = Depends(get_ledger),
):
    return OrderOut.from_receipt(ledger.get_order(order_id))


@router.get("/refund-requests", response_model=list[RefundRequestOut])
def list_refunds(
    status: str | None = None,
    _: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return list_refund_requests(db, status=_status_filter(status, RefundStatus))


@router.post("/refund-requests/{request_id}/resolve", response_model=RefundRequestOut)
def resolve(
    request_id: uuid.UUID,
    payload: RefundResolve,
    principal: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
    ledger: OrderLedger = Depends(get_ledger),
):
    return resolve_refund(
        db,
        ledger,
        request_id=request_id,
        admin_id=principal.account_id,
        approve=payload.approve,
        note=payload.note,
    )


@router.get("/statistics")
def statistics(
    _: Principal = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return platform_counts(db)
