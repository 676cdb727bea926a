import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.db import get_db
from storefront.deps.principal import Principal, require_customer
from storefront.deps.services import get_ledger
from storefront.schemas.order import LibraryEntryOut, OrderCreate, OrderOut
from storefront.schemas.refund_request import RefundRequestCreate, RefundRequestOut
from storefront.services.order_ledger import OrderLedger
from storefront.services.refund_service import list_refund_requests, request_refund

router = APIRouter(prefix="/customers/me", tags=["orders"])


@router.post("/orders", response_model=OrderOut, status_code=201)
def create_order(
    payload: OrderCreate,
    principal: Principal = Depends(require_customer),
    ledger: OrderLedger = Depends(get_ledger),
):
    receipt = ledger.create_order(principal.account_id, payload.paymentMethod, payload.gameIds)
    return OrderOut.from_receipt(receipt)


@router.get("/orders", response_model=list[OrderOut])
def list_my_orders(
    limit: int = 50,
    offset: int = 0,
    principal: Principal = Depends(require_customer),
    ledger: OrderLedger = Depends(get_ledger),
):
    limit = max(1, min(200, limit))
    receipts = ledger.get_order_history(principal.account_id, limit=limit, offset=max(0, offset))
    return [OrderOut.from_receipt(r) for r in receipts]


@router.get("/orders/{order_id}", response_model=OrderOut)
def get_my_order(
    order_id: uuid.UUID,
    principal: Principal = Depends(require_customer),
    ledger: OrderLedger = Depends(get_ledger),
):
    return OrderOut.from_receipt(ledger.get_order(order_id, customer_id=principal.account_id))


@router.get("/library", response_model=list[LibraryEntryOut])
def my_library(
    principal: Principal = Depends(require_customer),
    ledger: OrderLedger = Depends(get_ledger),
):
    return ledger.get_library(principal.account_id)


@router.post("/orders/{order_id}/refund-requests", response_model=RefundRequestOut, status_code=201)
def create_refund_request(
    order_id: uuid.UUID,
    payload: RefundRequestCreate,
    principal: Principal = Depends(require_customer),
    db: Session = Depends(get_db),
):
    return request_refund(db, customer_id=principal.account_id, order_id=order_id, reason=payload.reason)


@router.get("/refund-requests", response_model=list[RefundRequestOut])
def list_my_refund_requests(
    principal: Principal = Depends(require_customer),
    db: Session = Depends(get_db),
):
    return list_refund_requests(db, customer_id=principal.account_id)
