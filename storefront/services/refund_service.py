import logging
import os
import uuid
from datetime import timedelta

from sqlalchemy.orm import Session

from storefront.errors import Conflict, NotFound, RefundNotAllowed
from storefront.models.order import Order, PaymentStatus
from storefront.models.refund_request import RefundRequest, RefundStatus
from storefront.services.order_ledger import OrderLedger
from storefront.services.timeutil import utcnow


logger = logging.getLogger(__name__)

DEFAULT_REFUND_WINDOW_DAYS = 7


def refund_window_days() -> int:
    raw = os.getenv("REFUND_WINDOW_DAYS")
    try:
        days = int(raw) if raw else DEFAULT_REFUND_WINDOW_DAYS
    except ValueError:
        return DEFAULT_REFUND_WINDOW_DAYS
    return days if days > 0 else DEFAULT_REFUND_WINDOW_DAYS


def request_refund(db: Session, *, customer_id: uuid.UUID, order_id: uuid.UUID, reason: str | None = None):
    order = db.query(Order).filter(Order.id == order_id).first()
    if not order or order.customer_id != customer_id:
        raise NotFound("Order not found", order_id=order_id)

    if order.payment_status == PaymentStatus.REFUNDED.value:
        raise RefundNotAllowed("This order has already been refunded")
    if order.payment_status != PaymentStatus.COMPLETED.value:
        raise RefundNotAllowed("Only completed orders can be refunded")

    now = utcnow()
    window = refund_window_days()
    age = now - order.order_date
    if age < timedelta(0) or age > timedelta(days=window):
        raise RefundNotAllowed(
            f"Refund window expired. Refunds are allowed within {window} days of purchase."
        )

    pending = (
        db.query(RefundRequest.id)
        .filter(
            RefundRequest.order_id == order_id,
            RefundRequest.status == RefundStatus.PENDING.value,
        )
        .first()
    )
    if pending:
        raise Conflict("A refund request is already pending for this order")

    reason = (reason or "").strip() or None
    refund = RefundRequest(
        order_id=order_id,
        customer_id=customer_id,
        status=RefundStatus.PENDING.value,
        reason=reason[:500] if reason else None,
        requested_at=now,
    )
    db.add(refund)
    db.commit()
    db.refresh(refund)

    logger.info("refund requested", extra={"order_id": str(order_id), "refund_request_id": str(refund.id)})
    return refund


def list_refund_requests(db: Session, *, customer_id: uuid.UUID | None = None, status: str | None = None):
    q = db.query(RefundRequest)
    if customer_id is not None:
        q = q.filter(RefundRequest.customer_id == customer_id)
    if status:
        q = q.filter(RefundRequest.status == status)
    return q.order_by(RefundRequest.requested_at.desc()).all()


def resolve_refund(
    db: Session,
    ledger: OrderLedger,
    *,
    request_id: uuid.UUID,
    admin_id: uuid.UUID,
    approve: bool,
    note: str | None = None,
):
    """Approve or reject a pending refund request.

    Approval moves the order COMPLETED -> REFUNDED in the same transaction
    as the request update. Returning the money is handled by the payment
    side, outside this service.
    """
    refund = db.query(RefundRequest).filter(RefundRequest.id == request_id).first()
    if not refund:
        raise NotFound("Refund request not found", refund_request_id=request_id)
    if refund.status != RefundStatus.PENDING.value:
        raise Conflict(f"Refund request already {refund.status.lower()}")

    if approve:
        ledger.mark_refunded(refund.order_id)

    refund.status = (RefundStatus.APPROVED if approve else RefundStatus.REJECTED).value
    refund.resolved_at = utcnow()
    refund.resolution_note = (note or "").strip()[:500] or None
    refund.processed_by_admin_id = admin_id
    db.commit()
    db.refresh(refund)

    logger.info(
        "refund resolved",
        extra={"refund_request_id": str(refund.id), "order_id": str(refund.order_id), "status": refund.status},
    )
    return refund
