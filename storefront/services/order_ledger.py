"""Order ledger: the purchase transaction and order/detail bookkeeping.

``create_order`` runs the checkout as a sequence of independent atomic
steps rather than one database transaction:

1. validate the customer, the requested games and ownership;
2. snapshot prices and, for wallet payments, pre-check the balance;
3. persist the order as PENDING;
4. reserve one key per game (committed compare-and-swap per key);
5. debit the wallet (conditional decrement);
6. commit the sale: keys SOLD, one detail row per key, order COMPLETED,
   all in a single transaction.

Any failure after step 3 is compensated before the error propagates:
reservations are released, a debit is credited back and the order is kept
as FAILED with the failure code, so the inventory looks as if the order
never started.

Card and PayPal orders are accepted but not charged: no payment gateway is
wired in and nothing here pretends otherwise.
"""

import logging
import secrets
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy.exc import DBAPIError, IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from storefront.errors import (
    AccountInactive,
    AlreadyOwned,
    BadRequest,
    GameNotReleased,
    GameOutOfStock,
    InsufficientFunds,
    InvalidTransition,
    NotFound,
    OutOfStock,
    StoreError,
)
from storefront.models.game import Game
from storefront.models.game_key import GameKey, KeyStatus
from storefront.models.order import Order, PaymentMethod, PaymentStatus
from storefront.models.order_detail import OrderDetail
from storefront.services.accounts import AccountStore
from storefront.services.catalog import CatalogStore, GameSnapshot
from storefront.services.key_inventory import KeyInventory
from storefront.services.timeutil import utcnow


logger = logging.getLogger(__name__)


def generate_transaction_id() -> str:
    # Millisecond prefix for debugging, random suffix for uniqueness.
    return f"tx_{int(time.time() * 1000)}_{secrets.token_hex(6)}"


@dataclass
class OrderReceipt:
    order: Order
    details: list[OrderDetail] = field(default_factory=list)


@dataclass(frozen=True)
class LibraryEntry:
    key_id: uuid.UUID
    key_code: str
    game_id: uuid.UUID
    game_name: str
    game_version: str
    activation_status: str
    ownership_date: datetime | None


@dataclass(frozen=True)
class _Reservation:
    game: GameSnapshot
    price_cents: int
    key_id: uuid.UUID


def _method_token(value) -> str:
    return "".join(ch for ch in str(value).upper() if ch.isalnum())


# "CreditCard", "credit-card" and "CREDIT_CARD" all name the same method.
_METHODS_BY_TOKEN = {_method_token(m.value): m for m in PaymentMethod}


def parse_payment_method(value) -> PaymentMethod:
    if isinstance(value, PaymentMethod):
        return value
    method = _METHODS_BY_TOKEN.get(_method_token(value))
    if method is None:
        raise BadRequest(f"Unsupported payment method: {value}")
    return method


class OrderLedger:
    def __init__(
        self,
        db: Session,
        *,
        inventory: KeyInventory,
        accounts: AccountStore,
        catalog: CatalogStore,
    ):
        self.db = db
        self.inventory = inventory
        self.accounts = accounts
        self.catalog = catalog

    # ------------------------------------------------------------------
    # Checkout
    # ------------------------------------------------------------------
    def create_order(self, customer_id: uuid.UUID, payment_method, game_ids) -> OrderReceipt:
        method = parse_payment_method(payment_method)

        customer = self.accounts.get_customer(customer_id)
        if customer is None:
            raise NotFound(f"Customer {customer_id} not found", customer_id=customer_id)
        if not customer.is_active:
            raise AccountInactive(f"Customer account is {customer.status.lower()}", customer_id=customer_id)

        game_ids = list(game_ids or [])
        if not game_ids:
            raise BadRequest("At least one game is required")
        if len(set(game_ids)) != len(game_ids):
            raise BadRequest("A game can only appear once per order")

        games = [self._purchasable_game(game_id, customer_id) for game_id in game_ids]
        prices = [g.effective_price_cents for g in games]
        total_cents = sum(prices)

        if method == PaymentMethod.WALLET and customer.balance_cents < total_cents:
            raise InsufficientFunds(
                "Wallet balance does not cover the order",
                balance_cents=customer.balance_cents,
                total_cents=total_cents,
            )

        order_id = uuid.uuid4()
        transaction_id = generate_transaction_id()
        self.db.add(
            Order(
                id=order_id,
                customer_id=customer_id,
                order_date=utcnow(),
                total_cents=total_cents,
                payment_method=method.value,
                transaction_id=transaction_id,
                payment_status=PaymentStatus.PENDING.value,
            )
        )
        self.db.commit()
        log_ctx = {"order_id": str(order_id), "transaction_id": transaction_id, "customer_id": str(customer_id)}
        logger.info("order pending", extra={**log_ctx, "games": len(games), "total_cents": total_cents})

        if method != PaymentMethod.WALLET:
            logger.warning(
                "payment method not charged; no gateway integration",
                extra={**log_ctx, "payment_method": method.value},
            )

        reservations: list[_Reservation] = []
        debited = False
        try:
            for game, price in zip(games, prices):
                try:
                    key_id = self.inventory.reserve_one(game.id)
                except OutOfStock:
                    raise GameOutOfStock(f"{game.name} is out of stock", game_id=game.id) from None
                reservations.append(_Reservation(game=game, price_cents=price, key_id=key_id))

            if method == PaymentMethod.WALLET:
                if not self.accounts.debit_wallet(customer_id, total_cents):
                    raise InsufficientFunds("Wallet balance does not cover the order", total_cents=total_cents)
                debited = True

            details = self._commit_sale(order_id, customer_id, reservations)
        except Exception as exc:
            self._compensate(order_id, customer_id, reservations, debited, total_cents, exc, log_ctx)
            raise

        logger.info("order completed", extra={**log_ctx, "keys": len(details)})
        return OrderReceipt(order=self._order_row(order_id), details=details)

    def _purchasable_game(self, game_id: uuid.UUID, customer_id: uuid.UUID) -> GameSnapshot:
        game = self.catalog.get_game(game_id)
        if game is None:
            raise NotFound(f"Game {game_id} not found", game_id=game_id)
        if not game.is_released:
            raise GameNotReleased(f"{game.name} is not released", game_id=game_id)
        if self.inventory.customer_already_owns(game_id, customer_id):
            raise AlreadyOwned(f"{game.name} is already in your library", game_id=game_id)
        return game

    def _commit_sale(
        self,
        order_id: uuid.UUID,
        customer_id: uuid.UUID,
        reservations: list[_Reservation],
    ) -> list[OrderDetail]:
        sale_time = utcnow()
        details = []
        for r in reservations:
            try:
                self.inventory.confirm_sale(r.key_id, customer_id, sale_time)
            except IntegrityError:
                # uq_game_keys_game_id_owner: a concurrent order already gave this customer the game.
                raise AlreadyOwned(f"{r.game.name} is already in your library", game_id=r.game.id) from None
            details.append(
                OrderDetail(
                    id=uuid.uuid4(),
                    order_id=order_id,
                    game_id=r.game.id,
                    game_key_id=r.key_id,
                    value_cents=r.price_cents,
                    created_at=sale_time,
                )
            )
        self.db.add_all(details)

        completed = (
            self.db.query(Order)
            .filter(Order.id == order_id, Order.payment_status == PaymentStatus.PENDING.value)
            .update(
                {Order.payment_status: PaymentStatus.COMPLETED.value, Order.updated_at: sale_time},
                synchronize_session=False,
            )
        )
        if completed != 1:
            raise InvalidTransition(f"Order {order_id} is no longer pending", order_id=order_id)
        self.db.commit()
        return details

    def _compensate(
        self,
        order_id: uuid.UUID,
        customer_id: uuid.UUID,
        reservations: list[_Reservation],
        debited: bool,
        total_cents: int,
        exc: Exception,
        log_ctx: dict,
    ) -> None:
        """Undo every step taken for the order, then mark it FAILED.

        Each step is attempted even if an earlier one hits the database;
        whatever could not be undone is logged at ERROR level for operators.
        The caller re-raises the original exception.
        """
        if isinstance(exc, StoreError):
            code = exc.code
        elif isinstance(exc, DBAPIError):
            code = "STORAGE_UNAVAILABLE"
        else:
            code = "INTERNAL_ERROR"

        self.db.rollback()

        orphaned = []
        for r in reservations:
            try:
                self.inventory.release_reservation(r.key_id)
            except (SQLAlchemyError, StoreError):
                self.db.rollback()
                orphaned.append(str(r.key_id))
        if orphaned:
            logger.error("reservations left orphaned", extra={**log_ctx, "key_ids": orphaned})

        if debited:
            try:
                self.accounts.credit_wallet(customer_id, total_cents)
            except SQLAlchemyError:
                self.db.rollback()
                logger.error("wallet debit not reverted", extra={**log_ctx, "amount_cents": total_cents})

        try:
            self._mark_failed(order_id, code)
        except SQLAlchemyError:
            self.db.rollback()
            logger.error("order left pending after failure", extra={**log_ctx, "failure_code": code})
            return

        logger.info(
            "order failed",
            extra={**log_ctx, "failure_code": code, "released": len(reservations) - len(orphaned)},
        )

    def _mark_failed(self, order_id: uuid.UUID, code: str) -> None:
        self.db.query(Order).filter(
            Order.id == order_id,
            Order.payment_status == PaymentStatus.PENDING.value,
        ).update(
            {
                Order.payment_status: PaymentStatus.FAILED.value,
                Order.failure_code: code,
                Order.updated_at: utcnow(),
            },
            synchronize_session=False,
        )
        self.db.commit()

    # ------------------------------------------------------------------
    # Administrative transitions
    # ------------------------------------------------------------------
    def mark_refunded(self, order_id: uuid.UUID) -> None:
        """COMPLETED -> REFUNDED. Keys stay SOLD.

        Runs in the caller's transaction; the caller commits.
        """
        updated = (
            self.db.query(Order)
            .filter(Order.id == order_id, Order.payment_status == PaymentStatus.COMPLETED.value)
            .update(
                {Order.payment_status: PaymentStatus.REFUNDED.value, Order.updated_at: utcnow()},
                synchronize_session=False,
            )
        )
        if updated != 1:
            order = self._order_row(order_id)
            raise InvalidTransition(
                f"Order cannot be refunded from status {order.payment_status}",
                order_id=order_id,
            )
        logger.info("order refunded", extra={"order_id": str(order_id)})

    # ------------------------------------------------------------------
    # Read projections
    # ------------------------------------------------------------------
    def _order_row(self, order_id: uuid.UUID) -> Order:
        order = self.db.query(Order).filter(Order.id == order_id).first()
        if not order:
            raise NotFound(f"Order {order_id} not found", order_id=order_id)
        return order

    def _with_details(self, orders: list[Order]) -> list[OrderReceipt]:
        if not orders:
            return []
        by_order: dict[uuid.UUID, list[OrderDetail]] = {o.id: [] for o in orders}
        details = (
            self.db.query(OrderDetail)
            .filter(OrderDetail.order_id.in_(list(by_order)))
            .order_by(OrderDetail.created_at.asc(), OrderDetail.id.asc())
            .all()
        )
        for d in details:
            by_order[d.order_id].append(d)
        return [OrderReceipt(order=o, details=by_order[o.id]) for o in orders]

    def get_order(self, order_id: uuid.UUID, *, customer_id: uuid.UUID | None = None) -> OrderReceipt:
        order = self._order_row(order_id)
        if customer_id is not None and order.customer_id != customer_id:
            raise NotFound(f"Order {order_id} not found", order_id=order_id)
        return self._with_details([order])[0]

    def list_orders(
        self,
        *,
        customer_id: uuid.UUID | None = None,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[OrderReceipt]:
        q = self.db.query(Order)
        if customer_id is not None:
            q = q.filter(Order.customer_id == customer_id)
        if status:
            q = q.filter(Order.payment_status == status)
        orders = q.order_by(Order.order_date.desc(), Order.id.asc()).offset(offset).limit(limit).all()
        return self._with_details(orders)

    def get_order_history(self, customer_id: uuid.UUID, *, limit: int = 200, offset: int = 0) -> list[OrderReceipt]:
        return self.list_orders(customer_id=customer_id, limit=limit, offset=offset)

    def get_library(self, customer_id: uuid.UUID) -> list[LibraryEntry]:
        rows = (
            self.db.query(GameKey, Game)
            .join(Game, Game.id == GameKey.game_id)
            .filter(
                GameKey.owner_customer_id == customer_id,
                GameKey.business_status == KeyStatus.SOLD.value,
            )
            .order_by(GameKey.ownership_date.desc(), Game.name.asc())
            .all()
        )
        return [
            LibraryEntry(
                key_id=key.id,
                key_code=key.key_code,
                game_id=game.id,
                game_name=game.name,
                game_version=key.game_version,
                activation_status=key.activation_status,
                ownership_date=key.ownership_date,
            )
            for key, game in rows
        ]
