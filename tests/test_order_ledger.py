import uuid

import pytest
from sqlalchemy.exc import OperationalError

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
)
from storefront.models.customer import AccountStatus, Customer
from storefront.models.game import ReleaseStatus
from storefront.models.game_key import GameKey, KeyStatus
from storefront.models.order import Order, PaymentStatus
from storefront.models.order_detail import OrderDetail
from storefront.services.key_inventory import KeyCounts, KeyInventory


def _balance(db, customer_id):
    db.expire_all()
    return db.get(Customer, customer_id).balance_cents


def test_wallet_order_completes(db, ledger, make_customer, make_game):
    customer_id = make_customer(balance_cents=10_000)
    full_price = make_game(name="Starfall", price_cents=5999, keys=2)
    discounted = make_game(name="Hollow Pines", price_cents=2999, discount_cents=1999, keys=2)

    receipt = ledger.create_order(customer_id, "WALLET", [full_price, discounted])

    order = receipt.order
    assert order.payment_status == PaymentStatus.COMPLETED.value
    assert order.payment_method == "WALLET"
    assert order.failure_code is None
    assert order.transaction_id.startswith("tx_")
    assert order.total_cents == 7998
    assert len(receipt.details) == 2
    assert sum(d.value_cents for d in receipt.details) == order.total_cents
    assert {d.game_id: d.value_cents for d in receipt.details} == {full_price: 5999, discounted: 1999}

    assert _balance(db, customer_id) == 10_000 - 7998

    inventory = KeyInventory(db)
    for game_id in (full_price, discounted):
        assert inventory.count_by_status(game_id) == KeyCounts(available=1, sold=1, reserved=0, total=2)
        assert inventory.customer_already_owns(game_id, customer_id)

    sold = db.query(GameKey).filter(GameKey.business_status == KeyStatus.SOLD.value).all()
    assert {k.id for k in sold} == {d.game_key_id for d in receipt.details}
    assert all(k.owner_customer_id == customer_id for k in sold)


@pytest.mark.parametrize(
    "spelling, stored",
    [
        ("Wallet", "WALLET"),
        ("wallet", "WALLET"),
        ("CreditCard", "CREDIT_CARD"),
        ("credit-card", "CREDIT_CARD"),
        ("CREDIT_CARD", "CREDIT_CARD"),
        ("PayPal", "PAYPAL"),
    ],
)
def test_payment_method_spellings(ledger, make_customer, make_game, spelling, stored):
    receipt = ledger.create_order(make_customer(), spelling, [make_game(keys=1)])
    assert receipt.order.payment_method == stored
    assert receipt.order.payment_status == PaymentStatus.COMPLETED.value


def test_unknown_payment_method(ledger, make_customer, make_game):
    with pytest.raises(BadRequest):
        ledger.create_order(make_customer(), "BITCOIN", [make_game(keys=1)])


def test_insufficient_funds_leaves_nothing_behind(db, ledger, make_customer, make_game):
    customer_id = make_customer(balance_cents=5000)
    game_id = make_game(price_cents=5999, keys=1)

    with pytest.raises(InsufficientFunds):
        ledger.create_order(customer_id, "WALLET", [game_id])

    assert db.query(Order).count() == 0
    assert KeyInventory(db).count_by_status(game_id) == KeyCounts(available=1, sold=0, reserved=0, total=1)
    assert _balance(db, customer_id) == 5000


def test_out_of_stock_releases_other_reservations(db, ledger, make_customer, make_game):
    customer_id = make_customer(balance_cents=20_000)
    in_stock = make_game(name="In Stock", keys=2)
    sold_out = make_game(name="Sold Out", keys=0)

    with pytest.raises(GameOutOfStock) as excinfo:
        ledger.create_order(customer_id, "WALLET", [in_stock, sold_out])
    assert isinstance(excinfo.value, OutOfStock)
    assert excinfo.value.code == "OUT_OF_STOCK"

    assert KeyInventory(db).count_by_status(in_stock) == KeyCounts(available=2, sold=0, reserved=0, total=2)
    assert _balance(db, customer_id) == 20_000

    order = db.query(Order).one()
    assert order.payment_status == PaymentStatus.FAILED.value
    assert order.failure_code == "OUT_OF_STOCK"
    assert db.query(OrderDetail).count() == 0


@pytest.mark.parametrize("status", [AccountStatus.INACTIVE.value, AccountStatus.SUSPENDED.value])
def test_inactive_account(ledger, make_customer, make_game, status):
    with pytest.raises(AccountInactive):
        ledger.create_order(make_customer(status=status), "WALLET", [make_game(keys=1)])


def test_unknown_customer(ledger, make_game):
    with pytest.raises(NotFound):
        ledger.create_order(uuid.uuid4(), "WALLET", [make_game(keys=1)])


def test_unknown_game(db, ledger, make_customer):
    with pytest.raises(NotFound):
        ledger.create_order(make_customer(), "WALLET", [uuid.uuid4()])
    assert db.query(Order).count() == 0


def test_game_not_released(db, ledger, make_customer, make_game):
    game_id = make_game(release_status=ReleaseStatus.UPCOMING.value, keys=1)
    with pytest.raises(GameNotReleased):
        ledger.create_order(make_customer(), "WALLET", [game_id])
    assert KeyInventory(db).count_by_status(game_id).available == 1


def test_already_owned(db, ledger, make_customer, make_game):
    customer_id = make_customer(balance_cents=20_000)
    game_id = make_game(keys=2)
    ledger.create_order(customer_id, "WALLET", [game_id])

    with pytest.raises(AlreadyOwned):
        ledger.create_order(customer_id, "WALLET", [game_id])

    assert KeyInventory(db).count_by_status(game_id) == KeyCounts(available=1, sold=1, reserved=0, total=2)
    assert _balance(db, customer_id) == 20_000 - 5999


def test_empty_and_duplicate_game_lists(ledger, make_customer, make_game):
    customer_id = make_customer()
    game_id = make_game(keys=2)
    with pytest.raises(BadRequest):
        ledger.create_order(customer_id, "WALLET", [])
    with pytest.raises(BadRequest):
        ledger.create_order(customer_id, "WALLET", [game_id, game_id])


def test_card_payment_is_not_charged_to_wallet(db, ledger, make_customer, make_game):
    customer_id = make_customer(balance_cents=0)
    game_id = make_game(keys=1)

    receipt = ledger.create_order(customer_id, "CREDIT_CARD", [game_id])

    assert receipt.order.payment_status == PaymentStatus.COMPLETED.value
    assert receipt.order.payment_method == "CREDIT_CARD"
    assert _balance(db, customer_id) == 0


def test_commit_failure_is_compensated(db, ledger, make_customer, make_game, monkeypatch):
    customer_id = make_customer(balance_cents=10_000)
    game_id = make_game(keys=1)

    def broken(*args, **kwargs):
        raise RuntimeError("disk on fire")

    monkeypatch.setattr(ledger.inventory, "confirm_sale", broken)

    with pytest.raises(RuntimeError):
        ledger.create_order(customer_id, "WALLET", [game_id])

    assert _balance(db, customer_id) == 10_000
    assert KeyInventory(db).count_by_status(game_id) == KeyCounts(available=1, sold=0, reserved=0, total=1)
    order = db.query(Order).one()
    assert order.payment_status == PaymentStatus.FAILED.value
    assert order.failure_code == "INTERNAL_ERROR"


def test_storage_failure_is_recorded(db, ledger, make_customer, make_game, monkeypatch):
    customer_id = make_customer(balance_cents=10_000)
    game_id = make_game(keys=1)

    def unavailable(*args, **kwargs):
        raise OperationalError("UPDATE accounts", {}, Exception("connection lost"))

    monkeypatch.setattr(ledger.accounts, "debit_wallet", unavailable)

    with pytest.raises(OperationalError):
        ledger.create_order(customer_id, "WALLET", [game_id])

    assert KeyInventory(db).count_by_status(game_id).available == 1
    assert db.query(Order).one().failure_code == "STORAGE_UNAVAILABLE"
    assert _balance(db, customer_id) == 10_000


def test_history_and_library(ledger, make_customer, make_game):
    customer_id = make_customer(balance_cents=50_000)
    first = make_game(name="Alpha", keys=1)
    second = make_game(name="Beta", version="2.1", keys=1)

    ledger.create_order(customer_id, "WALLET", [first])
    ledger.create_order(customer_id, "PAYPAL", [second])

    history = ledger.get_order_history(customer_id)
    assert len(history) == 2
    assert all(len(r.details) == 1 for r in history)
    assert {r.order.payment_method for r in history} == {"WALLET", "PAYPAL"}

    library = ledger.get_library(customer_id)
    assert {e.game_name for e in library} == {"Alpha", "Beta"}
    assert {e.game_version for e in library} == {"1.0", "2.1"}
    assert all(e.activation_status == "NOT_ACTIVATED" for e in library)

    assert ledger.get_order_history(uuid.uuid4()) == []
    assert ledger.get_library(uuid.uuid4()) == []


def test_get_order_is_scoped_to_customer(ledger, make_customer, make_game):
    customer_id = make_customer()
    receipt = ledger.create_order(customer_id, "WALLET", [make_game(keys=1)])
    order_id = receipt.order.id

    assert ledger.get_order(order_id, customer_id=customer_id).order.id == order_id
    with pytest.raises(NotFound):
        ledger.get_order(order_id, customer_id=make_customer())


def test_mark_refunded(db, ledger, make_customer, make_game):
    customer_id = make_customer()
    game_id = make_game(keys=1)
    order_id = ledger.create_order(customer_id, "WALLET", [game_id]).order.id

    ledger.mark_refunded(order_id)
    db.commit()
    db.expire_all()
    assert db.get(Order, order_id).payment_status == PaymentStatus.REFUNDED.value
    # Keys stay with the customer.
    assert KeyInventory(db).count_by_status(game_id).sold == 1

    with pytest.raises(InvalidTransition):
        ledger.mark_refunded(order_id)
    db.rollback()


def test_ownership_is_enforced_at_commit(db, ledger, make_customer, make_game, monkeypatch):
    """A stale ownership read must not let the same game be sold twice to one customer."""
    customer_id = make_customer(balance_cents=20_000)
    game_id = make_game(keys=3)
    ledger.create_order(customer_id, "WALLET", [game_id])

    monkeypatch.setattr(ledger.inventory, "customer_already_owns", lambda *args: False)

    with pytest.raises(AlreadyOwned):
        ledger.create_order(customer_id, "WALLET", [game_id])

    assert _balance(db, customer_id) == 20_000 - 5999
    assert KeyInventory(db).count_by_status(game_id) == KeyCounts(available=2, sold=1, reserved=0, total=3)
    failed = db.query(Order).filter(Order.payment_status == PaymentStatus.FAILED.value).one()
    assert failed.failure_code == "ALREADY_OWNED"


def test_compensation_continues_past_a_stuck_key(db, ledger, make_customer, make_game, monkeypatch, caplog):
    customer_id = make_customer(balance_cents=20_000)
    first = make_game(name="First", keys=1)
    second = make_game(name="Second", keys=1)

    def broken(*args, **kwargs):
        raise RuntimeError("disk on fire")

    release = ledger.inventory.release_reservation
    calls = []

    def release_once_stuck(key_id):
        calls.append(key_id)
        if len(calls) == 1:
            raise InvalidTransition("stuck", key_id=key_id)
        return release(key_id)

    monkeypatch.setattr(ledger.inventory, "confirm_sale", broken)
    monkeypatch.setattr(ledger.inventory, "release_reservation", release_once_stuck)

    with caplog.at_level("ERROR", logger="storefront.services.order_ledger"):
        with pytest.raises(RuntimeError):
            ledger.create_order(customer_id, "WALLET", [first, second])

    assert len(calls) == 2
    assert "reservations left orphaned" in caplog.text

    inventory = KeyInventory(db)
    assert inventory.count_by_status(first) == KeyCounts(available=0, sold=0, reserved=1, total=1)
    assert inventory.count_by_status(second) == KeyCounts(available=1, sold=0, reserved=0, total=1)
    assert _balance(db, customer_id) == 20_000
    order = db.query(Order).one()
    assert order.payment_status == PaymentStatus.FAILED.value
    assert order.failure_code == "INTERNAL_ERROR"
