from datetime import datetime
from decimal import Decimal

import pytest

from storefront.errors import GameOutOfStock, InsufficientFunds, OutOfStock
from storefront.money import from_cents
from storefront.services.timeutil import months_ago, parse_when, years_ago


def test_months_ago_clamps_day():
    assert months_ago(1, now=datetime(2024, 3, 31, 10)) == datetime(2024, 2, 29, 10)
    assert months_ago(12, now=datetime(2024, 1, 15)) == datetime(2023, 1, 15)
    assert years_ago(1, now=datetime(2024, 2, 29)) == datetime(2023, 2, 28)


def test_parse_when():
    assert parse_when(None) is None
    assert parse_when("  ") is None
    assert parse_when("2024-06-01") == datetime(2024, 6, 1)
    assert parse_when("2024-06-01", end_of_day=True) == datetime(2024, 6, 1, 23, 59, 59, 999999)
    assert parse_when("2024-06-01T12:00:00Z") == datetime(2024, 6, 1, 12)
    assert parse_when("2024-06-01T14:00:00+02:00") == datetime(2024, 6, 1, 12)
    with pytest.raises(ValueError):
        parse_when("last tuesday")


def test_from_cents():
    assert from_cents(5999) == Decimal("59.99")
    assert from_cents(None) == Decimal("0.00")
    assert from_cents(7) == Decimal("0.07")


def test_error_bodies():
    err = InsufficientFunds("Wallet balance does not cover the order", total_cents=5999)
    assert err.status_code == 402
    assert err.to_dict() == {
        "detail": "Wallet balance does not cover the order",
        "code": "INSUFFICIENT_FUNDS",
        "context": {"total_cents": "5999"},
    }
    stock = GameOutOfStock()
    assert isinstance(stock, OutOfStock)
    assert stock.to_dict() == {"detail": "OUT_OF_STOCK", "code": "OUT_OF_STOCK"}
