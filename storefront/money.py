from decimal import Decimal

CENT = Decimal("0.01")


def from_cents(cents: int | None) -> Decimal:
    return (Decimal(int(cents or 0)) / 100).quantize(CENT)
