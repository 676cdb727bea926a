"""Read-only statistics over the key inventory and the order ledger.

Nothing in this module writes. Sales are read from COMPLETED orders only,
which is what keeps dashboards consistent while purchases are in flight:
an order being checked out is PENDING until its keys, details and status
are committed together.

Two order shapes exist in the data:

* normalized orders, one ``order_details`` row per sold key;
* legacy orders carrying an embedded ``items`` list and no detail rows.

Both are read. An order that has any detail row is never read through its
embedded items, so nothing is counted twice.
"""

import math
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from sqlalchemy import exists, func
from sqlalchemy.orm import Session

from storefront.errors import BadRequest
from storefront.models.game_key import GameKey
from storefront.models.order import Order, PaymentStatus
from storefront.models.order_detail import OrderDetail
from storefront.money import from_cents
from storefront.services.key_inventory import KeyCounts, counts_from_rows


GRANULARITIES = ("day", "month", "year")

_PERIOD_FORMATS = {
    "day": "%Y-%m-%d",
    "month": "%Y-%m",
    "year": "%Y",
}


def period_key(moment: datetime, granularity: str) -> str:
    """UTC calendar bucket for ``moment``: ``YYYY-MM-DD``, ``YYYY-MM`` or ``YYYY``."""
    try:
        return moment.strftime(_PERIOD_FORMATS[granularity])
    except KeyError:
        raise BadRequest("granularity must be day, month, or year") from None


@dataclass(frozen=True)
class SaleLine:
    order_id: uuid.UUID
    game_id: uuid.UUID
    order_date: datetime
    value_cents: int
    units: int = 1


@dataclass(frozen=True)
class RevenuePoint:
    period: str
    revenue: Decimal

    def to_dict(self) -> dict:
        return {"period": self.period, "revenue": self.revenue}


@dataclass
class SalesRow:
    """Revenue and units for one game or one publisher."""

    id: uuid.UUID
    name: str | None = None
    publisher_id: uuid.UUID | None = None
    publisher_name: str | None = None
    revenue_cents: int = 0
    units_sold: int = 0
    games: int = 0
    keys: KeyCounts = field(default_factory=KeyCounts)

    @property
    def revenue(self) -> Decimal:
        return from_cents(self.revenue_cents)


def revenue_series(lines, granularity: str) -> list[RevenuePoint]:
    """Bucket sale lines by calendar period.

    Sparse: periods without sales are absent, not zero-filled. Sorted
    ascending by period key.
    """
    buckets: dict[str, int] = defaultdict(int)
    for line in lines:
        buckets[period_key(line.order_date, granularity)] += line.value_cents
    return [RevenuePoint(period=p, revenue=from_cents(buckets[p])) for p in sorted(buckets)]


def top_n(rows, n: int):
    """Highest revenue first; ties broken by units sold, both descending.

    ``sorted`` is stable, so rows equal on both keep their input order.
    """
    ranked = sorted(rows, key=lambda r: (-r.revenue_cents, -r.units_sold))
    return ranked[: max(0, int(n))]


def _coerce_int(value, *, minimum: int, default: int) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    if not math.isfinite(value):
        return default
    return max(minimum, int(math.floor(value)))


class AggregationEngine:
    def __init__(self, db: Session):
        self.db = db

    def key_stats(self, game_ids) -> dict[uuid.UUID, KeyCounts]:
        """Key counts per game, one grouped query. Unknown ids map to zeros."""
        ids = list(game_ids)
        stats = {gid: KeyCounts() for gid in ids}
        if not ids:
            return stats

        rows = (
            self.db.query(GameKey.game_id, GameKey.business_status, func.count(GameKey.id))
            .filter(GameKey.game_id.in_(ids))
            .group_by(GameKey.game_id, GameKey.business_status)
            .all()
        )
        grouped = defaultdict(list)
        for game_id, status, n in rows:
            grouped[game_id].append((status, n))
        for game_id, status_rows in grouped.items():
            stats[game_id] = counts_from_rows(status_rows)
        return stats

    def sale_lines(self, game_ids, start: datetime | None = None, end: datetime | None = None) -> list[SaleLine]:
        """Every completed sale of the given games within ``[start, end]``."""
        ids = list(game_ids)
        if not ids:
            return []
        return self._detail_lines(ids, start, end) + self._legacy_lines(ids, start, end)

    def _detail_lines(self, ids, start, end) -> list[SaleLine]:
        q = (
            self.db.query(OrderDetail.order_id, OrderDetail.game_id, OrderDetail.value_cents, Order.order_date)
            .join(Order, Order.id == OrderDetail.order_id)
            .filter(
                Order.payment_status == PaymentStatus.COMPLETED.value,
                OrderDetail.game_id.in_(ids),
            )
        )
        q = self._within(q, start, end)
        return [
            SaleLine(order_id=order_id, game_id=game_id, order_date=order_date, value_cents=int(value or 0))
            for order_id, game_id, value, order_date in q.all()
        ]

    def _legacy_lines(self, ids, start, end) -> list[SaleLine]:
        by_ref = {str(gid): gid for gid in ids}
        q = self.db.query(Order).filter(
            Order.payment_status == PaymentStatus.COMPLETED.value,
            ~exists().where(OrderDetail.order_id == Order.id),
        )
        q = self._within(q, start, end)

        lines = []
        for order in q.all():
            for item in order.items or []:
                if not isinstance(item, dict):
                    continue
                ref = str(item.get("gameId") or item.get("slug") or "").strip()
                game_id = by_ref.get(ref)
                if game_id is None:
                    continue
                qty = _coerce_int(item.get("quantity"), minimum=1, default=1)
                unit = _coerce_int(item.get("unitPriceCents"), minimum=0, default=0)
                lines.append(
                    SaleLine(
                        order_id=order.id,
                        game_id=game_id,
                        order_date=order.order_date,
                        value_cents=unit * qty,
                        units=qty,
                    )
                )
        return lines

    @staticmethod
    def _within(q, start, end):
        if start is not None:
            q = q.filter(Order.order_date >= start)
        if end is not None:
            q = q.filter(Order.order_date <= end)
        return q

    def revenue_series(self, game_ids, granularity: str, start: datetime, end: datetime) -> list[RevenuePoint]:
        if granularity not in GRANULARITIES:
            raise BadRequest("granularity must be day, month, or year")
        return revenue_series(self.sale_lines(game_ids, start, end), granularity)

    def sales_by_game(self, games, start: datetime | None = None, end: datetime | None = None):
        """Per-game SalesRow (with key counts) plus the set of orders counted.

        ``games`` are catalog snapshots; rows come back in the same order.
        """
        games = list(games)
        ids = [g.id for g in games]
        lines = self.sale_lines(ids, start, end)
        keys = self.key_stats(ids)

        rows = {
            g.id: SalesRow(id=g.id, name=g.name, publisher_id=g.publisher_id, games=1, keys=keys[g.id])
            for g in games
        }
        orders = set()
        for line in lines:
            row = rows[line.game_id]
            row.revenue_cents += line.value_cents
            row.units_sold += line.units
            orders.add(line.order_id)
        return [rows[g.id] for g in games], orders, lines

    @staticmethod
    def by_publisher(game_rows) -> list[SalesRow]:
        publishers: dict[uuid.UUID, SalesRow] = {}
        for row in game_rows:
            agg = publishers.get(row.publisher_id)
            if agg is None:
                agg = publishers[row.publisher_id] = SalesRow(
                    id=row.publisher_id,
                    name=row.publisher_name,
                    publisher_id=row.publisher_id,
                    publisher_name=row.publisher_name,
                )
            agg.revenue_cents += row.revenue_cents
            agg.units_sold += row.units_sold
            agg.games += 1
            agg.keys = agg.keys + row.keys
        return list(publishers.values())
