from collections import Counter
from datetime import datetime

from sqlalchemy import func
from sqlalchemy.orm import Session

from storefront.models.customer import Customer
from storefront.models.game import Game
from storefront.models.order import Order
from storefront.models.publisher import Publisher
from storefront.money import from_cents
from storefront.services.aggregation import AggregationEngine, SalesRow, revenue_series, top_n
from storefront.services.catalog import CatalogStore, GameSnapshot
from storefront.services.key_inventory import KeyCounts
from storefront.services.timeutil import days_ago, months_ago, utcnow, years_ago


TOP_DEFAULT = 10
TOP_MAX = 50


def clamp_top(top: int | None) -> int:
    if top is None:
        return TOP_DEFAULT
    return max(1, min(TOP_MAX, int(top)))


def _series(points) -> list[dict]:
    return [p.to_dict() for p in points]


def _game_row(row: SalesRow) -> dict:
    return {
        "gameId": str(row.id),
        "name": row.name,
        "publisherId": str(row.publisher_id),
        "publisherName": row.publisher_name,
        "revenue": row.revenue,
        "unitsSold": row.units_sold,
        "keys": row.keys.to_dict(),
    }


def _publisher_row(row: SalesRow) -> dict:
    return {
        "publisherId": str(row.id),
        "publisherName": row.publisher_name,
        "revenue": row.revenue,
        "unitsSold": row.units_sold,
        "games": row.games,
    }


def publisher_dashboard(db: Session, games: list[GameSnapshot], *, now: datetime | None = None) -> dict:
    now = now or utcnow()
    engine = AggregationEngine(db)
    ids = [g.id for g in games]

    keys = sum(engine.key_stats(ids).values(), KeyCounts())
    status_counts = Counter(g.release_status for g in games)

    return {
        "games": {
            "total": len(games),
            "statusCounts": dict(status_counts),
            "list": [
                {
                    "id": str(g.id),
                    "name": g.name,
                    "releaseStatus": g.release_status,
                    "originalPrice": from_cents(g.original_price_cents),
                    "discountPrice": (
                        from_cents(g.discount_price_cents) if g.discount_price_cents is not None else None
                    ),
                }
                for g in games
            ],
        },
        "keys": keys.to_dict(),
        "revenue": {
            "byDay": _series(engine.revenue_series(ids, "day", days_ago(30, now=now), now)),
            "byMonth": _series(engine.revenue_series(ids, "month", months_ago(12, now=now), now)),
            "byYear": _series(engine.revenue_series(ids, "year", years_ago(5, now=now), now)),
        },
    }


def statistics_summary(
    db: Session,
    games: list[GameSnapshot],
    *,
    start: datetime,
    end: datetime,
    top: int | None = None,
    include_customers: bool = False,
) -> dict:
    engine = AggregationEngine(db)
    catalog = CatalogStore(db)

    game_rows, orders, lines = engine.sales_by_game(games, start, end)
    names = catalog.publisher_names(r.publisher_id for r in game_rows)
    for row in game_rows:
        row.publisher_name = names.get(row.publisher_id)
    publisher_rows = engine.by_publisher(game_rows)

    keys = sum((r.keys for r in game_rows), KeyCounts())
    n = clamp_top(top)

    totals = {
        "games": len(games),
        "orders": len(orders),
        "revenue": from_cents(sum(r.revenue_cents for r in game_rows)),
        "unitsSold": sum(r.units_sold for r in game_rows),
        "keys": keys.to_dict(),
    }
    if include_customers:
        totals["customers"] = db.query(func.count(Customer.id)).scalar() or 0

    return {
        "range": {"from": start.isoformat(), "to": end.isoformat()},
        "totals": totals,
        "revenue": {
            "byDay": _series(revenue_series(lines, "day")),
            "byMonth": _series(revenue_series(lines, "month")),
            "byYear": _series(revenue_series(lines, "year")),
        },
        "topGames": [_game_row(r) for r in top_n(game_rows, n)],
        "topPublishers": [_publisher_row(r) for r in top_n(publisher_rows, n)],
        "perGame": [_game_row(r) for r in game_rows],
    }


def game_stats(db: Session, game: GameSnapshot) -> dict:
    rows, _, _ = AggregationEngine(db).sales_by_game([game])
    row = rows[0]
    return {
        "keys": row.keys.to_dict(),
        "sales": {"totalRevenue": row.revenue, "totalSales": row.units_sold},
    }


def platform_counts(db: Session) -> dict:
    return {
        "totalCustomers": db.query(func.count(Customer.id)).scalar() or 0,
        "totalPublishers": db.query(func.count(Publisher.id)).scalar() or 0,
        "totalGames": db.query(func.count(Game.id)).scalar() or 0,
        "totalOrders": db.query(func.count(Order.id)).scalar() or 0,
    }

