from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storefront.db import get_db
from storefront.deps.principal import Principal, require_publisher_or_admin
from storefront.deps.services import get_catalog
from storefront.errors import BadRequest
from storefront.services.aggregation import GRANULARITIES, AggregationEngine
from storefront.services.catalog import CatalogStore
from storefront.services.dashboard_service import publisher_dashboard
from storefront.services.timeutil import days_ago, parse_when, utcnow

router = APIRouter(prefix="/publisher/dashboard", tags=["publisher"])


def date_window(date_from: str | None, date_to: str | None, *, default_days: int = 30):
    """Resolve ``from``/``to`` query values into an inclusive naive-UTC window."""
    try:
        end = parse_when(date_to, end_of_day=True) or utcnow()
        start = parse_when(date_from) or days_ago(default_days, now=end)
    except ValueError:
        raise BadRequest("from/to must be ISO dates (YYYY-MM-DD) or datetimes") from None
    if start > end:
        raise BadRequest("from must not be after to")
    return start, end


def _scoped_games(catalog: CatalogStore, principal: Principal):
    # A publisher sees its own catalog; an admin calling these routes sees everything.
    return catalog.list_games(None if principal.is_admin else principal.account_id)


@router.get("/summary")
def dashboard_summary(
    principal: Principal = Depends(require_publisher_or_admin),
    catalog: CatalogStore = Depends(get_catalog),
    db: Session = Depends(get_db),
):
    return publisher_dashboard(db, _scoped_games(catalog, principal))


@router.get("/revenue/{granularity}")
def dashboard_revenue(
    granularity: str,
    date_from: str | None = Query(default=None, alias="from"),
    date_to: str | None = Query(default=None, alias="to"),
    principal: Principal = Depends(require_publisher_or_admin),
    catalog: CatalogStore = Depends(get_catalog),
    db: Session = Depends(get_db),
):
    granularity = granularity.lower()
    if granularity not in GRANULARITIES:
        raise BadRequest("granularity must be day, month, or year")
    start, end = date_window(date_from, date_to)

    ids = [g.id for g in _scoped_games(catalog, principal)]
    points = AggregationEngine(db).revenue_series(ids, granularity, start, end)
    return {
        "granularity": granularity,
        "from": start.isoformat(),
        "to": end.isoformat(),
        "items": [p.to_dict() for p in points],
    }
