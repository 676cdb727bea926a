import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from storefront.db import get_db
from storefront.deps.principal import Principal, require_publisher_or_admin
from storefront.deps.services import get_catalog
from storefront.errors import Forbidden, NotFound
from storefront.routes.publisher_dashboard import date_window
from storefront.services.catalog import CatalogStore
from storefront.services.dashboard_service import statistics_summary

router = APIRouter(prefix="/statistics", tags=["statistics"])


@router.get("/summary")
def summary(
    publisher_id: uuid.UUID | None = Query(default=None, alias="publisherId"),
    date_from: str | None = Query(default=None, alias="from"),
    date_to: str | None = Query(default=None, alias="to"),
    top: int | None = None,
    principal: Principal = Depends(require_publisher_or_admin),
    catalog: CatalogStore = Depends(get_catalog),
    db: Session = Depends(get_db),
):
    if principal.is_admin:
        scope = publisher_id
        if scope is not None and not catalog.publisher_exists(scope):
            raise NotFound("Publisher not found", publisher_id=scope)
    else:
        if publisher_id is not None and publisher_id != principal.account_id:
            raise Forbidden("Publishers can only read their own statistics")
        scope = principal.account_id

    start, end = date_window(date_from, date_to)
    games = catalog.list_games(scope)
    body = statistics_summary(
        db,
        games,
        start=start,
        end=end,
        top=top,
        include_customers=principal.is_admin,
    )
    body["scope"] = {"publisherId": str(scope) if scope else None}
    return body
