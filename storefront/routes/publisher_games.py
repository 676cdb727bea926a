import os
import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from storefront.db import get_db
from storefront.deps.principal import Principal, owned_game, require_publisher_or_admin
from storefront.deps.services import get_catalog, get_inventory
from storefront.errors import BadRequest
from storefront.schemas.game_key import KeyBatchCreate
from storefront.services.catalog import CatalogStore
from storefront.services.dashboard_service import game_stats
from storefront.services.key_inventory import KeyInventory

router = APIRouter(prefix="/publisher/games", tags=["publisher"])

DEFAULT_KEY_BATCH_MAX = 500


def key_batch_max() -> int:
    try:
        value = int(os.getenv("KEY_BATCH_MAX") or DEFAULT_KEY_BATCH_MAX)
    except ValueError:
        return DEFAULT_KEY_BATCH_MAX
    return value if value > 0 else DEFAULT_KEY_BATCH_MAX


@router.get("")
def list_my_games(
    principal: Principal = Depends(require_publisher_or_admin),
    catalog: CatalogStore = Depends(get_catalog),
):
    publisher_id = None if principal.is_admin else principal.account_id
    games = catalog.list_games(publisher_id)
    return {
        "total": len(games),
        "items": [
            {
                "id": str(g.id),
                "name": g.name,
                "version": g.version,
                "publisherId": str(g.publisher_id),
                "releaseStatus": g.release_status,
            }
            for g in games
        ],
    }


@router.post("/{game_id}/keys/batch", status_code=201)
def create_key_batch(
    game_id: uuid.UUID,
    payload: KeyBatchCreate,
    principal: Principal = Depends(require_publisher_or_admin),
    catalog: CatalogStore = Depends(get_catalog),
    inventory: KeyInventory = Depends(get_inventory),
):
    game = owned_game(catalog, game_id, principal)

    limit = key_batch_max()
    if payload.quantity > limit:
        raise BadRequest(f"quantity must be between 1 and {limit}")

    version = (payload.gameVersion or "").strip() or game.version
    key_ids = inventory.create_batch(game.id, version, payload.quantity)
    stats = inventory.count_by_status(game.id)

    return {
        "created": len(key_ids),
        "keyIds": [str(k) for k in key_ids],
        "stats": stats.to_dict(),
    }


@router.get("/{game_id}/keys/summary")
def key_summary(
    game_id: uuid.UUID,
    principal: Principal = Depends(require_publisher_or_admin),
    catalog: CatalogStore = Depends(get_catalog),
    inventory: KeyInventory = Depends(get_inventory),
):
    game = owned_game(catalog, game_id, principal)
    return {"gameId": str(game.id), **inventory.count_by_status(game.id).to_dict()}


@router.get("/{game_id}/stats")
def stats(
    game_id: uuid.UUID,
    principal: Principal = Depends(require_publisher_or_admin),
    catalog: CatalogStore = Depends(get_catalog),
    db: Session = Depends(get_db),
):
    game = owned_game(catalog, game_id, principal)
    return {"gameId": str(game.id), "name": game.name, **game_stats(db, game)}
