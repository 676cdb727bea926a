import uuid
from dataclasses import dataclass

from sqlalchemy.orm import Session

from storefront.models.game import Game, ReleaseStatus
from storefront.models.publisher import Publisher


@dataclass(frozen=True)
class GameSnapshot:
    id: uuid.UUID
    name: str
    version: str
    publisher_id: uuid.UUID
    release_status: str
    original_price_cents: int
    discount_price_cents: int | None = None

    @property
    def is_released(self) -> bool:
        return self.release_status == ReleaseStatus.RELEASED.value

    @property
    def effective_price_cents(self) -> int:
        if self.discount_price_cents is not None:
            return int(self.discount_price_cents)
        return int(self.original_price_cents or 0)


def _snapshot(game: Game) -> GameSnapshot:
    return GameSnapshot(
        id=game.id,
        name=game.name,
        version=game.version,
        publisher_id=game.publisher_id,
        release_status=game.release_status,
        original_price_cents=game.original_price_cents,
        discount_price_cents=game.discount_price_cents,
    )


class CatalogStore:
    def __init__(self, db: Session):
        self.db = db

    def get_game(self, game_id: uuid.UUID) -> GameSnapshot | None:
        game = self.db.query(Game).filter(Game.id == game_id).first()
        return _snapshot(game) if game else None

    def list_games(self, publisher_id: uuid.UUID | None = None) -> list[GameSnapshot]:
        q = self.db.query(Game)
        if publisher_id is not None:
            q = q.filter(Game.publisher_id == publisher_id)
        return [_snapshot(g) for g in q.order_by(Game.created_at.desc(), Game.name.asc()).all()]

    def publisher_exists(self, publisher_id: uuid.UUID) -> bool:
        return self.db.query(Publisher.id).filter(Publisher.id == publisher_id).first() is not None

    def publisher_names(self, publisher_ids) -> dict[uuid.UUID, str]:
        ids = list(set(publisher_ids))
        if not ids:
            return {}
        rows = self.db.query(Publisher.id, Publisher.name).filter(Publisher.id.in_(ids)).all()
        return {r.id: r.name for r in rows}
