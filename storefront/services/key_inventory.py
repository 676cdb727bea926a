"""Key inventory: the pool of unique license keys per game.

A key moves AVAILABLE -> RESERVED -> SOLD, or RESERVED -> AVAILABLE when an
order is rolled back. SOLD is terminal and is the only state with an owner.

Reservation is the single contended operation. It never reads a key and
writes it back: the flip to RESERVED is a compare-and-swap UPDATE guarded by
``business_status = 'AVAILABLE'``, so under concurrent callers (threads or
separate server processes) each key is handed out exactly once. On
PostgreSQL the candidate lookup additionally uses ``FOR UPDATE SKIP LOCKED``
so competing reservers spread over different rows instead of queueing on
the same one.
"""

import logging
import secrets
import uuid
from dataclasses import asdict, dataclass
from datetime import datetime

from sqlalchemy import func
from sqlalchemy.orm import Session

from storefront.errors import BadRequest, InvalidTransition, NotFound, OutOfStock
from storefront.models.game_key import ActivationStatus, GameKey, KeyStatus
from storefront.services.timeutil import utcnow


logger = logging.getLogger(__name__)

KEY_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"


def generate_key_code() -> str:
    """Return a fresh ``XXXX-XXXX-XXXX-XXXX`` license code.

    16 bytes from the OS CSPRNG, each mapped onto a 32-symbol alphabet
    without look-alike characters (no I, O, 0, 1). 256 is a multiple of 32
    so the mapping carries no modulo bias.
    """
    chars = [KEY_CODE_ALPHABET[b % len(KEY_CODE_ALPHABET)] for b in secrets.token_bytes(16)]
    return "-".join("".join(chars[i:i + 4]) for i in range(0, 16, 4))


@dataclass(frozen=True)
class KeyCounts:
    available: int = 0
    sold: int = 0
    reserved: int = 0
    total: int = 0

    def __add__(self, other: "KeyCounts") -> "KeyCounts":
        return KeyCounts(
            available=self.available + other.available,
            sold=self.sold + other.sold,
            reserved=self.reserved + other.reserved,
            total=self.total + other.total,
        )

    def to_dict(self) -> dict:
        return asdict(self)


def counts_from_rows(rows) -> KeyCounts:
    """Fold ``(business_status, count)`` rows into a KeyCounts."""
    by_status = {status: int(n) for status, n in rows}
    return KeyCounts(
        available=by_status.get(KeyStatus.AVAILABLE.value, 0),
        sold=by_status.get(KeyStatus.SOLD.value, 0),
        reserved=by_status.get(KeyStatus.RESERVED.value, 0),
        total=sum(by_status.values()),
    )


class KeyInventory:
    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Reservation lifecycle
    # ------------------------------------------------------------------
    def reserve_one(self, game_id: uuid.UUID) -> uuid.UUID:
        """Atomically move one AVAILABLE key of ``game_id`` to RESERVED.

        The reservation is committed before returning so it is visible to
        every other process straight away.

        Raises:
            OutOfStock: when no AVAILABLE key is left for the game.
        """
        while True:
            candidate = (
                self.db.query(GameKey.id)
                .filter(
                    GameKey.game_id == game_id,
                    GameKey.business_status == KeyStatus.AVAILABLE.value,
                )
                .order_by(GameKey.created_at.asc(), GameKey.id.asc())
                .with_for_update(skip_locked=True)
                .first()
            )
            if candidate is None:
                self.db.rollback()
                raise OutOfStock(f"No available key for game {game_id}", game_id=game_id)

            key_id = candidate[0]
            swapped = (
                self.db.query(GameKey)
                .filter(
                    GameKey.id == key_id,
                    GameKey.business_status == KeyStatus.AVAILABLE.value,
                )
                .update(
                    {GameKey.business_status: KeyStatus.RESERVED.value, GameKey.updated_at: utcnow()},
                    synchronize_session=False,
                )
            )
            if swapped == 1:
                self.db.commit()
                logger.debug("key reserved", extra={"game_id": str(game_id), "key_id": str(key_id)})
                return key_id

            # Lost the race for this row; look again.
            self.db.rollback()

    def confirm_sale(self, key_id: uuid.UUID, customer_id: uuid.UUID, sale_time: datetime) -> None:
        """RESERVED -> SOLD, recording the owner.

        Runs inside the caller's transaction (the order commit) and is not
        committed here, so the key, the order detail and the order status
        become visible together.

        Raises:
            InvalidTransition: the key exists but is not RESERVED.
            NotFound: no such key.
        """
        swapped = (
            self.db.query(GameKey)
            .filter(
                GameKey.id == key_id,
                GameKey.business_status == KeyStatus.RESERVED.value,
            )
            .update(
                {
                    GameKey.business_status: KeyStatus.SOLD.value,
                    GameKey.owner_customer_id: customer_id,
                    GameKey.ownership_date: sale_time,
                    GameKey.updated_at: sale_time,
                },
                synchronize_session=False,
            )
        )
        if swapped != 1:
            status = self._status_of(key_id)
            raise InvalidTransition(
                f"Key {key_id} cannot be sold from status {status}",
                key_id=key_id,
                status=status,
            )

    def release_reservation(self, key_id: uuid.UUID) -> bool:
        """RESERVED -> AVAILABLE. Idempotent.

        Returns:
            bool: True if this call released the key, False if it was
            already AVAILABLE.

        Raises:
            InvalidTransition: the key is SOLD.
            NotFound: no such key.
        """
        swapped = (
            self.db.query(GameKey)
            .filter(
                GameKey.id == key_id,
                GameKey.business_status == KeyStatus.RESERVED.value,
            )
            .update(
                {GameKey.business_status: KeyStatus.AVAILABLE.value, GameKey.updated_at: utcnow()},
                synchronize_session=False,
            )
        )
        self.db.commit()
        if swapped == 1:
            logger.debug("reservation released", extra={"key_id": str(key_id)})
            return True

        status = self._status_of(key_id)
        if status == KeyStatus.AVAILABLE.value:
            return False
        raise InvalidTransition(f"Key {key_id} cannot be released from status {status}", key_id=key_id, status=status)

    def _status_of(self, key_id: uuid.UUID) -> str:
        row = self.db.query(GameKey.business_status).filter(GameKey.id == key_id).first()
        if row is None:
            raise NotFound(f"Game key {key_id} not found", key_id=key_id)
        return row[0]

    # ------------------------------------------------------------------
    # Batches and read models
    # ------------------------------------------------------------------
    def create_batch(self, game_id: uuid.UUID, version: str, quantity: int) -> list[uuid.UUID]:
        """Create ``quantity`` AVAILABLE keys with fresh codes for one game.

        Codes are unique per game: collisions inside the batch or with codes
        the game already has are regenerated.
        """
        if quantity is None or int(quantity) <= 0:
            raise BadRequest("quantity must be a positive integer")
        if not version:
            raise BadRequest("gameVersion is required")
        quantity = int(quantity)

        codes: set[str] = set()
        while len(codes) < quantity:
            missing = quantity - len(codes)
            fresh = {generate_key_code() for _ in range(missing)}
            taken = {
                row[0]
                for row in self.db.query(GameKey.key_code)
                .filter(GameKey.game_id == game_id, GameKey.key_code.in_(list(fresh)))
                .all()
            }
            codes |= fresh - taken

        now = utcnow()
        keys = [
            GameKey(
                id=uuid.uuid4(),
                game_id=game_id,
                game_version=version,
                key_code=code,
                business_status=KeyStatus.AVAILABLE.value,
                activation_status=ActivationStatus.NOT_ACTIVATED.value,
                created_at=now,
                updated_at=now,
            )
            for code in sorted(codes)
        ]
        key_ids = [k.id for k in keys]
        self.db.add_all(keys)
        self.db.commit()

        logger.info(
            "key batch created",
            extra={"game_id": str(game_id), "game_version": version, "count": len(keys)},
        )
        return key_ids

    def count_by_status(self, game_id: uuid.UUID) -> KeyCounts:
        rows = (
            self.db.query(GameKey.business_status, func.count(GameKey.id))
            .filter(GameKey.game_id == game_id)
            .group_by(GameKey.business_status)
            .all()
        )
        return counts_from_rows(rows)

    def customer_already_owns(self, game_id: uuid.UUID, customer_id: uuid.UUID) -> bool:
        row = (
            self.db.query(GameKey.id)
            .filter(
                GameKey.game_id == game_id,
                GameKey.owner_customer_id == customer_id,
            )
            .first()
        )
        return row is not None
