"""Who is calling, as established by the authentication layer in front of us.

Token issuance and verification live outside this service; the gateway
forwards the authenticated account as ``X-Account-Id`` and
``X-Account-Type`` headers. Routes declare the capability they need once,
through the dependencies below.
"""

import uuid
from dataclasses import dataclass

from fastapi import Depends, Header

from storefront.errors import Forbidden, NotFound, Unauthorized

ACCOUNT_TYPES = {"customer", "publisher", "admin"}


@dataclass(frozen=True)
class Principal:
    account_id: uuid.UUID
    account_type: str

    @property
    def is_admin(self) -> bool:
        return self.account_type == "admin"


def get_principal(
    x_account_id: str | None = Header(default=None, alias="X-Account-Id"),
    x_account_type: str | None = Header(default=None, alias="X-Account-Type"),
) -> Principal:
    if not x_account_id or not x_account_type:
        raise Unauthorized("Missing account context. Provide X-Account-Id and X-Account-Type headers.")
    account_type = x_account_type.strip().lower()
    if account_type not in ACCOUNT_TYPES:
        raise Unauthorized(f"Unknown account type: {x_account_type}")
    try:
        account_id = uuid.UUID(x_account_id.strip())
    except ValueError:
        raise Unauthorized("X-Account-Id must be a UUID") from None
    return Principal(account_id=account_id, account_type=account_type)


def require_customer(principal: Principal = Depends(get_principal)) -> Principal:
    if principal.account_type != "customer":
        raise Forbidden("Only customer accounts can do this")
    return principal


def require_publisher_or_admin(principal: Principal = Depends(get_principal)) -> Principal:
    if principal.account_type not in {"publisher", "admin"}:
        raise Forbidden("Publisher access required")
    return principal


def require_admin(principal: Principal = Depends(get_principal)) -> Principal:
    if not principal.is_admin:
        raise Forbidden("Admin access required")
    return principal


def owned_game(catalog, game_id: uuid.UUID, principal: Principal):
    """Load a game the principal may manage: its own as a publisher, any as admin."""
    game = catalog.get_game(game_id)
    if game is None:
        raise NotFound("Game not found", game_id=game_id)
    if not principal.is_admin and game.publisher_id != principal.account_id:
        raise Forbidden("You can only manage your own games", game_id=game_id)
    return game
