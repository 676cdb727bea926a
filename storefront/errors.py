"""Typed failures raised by the order, inventory and reporting services.

Every failure carries a stable ``code`` (surfaced to API clients) and the
HTTP status the surrounding API layer answers with. All of them are
recoverable at the request boundary: by the time one propagates, any
reservation made for the failing request has been released.
"""


class StoreError(Exception):
    code = "STORE_ERROR"
    status_code = 400

    def __init__(self, detail: str | None = None, **context):
        self.detail = detail or self.code
        self.context = context
        super().__init__(self.detail)

    def to_dict(self) -> dict:
        body = {"detail": self.detail, "code": self.code}
        if self.context:
            body["context"] = {k: str(v) for k, v in self.context.items()}
        return body


class BadRequest(StoreError):
    code = "BAD_REQUEST"
    status_code = 400


class Unauthorized(StoreError):
    code = "UNAUTHORIZED"
    status_code = 401


class Forbidden(StoreError):
    code = "FORBIDDEN"
    status_code = 403


class AccountInactive(StoreError):
    code = "ACCOUNT_INACTIVE"
    status_code = 403


class NotFound(StoreError):
    code = "NOT_FOUND"
    status_code = 404


class AlreadyOwned(StoreError):
    code = "ALREADY_OWNED"
    status_code = 409


class Conflict(StoreError):
    code = "CONFLICT"
    status_code = 409


class InvalidTransition(StoreError):
    """Inventory or order state machine violation.

    Indicates a programming error or an uncompensated race, never a user
    mistake.
    """

    code = "INVALID_TRANSITION"
    status_code = 409


class InsufficientFunds(StoreError):
    code = "INSUFFICIENT_FUNDS"
    status_code = 402


class OutOfStock(StoreError):
    code = "OUT_OF_STOCK"
    status_code = 422


class GameUnavailable(StoreError):
    code = "GAME_UNAVAILABLE"
    status_code = 422


class GameNotReleased(GameUnavailable):
    code = "GAME_NOT_RELEASED"


class GameOutOfStock(GameUnavailable, OutOfStock):
    code = "OUT_OF_STOCK"


class RefundNotAllowed(StoreError):
    code = "REFUND_NOT_ALLOWED"
    status_code = 422
