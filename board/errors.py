"""
Exception hierarchy shared by the service layer.

Services raise these; ``board.main`` maps each one to an HTTP status via
the ``status_code`` class attribute, so routers never build
``HTTPException`` objects for business-rule outcomes.
"""


class BoardError(Exception):
    status_code: int = 500
    default_detail: str = "Internal server error"

    def __init__(self, detail: str | None = None) -> None:
        self.detail = detail or self.default_detail
        super().__init__(self.detail)


class NotFoundError(BoardError):
    status_code = 404
    default_detail = "Resource not found"


class ForbiddenError(BoardError):
    status_code = 403
    default_detail = "You are not allowed to modify this resource"


class ConflictError(BoardError):
    status_code = 409
    default_detail = "Resource already exists"


class AuthenticationError(BoardError):
    status_code = 401
    default_detail = "Invalid or missing credentials"


class StoreUnavailableError(BoardError):
    """Transport failure talking to the database or the cache."""

    status_code = 503
    default_detail = "Backing store unavailable"
