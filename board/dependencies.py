from fastapi import Depends, Query, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from board.cache import CacheManager
from board.config import settings
from board.errors import AuthenticationError
from board.security import decode_access_token
from board.services.comment_service import CommentService
from board.services.post_service import PostService
from board.services.user_service import UserService
from board.services.view_tracker import ViewTracker
from board.store import Store

_bearer = HTTPBearer(auto_error=False)


class PaginationParams:
    """
    Reusable FastAPI dependency that parses and validates pagination
    query parameters.

    Attributes
    ----------
    page:
        1-based page number (minimum 1).
    limit:
        Number of items per page, clamped to ``settings.MAX_PAGE_SIZE``
        regardless of the value supplied by the caller.
    """

    def __init__(
        self,
        page: int = Query(1, ge=1, description="Page number (1-based)."),
        limit: int = Query(
            settings.DEFAULT_PAGE_SIZE,
            ge=1,
            description="Number of items returned per page.",
        ),
    ) -> None:
        self.page = page
        self.limit = min(limit, settings.MAX_PAGE_SIZE)


# ---------------------------------------------------------------------------
# Collaborators held on app.state (see board.main.create_app)
# ---------------------------------------------------------------------------

def get_store(request: Request) -> Store:
    return request.app.state.store


def get_cache(request: Request) -> CacheManager:
    return request.app.state.cache


def get_post_service(
    store: Store = Depends(get_store), cache: CacheManager = Depends(get_cache)
) -> PostService:
    return PostService(store, cache)


def get_comment_service(
    store: Store = Depends(get_store), cache: CacheManager = Depends(get_cache)
) -> CommentService:
    return CommentService(store, cache)


def get_view_tracker(
    store: Store = Depends(get_store), cache: CacheManager = Depends(get_cache)
) -> ViewTracker:
    return ViewTracker(store, cache)


def get_user_service(store: Store = Depends(get_store)) -> UserService:
    return UserService(store)


# ---------------------------------------------------------------------------
# Request identity
# ---------------------------------------------------------------------------

def get_current_user_id(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer),
) -> int:
    """Resolve the caller from ``Authorization: Bearer <token>``."""
    if credentials is None:
        raise AuthenticationError("Authorization header is missing or invalid")
    return decode_access_token(credentials.credentials)


def get_client_ip(request: Request) -> str:
    """First ``X-Forwarded-For`` hop when behind a proxy, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"
