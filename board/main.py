import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from board.cache import CacheBackend, CacheManager, RedisCache, build_cache_backend
from board.config import settings
from board.database import async_session
from board.errors import BoardError
from board.middleware import TimingMiddleware
from board.routers import auth, comments, metrics, posts, users
from board.store import Store

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


async def board_error_handler(request: Request, exc: BoardError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


def create_app(
    cache_backend: CacheBackend | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> FastAPI:
    """
    Build the application.

    Collaborators are attached to ``app.state`` here rather than in the
    lifespan so that test clients using ``ASGITransport`` (which does not
    run lifespan events) see them too.
    """
    backend = cache_backend
    if backend is None:
        backend = build_cache_backend(settings.CACHE_BACKEND, settings.REDIS_URL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup: a Redis outage is logged, reads then degrade to the database.
        if isinstance(backend, RedisCache):
            await backend.connect()
        yield
        # Shutdown
        if isinstance(backend, RedisCache):
            await backend.disconnect()

    app = FastAPI(
        title="Board API",
        description="Discussion board backend with read-through caching and view deduplication",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.cache = CacheManager(backend)
    app.state.store = Store(session_factory or async_session)

    # Middleware
    app.add_middleware(TimingMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(BoardError, board_error_handler)

    # Routers
    app.include_router(auth.router)
    app.include_router(users.router)
    app.include_router(posts.router)
    app.include_router(comments.router)
    app.include_router(metrics.router)

    @app.get("/health")
    async def health():
        return {"status": "healthy", "version": "1.0.0"}

    return app


configure_logging()
app = create_app()
