"""
Comment service: paginated, cached comment listing plus author-only writes.

Comment pages are cached under ``comments:post:<postId>:<page>:<limit>``.
The cache has no pattern delete, so a write only purges pages
``1..COMMENT_CACHE_PAGES`` at ``DEFAULT_COMMENT_PAGE_SIZE``.  Any other
page/limit combination keeps serving its old copy until the TTL expires.
"""
import asyncio
import logging

from board.cache import CacheManager, comments_key
from board.config import settings
from board.errors import ForbiddenError, NotFoundError
from board.sanitizer import HtmlSanitizer
from board.schemas import CommentCreate, CommentUpdate
from board.services.post_service import build_page, check_page_args
from board.store import Store

logger = logging.getLogger(__name__)


def comment_page_keys(post_id: int) -> list[str]:
    """Keys purged on a comment write for *post_id*."""
    limit = settings.DEFAULT_COMMENT_PAGE_SIZE
    return [
        comments_key(post_id, page, limit)
        for page in range(1, settings.COMMENT_CACHE_PAGES + 1)
    ]


class CommentService:
    def __init__(
        self,
        store: Store,
        cache: CacheManager,
        sanitizer: HtmlSanitizer | None = None,
    ) -> None:
        self.store = store
        self.cache = cache
        self.sanitizer = sanitizer or HtmlSanitizer()

    async def get_comments(self, post_id: int, page: int = 1, limit: int | None = None) -> dict:
        """Return one page of comments for *post_id*, newest first."""
        if limit is None:
            limit = settings.DEFAULT_COMMENT_PAGE_SIZE
        check_page_args(page, limit)

        key = comments_key(post_id, page, limit)
        cached = await self.cache.get(key)
        if cached is not None:
            return cached

        data, total = await asyncio.gather(
            self.store.find_comments(post_id, skip=(page - 1) * limit, take=limit),
            self.store.count_comments(post_id),
        )
        result = build_page(data, total, page, limit)
        await self.cache.set(key, result, ttl=settings.CACHE_TTL_COMMENTS)
        return result

    async def get_comment(self, comment_id: int) -> dict:
        comment = await self.store.find_comment_by_id(comment_id)
        if comment is None:
            raise NotFoundError(f"Comment {comment_id} not found")
        return comment

    async def count_comments(self, post_id: int) -> int:
        return await self.store.count_comments(post_id)

    async def create_comment(self, post_id: int, data: CommentCreate, author_id: int) -> dict:
        if await self.store.find_post_by_id(post_id) is None:
            raise NotFoundError(f"Post {post_id} not found")
        content = self.sanitizer.plain_text(data.content)

        await self.cache.invalidate(*comment_page_keys(post_id))
        comment = await self.store.insert_comment(post_id, content, author_id)
        logger.info("Comment %d added to post %d by user %d", comment["id"], post_id, author_id)
        return comment

    async def update_comment(self, comment_id: int, data: CommentUpdate, author_id: int) -> dict:
        comment = await self.get_comment(comment_id)
        if comment["authorId"] != author_id:
            raise ForbiddenError("Only the author can edit this comment")
        content = self.sanitizer.plain_text(data.content)

        await self.cache.invalidate(*comment_page_keys(comment["postId"]))
        return await self.store.update_comment(comment_id, content)

    async def delete_comment(self, comment_id: int, author_id: int) -> None:
        comment = await self.get_comment(comment_id)
        if comment["authorId"] != author_id:
            raise ForbiddenError("Only the author can delete this comment")

        await self.cache.invalidate(*comment_page_keys(comment["postId"]))
        await self.store.delete_comment(comment_id)
        logger.info("Comment %d deleted by user %d", comment_id, author_id)
