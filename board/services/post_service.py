"""
Post service: read-through caching over the store for the Post aggregate.

Design notes
------------
- ``get_post_list`` and ``get_post`` go through the cache-aside pattern
  (cache -> fallback to store -> populate).  Paginated listing and search
  always hit the store; their key space is unbounded.
- Every mutation invalidates ``posts`` and, where the post already
  exists, ``post:<id>`` *before* the store write is issued.  A reader
  that misses between the invalidation and the commit can still cache the
  pre-write row until its TTL runs out; invalidating first only narrows
  that window.  A failed invalidation aborts the mutation.
- There is no per-key lock: concurrent misses each read the store and
  each repopulate the key with equivalent data.
"""
import asyncio
import logging
import math

from board.cache import POST_LIST_KEY, CacheManager, post_key
from board.config import settings
from board.errors import ForbiddenError, NotFoundError
from board.sanitizer import HtmlSanitizer
from board.schemas import PostCreate, PostUpdate
from board.store import PostFilter, Store

logger = logging.getLogger(__name__)


def build_page(data: list[dict], total: int, page: int, limit: int) -> dict:
    return {
        "data": data,
        "total": total,
        "page": page,
        "limit": limit,
        "totalPages": math.ceil(total / limit) if total > 0 else 0,
    }


def check_page_args(page: int, limit: int) -> None:
    if page < 1 or limit < 1:
        raise ValueError("page and limit must be positive integers")


class PostService:
    def __init__(
        self,
        store: Store,
        cache: CacheManager,
        sanitizer: HtmlSanitizer | None = None,
    ) -> None:
        self.store = store
        self.cache = cache
        self.sanitizer = sanitizer or HtmlSanitizer()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get_post_list(self) -> list[dict]:
        """Return every post, newest first, using the ``posts`` cache entry."""
        cached = await self.cache.get(POST_LIST_KEY)
        if cached is not None:
            return cached

        posts = await self.store.find_posts()
        await self.cache.set(POST_LIST_KEY, posts, ttl=settings.CACHE_TTL_LIST)
        return posts

    async def get_paginated_posts(self, page: int, limit: int) -> dict:
        """
        Return one page of posts.  Not cached.

        The page of rows and the total count are fetched concurrently.
        """
        return await self._page(None, page, limit)

    async def get_post(self, post_id: int) -> dict:
        """Return a single post, raising ``NotFoundError`` when absent."""
        key = post_key(post_id)
        cached = await self.cache.get(key)
        if cached is not None:
            return cached

        post = await self.store.find_post_by_id(post_id)
        if post is None:
            raise NotFoundError(f"Post {post_id} not found")
        await self.cache.set(key, post, ttl=settings.CACHE_TTL_DETAIL)
        return post

    async def search_posts(
        self, query: str, type: str = "title", page: int = 1, limit: int = 10
    ) -> dict:
        """
        Case-insensitive substring search on title, content or author
        username.  A blank *query* returns the unfiltered listing.
        """
        query = (query or "").strip()
        post_filter = PostFilter(type, query) if query else None
        return await self._page(post_filter, page, limit)

    async def _page(self, post_filter: PostFilter | None, page: int, limit: int) -> dict:
        check_page_args(page, limit)
        data, total = await asyncio.gather(
            self.store.find_posts(post_filter, skip=(page - 1) * limit, take=limit),
            self.store.count_posts(post_filter),
        )
        return build_page(data, total, page, limit)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    async def create_post(self, data: PostCreate, author_id: int) -> dict:
        title = self.sanitizer.plain_text(data.title)
        content = self.sanitizer.rich_text(data.content)

        await self.cache.invalidate(POST_LIST_KEY)
        post = await self.store.insert_post(title, content, author_id)
        logger.info("Post %d created by user %d", post["id"], author_id)
        return post

    async def update_post(self, post_id: int, data: PostUpdate, author_id: int) -> dict:
        """
        Update title and/or content of a post owned by *author_id*.

        Raises ``NotFoundError`` / ``ForbiddenError``; in both cases the
        store is left untouched.
        """
        post = await self.get_post(post_id)
        if post["authorId"] != author_id:
            raise ForbiddenError("Only the author can edit this post")

        changes: dict = {}
        if data.title is not None:
            changes["title"] = self.sanitizer.plain_text(data.title)
        if data.content is not None:
            changes["content"] = self.sanitizer.rich_text(data.content)

        await self.cache.invalidate(POST_LIST_KEY, post_key(post_id))
        updated = await self.store.update_post(post_id, changes)
        logger.info("Post %d updated by user %d", post_id, author_id)
        return updated

    async def delete_post(self, post_id: int, author_id: int) -> None:
        post = await self.get_post(post_id)
        if post["authorId"] != author_id:
            raise ForbiddenError("Only the author can delete this post")

        await self.cache.invalidate(POST_LIST_KEY, post_key(post_id))
        await self.store.delete_post(post_id)
        logger.info("Post %d deleted by user %d", post_id, author_id)
