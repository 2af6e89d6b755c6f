"""
View-count deduplication.

A view is counted at most once per fingerprint per ``VIEW_DEDUP_TTL``
window.  The default fingerprint is client IP plus a bounded User-Agent
prefix: enough to stop refresh spam from one browser, not a security
control.  Swap in another ``Fingerprint`` callable to key on something
stronger without touching the counting logic.
"""
import logging
from typing import Callable

from board.cache import CacheManager, post_key, view_key
from board.config import settings
from board.store import Store

logger = logging.getLogger(__name__)

# (post_id, client_ip, user_agent) -> cache key
Fingerprint = Callable[[int, str, str], str]


def ip_user_agent_fingerprint(post_id: int, client_ip: str, user_agent: str) -> str:
    prefix = (user_agent or "")[: settings.VIEW_USER_AGENT_PREFIX]
    return view_key(client_ip or "unknown", prefix, post_id)


class ViewTracker:
    def __init__(
        self,
        store: Store,
        cache: CacheManager,
        fingerprint: Fingerprint = ip_user_agent_fingerprint,
    ) -> None:
        self.store = store
        self.cache = cache
        self.fingerprint = fingerprint

    async def register_view(self, post_id: int, client_ip: str, user_agent: str) -> bool:
        """
        Count a view of *post_id* unless this fingerprint was seen within
        the dedup window.  Returns whether the stored counter moved.

        The fingerprint is only recorded after the store increment
        succeeds; a failed increment leaves the viewer free to retry.
        """
        key = self.fingerprint(post_id, client_ip, user_agent)
        if await self.cache.get(key) is not None:
            logger.info("Duplicate view ignored: post=%d key=%s", post_id, key)
            return False

        view_count = await self.store.increment_post_view_count(post_id)

        # Patch the hot detail entry instead of dropping it.
        detail_key = post_key(post_id)
        cached = await self.cache.get(detail_key)
        if cached is not None:
            cached["viewCount"] = view_count
            await self.cache.set(detail_key, cached, ttl=settings.CACHE_TTL_DETAIL)

        await self.cache.set(key, True, ttl=settings.VIEW_DEDUP_TTL)
        logger.info("View counted: post=%d total=%d", post_id, view_count)
        return True
