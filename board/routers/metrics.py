import asyncio

from fastapi import APIRouter, Depends

from board.cache import CacheManager
from board.dependencies import get_cache, get_store
from board.schemas import MetricsResponse
from board.store import Store

router = APIRouter(prefix="/metrics", tags=["metrics"])


@router.get("", response_model=MetricsResponse)
async def get_metrics(
    store: Store = Depends(get_store),
    cache: CacheManager = Depends(get_cache),
):
    total_posts, total_comments, total_users = await asyncio.gather(
        store.count_posts(), store.count_comments(), store.count_users()
    )

    avg_comments = total_comments / total_posts if total_posts > 0 else 0

    return MetricsResponse(
        total_posts=total_posts,
        total_comments=total_comments,
        total_users=total_users,
        avg_comments_per_post=round(avg_comments, 2),
        cache_info=cache.stats,
    )
