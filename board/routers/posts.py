from fastapi import APIRouter, Depends, Header, Query
from fastapi.responses import Response

from board.config import settings
from board.dependencies import (
    PaginationParams,
    get_client_ip,
    get_current_user_id,
    get_post_service,
    get_view_tracker,
)
from board.schemas import PaginatedResponse, PostCreate, PostUpdate, SearchType, ViewResponse
from board.services.post_service import PostService
from board.services.view_tracker import ViewTracker

router = APIRouter(prefix="/posts", tags=["posts"])


@router.get("")
async def list_posts(
    page: int | None = Query(None, ge=1),
    limit: int | None = Query(None, ge=1, le=settings.MAX_PAGE_SIZE),
    service: PostService = Depends(get_post_service),
):
    # Paginated only when both are given; otherwise the cached full list.
    if page is not None and limit is not None:
        return await service.get_paginated_posts(page, limit)
    return await service.get_post_list()


@router.get("/search", response_model=PaginatedResponse)
async def search_posts(
    query: str = Query("", max_length=200),
    type: SearchType = Query("title"),
    pagination: PaginationParams = Depends(),
    service: PostService = Depends(get_post_service),
):
    return await service.search_posts(query, type, pagination.page, pagination.limit)


@router.get("/{post_id}")
async def get_post(post_id: int, service: PostService = Depends(get_post_service)):
    return await service.get_post(post_id)


@router.post("/{post_id}/view", response_model=ViewResponse)
async def register_view(
    post_id: int,
    client_ip: str = Depends(get_client_ip),
    user_agent: str = Header(""),
    tracker: ViewTracker = Depends(get_view_tracker),
):
    counted = await tracker.register_view(post_id, client_ip, user_agent)
    return ViewResponse(success=counted)


@router.post("", status_code=201)
async def create_post(
    data: PostCreate,
    user_id: int = Depends(get_current_user_id),
    service: PostService = Depends(get_post_service),
):
    return await service.create_post(data, user_id)


@router.patch("/{post_id}")
async def update_post(
    post_id: int,
    data: PostUpdate,
    user_id: int = Depends(get_current_user_id),
    service: PostService = Depends(get_post_service),
):
    return await service.update_post(post_id, data, user_id)


@router.delete("/{post_id}", status_code=204)
async def delete_post(
    post_id: int,
    user_id: int = Depends(get_current_user_id),
    service: PostService = Depends(get_post_service),
):
    await service.delete_post(post_id, user_id)
    return Response(status_code=204)
