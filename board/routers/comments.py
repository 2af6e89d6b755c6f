from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response

from board.config import settings
from board.dependencies import get_comment_service, get_current_user_id
from board.schemas import CommentCreate, CommentUpdate, PaginatedResponse
from board.services.comment_service import CommentService

router = APIRouter(tags=["comments"])


@router.get("/posts/{post_id}/comments", response_model=PaginatedResponse)
async def list_comments(
    post_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_COMMENT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    service: CommentService = Depends(get_comment_service),
):
    return await service.get_comments(post_id, page, limit)


@router.post("/posts/{post_id}/comments", status_code=201)
async def create_comment(
    post_id: int,
    data: CommentCreate,
    user_id: int = Depends(get_current_user_id),
    service: CommentService = Depends(get_comment_service),
):
    return await service.create_comment(post_id, data, user_id)


@router.patch("/comments/{comment_id}")
async def update_comment(
    comment_id: int,
    data: CommentUpdate,
    user_id: int = Depends(get_current_user_id),
    service: CommentService = Depends(get_comment_service),
):
    return await service.update_comment(comment_id, data, user_id)


@router.delete("/comments/{comment_id}", status_code=204)
async def delete_comment(
    comment_id: int,
    user_id: int = Depends(get_current_user_id),
    service: CommentService = Depends(get_comment_service),
):
    await service.delete_comment(comment_id, user_id)
    return Response(status_code=204)
