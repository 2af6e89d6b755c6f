from fastapi import APIRouter, Depends

from board.dependencies import get_current_user_id, get_user_service
from board.schemas import ProfileUpdate, UserDetail, UserResponse
from board.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserResponse)
async def get_me(
    user_id: int = Depends(get_current_user_id),
    service: UserService = Depends(get_user_service),
):
    return await service.get_user(user_id)


@router.patch("/profile", response_model=UserResponse)
async def update_profile(
    data: ProfileUpdate,
    user_id: int = Depends(get_current_user_id),
    service: UserService = Depends(get_user_service),
):
    return await service.update_profile(user_id, data)


@router.get("/{user_id}", response_model=UserDetail)
async def get_user(user_id: int, service: UserService = Depends(get_user_service)):
    return await service.get_user_detail(user_id)
