from fastapi import APIRouter, Depends

from board.dependencies import get_current_user_id, get_user_service
from board.schemas import LoginRequest, RegisterRequest, TokenResponse, UserResponse
from board.services.user_service import UserService

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", status_code=201, response_model=UserResponse)
async def register(data: RegisterRequest, service: UserService = Depends(get_user_service)):
    return await service.register(data)


@router.post("/login", response_model=TokenResponse)
async def login(data: LoginRequest, service: UserService = Depends(get_user_service)):
    return await service.authenticate(data)


@router.get("/me", response_model=UserResponse)
async def me(
    user_id: int = Depends(get_current_user_id),
    service: UserService = Depends(get_user_service),
):
    return await service.get_user(user_id)
