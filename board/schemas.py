from typing import Literal

from pydantic import BaseModel, Field


# --- Auth / User ---

class RegisterRequest(BaseModel):
    username: str = Field(min_length=1, max_length=50)
    email: str = Field(min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str = Field(min_length=6, max_length=72)


class LoginRequest(BaseModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class ProfileUpdate(BaseModel):
    nickname: str | None = Field(None, min_length=1, max_length=50)
    email: str | None = Field(None, min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
    password: str | None = Field(None, min_length=6, max_length=72)


class UserResponse(BaseModel):
    id: int
    username: str
    email: str
    nickname: str | None = None
    createdAt: str | None = None


class UserDetail(UserResponse):
    posts: list[dict] = []


class TokenResponse(BaseModel):
    access_token: str
    user: UserResponse


# --- Post ---

class PostCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    content: str = Field(min_length=1, max_length=50000)


class PostUpdate(BaseModel):
    title: str | None = Field(None, min_length=1, max_length=200)
    content: str | None = Field(None, min_length=1, max_length=50000)


SearchType = Literal["title", "content", "author"]


class ViewResponse(BaseModel):
    success: bool


# --- Comment ---

class CommentCreate(BaseModel):
    content: str = Field(min_length=1, max_length=1000)


class CommentUpdate(CommentCreate):
    pass


# --- Pagination ---

class PaginatedResponse(BaseModel):
    data: list
    total: int
    page: int
    limit: int
    totalPages: int


# --- Metrics ---

class MetricsResponse(BaseModel):
    total_posts: int
    total_comments: int
    total_users: int
    avg_comments_per_post: float
    cache_info: dict = {}
