"""
User service: registration, login and profile management.

Users are read straight from the store without caching; profile pages
are low traffic compared with post reads.
"""
import logging

from board.errors import AuthenticationError, ConflictError, NotFoundError
from board.schemas import LoginRequest, ProfileUpdate, RegisterRequest
from board.security import create_access_token, hash_password, verify_password
from board.store import Store

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, store: Store) -> None:
        self.store = store

    async def register(self, data: RegisterRequest) -> dict:
        """
        Create a user and return it without the password hash.

        Duplicate username or email raises ``ConflictError``; the unique
        constraints in the schema back this up under concurrent signups.
        """
        if await self.store.find_user_by(username=data.username) is not None:
            raise ConflictError("Username is already taken")
        if await self.store.find_user_by(email=data.email) is not None:
            raise ConflictError("Email is already registered")

        user = await self.store.insert_user(
            data.username, data.email, hash_password(data.password)
        )
        logger.info("User %d registered", user["id"])
        return user

    async def authenticate(self, data: LoginRequest) -> dict:
        """Return ``{"access_token", "user"}`` for valid credentials."""
        found = await self.store.find_password_hash(data.username)
        # Same message for unknown user and bad password.
        if found is None or not verify_password(data.password, found[1]):
            raise AuthenticationError("Incorrect username or password")
        user, _ = found
        return {
            "access_token": create_access_token(user["id"], user["username"]),
            "user": user,
        }

    async def get_user(self, user_id: int) -> dict:
        user = await self.store.find_user_by_id(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        return user

    async def get_user_detail(self, user_id: int) -> dict:
        """User plus a summary of their posts, newest first."""
        data = await self.get_user(user_id)
        data["posts"] = await self.store.find_posts_by_author(user_id)
        return data

    async def update_profile(self, user_id: int, data: ProfileUpdate) -> dict:
        await self.get_user(user_id)
        changes = data.model_dump(exclude_unset=True, exclude_none=True)

        if "nickname" in changes:
            existing = await self.store.find_user_by(nickname=changes["nickname"])
            if existing is not None and existing["id"] != user_id:
                raise ConflictError("Nickname is already in use")
        if "email" in changes:
            existing = await self.store.find_user_by(email=changes["email"])
            if existing is not None and existing["id"] != user_id:
                raise ConflictError("Email is already registered")
        if "password" in changes:
            changes["password_hash"] = hash_password(changes.pop("password"))

        return await self.store.update_user(user_id, changes)
