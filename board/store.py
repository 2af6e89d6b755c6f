"""
Relational store for users, posts and comments.

Design notes
------------
- Every public method is its own unit of work: it opens a session from
  the injected ``async_sessionmaker``, and write methods commit before
  returning.  Independent reads can therefore run side by side under
  ``asyncio.gather`` without sharing an ``AsyncSession``.
- Rows are returned as plain dicts (camelCase keys, ISO timestamps) so the
  service layer can hand them straight to the cache and to the HTTP layer.
- Eager loading via ``joinedload`` is used for the many-to-one author
  relationship; every relationship is ``lazy="noload"`` in the models.
- Connection-level driver errors surface as ``StoreUnavailableError``.
"""
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import joinedload

from board.errors import ConflictError, NotFoundError, StoreUnavailableError
from board.models import Comment, Post, User, utcnow

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Serialisation helpers
# ---------------------------------------------------------------------------

def _isoformat(value) -> str | None:
    return value.isoformat() if value else None


def user_to_dict(user: User) -> dict:
    """Serialise a User without its password hash."""
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "nickname": user.nickname,
        "createdAt": _isoformat(user.created_at),
    }


def post_to_dict(post: Post) -> dict:
    return {
        "id": post.id,
        "title": post.title,
        "content": post.content,
        "authorId": post.author_id,
        "author": user_to_dict(post.author) if post.author is not None else None,
        "viewCount": post.view_count,
        "createdAt": _isoformat(post.created_at),
        "updatedAt": _isoformat(post.updated_at),
    }


def comment_to_dict(comment: Comment) -> dict:
    return {
        "id": comment.id,
        "postId": comment.post_id,
        "authorId": comment.author_id,
        "author": user_to_dict(comment.author) if comment.author is not None else None,
        "content": comment.content,
        "createdAt": _isoformat(comment.created_at),
        "updatedAt": _isoformat(comment.updated_at),
    }


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------

SEARCH_FIELDS: frozenset[str] = frozenset({"title", "content", "author"})


@dataclass(frozen=True)
class PostFilter:
    """Case-insensitive substring match on one searchable field."""

    field: str
    query: str

    def __post_init__(self) -> None:
        if self.field not in SEARCH_FIELDS:
            raise ValueError(f"Unsupported search field: {self.field!r}")

    def clause(self):
        if self.field == "title":
            return Post.title.icontains(self.query, autoescape=True)
        if self.field == "content":
            return Post.content.icontains(self.query, autoescape=True)
        return Post.author.has(User.username.icontains(self.query, autoescape=True))


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class Store:
    def __init__(self, sessions: async_sessionmaker[AsyncSession]) -> None:
        self._sessions = sessions

    @asynccontextmanager
    async def _read(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self._sessions() as session:
                yield session
        except (OperationalError, InterfaceError) as exc:
            raise StoreUnavailableError(f"Database read failed: {exc.orig}") from exc

    @asynccontextmanager
    async def _write(self) -> AsyncIterator[AsyncSession]:
        try:
            async with self._sessions.begin() as session:
                yield session
        except (OperationalError, InterfaceError) as exc:
            raise StoreUnavailableError(f"Database write failed: {exc.orig}") from exc

    # -- posts --------------------------------------------------------------

    async def find_posts(
        self,
        post_filter: PostFilter | None = None,
        skip: int | None = None,
        take: int | None = None,
    ) -> list[dict]:
        """Return posts newest-first with their author joined."""
        q = select(Post).options(joinedload(Post.author)).order_by(
            Post.created_at.desc(), Post.id.desc()
        )
        if post_filter is not None:
            q = q.where(post_filter.clause())
        if skip:
            q = q.offset(skip)
        if take is not None:
            q = q.limit(take)
        async with self._read() as session:
            posts = (await session.scalars(q)).unique().all()
            return [post_to_dict(p) for p in posts]

    async def count_posts(self, post_filter: PostFilter | None = None) -> int:
        q = select(func.count()).select_from(Post)
        if post_filter is not None:
            q = q.where(post_filter.clause())
        async with self._read() as session:
            return (await session.execute(q)).scalar_one()

    async def find_posts_by_author(self, author_id: int) -> list[dict]:
        q = (
            select(Post)
            .where(Post.author_id == author_id)
            .order_by(Post.created_at.desc(), Post.id.desc())
        )
        async with self._read() as session:
            return [post_to_dict(p) for p in (await session.scalars(q)).all()]

    async def find_post_by_id(self, post_id: int) -> dict | None:
        async with self._read() as session:
            post = await self._load_post(session, post_id)
            return post_to_dict(post) if post is not None else None

    async def insert_post(self, title: str, content: str, author_id: int) -> dict:
        async with self._write() as session:
            post = Post(title=title, content=content, author_id=author_id)
            session.add(post)
            try:
                await session.flush()
            except IntegrityError as exc:
                raise NotFoundError(f"User {author_id} not found") from exc
            post = await self._load_post(session, post.id)
            return post_to_dict(post)

    async def update_post(self, post_id: int, data: dict) -> dict:
        """Apply *data* (``title`` / ``content``) and return the updated row."""
        async with self._write() as session:
            post = await self._load_post(session, post_id)
            if post is None:
                raise NotFoundError(f"Post {post_id} not found")
            for field, value in data.items():
                setattr(post, field, value)
            post.updated_at = utcnow()
            await session.flush()
            return post_to_dict(post)

    async def delete_post(self, post_id: int) -> None:
        async with self._write() as session:
            result = await session.execute(delete(Post).where(Post.id == post_id))
            if result.rowcount == 0:
                raise NotFoundError(f"Post {post_id} not found")

    async def increment_post_view_count(self, post_id: int) -> int:
        """
        Atomically add one view and return the new total.

        The increment is a single ``UPDATE ... SET view_count = view_count + 1``
        so concurrent viewers never lose each other's writes.
        """
        async with self._write() as session:
            result = await session.execute(
                update(Post)
                .where(Post.id == post_id)
                .values(view_count=Post.view_count + 1)
            )
            if result.rowcount == 0:
                raise NotFoundError(f"Post {post_id} not found")
            return (
                await session.execute(select(Post.view_count).where(Post.id == post_id))
            ).scalar_one()

    @staticmethod
    async def _load_post(session: AsyncSession, post_id: int) -> Post | None:
        q = (
            select(Post)
            .where(Post.id == post_id)
            .options(joinedload(Post.author))
            .execution_options(populate_existing=True)
        )
        return (await session.execute(q)).unique().scalar_one_or_none()

    # -- comments -----------------------------------------------------------

    async def find_comments(
        self, post_id: int, skip: int | None = None, take: int | None = None
    ) -> list[dict]:
        q = (
            select(Comment)
            .where(Comment.post_id == post_id)
            .options(joinedload(Comment.author))
            .order_by(Comment.created_at.desc(), Comment.id.desc())
        )
        if skip:
            q = q.offset(skip)
        if take is not None:
            q = q.limit(take)
        async with self._read() as session:
            comments = (await session.scalars(q)).unique().all()
            return [comment_to_dict(c) for c in comments]

    async def count_comments(self, post_id: int | None = None) -> int:
        q = select(func.count()).select_from(Comment)
        if post_id is not None:
            q = q.where(Comment.post_id == post_id)
        async with self._read() as session:
            return (await session.execute(q)).scalar_one()

    async def find_comment_by_id(self, comment_id: int) -> dict | None:
        async with self._read() as session:
            comment = await self._load_comment(session, comment_id)
            return comment_to_dict(comment) if comment is not None else None

    async def insert_comment(self, post_id: int, content: str, author_id: int) -> dict:
        async with self._write() as session:
            comment = Comment(post_id=post_id, content=content, author_id=author_id)
            session.add(comment)
            try:
                await session.flush()
            except IntegrityError as exc:
                raise NotFoundError(f"Post {post_id} not found") from exc
            comment = await self._load_comment(session, comment.id)
            return comment_to_dict(comment)

    async def update_comment(self, comment_id: int, content: str) -> dict:
        async with self._write() as session:
            comment = await self._load_comment(session, comment_id)
            if comment is None:
                raise NotFoundError(f"Comment {comment_id} not found")
            comment.content = content
            comment.updated_at = utcnow()
            await session.flush()
            return comment_to_dict(comment)

    async def delete_comment(self, comment_id: int) -> None:
        async with self._write() as session:
            result = await session.execute(delete(Comment).where(Comment.id == comment_id))
            if result.rowcount == 0:
                raise NotFoundError(f"Comment {comment_id} not found")

    @staticmethod
    async def _load_comment(session: AsyncSession, comment_id: int) -> Comment | None:
        q = (
            select(Comment)
            .where(Comment.id == comment_id)
            .options(joinedload(Comment.author))
            .execution_options(populate_existing=True)
        )
        return (await session.execute(q)).unique().scalar_one_or_none()

    # -- users --------------------------------------------------------------

    async def count_users(self) -> int:
        async with self._read() as session:
            return (await session.execute(select(func.count()).select_from(User))).scalar_one()

    async def find_user_by_id(self, user_id: int) -> dict | None:
        async with self._read() as session:
            user = await session.get(User, user_id)
            return user_to_dict(user) if user is not None else None

    async def find_user_by(self, **criteria) -> dict | None:
        """Look up a user by one unique column (``username``, ``email`` or ``nickname``)."""
        (column, value), = criteria.items()
        q = select(User).where(getattr(User, column) == value)
        async with self._read() as session:
            user = (await session.execute(q)).scalar_one_or_none()
            return user_to_dict(user) if user is not None else None

    async def find_password_hash(self, username: str) -> tuple[dict, str] | None:
        q = select(User).where(User.username == username)
        async with self._read() as session:
            user = (await session.execute(q)).scalar_one_or_none()
            if user is None:
                return None
            return user_to_dict(user), user.password_hash

    async def insert_user(self, username: str, email: str, password_hash: str) -> dict:
        try:
            async with self._write() as session:
                user = User(username=username, email=email, password_hash=password_hash)
                session.add(user)
                await session.flush()
                return user_to_dict(user)
        except IntegrityError as exc:
            raise ConflictError("A user with this username or email already exists") from exc

    async def update_user(self, user_id: int, data: dict) -> dict:
        try:
            async with self._write() as session:
                user = await session.get(User, user_id)
                if user is None:
                    raise NotFoundError(f"User {user_id} not found")
                for field, value in data.items():
                    setattr(user, field, value)
                user.updated_at = utcnow()
                await session.flush()
                return user_to_dict(user)
        except IntegrityError as exc:
            raise ConflictError("Nickname or email is already in use") from exc
