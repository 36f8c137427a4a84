"""Post repository for database operations."""

from collections.abc import Iterable
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import func
from sqlmodel import select

from site_friends.db.engine import SessionFactory, get_session
from site_friends.db.models import Post, PostKind


class PostRepository:
    """Repository for own posts and cached friend posts."""

    def __init__(self, session_factory: SessionFactory | None = None) -> None:
        self._session = session_factory or get_session

    async def create(self, **fields: Any) -> Post:
        """Insert a post."""
        async with self._session() as session:
            post = Post(**fields)
            session.add(post)
            await session.commit()
            await session.refresh(post)
            return post

    async def get(self, post_id: int) -> Post | None:
        """Get a post by id."""
        async with self._session() as session:
            return await session.get(Post, post_id)

    async def update(self, post_id: int, **fields: Any) -> Post | None:
        """Update the given columns of a post in place."""
        async with self._session() as session:
            post = await session.get(Post, post_id)
            if post:
                for name, value in fields.items():
                    setattr(post, name, value)
                post.updated_at = datetime.now(UTC)
                session.add(post)
                await session.commit()
                await session.refresh(post)
            return post

    async def list_cached_for_author(self, account_id: int) -> list[Post]:
        """All cached posts mirrored from one account's feed."""
        async with self._session() as session:
            result = await session.execute(
                select(Post)
                .where(
                    Post.kind == PostKind.FRIEND_POST_CACHE,
                    Post.author_account_id == account_id,
                )
                .order_by(Post.id)
            )
            return list(result.scalars().all())

    async def count_cached_for_author(self, account_id: int) -> int:
        async with self._session() as session:
            result = await session.execute(
                select(func.count())
                .select_from(Post)
                .where(
                    Post.kind == PostKind.FRIEND_POST_CACHE,
                    Post.author_account_id == account_id,
                )
            )
            return int(result.scalar_one())

    async def list_cached(self, limit: int = 50, offset: int = 0) -> list[Post]:
        """Cached friend posts, newest first."""
        async with self._session() as session:
            result = await session.execute(
                select(Post)
                .where(Post.kind == PostKind.FRIEND_POST_CACHE)
                .order_by(Post.published_at.desc(), Post.id.desc())  # type: ignore[union-attr]
                .offset(offset)
                .limit(limit)
            )
            return list(result.scalars().all())

    async def list_own(self, statuses: Iterable[str], limit: int = 20) -> list[Post]:
        """Our own posts with one of the given statuses, newest first."""
        async with self._session() as session:
            result = await session.execute(
                select(Post)
                .where(
                    Post.kind == PostKind.POST,
                    Post.status.in_([str(s) for s in statuses]),  # type: ignore[attr-defined]
                )
                .order_by(Post.published_at.desc(), Post.id.desc())  # type: ignore[union-attr]
                .limit(limit)
            )
            return list(result.scalars().all())
