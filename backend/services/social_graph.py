"""Follow edges and bookmarks.

A follow relationship is one ``follows`` row keyed by (follower, followee);
``followers`` and ``following`` are both read from it, so the two directions
cannot disagree. Bookmarks are likewise one row per (user, post).
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Literal, cast

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement

from core.errors import (
    AlreadyBookmarked,
    AlreadyFollowing,
    NotBookmarked,
    NotFollowing,
    NotFound,
    SelfFollow,
)
from db.errors import is_unique_violation
from models import Bookmark, Follow, Post, User

logger = logging.getLogger(__name__)


def _eq(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column == value)


def _desc(column: Any) -> Any:
    return cast(Any, column).desc()


@dataclass(slots=True)
class FollowEdges:
    """Edge lists of both parties after a follow mutation."""

    actor_following: list[str]
    target_followers: list[str]


async def is_following(
    session: AsyncSession,
    *,
    follower_id: str,
    followee_id: str,
) -> bool:
    result = await session.execute(
        select(Follow).where(
            _eq(Follow.follower_id, follower_id),
            _eq(Follow.followee_id, followee_id),
        )
    )
    return result.scalar_one_or_none() is not None


async def following_ids(session: AsyncSession, user_id: str) -> list[str]:
    result = await session.execute(
        select(Follow.followee_id)
        .where(_eq(Follow.follower_id, user_id))
        .order_by(_desc(Follow.created_at))
    )
    return list(result.scalars().all())


async def follower_ids(session: AsyncSession, user_id: str) -> list[str]:
    result = await session.execute(
        select(Follow.follower_id)
        .where(_eq(Follow.followee_id, user_id))
        .order_by(_desc(Follow.created_at))
    )
    return list(result.scalars().all())


async def count_edges(session: AsyncSession, user_id: str) -> tuple[int, int]:
    """Return ``(followers, following)`` counts for a user."""
    followers = await session.scalar(
        select(func.count()).select_from(Follow).where(_eq(Follow.followee_id, user_id))
    )
    following = await session.scalar(
        select(func.count()).select_from(Follow).where(_eq(Follow.follower_id, user_id))
    )
    return int(followers or 0), int(following or 0)


async def _edge_snapshot(
    session: AsyncSession,
    *,
    actor_id: str,
    target_id: str,
) -> FollowEdges:
    return FollowEdges(
        actor_following=await following_ids(session, actor_id),
        target_followers=await follower_ids(session, target_id),
    )


async def follow(
    session: AsyncSession,
    *,
    actor_id: str,
    target_id: str,
) -> FollowEdges:
    """Create the actor -> target edge as a single insert."""
    if actor_id == target_id:
        raise SelfFollow()

    target = await session.get(User, target_id)
    if target is None:
        raise NotFound("User not found")

    if await is_following(session, follower_id=actor_id, followee_id=target_id):
        raise AlreadyFollowing()

    session.add(Follow(follower_id=actor_id, followee_id=target_id))
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        if is_unique_violation(exc):
            raise AlreadyFollowing() from exc
        raise

    logger.info(
        "Follow edge created",
        extra={"follower_id": actor_id, "followee_id": target_id},
    )
    return await _edge_snapshot(session, actor_id=actor_id, target_id=target_id)


async def unfollow(
    session: AsyncSession,
    *,
    actor_id: str,
    target_id: str,
) -> FollowEdges:
    if actor_id == target_id:
        raise SelfFollow("Cannot unfollow yourself")

    target = await session.get(User, target_id)
    if target is None:
        raise NotFound("User not found")

    result = await session.execute(
        delete(Follow).where(
            _eq(Follow.follower_id, actor_id),
            _eq(Follow.followee_id, target_id),
        )
    )
    if not result.rowcount:
        await session.rollback()
        raise NotFollowing()
    await session.commit()

    logger.info(
        "Follow edge removed",
        extra={"follower_id": actor_id, "followee_id": target_id},
    )
    return await _edge_snapshot(session, actor_id=actor_id, target_id=target_id)


def _paginate(stmt: Any, *, limit: int | None, offset: int) -> Any:
    if offset > 0:
        stmt = stmt.offset(offset)
    if limit is not None:
        stmt = stmt.limit(limit + 1)
    return stmt


async def list_followers(
    session: AsyncSession,
    user_id: str,
    *,
    limit: int | None = None,
    offset: int = 0,
) -> Sequence[User]:
    """Followers of ``user_id``; fetches one extra row when ``limit`` is set."""
    stmt = (
        select(User)
        .join(Follow, _eq(Follow.follower_id, User.id))
        .where(_eq(Follow.followee_id, user_id))
        .order_by(User.username, User.id)
    )
    result = await session.execute(_paginate(stmt, limit=limit, offset=offset))
    return result.scalars().all()


async def list_following(
    session: AsyncSession,
    user_id: str,
    *,
    limit: int | None = None,
    offset: int = 0,
) -> Sequence[User]:
    stmt = (
        select(User)
        .join(Follow, _eq(Follow.followee_id, User.id))
        .where(_eq(Follow.follower_id, user_id))
        .order_by(User.username, User.id)
    )
    result = await session.execute(_paginate(stmt, limit=limit, offset=offset))
    return result.scalars().all()


async def add_bookmark(
    session: AsyncSession,
    *,
    user_id: str,
    post_id: int,
) -> Bookmark:
    post = await session.get(Post, post_id)
    if post is None:
        raise NotFound("Post not found")

    existing = await session.get(Bookmark, (user_id, post_id))
    if existing is not None:
        raise AlreadyBookmarked()

    bookmark = Bookmark(user_id=user_id, post_id=post_id)
    session.add(bookmark)
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        if is_unique_violation(exc):
            raise AlreadyBookmarked() from exc
        raise
    await session.refresh(bookmark)
    return bookmark


async def remove_bookmark(
    session: AsyncSession,
    *,
    user_id: str,
    post_id: int,
) -> None:
    result = await session.execute(
        delete(Bookmark).where(
            _eq(Bookmark.user_id, user_id),
            _eq(Bookmark.post_id, post_id),
        )
    )
    if not result.rowcount:
        await session.rollback()
        raise NotBookmarked()
    await session.commit()


async def toggle_bookmark(
    session: AsyncSession,
    *,
    user_id: str,
    post_id: int,
    action: Literal["add", "remove"],
) -> None:
    if action == "add":
        await add_bookmark(session, user_id=user_id, post_id=post_id)
    else:
        await remove_bookmark(session, user_id=user_id, post_id=post_id)


async def list_bookmarks(
    session: AsyncSession,
    user_id: str,
    *,
    limit: int | None = None,
    offset: int = 0,
) -> Sequence[tuple[Bookmark, Post]]:
    """Bookmarked posts, most recently added first."""
    stmt = (
        select(Bookmark, Post)
        .join(Post, _eq(Post.id, Bookmark.post_id))
        .where(_eq(Bookmark.user_id, user_id))
        .order_by(_desc(Bookmark.added_at), _desc(Bookmark.post_id))
    )
    result = await session.execute(_paginate(stmt, limit=limit, offset=offset))
    return [(bookmark, post) for bookmark, post in result.all()]
