"""Administrative account removal.

Deleting a user runs as an ordered list of steps, each committed on its own
and safe to re-run. The user row is removed last, so a failure partway
through leaves the account in place with some content already gone, and
repeating the deletion picks up where it stopped.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from typing import Any, cast

from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement

from core.errors import CannotDeleteAdmin, NotFound, PartialFailure
from models import Bookmark, Comment, Follow, Like, Notification, NotificationReceipt, Post, User
from services.content import detach_notifications, purge_post_children

logger = logging.getLogger(__name__)

DeletionStep = Callable[[AsyncSession, str], Awaitable[None]]


def _eq(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column == value)


def _in(column: Any, values: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], cast(Any, column).in_(values))


async def _authored_post_ids(session: AsyncSession, user_id: str) -> list[int]:
    result = await session.execute(select(Post.id).where(_eq(Post.author_id, user_id)))
    return [post_id for post_id in result.scalars() if post_id is not None]


async def remove_post_children(session: AsyncSession, user_id: str) -> None:
    await purge_post_children(session, await _authored_post_ids(session, user_id))


async def remove_posts(session: AsyncSession, user_id: str) -> None:
    await session.execute(delete(Post).where(_eq(Post.author_id, user_id)))


async def remove_comments(session: AsyncSession, user_id: str) -> None:
    comment_ids = list(
        (
            await session.execute(select(Comment.id).where(_eq(Comment.author_id, user_id)))
        ).scalars()
    )
    await detach_notifications(session, comment_ids=comment_ids)
    await session.execute(delete(Comment).where(_eq(Comment.author_id, user_id)))


async def remove_graph(session: AsyncSession, user_id: str) -> None:
    await session.execute(delete(Like).where(_eq(Like.user_id, user_id)))
    await session.execute(delete(Bookmark).where(_eq(Bookmark.user_id, user_id)))
    await session.execute(
        delete(Follow).where(
            or_(
                _eq(Follow.follower_id, user_id),
                _eq(Follow.followee_id, user_id),
            )
        )
    )


async def remove_notifications(session: AsyncSession, user_id: str) -> None:
    """Drop notifications the user sent or received directly.

    Broadcast rows addressed to a class are left alone unless the user sent
    them.
    """
    owned = or_(
        _eq(Notification.sender_id, user_id),
        _eq(Notification.recipient_user_id, user_id),
    )
    await session.execute(
        delete(NotificationReceipt).where(
            or_(
                _eq(NotificationReceipt.user_id, user_id),
                _in(
                    NotificationReceipt.notification_id,
                    select(Notification.id).where(owned),
                ),
            )
        )
    )
    await session.execute(delete(Notification).where(owned))


async def remove_user(session: AsyncSession, user_id: str) -> None:
    await session.execute(delete(User).where(_eq(User.id, user_id)))


USER_DELETION_STEPS: tuple[tuple[str, DeletionStep], ...] = (
    ("post_children", remove_post_children),
    ("posts", remove_posts),
    ("comments", remove_comments),
    ("graph", remove_graph),
    ("notifications", remove_notifications),
    ("user", remove_user),
)


async def delete_user_cascade(
    session: AsyncSession,
    *,
    admin_id: str,
    user_id: str,
) -> None:
    user = await session.get(User, user_id)
    if user is None:
        raise NotFound("User not found")
    if user.is_admin:
        raise CannotDeleteAdmin()

    logger.info(
        "User deletion started",
        extra={"admin_id": admin_id, "user_id": user_id},
    )
    for name, step in USER_DELETION_STEPS:
        try:
            await step(session, user_id)
            await session.commit()
        except Exception as exc:
            await session.rollback()
            logger.error(
                "User deletion step failed",
                extra={"admin_id": admin_id, "user_id": user_id, "step": name},
                exc_info=exc,
            )
            raise PartialFailure(
                f"Error removing associated content (stopped at {name})"
            ) from exc
        logger.info(
            "User deletion step completed",
            extra={"user_id": user_id, "step": name},
        )

    logger.info(
        "User deletion finished",
        extra={"admin_id": admin_id, "user_id": user_id},
    )
