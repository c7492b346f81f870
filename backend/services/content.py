"""Post and comment removal shared by owners, admins and account deletion."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, cast

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement

from models import Bookmark, Comment, Like, Notification, Post


def _in(column: Any, values: Sequence[Any]) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], cast(Any, column).in_(values))


async def detach_notifications(
    session: AsyncSession,
    *,
    post_ids: Sequence[int] = (),
    comment_ids: Sequence[int] = (),
) -> None:
    """Clear notification references to posts or comments about to be removed."""
    if post_ids:
        await session.execute(
            update(Notification)
            .where(_in(Notification.post_id, post_ids))
            .values(post_id=None, comment_id=None)
        )
    if comment_ids:
        await session.execute(
            update(Notification)
            .where(_in(Notification.comment_id, comment_ids))
            .values(comment_id=None)
        )


async def purge_post_children(session: AsyncSession, post_ids: Sequence[int]) -> None:
    """Delete likes, bookmarks and comments hanging off the given posts."""
    if not post_ids:
        return
    comment_ids = list(
        (
            await session.execute(
                select(Comment.id).where(_in(Comment.post_id, post_ids))
            )
        ).scalars()
    )
    await detach_notifications(session, post_ids=post_ids, comment_ids=comment_ids)
    await session.execute(delete(Like).where(_in(Like.post_id, post_ids)))
    await session.execute(delete(Bookmark).where(_in(Bookmark.post_id, post_ids)))
    await session.execute(delete(Comment).where(_in(Comment.post_id, post_ids)))


async def delete_post(session: AsyncSession, post: Post) -> None:
    """Remove a post together with its children in one transaction."""
    if post.id is None:
        raise ValueError("Post record missing identifier")
    try:
        await purge_post_children(session, [post.id])
        await session.delete(post)
        await session.commit()
    except Exception:
        await session.rollback()
        raise


async def delete_comment(session: AsyncSession, comment: Comment) -> None:
    if comment.id is None:
        raise ValueError("Comment record missing identifier")
    try:
        await detach_notifications(session, comment_ids=[comment.id])
        await session.delete(comment)
        await session.commit()
    except Exception:
        await session.rollback()
        raise
