"""Administrator endpoints: moderation, broadcasts and statistics."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, cast

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, ConfigDict, EmailStr
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement

from api.deps import get_db, require_admin
from core.errors import NotFound
from models import Comment, Notification, Post, User
from services import accounts, content
from services.auth import ResolvedIdentity
from services.notifications import (
    AdminMarkAllReadRequest,
    AdminNotificationCreateRequest,
    AdminNotificationItem,
    MarkAllReadResponse,
    NotificationMutationResponse,
    NotificationStats,
    broadcast,
    delete_any,
    list_all,
    mark_all_read_scoped,
    mark_any_read,
    notification_stats,
)
from .pagination import MAX_PAGE_SIZE, paginate_rows

router = APIRouter(prefix="/admin", tags=["admin"])


def _eq(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column == value)


def _desc(column: Any) -> Any:
    return cast(Any, column).desc()


class AdminUserItem(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    username: str
    email: EmailStr
    name: str | None = None
    is_admin: bool
    created_at: datetime


class AdminPostItem(BaseModel):
    id: int
    author_id: str
    author_username: str | None = None
    title: str
    created_at: datetime


class AdminCommentItem(BaseModel):
    id: int
    post_id: int
    post_title: str | None = None
    author_id: str
    author_username: str | None = None
    text: str
    created_at: datetime


class AdminMarkReadResponse(NotificationMutationResponse):
    notification: AdminNotificationItem


class SiteStats(BaseModel):
    users: int
    posts: int
    comments: int
    notifications: int


@router.post(
    "/notifications",
    status_code=status.HTTP_201_CREATED,
    response_model=AdminNotificationItem,
)
async def create_broadcast(
    payload: AdminNotificationCreateRequest,
    identity: ResolvedIdentity = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> AdminNotificationItem:
    return await broadcast(
        session,
        admin_id=identity.user_id,
        type_value=payload.type,
        message=payload.message,
        recipient_target=payload.recipient_id,
    )


@router.get("/notifications", response_model=list[AdminNotificationItem])
async def list_notifications(
    response: Response,
    limit: Annotated[int | None, Query(ge=1, le=MAX_PAGE_SIZE)] = None,
    offset: Annotated[int, Query(ge=0)] = 0,
    identity: ResolvedIdentity = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> list[AdminNotificationItem]:
    items = await list_all(session, limit=limit, offset=offset)
    return paginate_rows(response, items, offset=offset, limit=limit)


@router.get("/notifications/stats", response_model=NotificationStats)
async def get_notification_stats(
    identity: ResolvedIdentity = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> NotificationStats:
    return await notification_stats(session)


@router.put("/notifications/read-all", response_model=MarkAllReadResponse)
async def mark_all_read(
    payload: AdminMarkAllReadRequest,
    identity: ResolvedIdentity = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> MarkAllReadResponse:
    modified = await mark_all_read_scoped(
        session,
        admin_id=identity.user_id,
        scope=payload.scope,
        user_id=payload.user_id,
    )
    return MarkAllReadResponse(
        detail=f"{modified} notifications marked as read",
        modified_count=modified,
    )


@router.put("/notifications/{notification_id}/read", response_model=AdminMarkReadResponse)
async def mark_read(
    notification_id: int,
    identity: ResolvedIdentity = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> AdminMarkReadResponse:
    item = await mark_any_read(session, notification_id=notification_id)
    return AdminMarkReadResponse(detail="Notification marked as read", notification=item)


@router.delete("/notifications/{notification_id}", response_model=NotificationMutationResponse)
async def delete_notification(
    notification_id: int,
    identity: ResolvedIdentity = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> NotificationMutationResponse:
    await delete_any(session, admin_id=identity.user_id, notification_id=notification_id)
    return NotificationMutationResponse(detail="Notification removed")


@router.get("/users", response_model=list[AdminUserItem])
async def list_users(
    response: Response,
    limit: Annotated[int | None, Query(ge=1, le=MAX_PAGE_SIZE)] = None,
    offset: Annotated[int, Query(ge=0)] = 0,
    identity: ResolvedIdentity = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> list[AdminUserItem]:
    query = select(User).order_by(_desc(User.created_at), _desc(User.id))
    if offset > 0:
        query = query.offset(offset)
    if limit is not None:
        query = query.limit(limit + 1)
    result = await session.execute(query)
    users = paginate_rows(response, result.scalars().all(), offset=offset, limit=limit)
    return [AdminUserItem.model_validate(user) for user in users]


@router.delete("/users/{user_id}", response_model=NotificationMutationResponse)
async def delete_user(
    user_id: str,
    identity: ResolvedIdentity = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> NotificationMutationResponse:
    """Remove a non-admin user and everything they authored or received."""
    await accounts.delete_user_cascade(
        session,
        admin_id=identity.user_id,
        user_id=user_id,
    )
    return NotificationMutationResponse(
        detail="User and all associated content removed successfully"
    )


@router.get("/posts", response_model=list[AdminPostItem])
async def list_posts(
    response: Response,
    limit: Annotated[int | None, Query(ge=1, le=MAX_PAGE_SIZE)] = None,
    offset: Annotated[int, Query(ge=0)] = 0,
    identity: ResolvedIdentity = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> list[AdminPostItem]:
    """Every post, newest first, with the author's username."""
    query = (
        select(Post, User.username)
        .outerjoin(User, _eq(User.id, Post.author_id))
        .order_by(_desc(Post.created_at), _desc(Post.id))
    )
    if offset > 0:
        query = query.offset(offset)
    if limit is not None:
        query = query.limit(limit + 1)
    result = await session.execute(query)
    rows = paginate_rows(response, result.all(), offset=offset, limit=limit)
    return [
        AdminPostItem(
            id=cast(int, post.id),
            author_id=post.author_id,
            author_username=username,
            title=post.title,
            created_at=post.created_at,
        )
        for post, username in rows
    ]


@router.delete("/posts/{post_id}", response_model=NotificationMutationResponse)
async def delete_post(
    post_id: int,
    identity: ResolvedIdentity = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> NotificationMutationResponse:
    post = await session.get(Post, post_id)
    if post is None:
        raise NotFound("Post not found")
    await content.delete_post(session, post)
    return NotificationMutationResponse(detail="Post and associated comments removed")


@router.get("/comments", response_model=list[AdminCommentItem])
async def list_comments(
    response: Response,
    limit: Annotated[int | None, Query(ge=1, le=MAX_PAGE_SIZE)] = None,
    offset: Annotated[int, Query(ge=0)] = 0,
    identity: ResolvedIdentity = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> list[AdminCommentItem]:
    """Every comment, newest first, with its author and the post it sits on."""
    query = (
        select(Comment, User.username, Post.title)
        .outerjoin(User, _eq(User.id, Comment.author_id))
        .outerjoin(Post, _eq(Post.id, Comment.post_id))
        .order_by(_desc(Comment.created_at), _desc(Comment.id))
    )
    if offset > 0:
        query = query.offset(offset)
    if limit is not None:
        query = query.limit(limit + 1)
    result = await session.execute(query)
    rows = paginate_rows(response, result.all(), offset=offset, limit=limit)
    return [
        AdminCommentItem(
            id=cast(int, comment.id),
            post_id=comment.post_id,
            post_title=title,
            author_id=comment.author_id,
            author_username=username,
            text=comment.text,
            created_at=comment.created_at,
        )
        for comment, username, title in rows
    ]


@router.delete("/comments/{comment_id}", response_model=NotificationMutationResponse)
async def delete_comment(
    comment_id: int,
    identity: ResolvedIdentity = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> NotificationMutationResponse:
    comment = await session.get(Comment, comment_id)
    if comment is None:
        raise NotFound("Comment not found")
    await content.delete_comment(session, comment)
    return NotificationMutationResponse(detail="Comment removed")


@router.get("/stats", response_model=SiteStats)
async def get_site_stats(
    identity: ResolvedIdentity = Depends(require_admin),
    session: AsyncSession = Depends(get_db),
) -> SiteStats:
    async def count(model: Any, *conditions: Any) -> int:
        stmt = select(func.count()).select_from(model)
        if conditions:
            stmt = stmt.where(*conditions)
        return int(await session.scalar(stmt) or 0)

    return SiteStats(
        users=await count(User),
        posts=await count(Post),
        comments=await count(Comment),
        notifications=await count(Notification, _eq(Notification.read, False)),
    )
