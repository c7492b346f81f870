"""User profile, follow graph and bookmark endpoints."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, ConfigDict, EmailStr, Field
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_current_user, get_db
from core import hash_password, verify_password
from core.errors import Forbidden, IncorrectPassword, NotFound
from models import NotificationType, Post, User
from services import social_graph
from services.notifications import notify_action
from .pagination import MAX_PAGE_SIZE, paginate_rows

logger = logging.getLogger(__name__)

router = APIRouter(tags=["users"])
MAX_PROFILE_NAME_LENGTH = 80
MAX_PROFILE_BIO_LENGTH = 500


class UserSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    username: str
    name: str | None = None
    avatar_url: str | None = None
    bio: str | None = None


class UserProfilePublic(UserSummary):
    followers_count: int = 0
    following_count: int = 0
    created_at: datetime


class UserProfilePrivate(UserSummary):
    email: EmailStr
    is_admin: bool = False


class ProfileUpdateRequest(BaseModel):
    name: str | None = Field(default=None, max_length=MAX_PROFILE_NAME_LENGTH)
    bio: str | None = Field(default=None, max_length=MAX_PROFILE_BIO_LENGTH)
    avatar_url: str | None = Field(default=None, max_length=255)


class PasswordChangeRequest(BaseModel):
    current_password: str = Field(min_length=1, max_length=128)
    new_password: str = Field(min_length=8, max_length=128)


class FollowMutationResponse(BaseModel):
    detail: str
    following: list[str]
    followers: list[str]


class BookmarkRequest(BaseModel):
    post_id: int


class BookmarkItem(BaseModel):
    post_id: int
    title: str
    author_id: str
    added_at: datetime


async def _get_user_or_404(session: AsyncSession, user_id: str) -> User:
    user = await session.get(User, user_id)
    if user is None:
        raise NotFound("User not found")
    return user


@router.get("/me", response_model=UserProfilePrivate)
async def get_me(current_user: User = Depends(get_current_user)) -> UserProfilePrivate:
    """Return the authenticated user's full profile."""
    return UserProfilePrivate.model_validate(current_user)


@router.patch("/me", response_model=UserProfilePrivate)
async def update_me(
    payload: ProfileUpdateRequest,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> UserProfilePrivate:
    """Update display fields on the authenticated user's profile."""
    changes = payload.model_dump(exclude_unset=True)
    for field, value in changes.items():
        normalized = value.strip() if isinstance(value, str) else value
        setattr(current_user, field, normalized or None)

    if changes:
        session.add(current_user)
        await session.commit()
        await session.refresh(current_user)
    return UserProfilePrivate.model_validate(current_user)


@router.put("/users/password/{user_id}", status_code=status.HTTP_200_OK)
async def change_password(
    user_id: str,
    payload: PasswordChangeRequest,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> dict[str, str]:
    """Replace the caller's password after checking the current one.

    Accounts created through Google sign-in have no password to check, so
    they are rejected the same way as a wrong current password.
    """
    if user_id != current_user.id:
        raise Forbidden("User not authorized")
    if not verify_password(payload.current_password, current_user.password_hash):
        raise IncorrectPassword()

    current_user.password_hash = hash_password(payload.new_password)
    session.add(current_user)
    await session.commit()
    logger.info("Password changed", extra={"user_id": current_user.id})
    return {"detail": "Password updated successfully"}


@router.get("/users/me/bookmarks", response_model=list[BookmarkItem])
async def list_bookmarks(
    response: Response,
    limit: Annotated[int | None, Query(ge=1, le=MAX_PAGE_SIZE)] = None,
    offset: Annotated[int, Query(ge=0)] = 0,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> list[BookmarkItem]:
    rows = await social_graph.list_bookmarks(
        session,
        current_user.id,
        limit=limit,
        offset=offset,
    )
    rows = paginate_rows(response, rows, offset=offset, limit=limit)
    return [
        BookmarkItem(
            post_id=bookmark.post_id,
            title=post.title,
            author_id=post.author_id,
            added_at=bookmark.added_at,
        )
        for bookmark, post in rows
    ]


@router.post(
    "/users/me/bookmarks",
    status_code=status.HTTP_201_CREATED,
    response_model=BookmarkItem,
)
async def add_bookmark(
    payload: BookmarkRequest,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> BookmarkItem:
    bookmark = await social_graph.add_bookmark(
        session,
        user_id=current_user.id,
        post_id=payload.post_id,
    )
    post = await session.get(Post, bookmark.post_id)
    if post is None:
        raise NotFound("Post not found")
    return BookmarkItem(
        post_id=bookmark.post_id,
        title=post.title,
        author_id=post.author_id,
        added_at=bookmark.added_at,
    )


@router.delete("/users/me/bookmarks/{post_id}", status_code=status.HTTP_200_OK)
async def remove_bookmark(
    post_id: int,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> dict[str, str]:
    await social_graph.remove_bookmark(
        session,
        user_id=current_user.id,
        post_id=post_id,
    )
    return {"detail": "Bookmark removed"}


@router.get("/users/{user_id}", response_model=UserProfilePublic)
async def get_user_profile(
    user_id: str,
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> UserProfilePublic:
    """Fetch a user's public profile with edge counts."""
    user = await _get_user_or_404(session, user_id)
    followers_count, following_count = await social_graph.count_edges(session, user_id)
    return UserProfilePublic(
        id=user.id,
        username=user.username,
        name=user.name,
        avatar_url=user.avatar_url,
        bio=user.bio,
        followers_count=followers_count,
        following_count=following_count,
        created_at=user.created_at,
    )


@router.post(
    "/users/{user_id}/follow",
    response_model=FollowMutationResponse,
    status_code=status.HTTP_200_OK,
)
async def follow_user(
    user_id: str,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> FollowMutationResponse:
    edges = await social_graph.follow(
        session,
        actor_id=current_user.id,
        target_id=user_id,
    )
    await notify_action(
        session,
        sender_id=current_user.id,
        recipient_id=user_id,
        notification_type=NotificationType.FOLLOW,
    )
    return FollowMutationResponse(
        detail="User followed",
        following=edges.actor_following,
        followers=edges.target_followers,
    )


@router.delete(
    "/users/{user_id}/follow",
    response_model=FollowMutationResponse,
    status_code=status.HTTP_200_OK,
)
async def unfollow_user(
    user_id: str,
    current_user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> FollowMutationResponse:
    edges = await social_graph.unfollow(
        session,
        actor_id=current_user.id,
        target_id=user_id,
    )
    return FollowMutationResponse(
        detail="User unfollowed",
        following=edges.actor_following,
        followers=edges.target_followers,
    )


@router.get("/users/{user_id}/followers", response_model=list[UserSummary])
async def list_followers(
    user_id: str,
    response: Response,
    limit: Annotated[int | None, Query(ge=1, le=MAX_PAGE_SIZE)] = None,
    offset: Annotated[int, Query(ge=0)] = 0,
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[UserSummary]:
    await _get_user_or_404(session, user_id)
    followers = await social_graph.list_followers(
        session,
        user_id,
        limit=limit,
        offset=offset,
    )
    followers = paginate_rows(response, followers, offset=offset, limit=limit)
    return [UserSummary.model_validate(user) for user in followers]


@router.get("/users/{user_id}/following", response_model=list[UserSummary])
async def list_following(
    user_id: str,
    response: Response,
    limit: Annotated[int | None, Query(ge=1, le=MAX_PAGE_SIZE)] = None,
    offset: Annotated[int, Query(ge=0)] = 0,
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[UserSummary]:
    await _get_user_or_404(session, user_id)
    following = await social_graph.list_following(
        session,
        user_id,
        limit=limit,
        offset=offset,
    )
    following = paginate_rows(response, following, offset=offset, limit=limit)
    return [UserSummary.model_validate(user) for user in following]
