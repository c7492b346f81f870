"""Post, comment and like endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, cast

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement

from api.deps import get_current_user, get_db
from core.errors import Forbidden, NotFound, ValidationFailed
from db.errors import is_unique_violation
from models import Comment, Like, NotificationType, Post, User
from services import content
from services.notifications import notify_action
from .pagination import MAX_PAGE_SIZE, paginate_rows

router = APIRouter(prefix="/posts", tags=["posts"])
MAX_POST_TITLE_LENGTH = 200
MAX_POST_CONTENT_LENGTH = 50_000


def _eq(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column == value)


def _desc(column: Any) -> Any:
    return cast(Any, column).desc()


class PostCreateRequest(BaseModel):
    title: str = Field(min_length=1, max_length=MAX_POST_TITLE_LENGTH)
    content: str = Field(min_length=1, max_length=MAX_POST_CONTENT_LENGTH)


class PostUpdateRequest(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=MAX_POST_TITLE_LENGTH)
    content: str | None = Field(default=None, min_length=1, max_length=MAX_POST_CONTENT_LENGTH)


class PostResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    author_id: str
    author_username: str | None = None
    title: str
    content: str
    like_count: int = 0
    viewer_has_liked: bool = False
    created_at: datetime
    updated_at: datetime | None = None


class CommentCreateRequest(BaseModel):
    text: str = Field(min_length=1, max_length=1000)


class CommentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    post_id: int
    author_id: str
    author_username: str | None = None
    text: str
    created_at: datetime

    @classmethod
    def from_comment(
        cls,
        comment: Comment,
        author_username: str | None = None,
    ) -> "CommentResponse":
        if comment.id is None:
            raise ValueError("Comment record missing identifier")
        return cls(
            id=comment.id,
            post_id=comment.post_id,
            author_id=comment.author_id,
            author_username=author_username,
            text=comment.text,
            created_at=comment.created_at,
        )


class LikeMutationResponse(BaseModel):
    detail: str
    liked: bool
    like_count: int


async def _get_post_or_404(session: AsyncSession, post_id: int) -> Post:
    post = await session.get(Post, post_id)
    if post is None:
        raise NotFound("Post not found")
    return post


async def _get_like_count(session: AsyncSession, post_id: int) -> int:
    count = await session.scalar(
        select(func.count()).select_from(Like).where(_eq(Like.post_id, post_id))
    )
    return int(count or 0)


async def _has_liked(session: AsyncSession, *, user_id: str, post_id: int) -> bool:
    result = await session.execute(
        select(Like).where(_eq(Like.user_id, user_id), _eq(Like.post_id, post_id))
    )
    return result.scalar_one_or_none() is not None


async def _post_response(
    session: AsyncSession,
    post: Post,
    *,
    viewer_id: str,
) -> PostResponse:
    if post.id is None:
        raise ValueError("Post record missing identifier")
    author = await session.get(User, post.author_id)
    return PostResponse(
        id=post.id,
        author_id=post.author_id,
        author_username=author.username if author is not None else None,
        title=post.title,
        content=post.content,
        like_count=await _get_like_count(session, post.id),
        viewer_has_liked=await _has_liked(session, user_id=viewer_id, post_id=post.id),
        created_at=post.created_at,
        updated_at=post.updated_at,
    )


@router.post("", status_code=status.HTTP_201_CREATED, response_model=PostResponse)
async def create_post(
    payload: PostCreateRequest,
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> PostResponse:
    post = Post(
        author_id=current_user.id,
        title=payload.title.strip(),
        content=payload.content,
    )
    session.add(post)
    await session.commit()
    await session.refresh(post)
    return await _post_response(session, post, viewer_id=current_user.id)


@router.get("", response_model=list[PostResponse])
async def list_posts(
    response: Response,
    author_id: str | None = None,
    limit: Annotated[int | None, Query(ge=1, le=MAX_PAGE_SIZE)] = None,
    offset: Annotated[int, Query(ge=0)] = 0,
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[PostResponse]:
    """Newest posts first, optionally restricted to one author."""
    query = select(Post).order_by(_desc(Post.created_at), _desc(Post.id))
    if author_id is not None:
        query = query.where(_eq(Post.author_id, author_id))
    if offset > 0:
        query = query.offset(offset)
    if limit is not None:
        query = query.limit(limit + 1)

    result = await session.execute(query)
    posts = paginate_rows(response, result.scalars().all(), offset=offset, limit=limit)
    return [
        await _post_response(session, post, viewer_id=current_user.id)
        for post in posts
    ]


@router.get("/{post_id}", response_model=PostResponse)
async def get_post(
    post_id: int,
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> PostResponse:
    post = await _get_post_or_404(session, post_id)
    return await _post_response(session, post, viewer_id=current_user.id)


@router.put("/{post_id}", response_model=PostResponse)
async def update_post(
    post_id: int,
    payload: PostUpdateRequest,
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> PostResponse:
    """Edit the title or content of one of the caller's posts; omitted fields stay."""
    post = await _get_post_or_404(session, post_id)
    if post.author_id != current_user.id:
        raise Forbidden("User not authorized")

    if payload.title is not None:
        title = payload.title.strip()
        if not title:
            raise ValidationFailed("Post title cannot be empty")
        post.title = title
    if payload.content is not None:
        post.content = payload.content

    session.add(post)
    await session.commit()
    await session.refresh(post)
    return await _post_response(session, post, viewer_id=current_user.id)


@router.delete("/{post_id}", status_code=status.HTTP_200_OK)
async def delete_post(
    post_id: int,
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict[str, str]:
    post = await _get_post_or_404(session, post_id)
    if post.author_id != current_user.id:
        raise Forbidden("User not authorized")
    await content.delete_post(session, post)
    return {"detail": "Post removed"}


@router.get("/{post_id}/comments", response_model=list[CommentResponse])
async def get_post_comments(
    post_id: int,
    response: Response,
    limit: Annotated[int | None, Query(ge=1, le=MAX_PAGE_SIZE)] = None,
    offset: Annotated[int, Query(ge=0)] = 0,
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> list[CommentResponse]:
    await _get_post_or_404(session, post_id)

    query = (
        select(Comment, User.username)
        .outerjoin(User, _eq(User.id, Comment.author_id))
        .where(_eq(Comment.post_id, post_id))
        .order_by(_desc(Comment.created_at), _desc(Comment.id))
    )
    if offset > 0:
        query = query.offset(offset)
    if limit is not None:
        query = query.limit(limit + 1)

    result = await session.execute(query)
    rows = paginate_rows(response, result.all(), offset=offset, limit=limit)
    return [
        CommentResponse.from_comment(comment, author_username=username)
        for comment, username in rows
    ]


@router.post(
    "/{post_id}/comments",
    status_code=status.HTTP_201_CREATED,
    response_model=CommentResponse,
)
async def create_comment(
    post_id: int,
    payload: CommentCreateRequest,
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> CommentResponse:
    post = await _get_post_or_404(session, post_id)

    text = payload.text.strip()
    if not text:
        raise ValidationFailed("Comment text cannot be empty")

    comment = Comment(post_id=post_id, author_id=current_user.id, text=text)
    session.add(comment)
    await session.commit()
    await session.refresh(comment)

    await notify_action(
        session,
        sender_id=current_user.id,
        recipient_id=post.author_id,
        notification_type=NotificationType.COMMENT,
        post_id=post_id,
        comment_id=comment.id,
    )
    return CommentResponse.from_comment(comment, author_username=current_user.username)


@router.delete("/{post_id}/comments/{comment_id}", status_code=status.HTTP_200_OK)
async def delete_comment(
    post_id: int,
    comment_id: int,
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> dict[str, str]:
    post = await _get_post_or_404(session, post_id)
    comment = await session.get(Comment, comment_id)
    if comment is None or comment.post_id != post_id:
        raise NotFound("Comment not found")
    if current_user.id not in {comment.author_id, post.author_id}:
        raise Forbidden("User not authorized")

    await content.delete_comment(session, comment)
    return {"detail": "Comment removed"}


@router.post("/{post_id}/likes", response_model=LikeMutationResponse)
async def toggle_like(
    post_id: int,
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> LikeMutationResponse:
    """Like the post, or remove the like when one already exists.

    Only the like direction raises a notification.
    """
    post = await _get_post_or_404(session, post_id)

    existing = await session.execute(
        select(Like).where(
            _eq(Like.user_id, current_user.id),
            _eq(Like.post_id, post_id),
        )
    )
    like_obj = existing.scalar_one_or_none()
    if like_obj is not None:
        await session.delete(like_obj)
        await session.commit()
        return LikeMutationResponse(
            detail="Unliked",
            liked=False,
            like_count=await _get_like_count(session, post_id),
        )

    session.add(Like(user_id=current_user.id, post_id=post_id))
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        if not is_unique_violation(exc):
            raise
        # A concurrent request already liked it; nothing new to announce.
        return LikeMutationResponse(
            detail="Liked",
            liked=True,
            like_count=await _get_like_count(session, post_id),
        )

    await notify_action(
        session,
        sender_id=current_user.id,
        recipient_id=post.author_id,
        notification_type=NotificationType.LIKE,
        post_id=post_id,
    )
    return LikeMutationResponse(
        detail="Liked",
        liked=True,
        like_count=await _get_like_count(session, post_id),
    )


@router.delete("/{post_id}/likes", response_model=LikeMutationResponse)
async def unlike_post(
    post_id: int,
    session: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> LikeMutationResponse:
    await _get_post_or_404(session, post_id)
    await session.execute(
        delete(Like).where(
            _eq(Like.user_id, current_user.id),
            _eq(Like.post_id, post_id),
        )
    )
    await session.commit()
    return LikeMutationResponse(
        detail="Unliked",
        liked=False,
        like_count=await _get_like_count(session, post_id),
    )
