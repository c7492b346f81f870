"""Notification endpoints for the signed-in user."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_db, get_identity
from core.errors import Forbidden, InvalidRecipient, ValidationFailed
from services.auth import ADMIN_REQUIRED_MESSAGE, ResolvedIdentity
from services.notifications import (
    BroadcastRecipient,
    MarkAllReadResponse,
    MarkReadResponse,
    NotificationCreateRequest,
    NotificationItem,
    NotificationMutationResponse,
    NotificationSkipped,
    Recipient,
    UnreadCountResponse,
    create_notification,
    delete_for,
    list_for,
    load_item,
    mark_all_read,
    mark_read,
    parse_recipient,
    recipient_from_fields,
    unread_count,
)
from .pagination import MAX_PAGE_SIZE, paginate_rows

router = APIRouter(prefix="/notifications", tags=["notifications"])


def _resolve_request_recipient(payload: NotificationCreateRequest) -> Recipient:
    has_fields = payload.recipient_user_id is not None or payload.recipient_class is not None
    if payload.recipient is not None:
        if has_fields:
            raise ValidationFailed("Provide either recipient or recipient fields, not both")
        return parse_recipient(payload.recipient)
    if has_fields:
        return recipient_from_fields(payload.recipient_user_id, payload.recipient_class)
    raise InvalidRecipient()


@router.post(
    "",
    response_model=NotificationItem | NotificationSkipped,
    status_code=status.HTTP_201_CREATED,
)
async def create(
    payload: NotificationCreateRequest,
    response: Response,
    identity: ResolvedIdentity = Depends(get_identity),
    session: AsyncSession = Depends(get_db),
) -> NotificationItem | NotificationSkipped:
    """Create a notification from the caller; self-addressed ones are skipped."""
    recipient = _resolve_request_recipient(payload)
    if isinstance(recipient, BroadcastRecipient) and not identity.is_admin:
        raise Forbidden(ADMIN_REQUIRED_MESSAGE)

    notification = await create_notification(
        session,
        sender_id=identity.user_id,
        recipient=recipient,
        type_value=payload.type,
        post_id=payload.post_id,
        comment_id=payload.comment_id,
        message=payload.message,
    )
    if notification is None:
        response.status_code = status.HTTP_200_OK
        return NotificationSkipped()
    return await load_item(session, notification)


@router.get("", response_model=list[NotificationItem])
async def list_notifications(
    response: Response,
    limit: Annotated[int | None, Query(ge=1, le=MAX_PAGE_SIZE)] = None,
    offset: Annotated[int, Query(ge=0)] = 0,
    identity: ResolvedIdentity = Depends(get_identity),
    session: AsyncSession = Depends(get_db),
) -> list[NotificationItem]:
    items = await list_for(
        session,
        user_id=identity.user_id,
        is_admin=identity.is_admin,
        limit=limit,
        offset=offset,
    )
    return paginate_rows(response, items, offset=offset, limit=limit)


@router.get("/unread-count", response_model=UnreadCountResponse)
async def get_unread_count(
    identity: ResolvedIdentity = Depends(get_identity),
    session: AsyncSession = Depends(get_db),
) -> UnreadCountResponse:
    count = await unread_count(
        session,
        user_id=identity.user_id,
        is_admin=identity.is_admin,
    )
    return UnreadCountResponse(count=count)


@router.put("/read-all", response_model=MarkAllReadResponse)
async def mark_all_notifications_read(
    identity: ResolvedIdentity = Depends(get_identity),
    session: AsyncSession = Depends(get_db),
) -> MarkAllReadResponse:
    modified = await mark_all_read(
        session,
        user_id=identity.user_id,
        is_admin=identity.is_admin,
    )
    return MarkAllReadResponse(
        detail="All notifications marked as read",
        modified_count=modified,
    )


@router.put("/{notification_id}/read", response_model=MarkReadResponse)
async def mark_notification_read(
    notification_id: int,
    identity: ResolvedIdentity = Depends(get_identity),
    session: AsyncSession = Depends(get_db),
) -> MarkReadResponse:
    item = await mark_read(
        session,
        user_id=identity.user_id,
        is_admin=identity.is_admin,
        notification_id=notification_id,
    )
    return MarkReadResponse(detail="Notification marked as read", notification=item)


@router.delete("/{notification_id}", response_model=NotificationMutationResponse)
async def delete_notification(
    notification_id: int,
    identity: ResolvedIdentity = Depends(get_identity),
    session: AsyncSession = Depends(get_db),
) -> NotificationMutationResponse:
    await delete_for(
        session,
        user_id=identity.user_id,
        is_admin=identity.is_admin,
        notification_id=notification_id,
    )
    return NotificationMutationResponse(detail="Notification removed")
