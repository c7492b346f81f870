"""Notification creation, listing and per-user read state."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any, cast

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import Forbidden, NotFound, ValidationFailed
from db.errors import is_check_violation, is_unique_violation
from models import (
    MESSAGE_TYPES,
    Comment,
    Notification,
    NotificationReceipt,
    NotificationType,
    Post,
    User,
)

from .common import desc, eq, receipt_join_condition, unread_for_user, visible_to
from .recipients import (
    BroadcastRecipient,
    Recipient,
    UserRecipient,
    can_see,
    recipient_columns,
    recipient_of,
)
from .schemas import NotificationItem, NotificationSender

logger = logging.getLogger(__name__)

NOT_FOUND_MESSAGE = "Notification not found"
NOT_AUTHORIZED_MESSAGE = "User not authorized"
CONTENT_TYPES = frozenset({NotificationType.LIKE, NotificationType.COMMENT})


def validate_payload(
    type_value: str,
    message: str | None,
    *,
    post_id: int | None = None,
    comment_id: int | None = None,
) -> tuple[NotificationType, str | None]:
    """Check the type against the enum, and the message and references against the type.

    Only like and comment notifications point at content; a comment reference
    is only meaningful on a comment notification and needs its post alongside.
    """
    try:
        notification_type = NotificationType((type_value or "").strip())
    except ValueError as exc:
        raise ValidationFailed(f"Unknown notification type: {type_value}") from exc

    normalized_message = (message or "").strip() or None
    if notification_type in MESSAGE_TYPES and normalized_message is None:
        raise ValidationFailed(
            f"Message is required for {notification_type.value} notifications"
        )
    if notification_type not in MESSAGE_TYPES and normalized_message is not None:
        raise ValidationFailed(
            f"{notification_type.value} notifications do not carry a message"
        )

    references_content = post_id is not None or comment_id is not None
    if notification_type not in CONTENT_TYPES and references_content:
        raise ValidationFailed(
            f"{notification_type.value} notifications do not reference posts or comments"
        )
    if comment_id is not None:
        if notification_type is not NotificationType.COMMENT:
            raise ValidationFailed(
                f"{notification_type.value} notifications do not reference comments"
            )
        if post_id is None:
            raise ValidationFailed("A comment reference requires its post")
    return notification_type, normalized_message


async def _ensure_references(
    session: AsyncSession,
    *,
    recipient: Recipient,
    post_id: int | None,
    comment_id: int | None,
) -> None:
    if isinstance(recipient, UserRecipient):
        if await session.get(User, recipient.user_id) is None:
            raise NotFound("Recipient not found")
    if post_id is not None and await session.get(Post, post_id) is None:
        raise NotFound("Post not found")
    if comment_id is not None:
        comment = await session.get(Comment, comment_id)
        if comment is None:
            raise NotFound("Comment not found")
        if comment.post_id != post_id:
            raise ValidationFailed("Comment does not belong to the referenced post")


async def create_notification(
    session: AsyncSession,
    *,
    sender_id: str,
    recipient: Recipient,
    type_value: str,
    post_id: int | None = None,
    comment_id: int | None = None,
    message: str | None = None,
    suppress_self: bool = True,
) -> Notification | None:
    """Persist one notification, or return None when it is self-addressed.

    ``suppress_self`` is on for action-triggered notifications and off for
    the admin broadcast path, where targeting oneself is legitimate.
    """
    notification_type, normalized_message = validate_payload(
        type_value,
        message,
        post_id=post_id,
        comment_id=comment_id,
    )

    if (
        suppress_self
        and isinstance(recipient, UserRecipient)
        and recipient.user_id == sender_id
    ):
        logger.info(
            "Self notification skipped",
            extra={"sender_id": sender_id, "type": notification_type.value},
        )
        return None

    await _ensure_references(
        session,
        recipient=recipient,
        post_id=post_id,
        comment_id=comment_id,
    )

    notification = Notification(
        type=notification_type.value,
        sender_id=sender_id,
        post_id=post_id,
        comment_id=comment_id,
        message=normalized_message,
        **recipient_columns(recipient),
    )
    session.add(notification)
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        if is_check_violation(exc):
            raise ValidationFailed("Notification violates storage constraints") from exc
        raise
    await session.refresh(notification)

    logger.info(
        "Notification created",
        extra={
            "notification_id": notification.id,
            "type": notification.type,
            "sender_id": sender_id,
            "recipient_user_id": notification.recipient_user_id,
            "recipient_class": notification.recipient_class,
        },
    )
    return notification


async def notify_action(
    session: AsyncSession,
    *,
    sender_id: str,
    recipient_id: str,
    notification_type: NotificationType,
    post_id: int | None = None,
    comment_id: int | None = None,
) -> Notification | None:
    """Raise a like/comment/follow notification for a concrete user."""
    return await create_notification(
        session,
        sender_id=sender_id,
        recipient=UserRecipient(recipient_id),
        type_value=notification_type.value,
        post_id=post_id,
        comment_id=comment_id,
    )


def to_item(
    notification: Notification,
    sender: User | None,
    *,
    read: bool | None = None,
) -> NotificationItem:
    if notification.id is None:
        raise ValueError("Notification record missing identifier")
    return NotificationItem(
        id=notification.id,
        type=NotificationType(notification.type),
        sender=NotificationSender(
            id=notification.sender_id,
            username=sender.username if sender is not None else None,
            avatar_url=sender.avatar_url if sender is not None else None,
        ),
        recipient_user_id=notification.recipient_user_id,
        recipient_class=notification.recipient_class,
        post_id=notification.post_id,
        comment_id=notification.comment_id,
        message=notification.message,
        read=notification.read if read is None else read,
        created_at=notification.created_at,
    )


async def load_item(session: AsyncSession, notification: Notification) -> NotificationItem:
    sender = await session.get(User, notification.sender_id)
    return to_item(notification, sender)


async def list_for(
    session: AsyncSession,
    *,
    user_id: str,
    is_admin: bool,
    limit: int | None = None,
    offset: int = 0,
) -> Sequence[NotificationItem]:
    """Notifications visible to the user, newest first, with their read state.

    When ``limit`` is set one extra row is fetched so callers can detect
    another page.
    """
    stmt: Any = (
        select(Notification, User, NotificationReceipt.id)
        .outerjoin(User, eq(User.id, Notification.sender_id))
        .outerjoin(NotificationReceipt, receipt_join_condition(user_id))
        .where(visible_to(user_id=user_id, is_admin=is_admin))
        .order_by(desc(Notification.created_at), desc(Notification.id))
    )
    if offset > 0:
        stmt = stmt.offset(offset)
    if limit is not None:
        stmt = stmt.limit(limit + 1)

    result = await session.execute(stmt)
    return [
        to_item(
            notification,
            sender,
            read=notification.read or receipt_id is not None,
        )
        for notification, sender, receipt_id in result.all()
    ]


async def unread_count(
    session: AsyncSession,
    *,
    user_id: str,
    is_admin: bool,
) -> int:
    count = await session.scalar(
        select(func.count())
        .select_from(Notification)
        .outerjoin(NotificationReceipt, receipt_join_condition(user_id))
        .where(
            visible_to(user_id=user_id, is_admin=is_admin),
            unread_for_user(),
        )
    )
    return int(count or 0)


async def _get_or_404(session: AsyncSession, notification_id: int) -> Notification:
    notification = await session.get(Notification, notification_id)
    if notification is None:
        raise NotFound(NOT_FOUND_MESSAGE)
    return notification


async def _add_receipt(
    session: AsyncSession,
    *,
    user_id: str,
    notification_id: int,
) -> None:
    existing = await session.execute(
        select(NotificationReceipt.id).where(
            eq(NotificationReceipt.user_id, user_id),
            eq(NotificationReceipt.notification_id, notification_id),
        )
    )
    if existing.scalar_one_or_none() is not None:
        return

    session.add(NotificationReceipt(user_id=user_id, notification_id=notification_id))
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        # A concurrent request recorded the same receipt.
        if not is_unique_violation(exc):
            raise


async def mark_read(
    session: AsyncSession,
    *,
    user_id: str,
    is_admin: bool,
    notification_id: int,
) -> NotificationItem:
    """Mark one notification read for the caller; repeating it is a no-op.

    Concrete notifications flip their own flag. Broadcasts get a receipt for
    the caller only, leaving every other recipient's state untouched.
    """
    notification = await _get_or_404(session, notification_id)
    recipient = recipient_of(notification)
    if not can_see(recipient, user_id=user_id, is_admin=is_admin):
        raise Forbidden(NOT_AUTHORIZED_MESSAGE)

    if isinstance(recipient, UserRecipient):
        if not notification.read:
            notification.read = True
            session.add(notification)
            await session.commit()
    elif not notification.read:
        await _add_receipt(session, user_id=user_id, notification_id=notification_id)

    sender = await session.get(User, notification.sender_id)
    return to_item(notification, sender, read=True)


async def mark_all_read(
    session: AsyncSession,
    *,
    user_id: str,
    is_admin: bool,
) -> int:
    """Mark everything unread in the caller's listing as read; return the count."""
    result = await session.execute(
        select(Notification.id, Notification.recipient_user_id)
        .outerjoin(NotificationReceipt, receipt_join_condition(user_id))
        .where(
            visible_to(user_id=user_id, is_admin=is_admin),
            unread_for_user(),
        )
    )
    rows = result.all()
    concrete_ids = [row[0] for row in rows if row[1] is not None]
    broadcast_ids = [row[0] for row in rows if row[1] is None]

    if concrete_ids:
        await session.execute(
            update(Notification)
            .where(cast(Any, Notification.id).in_(concrete_ids))
            .values(read=True)
        )
    for notification_id in broadcast_ids:
        session.add(NotificationReceipt(user_id=user_id, notification_id=notification_id))

    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        if not is_unique_violation(exc):
            raise
        # Lost a race with a concurrent mark; the rows are read either way.
        return await mark_all_read(session, user_id=user_id, is_admin=is_admin)

    return len(rows)


async def remove_notification(session: AsyncSession, notification: Notification) -> None:
    await session.execute(
        delete(NotificationReceipt).where(
            eq(NotificationReceipt.notification_id, notification.id)
        )
    )
    await session.delete(notification)
    await session.commit()


async def delete_for(
    session: AsyncSession,
    *,
    user_id: str,
    is_admin: bool,
    notification_id: int,
) -> None:
    """Delete a notification the caller owns; admins may delete any."""
    notification = await _get_or_404(session, notification_id)
    if not is_admin:
        recipient = recipient_of(notification)
        if isinstance(recipient, BroadcastRecipient) or recipient.user_id != user_id:
            raise Forbidden(NOT_AUTHORIZED_MESSAGE)
    await remove_notification(session, notification)
    logger.info(
        "Notification deleted",
        extra={"notification_id": notification_id, "deleted_by": user_id},
    )
