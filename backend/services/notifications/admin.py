"""Privileged notification operations: broadcasts, global read state, stats."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any, Literal, cast

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from core.errors import NotFound, ValidationFailed
from models import Notification, NotificationType, RecipientClass, User

from .common import desc, eq
from .engine import NOT_FOUND_MESSAGE, create_notification, remove_notification, to_item
from .recipients import parse_recipient
from .schemas import AdminNotificationItem, NotificationStats

logger = logging.getLogger(__name__)

MarkAllScope = Literal["all", "admins", "specific"]


def _admin_item(
    notification: Notification,
    sender: User | None,
    recipient: User | None,
) -> AdminNotificationItem:
    item = to_item(notification, sender)
    return AdminNotificationItem(
        **item.model_dump(),
        recipient_username=recipient.username if recipient is not None else None,
    )


def _admin_listing() -> Any:
    sender_alias = aliased(User)
    recipient_alias = aliased(User)
    return (
        select(Notification, sender_alias, recipient_alias)
        .outerjoin(sender_alias, eq(sender_alias.id, Notification.sender_id))
        .outerjoin(recipient_alias, eq(recipient_alias.id, Notification.recipient_user_id))
    )


async def get_admin_item(session: AsyncSession, notification_id: int) -> AdminNotificationItem:
    result = await session.execute(
        _admin_listing().where(eq(Notification.id, notification_id))
    )
    row = result.one_or_none()
    if row is None:
        raise NotFound(NOT_FOUND_MESSAGE)
    notification, sender, recipient = row
    return _admin_item(notification, sender, recipient)


async def broadcast(
    session: AsyncSession,
    *,
    admin_id: str,
    type_value: str,
    message: str | None,
    recipient_target: str | None,
) -> AdminNotificationItem:
    """Create an admin notification for ``all``, ``admins`` or one user.

    Self-addressed notifications are not suppressed here. The stored row is
    re-read with sender and recipient usernames for immediate display.
    """
    if not (type_value or "").strip() or not (message or "").strip():
        raise ValidationFailed("Type and message are required")

    recipient = parse_recipient(recipient_target)
    notification = await create_notification(
        session,
        sender_id=admin_id,
        recipient=recipient,
        type_value=type_value,
        message=message,
        suppress_self=False,
    )
    if notification is None or notification.id is None:
        raise RuntimeError("Broadcast notification was not persisted")

    logger.info(
        "Admin broadcast created",
        extra={
            "admin_id": admin_id,
            "notification_id": notification.id,
            "recipient_class": notification.recipient_class,
            "recipient_user_id": notification.recipient_user_id,
        },
    )
    return await get_admin_item(session, notification.id)


async def list_all(
    session: AsyncSession,
    *,
    limit: int | None = None,
    offset: int = 0,
) -> Sequence[AdminNotificationItem]:
    stmt = _admin_listing().order_by(
        desc(Notification.created_at),
        desc(Notification.id),
    )
    if offset > 0:
        stmt = stmt.offset(offset)
    if limit is not None:
        stmt = stmt.limit(limit + 1)

    result = await session.execute(stmt)
    return [
        _admin_item(notification, sender, recipient)
        for notification, sender, recipient in result.all()
    ]


async def delete_any(
    session: AsyncSession,
    *,
    admin_id: str,
    notification_id: int,
) -> None:
    notification = await session.get(Notification, notification_id)
    if notification is None:
        raise NotFound(NOT_FOUND_MESSAGE)
    await remove_notification(session, notification)
    logger.info(
        "Notification deleted by admin",
        extra={"admin_id": admin_id, "notification_id": notification_id},
    )


async def mark_any_read(
    session: AsyncSession,
    *,
    notification_id: int,
) -> AdminNotificationItem:
    """Set the global read flag, which covers every recipient of a broadcast."""
    notification = await session.get(Notification, notification_id)
    if notification is None:
        raise NotFound(NOT_FOUND_MESSAGE)
    if not notification.read:
        notification.read = True
        session.add(notification)
        await session.commit()
    return await get_admin_item(session, notification_id)


async def mark_all_read_scoped(
    session: AsyncSession,
    *,
    admin_id: str,
    scope: MarkAllScope,
    user_id: str | None = None,
) -> int:
    """Bulk-set the global read flag for one scope and return rows changed.

    ``specific`` covers notifications addressed to ``user_id`` directly and
    changes that user's read state on their behalf, so it is always logged.
    """
    unread = eq(Notification.read, False)
    if scope == "all":
        condition = unread
    elif scope == "admins":
        condition = unread & eq(Notification.recipient_class, RecipientClass.ADMINS.value)
    elif scope == "specific":
        target_id = (user_id or "").strip()
        if not target_id:
            raise ValidationFailed("user_id is required for the specific scope")
        if await session.get(User, target_id) is None:
            raise NotFound("User not found")
        condition = unread & eq(Notification.recipient_user_id, target_id)
    else:
        raise ValidationFailed("Invalid recipient type")

    result = await session.execute(update(Notification).where(condition).values(read=True))
    await session.commit()
    modified = int(result.rowcount or 0)

    log = logger.warning if scope == "specific" else logger.info
    log(
        "Admin bulk mark-read",
        extra={
            "admin_id": admin_id,
            "scope": scope,
            "target_user_id": user_id,
            "modified_count": modified,
        },
    )
    return modified


async def _count(session: AsyncSession, *conditions: Any) -> int:
    stmt = select(func.count()).select_from(Notification)
    if conditions:
        stmt = stmt.where(*conditions)
    return int(await session.scalar(stmt) or 0)


async def notification_stats(session: AsyncSession) -> NotificationStats:
    """Aggregate counts over live rows; every type appears even at zero."""
    type_rows = await session.execute(
        select(Notification.type, func.count()).group_by(cast(Any, Notification.type))
    )
    found = {row[0]: int(row[1]) for row in type_rows.all()}
    by_type = {member.value: found.get(member.value, 0) for member in NotificationType}

    return NotificationStats(
        total=await _count(session),
        unread=await _count(session, eq(Notification.read, False)),
        by_type=by_type,
        by_recipient={
            "all": await _count(
                session, eq(Notification.recipient_class, RecipientClass.ALL.value)
            ),
            "admins": await _count(
                session, eq(Notification.recipient_class, RecipientClass.ADMINS.value)
            ),
            "specific": await _count(
                session, cast(Any, Notification.recipient_user_id).isnot(None)
            ),
        },
    )
