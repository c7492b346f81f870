"""Shared SQLAlchemy helpers for notification services."""

from __future__ import annotations

from typing import Any, cast

from sqlalchemy import and_, false, or_
from sqlalchemy.sql import ColumnElement

from models import Notification, NotificationReceipt, RecipientClass


def eq(column: Any, value: Any) -> ColumnElement[bool]:
    """Typed equality expression helper."""
    return cast(ColumnElement[bool], column == value)


def desc(column: Any) -> Any:
    """Typed descending ordering helper."""
    return cast(Any, column).desc()


def is_null(column: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], cast(Any, column).is_(None))


def visible_to(*, user_id: str, is_admin: bool) -> ColumnElement[bool]:
    """The listing predicate: the three disjoint ways a row reaches a user.

    Listing, unread counting and mark-all-read all filter with this one
    expression so they cannot drift apart.
    """
    admins_rule = (
        eq(Notification.recipient_class, RecipientClass.ADMINS.value)
        if is_admin
        else false()
    )
    return cast(
        ColumnElement[bool],
        or_(
            eq(Notification.recipient_user_id, user_id),
            eq(Notification.recipient_class, RecipientClass.ALL.value),
            admins_rule,
        ),
    )


def receipt_join_condition(user_id: str) -> ColumnElement[bool]:
    return cast(
        ColumnElement[bool],
        and_(
            eq(NotificationReceipt.notification_id, Notification.id),
            eq(NotificationReceipt.user_id, user_id),
        ),
    )


def unread_for_user() -> ColumnElement[bool]:
    """Unread for the joined user: no global flag and no receipt row.

    Must be used on a query outer-joined with ``receipt_join_condition``.
    """
    return cast(
        ColumnElement[bool],
        and_(
            eq(Notification.read, False),
            is_null(NotificationReceipt.id),
        ),
    )
