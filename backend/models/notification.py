"""Notification persistence model."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlmodel import Field, SQLModel

from .common import utcnow


class NotificationType(str, Enum):
    LIKE = "like"
    COMMENT = "comment"
    FOLLOW = "follow"
    ANNOUNCEMENT = "announcement"
    ALERT = "alert"
    UPDATE = "update"
    MESSAGE = "message"


class RecipientClass(str, Enum):
    ALL = "all"
    ADMINS = "admins"


# Types that carry a message body; the rest are raised by user actions.
MESSAGE_TYPES = frozenset(
    {
        NotificationType.ANNOUNCEMENT,
        NotificationType.ALERT,
        NotificationType.UPDATE,
        NotificationType.MESSAGE,
    }
)


def _quoted(values) -> str:
    return ", ".join(f"'{value.value}'" for value in values)


class Notification(SQLModel, table=True):
    """A notification addressed to exactly one user or one recipient class.

    Exactly one of ``recipient_user_id`` / ``recipient_class`` is set; the
    database enforces it so no row can address both or neither.
    """

    __tablename__ = "notifications"
    __table_args__ = (
        CheckConstraint(
            "(recipient_user_id IS NOT NULL AND recipient_class IS NULL)"
            " OR (recipient_user_id IS NULL AND recipient_class IS NOT NULL)",
            name="ck_notifications_single_recipient",
        ),
        CheckConstraint(
            f"recipient_class IS NULL OR recipient_class IN ({_quoted(RecipientClass)})",
            name="ck_notifications_recipient_class",
        ),
        CheckConstraint(
            f"type IN ({_quoted(NotificationType)})",
            name="ck_notifications_type",
        ),
        Index(
            "ix_notifications_recipient_user_created_at",
            "recipient_user_id",
            "created_at",
        ),
        Index(
            "ix_notifications_recipient_class_created_at",
            "recipient_class",
            "created_at",
        ),
    )

    id: int | None = Field(default=None, primary_key=True)
    type: str = Field(sa_column=Column(String(20), nullable=False))
    sender_id: str = Field(
        sa_column=Column(
            String(36),
            ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        )
    )
    recipient_user_id: str | None = Field(
        default=None,
        sa_column=Column(
            String(36),
            ForeignKey("users.id", ondelete="CASCADE"),
            nullable=True,
        ),
    )
    recipient_class: str | None = Field(
        default=None, sa_column=Column(String(10), nullable=True)
    )
    post_id: int | None = Field(
        default=None,
        sa_column=Column(
            Integer,
            ForeignKey("posts.id", ondelete="SET NULL"),
            nullable=True,
        ),
    )
    comment_id: int | None = Field(
        default=None,
        sa_column=Column(
            Integer,
            ForeignKey("comments.id", ondelete="SET NULL"),
            nullable=True,
        ),
    )
    message: str | None = Field(
        default=None, sa_column=Column(Text, nullable=True)
    )
    read: bool = Field(
        default=False,
        sa_column=Column(Boolean, nullable=False, server_default=text("false")),
    )
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
