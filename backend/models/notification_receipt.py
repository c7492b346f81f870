"""Per-user read receipts for broadcast notifications."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlmodel import Field, SQLModel

from .common import utcnow


class NotificationReceipt(SQLModel, table=True):
    """Records that one user has read one class-addressed notification."""

    __tablename__ = "notification_receipts"
    __table_args__ = (
        UniqueConstraint(
            "user_id",
            "notification_id",
            name="ux_notification_receipts_user_notification",
        ),
    )

    id: int | None = Field(default=None, primary_key=True)
    user_id: str = Field(
        sa_column=Column(
            String(36),
            ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        )
    )
    notification_id: int = Field(
        sa_column=Column(
            Integer,
            ForeignKey("notifications.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        )
    )
    read_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
