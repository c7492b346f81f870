"""Notification API payload schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal

from pydantic import BaseModel, Field

from models import NotificationType

MAX_MESSAGE_LENGTH = 2000
Message = Annotated[str, Field(max_length=MAX_MESSAGE_LENGTH)]


class NotificationCreateRequest(BaseModel):
    """Action-path create.

    The recipient is either ``recipient`` (a user id, ``"all"`` or ``"admins"``)
    or exactly one of ``recipient_user_id`` / ``recipient_class``.
    """

    recipient: str | None = None
    recipient_user_id: str | None = None
    recipient_class: str | None = None
    type: str
    post_id: int | None = None
    comment_id: int | None = None
    message: Message | None = None


class AdminNotificationCreateRequest(BaseModel):
    type: str
    message: Message | None = None
    recipient_id: str | None = None


class AdminMarkAllReadRequest(BaseModel):
    scope: Literal["all", "admins", "specific"]
    user_id: str | None = None


class NotificationSender(BaseModel):
    id: str
    username: str | None = None
    avatar_url: str | None = None


class NotificationItem(BaseModel):
    id: int
    type: NotificationType
    sender: NotificationSender
    recipient_user_id: str | None = None
    recipient_class: Literal["all", "admins"] | None = None
    post_id: int | None = None
    comment_id: int | None = None
    message: str | None = None
    read: bool
    created_at: datetime


class AdminNotificationItem(NotificationItem):
    recipient_username: str | None = None


class NotificationSkipped(BaseModel):
    skipped: Literal[True] = True
    detail: str = "Self notification skipped"


class UnreadCountResponse(BaseModel):
    count: int


class NotificationMutationResponse(BaseModel):
    detail: str


class MarkReadResponse(NotificationMutationResponse):
    notification: NotificationItem


class MarkAllReadResponse(NotificationMutationResponse):
    modified_count: int


class NotificationStats(BaseModel):
    total: int
    unread: int
    by_type: dict[str, int]
    by_recipient: dict[str, int]
