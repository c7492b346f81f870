"""Notification domain services."""

from .admin import (
    broadcast,
    delete_any,
    get_admin_item,
    list_all,
    mark_all_read_scoped,
    mark_any_read,
    notification_stats,
)
from .engine import (
    create_notification,
    delete_for,
    list_for,
    load_item,
    mark_all_read,
    mark_read,
    notify_action,
    unread_count,
    validate_payload,
)
from .recipients import (
    BroadcastRecipient,
    Recipient,
    UserRecipient,
    parse_recipient,
    recipient_from_fields,
    recipient_of,
)
from .schemas import (
    AdminMarkAllReadRequest,
    AdminNotificationCreateRequest,
    AdminNotificationItem,
    MarkAllReadResponse,
    MarkReadResponse,
    NotificationCreateRequest,
    NotificationItem,
    NotificationMutationResponse,
    NotificationSkipped,
    NotificationStats,
    UnreadCountResponse,
)

__all__ = [
    "AdminMarkAllReadRequest",
    "AdminNotificationCreateRequest",
    "AdminNotificationItem",
    "BroadcastRecipient",
    "MarkAllReadResponse",
    "MarkReadResponse",
    "NotificationCreateRequest",
    "NotificationItem",
    "NotificationMutationResponse",
    "NotificationSkipped",
    "NotificationStats",
    "Recipient",
    "UnreadCountResponse",
    "UserRecipient",
    "broadcast",
    "create_notification",
    "delete_any",
    "delete_for",
    "get_admin_item",
    "list_all",
    "list_for",
    "load_item",
    "mark_all_read",
    "mark_all_read_scoped",
    "mark_any_read",
    "mark_read",
    "notification_stats",
    "notify_action",
    "parse_recipient",
    "recipient_from_fields",
    "recipient_of",
    "unread_count",
    "validate_payload",
]
