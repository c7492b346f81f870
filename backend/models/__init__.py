"""SQLModel models package."""

from .bookmark import Bookmark
from .comment import Comment
from .follow import Follow
from .like import Like
from .notification import (
    MESSAGE_TYPES,
    Notification,
    NotificationType,
    RecipientClass,
)
from .notification_receipt import NotificationReceipt
from .post import Post
from .user import User

__all__ = [
    "User",
    "Follow",
    "Post",
    "Like",
    "Comment",
    "Bookmark",
    "Notification",
    "NotificationType",
    "NotificationReceipt",
    "RecipientClass",
    "MESSAGE_TYPES",
]
