"""Recipient addressing for notifications.

A notification goes to exactly one concrete user or to one broadcast class.
The two shapes are separate types; storage maps them onto two nullable
columns guarded by a check constraint.
"""

from __future__ import annotations

from dataclasses import dataclass

from core.errors import InvalidRecipient, ValidationFailed
from models import Notification, RecipientClass


@dataclass(frozen=True, slots=True)
class UserRecipient:
    user_id: str


@dataclass(frozen=True, slots=True)
class BroadcastRecipient:
    recipient_class: RecipientClass


Recipient = UserRecipient | BroadcastRecipient


def parse_recipient(target: str | None) -> Recipient:
    """Resolve ``"all"``, ``"admins"`` or a user id into a recipient."""
    value = (target or "").strip()
    if not value:
        raise InvalidRecipient()
    if value in {member.value for member in RecipientClass}:
        return BroadcastRecipient(RecipientClass(value))
    return UserRecipient(value)


def recipient_from_fields(
    recipient_user_id: str | None,
    recipient_class: str | None,
) -> Recipient:
    """Build a recipient from the two-field wire shape.

    Exactly one field must be set.
    """
    user_id = (recipient_user_id or "").strip() or None
    class_value = (recipient_class or "").strip() or None

    if user_id is not None and class_value is not None:
        raise ValidationFailed("Notification cannot target both a user and a recipient class")
    if user_id is None and class_value is None:
        raise ValidationFailed("Notification requires a recipient")
    if user_id is not None:
        return UserRecipient(user_id)
    try:
        return BroadcastRecipient(RecipientClass(class_value))
    except ValueError as exc:
        raise ValidationFailed(f"Unknown recipient class: {class_value}") from exc


def recipient_columns(recipient: Recipient) -> dict[str, str | None]:
    if isinstance(recipient, UserRecipient):
        return {"recipient_user_id": recipient.user_id, "recipient_class": None}
    return {"recipient_user_id": None, "recipient_class": recipient.recipient_class.value}


def recipient_of(notification: Notification) -> Recipient:
    return recipient_from_fields(
        notification.recipient_user_id,
        notification.recipient_class,
    )


def can_see(recipient: Recipient, *, user_id: str, is_admin: bool) -> bool:
    """Whether a user falls inside a recipient's audience."""
    if isinstance(recipient, UserRecipient):
        return recipient.user_id == user_id
    if recipient.recipient_class is RecipientClass.ALL:
        return True
    return is_admin
