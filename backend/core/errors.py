"""Domain error taxonomy.

Every failure surfaced to a client carries a short machine-checkable ``kind``
and a human-readable message. Services raise these; the API layer renders
them as ``{"detail": message, "kind": kind}`` with the class status code.
"""

from __future__ import annotations

from typing import ClassVar


class DomainError(Exception):
    kind: ClassVar[str] = "Error"
    status_code: ClassVar[int] = 400
    default_message: ClassVar[str] = "Request failed"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


# Credential problems (401).


class Unauthenticated(DomainError):
    kind = "Unauthenticated"
    status_code = 401
    default_message = "No token, authorization denied"


class Expired(DomainError):
    kind = "Expired"
    status_code = 401
    default_message = "Token has expired"


class InvalidCredential(DomainError):
    kind = "Invalid"
    status_code = 401
    default_message = "Invalid token"


# Authorization and lookup.


class Forbidden(DomainError):
    kind = "Forbidden"
    status_code = 403
    default_message = "Not authorized"


class NotFound(DomainError):
    kind = "NotFound"
    status_code = 404
    default_message = "Not found"


# Conflicts (409).


class Conflict(DomainError):
    kind = "Conflict"
    status_code = 409
    default_message = "Conflict"


class AlreadyFollowing(Conflict):
    kind = "AlreadyFollowing"
    default_message = "Already following this user"


class NotFollowing(Conflict):
    kind = "NotFollowing"
    default_message = "You are not following this user"


class AlreadyBookmarked(Conflict):
    kind = "AlreadyBookmarked"
    default_message = "Post already bookmarked"


class NotBookmarked(Conflict):
    kind = "NotBookmarked"
    default_message = "Post not bookmarked"


class CannotDeleteAdmin(Conflict):
    kind = "CannotDeleteAdmin"
    default_message = "Cannot delete admin users"


# Malformed requests.


class SelfFollow(DomainError):
    kind = "SelfFollow"
    status_code = 400
    default_message = "Cannot follow yourself"


class InvalidRecipient(DomainError):
    kind = "InvalidRecipient"
    status_code = 400
    default_message = "Valid recipient is required"


class IncorrectPassword(DomainError):
    kind = "IncorrectPassword"
    status_code = 400
    default_message = "Current password is incorrect"


class ValidationFailed(DomainError):
    kind = "ValidationFailed"
    status_code = 422
    default_message = "Validation failed"


# Throttling and backing-store outages.


class RateLimited(DomainError):
    kind = "RateLimited"
    status_code = 429
    default_message = "Too Many Requests"


class Unavailable(DomainError):
    kind = "Unavailable"
    status_code = 503
    default_message = "Service unavailable"


# Multi-step writes.


class PartialFailure(DomainError):
    kind = "PartialFailure"
    status_code = 500
    default_message = "Operation did not complete"


__all__ = [
    "DomainError",
    "Unauthenticated",
    "Expired",
    "InvalidCredential",
    "Forbidden",
    "NotFound",
    "Conflict",
    "AlreadyFollowing",
    "NotFollowing",
    "AlreadyBookmarked",
    "NotBookmarked",
    "CannotDeleteAdmin",
    "SelfFollow",
    "InvalidRecipient",
    "IncorrectPassword",
    "ValidationFailed",
    "RateLimited",
    "Unavailable",
    "PartialFailure",
]
