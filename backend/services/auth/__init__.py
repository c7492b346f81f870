"""Authentication domain services."""

from .cookies import (
    ACCESS_COOKIE,
    clear_access_cookie,
    set_access_cookie,
)
from .guard import (
    ADMIN_REQUIRED_MESSAGE,
    AuthorizationGuard,
    ResolvedIdentity,
    extract_credential,
)
from .identity_resolution import (
    normalize_email,
    registration_conflict_exists,
    resolve_login_user,
)

__all__ = [
    "ACCESS_COOKIE",
    "ADMIN_REQUIRED_MESSAGE",
    "AuthorizationGuard",
    "ResolvedIdentity",
    "clear_access_cookie",
    "extract_credential",
    "set_access_cookie",
    "normalize_email",
    "registration_conflict_exists",
    "resolve_login_user",
]
