"""Core configuration, security primitives and error taxonomy."""

from .config import Settings, settings
from .security import (
    ACCESS_TOKEN_TYPE,
    TokenCodec,
    TokenError,
    TokenExpiredError,
    create_access_token,
    decode_token,
    get_token_codec,
    hash_password,
    needs_rehash,
    verify_password,
)

__all__ = [
    "Settings",
    "settings",
    "ACCESS_TOKEN_TYPE",
    "TokenCodec",
    "TokenError",
    "TokenExpiredError",
    "create_access_token",
    "decode_token",
    "get_token_codec",
    "hash_password",
    "needs_rehash",
    "verify_password",
]
