"""Password hashing and access-token primitives."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any

from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext

from .config import settings

ACCESS_TOKEN_TYPE = "access"

pwd_context = CryptContext(
    schemes=["pbkdf2_sha256"],
    deprecated="auto",
    pbkdf2_sha256__rounds=310_000,
)


class TokenError(ValueError):
    """Raised when a token cannot be decoded or fails signature checks."""


class TokenExpiredError(TokenError):
    """Raised when a token is well-formed but past its validity window."""


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str | None) -> bool:
    # Federated-only accounts carry no local credential.
    if not password_hash:
        return False
    try:
        return pwd_context.verify(password, password_hash)
    except ValueError:
        return False


def needs_rehash(password_hash: str | None) -> bool:
    if not password_hash:
        return False
    return pwd_context.needs_update(password_hash)


class TokenCodec:
    """Signs and verifies access tokens with one configured secret."""

    def __init__(
        self,
        secret_key: str,
        *,
        algorithm: str = "HS256",
        access_ttl: timedelta = timedelta(days=7),
    ) -> None:
        if not secret_key:
            raise ValueError("secret_key must not be empty")
        self._secret_key = secret_key
        self.algorithm = algorithm
        self.access_ttl = access_ttl

    def create_access_token(
        self,
        subject: str,
        *,
        expires_delta: timedelta | None = None,
        now: datetime | None = None,
    ) -> str:
        issued_at = now or datetime.now(timezone.utc)
        expires_at = issued_at + (expires_delta if expires_delta is not None else self.access_ttl)
        payload = {
            "sub": subject,
            "type": ACCESS_TOKEN_TYPE,
            "iat": int(issued_at.timestamp()),
            "exp": int(expires_at.timestamp()),
        }
        return jwt.encode(payload, self._secret_key, algorithm=self.algorithm)

    def decode(self, token: str) -> dict[str, Any]:
        try:
            return jwt.decode(token, self._secret_key, algorithms=[self.algorithm])
        except ExpiredSignatureError as exc:
            raise TokenExpiredError("Token has expired") from exc
        except JWTError as exc:
            raise TokenError("Invalid token") from exc


@lru_cache
def get_token_codec() -> TokenCodec:
    return TokenCodec(
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
        access_ttl=timedelta(minutes=settings.access_token_expire_minutes),
    )


def create_access_token(subject: str, *, expires_delta: timedelta | None = None) -> str:
    return get_token_codec().create_access_token(subject, expires_delta=expires_delta)


def decode_token(token: str) -> dict[str, Any]:
    return get_token_codec().decode(token)
