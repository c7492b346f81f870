"""Bearer credential resolution for request authorization."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from core import ACCESS_TOKEN_TYPE, TokenCodec, TokenError, TokenExpiredError
from core.errors import Expired, Forbidden, InvalidCredential, Unauthenticated
from models import User

logger = logging.getLogger(__name__)

ADMIN_REQUIRED_MESSAGE = "Access denied: Admin privileges required"


@dataclass(frozen=True, slots=True)
class ResolvedIdentity:
    user: User

    @property
    def user_id(self) -> str:
        return self.user.id

    @property
    def is_admin(self) -> bool:
        return bool(self.user.is_admin)


def extract_credential(
    authorization: str | None,
    cookie_token: str | None = None,
) -> str:
    """Pull the raw token out of an ``Authorization`` header or cookie.

    A present but malformed header is rejected even when a cookie exists.
    """
    if authorization is not None:
        scheme, _, value = authorization.partition(" ")
        token = value.strip()
        if scheme.lower() != "bearer" or not token:
            raise Unauthenticated("Malformed authorization header")
        return token

    if cookie_token:
        return cookie_token
    raise Unauthenticated()


class AuthorizationGuard:
    """Resolves an opaque credential into an identity with an admin flag."""

    def __init__(self, codec: TokenCodec) -> None:
        self._codec = codec

    async def resolve(self, session: AsyncSession, credential: str) -> ResolvedIdentity:
        try:
            payload = self._codec.decode(credential)
        except TokenExpiredError as exc:
            raise Expired() from exc
        except TokenError as exc:
            raise InvalidCredential() from exc

        if payload.get("type") != ACCESS_TOKEN_TYPE:
            raise InvalidCredential()

        subject = payload.get("sub")
        if not isinstance(subject, str) or not subject:
            raise InvalidCredential()

        user = await session.get(User, subject)
        if user is None:
            logger.info("Token subject no longer exists", extra={"user_id": subject})
            raise InvalidCredential()
        return ResolvedIdentity(user=user)

    @staticmethod
    def require_admin(identity: ResolvedIdentity) -> ResolvedIdentity:
        if not identity.is_admin:
            raise Forbidden(ADMIN_REQUIRED_MESSAGE)
        return identity
