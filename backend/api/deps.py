"""Shared FastAPI dependencies."""

from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from core import get_token_codec
from db import get_session
from models import User
from services.auth import (
    ACCESS_COOKIE,
    AuthorizationGuard,
    ResolvedIdentity,
    extract_credential,
)


async def get_db() -> AsyncIterator[AsyncSession]:
    async for session in get_session():
        yield session


def get_guard() -> AuthorizationGuard:
    return AuthorizationGuard(get_token_codec())


async def get_identity(
    request: Request,
    session: AsyncSession = Depends(get_db),
    guard: AuthorizationGuard = Depends(get_guard),
) -> ResolvedIdentity:
    credential = extract_credential(
        request.headers.get("authorization"),
        request.cookies.get(ACCESS_COOKIE),
    )
    return await guard.resolve(session, credential)


async def get_current_user(
    identity: ResolvedIdentity = Depends(get_identity),
) -> User:
    return identity.user


async def require_admin(
    identity: ResolvedIdentity = Depends(get_identity),
) -> ResolvedIdentity:
    return AuthorizationGuard.require_admin(identity)
