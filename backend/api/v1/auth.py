"""Authentication endpoints."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from api.deps import get_db
from core import create_access_token, hash_password, needs_rehash
from core.errors import Conflict, InvalidCredential
from db.errors import is_unique_violation
from models import User
from services.auth import (
    clear_access_cookie,
    normalize_email,
    registration_conflict_exists,
    resolve_login_user,
    set_access_cookie,
)

router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger(__name__)

MAX_PROFILE_BIO_LENGTH = 500
REGISTRATION_CONFLICT_MESSAGE = "User with that username or email already exists"


class RegisterRequest(BaseModel):
    username: str = Field(min_length=3, max_length=30)
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)
    name: str | None = Field(default=None, max_length=80)
    bio: str | None = Field(default=None, max_length=MAX_PROFILE_BIO_LENGTH)

    @field_validator("username", mode="before")
    @classmethod
    def _normalize_username(cls, value: Any) -> Any:
        # Stripped before the length bounds apply.
        if not isinstance(value, str):
            return value
        normalized = value.strip()
        if "@" in normalized:
            raise ValueError("Username cannot contain '@'")
        return normalized


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    username: str
    email: EmailStr
    name: str | None = None
    bio: str | None = None
    is_admin: bool = False


class LoginRequest(BaseModel):
    # One field carries either the username or the email.
    username: str = Field(min_length=3, max_length=255)
    password: str = Field(min_length=8, max_length=128)


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


@router.post("/register", status_code=status.HTTP_201_CREATED, response_model=UserResponse)
async def register(
    payload: RegisterRequest,
    session: AsyncSession = Depends(get_db),
) -> UserResponse:
    normalized_email = normalize_email(str(payload.email))
    if await registration_conflict_exists(
        session,
        username=payload.username,
        normalized_email=normalized_email,
    ):
        raise Conflict(REGISTRATION_CONFLICT_MESSAGE)

    user = User(
        username=payload.username,
        email=normalized_email,
        password_hash=hash_password(payload.password),
        name=payload.name,
        bio=payload.bio,
    )
    session.add(user)
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        if is_unique_violation(exc):
            raise Conflict(REGISTRATION_CONFLICT_MESSAGE) from exc
        raise

    logger.info("User registered", extra={"user_id": user.id})
    return UserResponse.model_validate(user)


@router.post("/login", response_model=TokenResponse)
async def login(
    payload: LoginRequest,
    response: Response,
    session: AsyncSession = Depends(get_db),
) -> TokenResponse:
    user = await resolve_login_user(
        session,
        identifier=payload.username,
        password=payload.password,
    )
    if user is None:
        raise InvalidCredential("Invalid credentials")

    if needs_rehash(user.password_hash):
        user.password_hash = hash_password(payload.password)
        session.add(user)
        await session.commit()

    access_token = create_access_token(str(user.id))
    set_access_cookie(response, access_token)
    return TokenResponse(access_token=access_token)


@router.post("/logout", status_code=status.HTTP_200_OK)
async def logout(response: Response) -> dict[str, Any]:
    clear_access_cookie(response)
    return {"detail": "Logged out"}
