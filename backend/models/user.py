"""User domain model."""

from __future__ import annotations

from datetime import datetime
from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, String, Text, text
from sqlmodel import Field, SQLModel

from .common import utcnow


class User(SQLModel, table=True):
    """Registered application user.

    Followers and following are not stored here; they are derived from
    ``follows`` edge rows so both directions always agree.
    """

    __tablename__ = "users"

    id: str = Field(default_factory=lambda: str(uuid4()), sa_column=Column(String(36), primary_key=True))
    username: str = Field(
        sa_column=Column(String(30), unique=True, nullable=False, index=True)
    )
    email: str = Field(
        sa_column=Column(String(255), unique=True, nullable=False, index=True)
    )
    # Null for accounts that only sign in through a federated identity.
    password_hash: str | None = Field(
        default=None, sa_column=Column(String(255), nullable=True)
    )
    google_id: str | None = Field(
        default=None, sa_column=Column(String(255), nullable=True, unique=True)
    )
    name: str | None = Field(
        default=None, sa_column=Column(String(80), nullable=True)
    )
    bio: str | None = Field(
        default=None, sa_column=Column(Text, nullable=True)
    )
    avatar_url: str | None = Field(
        default=None, sa_column=Column(String(255), nullable=True)
    )
    is_admin: bool = Field(
        default=False,
        sa_column=Column(
            Boolean,
            nullable=False,
            server_default=text("false"),
        ),
    )
    created_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    updated_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(
            DateTime(timezone=True),
            onupdate=utcnow,
            nullable=False,
        ),
    )
