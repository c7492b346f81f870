"""Bookmark model."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String
from sqlmodel import Field, SQLModel

from .common import utcnow


class Bookmark(SQLModel, table=True):
    """A post a user bookmarked; unique per (user, post)."""

    __tablename__ = "bookmarks"
    __table_args__ = (
        Index(
            "ix_bookmarks_user_added_at_post_id",
            "user_id",
            "added_at",
            "post_id",
        ),
    )

    user_id: str = Field(
        sa_column=Column(
            String(36),
            ForeignKey("users.id", ondelete="CASCADE"),
            primary_key=True,
        )
    )
    post_id: int = Field(
        sa_column=Column(
            Integer,
            ForeignKey("posts.id", ondelete="CASCADE"),
            primary_key=True,
        )
    )
    added_at: datetime = Field(
        default_factory=utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
