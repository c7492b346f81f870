"""Shared column helpers for table models."""

from __future__ import annotations

from datetime import datetime, timezone


def utcnow() -> datetime:
    # Assigned client-side so rows created within the same second keep
    # insertion order when sorted by timestamp.
    return datetime.now(timezone.utc)
