"""Create an administrator account, or promote an existing one.

Usage:
    uv run python scripts/create_admin.py --username admin --email admin@example.com

The password is read from ADMIN_PASSWORD when --password is omitted. An
existing account matching the username or email is promoted in place and
keeps its current password.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path
from typing import Any, cast

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql import ColumnElement

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.append(str(ROOT_DIR))

from core import settings  # noqa: E402
from core.logging import configure_logging  # noqa: E402
from core.security import hash_password  # noqa: E402
from db.session import AsyncSessionMaker  # noqa: E402
from models import User  # noqa: E402

PASSWORD_ENV = "ADMIN_PASSWORD"
MIN_PASSWORD_LENGTH = 8

logger = logging.getLogger("scripts.create_admin")


def _eq(column: Any, value: Any) -> ColumnElement[bool]:
    return cast(ColumnElement[bool], column == value)


async def create_or_promote_admin(
    session: AsyncSession,
    *,
    username: str,
    email: str,
    password: str | None,
) -> tuple[User, bool]:
    """Return the admin user and whether it was newly created."""
    normalized_email = email.strip().lower()
    lowered_email_column = cast(Any, func.lower(cast(Any, User.email)))
    result = await session.execute(
        select(User)
        .where(
            or_(
                _eq(User.username, username),
                _eq(lowered_email_column, normalized_email),
            )
        )
        .limit(1)
    )
    user = result.scalar_one_or_none()

    if user is not None:
        if not user.is_admin:
            user.is_admin = True
            session.add(user)
            await session.commit()
        return user, False

    if password is None or len(password) < MIN_PASSWORD_LENGTH:
        raise ValueError(
            f"A password of at least {MIN_PASSWORD_LENGTH} characters is required"
        )

    user = User(
        username=username,
        email=normalized_email,
        password_hash=hash_password(password),
        is_admin=True,
    )
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user, True


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--username", required=True)
    parser.add_argument("--email", required=True)
    parser.add_argument("--password", default=None)
    return parser.parse_args(argv)


async def main(argv: list[str] | None = None) -> int:
    configure_logging(settings.log_level)
    args = _parse_args(argv)
    password = args.password or os.getenv(PASSWORD_ENV)

    async with AsyncSessionMaker() as session:
        try:
            user, created = await create_or_promote_admin(
                session,
                username=args.username.strip(),
                email=args.email,
                password=password,
            )
        except ValueError as exc:
            logger.error("Admin account not created: %s", exc)
            return 1

    action = "created" if created else "promoted"
    logger.info(
        "Admin account %s", action, extra={"user_id": user.id, "username": user.username}
    )
    return 0


if __name__ == "__main__":
    raise SystemExit(asyncio.run(main()))
