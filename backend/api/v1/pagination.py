"""Shared pagination constants and response header helpers."""

from collections.abc import Sequence
from typing import TypeVar

from fastapi import Response

MAX_PAGE_SIZE = 100

T = TypeVar("T")


def set_next_offset_header(
    response: Response,
    *,
    offset: int,
    limit: int,
    has_more: bool,
) -> None:
    if has_more:
        response.headers["X-Next-Offset"] = str(offset + limit)


def paginate_rows(
    response: Response,
    rows: Sequence[T],
    *,
    offset: int,
    limit: int | None,
) -> list[T]:
    """Trim the look-ahead row fetched with ``limit + 1`` and set the header."""
    items = list(rows)
    if limit is None:
        return items
    has_more = len(items) > limit
    if has_more:
        items = items[:limit]
    set_next_offset_header(response, offset=offset, limit=limit, has_more=has_more)
    return items
