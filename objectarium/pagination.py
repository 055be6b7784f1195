"""Cursor pagination over ordered SQL selects.

A cursor is the urlsafe base64 encoding of the last key returned, so the
server keeps no state between two page requests.
"""
import base64
import binascii
from typing import Any, Callable, Optional

from sqlalchemy import Select
from sqlalchemy.orm import Session

from .errors import InvalidInput

MAX_PAGE_MAX_SIZE = 2**32 - 2
DEFAULT_PAGE_MAX_SIZE = 30
DEFAULT_PAGE_DEFAULT_SIZE = 10


def validate_config(max_page_size: Optional[int], default_page_size: Optional[int]) -> tuple[int, int]:
    """Resolve a pagination config against its defaults."""
    if max_page_size is not None and max_page_size < 1:
        raise InvalidInput("'max_page_size' must be at least 1")
    if default_page_size is not None and default_page_size < 1:
        raise InvalidInput("'default_page_size' must be at least 1")
    if max_page_size is not None and max_page_size > MAX_PAGE_MAX_SIZE:
        raise InvalidInput(f"'max_page_size' cannot exceed {MAX_PAGE_MAX_SIZE}")
    max_size = DEFAULT_PAGE_MAX_SIZE if max_page_size is None else max_page_size
    if default_page_size is not None and default_page_size > max_size:
        raise InvalidInput("'default_page_size' cannot exceed 'max_page_size'")
    if default_page_size is None:
        default_page_size = min(DEFAULT_PAGE_DEFAULT_SIZE, max_size)
    return max_size, default_page_size


def encode_cursor(key: Any) -> str:
    return base64.urlsafe_b64encode(str(key).encode("utf-8")).decode("ascii")


def decode_cursor(cursor: str) -> str:
    try:
        return base64.b64decode(cursor.encode("ascii"), altchars=b"-_", validate=True).decode("utf-8")
    except (binascii.Error, UnicodeError, ValueError):
        raise InvalidInput("Invalid cursor")


def page_size(first: Optional[int], max_page_size: int, default_page_size: int) -> int:
    if first is None:
        return default_page_size
    if first < 1:
        raise InvalidInput("Requested page size must be at least 1")
    if first > max_page_size:
        raise InvalidInput(f"Requested page size exceed maximum allowed ({max_page_size})")
    return first


def paginate(
    db: Session,
    stmt: Select,
    key_column,
    first: int,
    after: Optional[str],
    parse_key: Callable[[str], Any] = str,
):
    """Run ``stmt`` for one page ordered by ``key_column``.

    Returns ``(rows, has_next_page, cursor)``.
    """
    if after:
        raw = decode_cursor(after)
        try:
            last_key = parse_key(raw)
        except ValueError:
            raise InvalidInput("Invalid cursor")
        stmt = stmt.where(key_column > last_key)

    # one extra row tells whether a next page exists
    rows = db.scalars(stmt.order_by(key_column).limit(first + 1)).all()
    has_next_page = len(rows) > first
    rows = rows[:first]
    cursor = encode_cursor(_key_of(rows[-1], key_column)) if rows else ""
    return rows, has_next_page, cursor


def _key_of(row, key_column):
    return getattr(row, key_column.key)
