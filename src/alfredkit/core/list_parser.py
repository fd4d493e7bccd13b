"""Ordered list parsing for user and operator input."""

import re
from typing import Callable, Optional, TypeVar

T = TypeVar("T")

_DELIMITERS = re.compile(r"[,\n]")


def split_ordered_list(raw: str) -> list[str]:
    """
    Split a comma/newline separated string into ordered tokens.

    Each token is trimmed individually and empty tokens are dropped.
    Order and duplicates are preserved; deduplication is up to the caller.

    Args:
        raw: Free-form input such as ``"USD, TWD\\nJPY"``

    Returns:
        List of non-empty tokens in input order
    """
    tokens = (token.strip() for token in _DELIMITERS.split(raw))
    return [token for token in tokens if token]


def parse_ordered_list_with(raw: str, mapper: Callable[[str], Optional[T]]) -> list[T]:
    """
    Split ``raw`` and run every token through ``mapper``.

    The mapper returns the value to keep, ``None`` to skip the token, or
    raises to reject it. The first raised error aborts parsing.

    Args:
        raw: Free-form input
        mapper: Normalize/validate hook applied per token

    Returns:
        Mapped values in input order
    """
    values: list[T] = []
    for token in split_ordered_list(raw):
        value = mapper(token)
        if value is not None:
            values.append(value)
    return values
