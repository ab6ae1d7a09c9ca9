"""Counter-limit request headers and counters-available response headers."""

from __future__ import annotations

import re
from collections.abc import Mapping, MutableMapping
from typing import Optional

COUNTERS_AVAILABLE_HEADER = "fb303_counters_available"

_INT_RE = re.compile(r"\s*[+-]?\d+\s*")
_INT_MAX = 2**31 - 1


def read_limit_header(
    headers: Optional[Mapping[str, str]], key: str
) -> Optional[int]:
    """Return the non-negative integer limit stored under ``key``, if any.

    Missing headers, values that are not integers in the 32-bit range and
    negative values all yield None.
    """
    if headers is None:
        return None
    value = headers.get(key)
    if value is None or not _INT_RE.fullmatch(value):
        return None
    limit = int(value)
    if limit < 0 or limit > _INT_MAX:
        return None
    return limit


def add_counters_available(
    response_headers: Optional[MutableMapping[str, str]], available: int
) -> None:
    """Record how many counters were available, unless already recorded."""
    if response_headers is None:
        return
    response_headers.setdefault(COUNTERS_AVAILABLE_HEADER, str(available))