"""Key collections whose regular-expression matches are cached."""

from __future__ import annotations

import re
import threading
import time
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from typing import Optional, TypeVar

V = TypeVar("V")


def _now(now: Optional[float]) -> float:
    return time.monotonic() if now is None else now


@dataclass
class _CachedRegex:
    pattern: "re.Pattern[str]"
    matches: set
    accessed: float


class RegexMatchCache:
    """A set of strings plus, for each regex queried, the strings it fully matches.

    Cached regexes are kept up to date as strings are added and erased, and
    are dropped by ``purge`` once they have not been queried since a given time.
    """

    def __init__(self) -> None:
        self._strings: set[str] = set()
        self._regexes: dict[str, _CachedRegex] = {}

    def add_string(self, s: str) -> None:
        """Add a string, updating every cached regex it matches."""
        if s in self._strings:
            return
        self._strings.add(s)
        for cached in self._regexes.values():
            if cached.pattern.fullmatch(s):
                cached.matches.add(s)

    def erase_string(self, s: str) -> None:
        """Remove a string from the set and from every cached match set."""
        self._strings.discard(s)
        for cached in self._regexes.values():
            cached.matches.discard(s)

    def has_string(self, s: str) -> bool:
        return s in self._strings

    def clear(self) -> None:
        """Forget all strings and all cached regexes."""
        self._strings.clear()
        self._regexes.clear()

    def find_matches(self, regex: str, now: Optional[float] = None) -> list[str]:
        """Return, sorted, the strings that ``regex`` matches in full.

        Raises ``re.error`` if the expression does not compile.
        """
        now = _now(now)
        cached = self._regexes.get(regex)
        if cached is None:
            pattern = re.compile(regex)
            matches = {s for s in self._strings if pattern.fullmatch(s)}
            cached = _CachedRegex(pattern, matches, now)
            self._regexes[regex] = cached
        else:
            cached.accessed = max(cached.accessed, now)
        return sorted(cached.matches)

    def has_items_to_purge(self, expiry: float) -> bool:
        """True if some cached regex was last queried before ``expiry``."""
        return any(c.accessed < expiry for c in self._regexes.values())

    def purge(self, expiry: float) -> None:
        """Drop cached regexes last queried before ``expiry``."""
        self._regexes = {
            regex: cached
            for regex, cached in self._regexes.items()
            if cached.accessed >= expiry
        }


class CachedKeyMap(Mapping[str, V]):
    """A thread-safe string-keyed map whose keys can be searched by regex.

    ``lock`` is reentrant, so callers may hold it around several operations.
    """

    def __init__(self) -> None:
        self.lock = threading.RLock()
        self._map: dict[str, V] = {}
        self._matches = RegexMatchCache()

    def add(self, name: str, value: V) -> bool:
        """Store ``value`` under ``name``; return True if the name is new."""
        with self.lock:
            is_new = name not in self._map
            self._map[name] = value
            if is_new:
                try:
                    self._matches.add_string(name)
                except BaseException:
                    if not self._matches.has_string(name):
                        del self._map[name]
                    raise
            return is_new

    def erase(self, name: str) -> V:
        """Remove ``name`` and return its value; raise KeyError if absent."""
        with self.lock:
            value = self._map.pop(name)
            self._matches.erase_string(name)
            return value

    def clear(self) -> None:
        with self.lock:
            self._matches.clear()
            self._map.clear()

    def find_matches(self, regex: str, now: Optional[float] = None) -> list[str]:
        """Return, sorted, the keys that ``regex`` matches in full."""
        with self.lock:
            return self._matches.find_matches(regex, _now(now))

    def trim_stale(self, expiry: float) -> None:
        """Drop cached regexes not queried since ``expiry``."""
        with self.lock:
            if self._matches.has_items_to_purge(expiry):
                self._matches.purge(expiry)

    def __getitem__(self, name: str) -> V:
        with self.lock:
            return self._map[name]

    def __iter__(self) -> Iterator[str]:
        with self.lock:
            keys = list(self._map)
        return iter(keys)

    def __len__(self) -> int:
        with self.lock:
            return len(self._map)