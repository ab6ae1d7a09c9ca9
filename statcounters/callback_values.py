"""Named values produced on demand by registered callbacks."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Generic, Optional, TypeVar

from .regex_cache import CachedKeyMap

T = TypeVar("T")

_log = logging.getLogger(__name__)


class CallbackCleared(RuntimeError):
    """Raised when a callback entry has been cleared (unregistered)."""


class CallbackEntry(Generic[T]):
    """A single registered callback that can be invalidated."""

    def __init__(self, callback: Callable[[], T]) -> None:
        self._callback: Optional[Callable[[], T]] = callback
        self._lock = threading.RLock()

    def clear(self) -> None:
        """Drop the callback, waiting for any call in progress to finish."""
        with self._lock:
            self._callback = None

    def get_value(self) -> T:
        """Invoke the callback; raise CallbackCleared if it was cleared."""
        with self._lock:
            if self._callback is None:
                raise CallbackCleared("callback has been cleared")
            return self._callback()


class CallbackValuesMap(Generic[T]):
    """A thread-safe map from names to value-producing callbacks.

    Callbacks are never invoked while the map's lock is held, so a callback
    may itself query or modify the map.
    """

    def __init__(self) -> None:
        self._callbacks: CachedKeyMap[CallbackEntry[T]] = CachedKeyMap()

    def get_values(self) -> dict[str, T]:
        """Invoke every callback and return the results sorted by name."""
        with self._callbacks.lock:
            snapshot = sorted(self._callbacks.items())
        values: dict[str, T] = {}
        for name, entry in snapshot:
            try:
                values[name] = entry.get_value()
            except CallbackCleared:
                continue
        return values

    def get_value(self, name: str, default: Optional[T] = None) -> Optional[T]:
        """Invoke the callback for ``name``; return ``default`` if there is none."""
        entry = self._callbacks.get(name)
        if entry is None:
            return default
        try:
            return entry.get_value()
        except CallbackCleared:
            return default

    def __contains__(self, name: object) -> bool:
        return name in self._callbacks

    def __len__(self) -> int:
        return len(self._callbacks)

    def get_keys(self) -> list[str]:
        return list(self._callbacks)

    def get_regex_keys(self, regex: str, now: Optional[float] = None) -> list[str]:
        """Return the names that ``regex`` matches in full."""
        return self._callbacks.find_matches(regex, now)

    def register_callback(self, name: str, callback: Callable[[], T]) -> None:
        """Register ``callback`` under ``name``, replacing any previous one."""
        self._callbacks.add(name, CallbackEntry(callback))

    def unregister_callback(self, name: str) -> bool:
        """Remove the callback for ``name``; return False if there was none."""
        try:
            entry = self._callbacks.erase(name)
        except KeyError:
            return False
        _log.debug("Unregistered callback: %s", name)
        entry.clear()
        return True

    def clear(self) -> None:
        """Unregister all callbacks."""
        with self._callbacks.lock:
            for entry in self._callbacks.values():
                entry.clear()
            self._callbacks.clear()

    def trim_regex_cache(self, expiry: float) -> None:
        self._callbacks.trim_stale(expiry)

    def get_callback(self, name: str) -> Optional[CallbackEntry[T]]:
        """Return the entry registered under ``name``, or None."""
        return self._callbacks.get(name)


class DynamicCounters(CallbackValuesMap[int]):
    """Integer-valued callbacks."""

    def get_counters(self) -> dict[str, int]:
        return self.get_values()

    def get_counter(self, name: str) -> Optional[int]:
        return self.get_value(name)


class DynamicStrings(CallbackValuesMap[str]):
    """String-valued callbacks."""