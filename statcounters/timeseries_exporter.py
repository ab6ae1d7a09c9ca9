"""Exporting multi-level timeseries stats as named dynamic counters."""

from __future__ import annotations

import threading
import time
from contextlib import contextmanager
from enum import IntEnum
from typing import Generic, Iterator, Optional, Protocol, TypeVar

from .callback_values import DynamicCounters


class ExportType(IntEnum):
    """Which aggregate of a stat a counter reports."""

    SUM = 0
    COUNT = 1
    AVG = 2
    RATE = 3
    PERCENT = 4


_TYPE_STRINGS = ("sum", "count", "avg", "rate", "pct")

# Extra room allowed for the suffix added to a stat's name.
_NAME_EXTRA = 50


class ExportedStat(Protocol):
    """A multi-level timeseries as seen by the exporter.

    ``level_duration`` returns the level's duration in seconds, or None for
    the all-time level.
    """

    def num_levels(self) -> int: ...

    def level_duration(self, level: int) -> Optional[int]: ...

    def update(self, now: int) -> None: ...

    def sum(self, level: int) -> int: ...

    def count(self, level: int) -> int: ...

    def avg(self, level: int) -> float: ...

    def rate(self, level: int) -> float: ...


S = TypeVar("S", bound=ExportedStat)


class SynchronizedStat(Generic[S]):
    """A stat guarded by a mutex."""

    def __init__(self, stat: S) -> None:
        self._stat = stat
        self._lock = threading.Lock()

    @contextmanager
    def lock(self) -> Iterator[S]:
        """Hold the mutex and yield the stat."""
        with self._lock:
            yield self._stat

    def unsafe_get_unlocked(self) -> S:
        """Return the stat without locking; only for data fixed at construction."""
        return self._stat


def type_string(export_type: ExportType) -> str:
    """Return the counter-name suffix for an export type."""
    return _TYPE_STRINGS[ExportType(export_type)]


def get_counter_name(
    stat: ExportedStat, stat_name: str, export_type: ExportType, level: int
) -> str:
    """Name of the counter for one type and level, e.g. ``req.rate.600``."""
    suffix = type_string(export_type)
    duration = stat.level_duration(level)
    if duration is None:
        return f"{stat_name}.{suffix}"
    return f"{stat_name}.{suffix}.{int(duration)}"


def _bounded_counter_name(
    stat: ExportedStat, stat_name: str, export_type: ExportType, level: int
) -> str:
    limit = len(stat_name) + _NAME_EXTRA - 1
    return get_counter_name(stat, stat_name, export_type, level)[:limit]


def get_stat_value(
    stat: ExportedStat, export_type: ExportType, level: int, update: bool = True
) -> int:
    """Read one aggregate from one level of ``stat``.

    With ``update`` the stat is first brought up to the current time, so that
    it decays even when no new values arrive.
    """
    if update:
        stat.update(int(time.time()))
    export_type = ExportType(export_type)
    if export_type is ExportType.SUM:
        return int(stat.sum(level))
    if export_type is ExportType.AVG:
        return int(stat.avg(level))
    if export_type is ExportType.RATE:
        return int(stat.rate(level))
    if export_type is ExportType.PERCENT:
        return int(100.0 * float(stat.avg(level)))
    return int(stat.count(level))


def export_stat(
    stat: SynchronizedStat,
    export_type: ExportType,
    stat_name: str,
    counters: DynamicCounters,
    update_on_read: bool = True,
) -> None:
    """Register one counter per level of ``stat`` with ``counters``.

    Raises ValueError for an unknown export type.
    """
    export_type = ExportType(export_type)
    levels_stat = stat.unsafe_get_unlocked()
    for level in range(levels_stat.num_levels()):
        name = _bounded_counter_name(levels_stat, stat_name, export_type, level)

        def read(level: int = level) -> int:
            with stat.lock() as locked:
                return get_stat_value(locked, export_type, level, update_on_read)

        counters.register_callback(name, read)


def unexport_stat(
    stat: SynchronizedStat,
    export_type: ExportType,
    stat_name: str,
    counters: DynamicCounters,
) -> None:
    """Remove the counters that ``export_stat`` registered for ``stat``.

    Raises ValueError for an unknown export type.
    """
    export_type = ExportType(export_type)
    with stat.lock() as locked:
        names = [
            _bounded_counter_name(locked, stat_name, export_type, level)
            for level in range(locked.num_levels())
        ]
    for name in names:
        counters.unregister_callback(name)