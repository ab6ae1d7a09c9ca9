"""Counter and timeseries accumulators, with and without thread safety."""

from __future__ import annotations

import threading
from typing import Optional

INT64_MAX = 2**63 - 1
INT64_MIN = -(2**63)


def clamped_add(a: int, b: int) -> int:
    """Add two 64-bit integers, clamping the result to the 64-bit range."""
    return max(INT64_MIN, min(INT64_MAX, a + b))


class NoLock:
    """A lock that does nothing."""

    def acquire(self) -> None:
        pass

    def release(self) -> None:
        pass

    def __enter__(self) -> "NoLock":
        self.acquire()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()


class DebugCheckedLock:
    """A lock that does not block but raises if it is acquired while held."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._owner: Optional[int] = None

    def acquire(self) -> None:
        """Take ownership; raise RuntimeError if some thread already holds it."""
        me = threading.get_ident()
        with self._guard:
            if self._owner is not None:
                raise RuntimeError(
                    f"lock acquired concurrently: held by thread {self._owner}, "
                    f"requested by thread {me}"
                )
            self._owner = me

    def release(self) -> None:
        with self._guard:
            self._owner = None

    @property
    def owner(self) -> Optional[int]:
        """Identifier of the holding thread, or None."""
        return self._owner

    def __enter__(self) -> "DebugCheckedLock":
        self.acquire()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.release()


class NoLockingCounter:
    """An integer counter for use from a single thread."""

    def __init__(self, value: int = 0) -> None:
        self._value = value

    def increment(self, n: int) -> None:
        self._value += n

    def reset(self) -> int:
        """Set the counter to 0 and return the previous value."""
        previous, self._value = self._value, 0
        return previous

    @property
    def value(self) -> int:
        return self._value


class NoLockingTimeSeries:
    """A count and sum accumulator for use from a single thread."""

    def __init__(self, count: int = 0, sum: int = 0) -> None:
        self._count = count
        self._sum = sum

    def add_value(self, value: int, count: int = 1) -> None:
        self._count = clamped_add(self._count, count)
        self._sum = clamped_add(self._sum, value)

    def reset(self) -> tuple[int, int]:
        """Set count and sum to 0 and return the previous ``(count, sum)``."""
        previous = (self._count, self._sum)
        self._count = 0
        self._sum = 0
        return previous

    @property
    def count(self) -> int:
        return self._count

    @property
    def sum(self) -> int:
        return self._sum


class ThreadSafeCounter:
    """An integer counter that may be reset while other threads increment it."""

    def __init__(self, value: int = 0) -> None:
        self._value = value
        self._lock = threading.Lock()

    def increment(self, n: int) -> None:
        with self._lock:
            self._value += n

    def reset(self) -> int:
        """Set the counter to 0 and return the previous value."""
        with self._lock:
            previous, self._value = self._value, 0
            return previous

    @property
    def value(self) -> int:
        with self._lock:
            return self._value


class ThreadSafeTimeSeries:
    """A count and sum accumulator that one thread fills while another resets it."""

    def __init__(self, count: int = 0, sum: int = 0) -> None:
        self._count = count
        self._sum = sum
        self._dirty = False
        self._lock = threading.Lock()

    def add_value(self, value: int, count: int = 1) -> None:
        with self._lock:
            self._count = clamped_add(self._count, count)
            self._sum = clamped_add(self._sum, value)
            self._dirty = True

    def reset(self) -> tuple[int, int]:
        """Set count and sum to 0 and return the previous ``(count, sum)``.

        If nothing was added since the last reset, ``(0, 0)`` is returned
        without touching the stored values.
        """
        if not self._dirty:
            return (0, 0)
        with self._lock:
            previous = (self._count, self._sum)
            self._count = 0
            self._sum = 0
            self._dirty = False
            return previous

    @property
    def count(self) -> int:
        with self._lock:
            return self._count

    @property
    def sum(self) -> int:
        with self._lock:
            return self._sum


class TLStatsNoLocking:
    """Types for stats touched by a single thread only."""

    RegistryLock = DebugCheckedLock if __debug__ else NoLock
    StatLock = NoLock
    CounterType = NoLockingCounter
    TimeSeriesType = NoLockingTimeSeries


class TLStatsThreadSafe:
    """Types for stats that are aggregated while other threads update them."""

    RegistryLock = threading.RLock
    StatLock = threading.Lock
    CounterType = ThreadSafeCounter
    TimeSeriesType = ThreadSafeTimeSeries