"""A small least-recently-used map with hit and miss statistics."""

from __future__ import annotations

from collections import OrderedDict
from enum import IntEnum
from typing import Callable, Generic, Hashable, Iterator, Optional, TypeVar

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

EvictCallback = Callable[[tuple], None]


class SetResult(IntEnum):
    """Outcome of ``SimpleLRUMap.try_set``."""

    FAILED = 0
    CREATED = 1
    UPDATED = -1


class SimpleLRUMap(Generic[K, V]):
    """A bounded map that evicts its least recently used entries.

    Entries are ordered from most to least recently used. A capacity of 0
    means nothing can be stored. Evicted entries are passed, as ``(key,
    value)`` tuples, to the eviction callback given to the call that caused
    the eviction.
    """

    def __init__(
        self,
        capacity: int = 0,
        default_factory: Optional[Callable[[], V]] = None,
    ) -> None:
        self._capacity = capacity
        self._default_factory = default_factory
        self._entries: OrderedDict[K, V] = OrderedDict()
        self.hits = 0
        self.misses = 0

    @property
    def capacity(self) -> int:
        return self._capacity

    def _evict(self, evict_callback: Optional[EvictCallback]) -> None:
        entry = self._entries.popitem(last=True)
        if evict_callback is not None:
            evict_callback(entry)

    def _ensure_room(self, evict_callback: Optional[EvictCallback]) -> bool:
        if self._capacity < 1:
            return False
        while len(self._entries) >= self._capacity:
            self._evict(evict_callback)
        return True

    def _try_add(
        self, key: K, value: V, evict_callback: Optional[EvictCallback]
    ) -> bool:
        if not self._ensure_room(evict_callback):
            return False
        self._entries[key] = value
        self._entries.move_to_end(key, last=False)
        return True

    def _lookup(self, key: K, move_to_front: bool) -> bool:
        if key not in self._entries:
            self.misses += 1
            return False
        if move_to_front:
            self._entries.move_to_end(key, last=False)
        self.hits += 1
        return True

    def peek(self, key: K) -> V:
        """Return the value for ``key`` without moving it; raise KeyError if absent."""
        if not self._lookup(key, False):
            raise KeyError(key)
        return self._entries[key]

    def touch(self, key: K) -> V:
        """Return the value for ``key`` and mark it most recently used."""
        if not self._lookup(key, True):
            raise KeyError(key)
        return self._entries[key]

    def find(self, key: K, move_to_front: bool = False) -> Optional[tuple]:
        """Return the ``(key, value)`` entry for ``key``, or None if absent."""
        if not self._lookup(key, move_to_front):
            return None
        return key, self._entries[key]

    def _factory_for(
        self, factory: Optional[Callable[[K], V]]
    ) -> Callable[[K], V]:
        if factory is not None:
            return factory
        if self._default_factory is None:
            raise TypeError("no factory given and no default_factory set")
        default_factory = self._default_factory
        return lambda _key: default_factory()

    def try_get_or_create(
        self,
        key: K,
        factory: Optional[Callable[[K], V]] = None,
        move_to_front: bool = True,
        evict_callback: Optional[EvictCallback] = None,
    ) -> Optional[V]:
        """Return the value for ``key``, creating it with ``factory(key)`` if absent.

        Without ``factory`` the map's ``default_factory`` is called with no
        arguments. Returns None if there is no capacity for a new entry.
        """
        if self._lookup(key, move_to_front):
            return self._entries[key]
        make = self._factory_for(factory)
        if not self._try_add(key, make(key), evict_callback):
            return None
        return self._entries[key]

    def get_or_create(
        self,
        key: K,
        factory: Optional[Callable[[K], V]] = None,
        move_to_front: bool = True,
        evict_callback: Optional[EvictCallback] = None,
    ) -> V:
        """Like ``try_get_or_create`` but raise OverflowError if there is no capacity."""
        if self._lookup(key, move_to_front):
            return self._entries[key]
        make = self._factory_for(factory)
        if not self._try_add(key, make(key), evict_callback):
            raise OverflowError("no capacity")
        return self._entries[key]

    def try_set(
        self,
        key: K,
        value: V,
        move_to_front: bool = True,
        evict_callback: Optional[EvictCallback] = None,
    ) -> SetResult:
        """Store ``value`` under ``key``.

        ``move_to_front`` applies only to existing keys; new keys always go
        to the front.
        """
        if key not in self._entries:
            if not self._try_add(key, value, evict_callback):
                return SetResult.FAILED
            return SetResult.CREATED
        if move_to_front:
            self._entries.move_to_end(key, last=False)
        self._entries[key] = value
        return SetResult.UPDATED

    def set(
        self,
        key: K,
        value: V,
        move_to_front: bool = True,
        evict_callback: Optional[EvictCallback] = None,
    ) -> bool:
        """Store ``value``; return True if a new entry was created.

        Raises OverflowError if there is no capacity.
        """
        result = self.try_set(key, value, move_to_front, evict_callback)
        if result is SetResult.FAILED:
            raise OverflowError("no capacity")
        return result is SetResult.CREATED

    def erase(self, key: K) -> bool:
        """Remove ``key``; return False if it was absent."""
        if key not in self._entries:
            return False
        del self._entries[key]
        return True

    def __getitem__(self, key: K) -> V:
        return self.peek(key)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def __iter__(self) -> Iterator[K]:
        return iter(list(self._entries))

    def items(self) -> Iterator[tuple]:
        """Yield ``(key, value)`` pairs from most to least recently used."""
        return iter(list(self._entries.items()))

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self, clear_stats: bool = True) -> None:
        self._entries.clear()
        if clear_stats:
            self.clear_stats()

    def set_capacity(
        self, new_capacity: int, evict_callback: Optional[EvictCallback] = None
    ) -> int:
        """Change the capacity, evicting as needed; return the old capacity."""
        old_capacity = self._capacity
        while len(self._entries) > new_capacity:
            self._evict(evict_callback)
        self._capacity = new_capacity
        return old_capacity

    def hit_ratio(self) -> float:
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return self.hits / total

    def clear_stats(self) -> None:
        self.hits = 0
        self.misses = 0