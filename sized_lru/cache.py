from __future__ import annotations

import logging
import numbers
import threading
from collections import OrderedDict
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Dict, Generic, Hashable, Optional, TypeVar

from .sizing import unit_size

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

SizeOf = Callable[[K, V], int]
Create = Callable[[K], Optional[V]]
OnRemoved = Callable[[bool, K, V, Optional[V]], None]

logger = logging.getLogger(__name__)


class InvalidArgumentError(ValueError):
    """A None key/value, or a non-positive capacity, was passed to the cache."""


class InvariantViolationError(RuntimeError):
    """The size_of callback reported a negative or inconsistent entry size."""


def _create_nothing(key: Any) -> None:
    return None


def _ignore_removal(evicted: bool, key: Any, old_value: Any, new_value: Any) -> None:
    return None


def _require(obj: Any, name: str) -> None:
    if obj is None:
        raise InvalidArgumentError(f"{name} must not be None")


def _check_capacity(capacity: Any) -> int:
    # bool is an Integral too, but True is not a capacity.
    if isinstance(capacity, bool) or not isinstance(capacity, numbers.Integral) or capacity <= 0:
        raise InvalidArgumentError(f"capacity must be a positive int, got {capacity!r}")
    return int(capacity)


@dataclass(frozen=True)
class CacheStats:
    """Point-in-time copy of a cache's counters, taken under its lock."""

    capacity: int
    size: int
    entries: int
    hit_count: int
    miss_count: int
    put_count: int
    create_count: int
    eviction_count: int

    @property
    def hit_rate(self) -> int:
        """Whole-percent hit rate, 0 before the first lookup."""
        accesses = self.hit_count + self.miss_count
        return (100 * self.hit_count) // accesses if accesses else 0

    def as_dict(self) -> Dict[str, int]:
        d = asdict(self)
        d["hit_rate"] = self.hit_rate
        return d


@dataclass
class _CacheState(Generic[K, V]):
    """
    Everything the cache lock guards.

    ``entries`` is kept in access order: least recently used first, most
    recently used last.
    """

    capacity: int
    entries: "OrderedDict[K, V]" = field(default_factory=OrderedDict)
    size: int = 0

    put_count: int = 0
    create_count: int = 0
    eviction_count: int = 0
    hit_count: int = 0
    miss_count: int = 0

    def touch(self, key: K) -> Optional[V]:
        value = self.entries.get(key)
        if value is not None:
            self.entries.move_to_end(key)
        return value

    def insert_or_replace(self, key: K, value: V) -> Optional[V]:
        previous = self.entries.pop(key, None)
        self.entries[key] = value
        return previous

    def remove_lru(self) -> Optional[tuple]:
        if not self.entries:
            return None
        return self.entries.popitem(last=False)

    def remove_exact(self, key: K) -> Optional[V]:
        return self.entries.pop(key, None)


class LRUCache(Generic[K, V]):
    """
    Bounded, thread-safe LRU cache with caller-defined entry sizes.

    The cache holds at most ``capacity`` units, where each entry costs
    ``size_of(key, value)`` units (1 by default, so capacity is an entry
    count). Every access moves an entry to the most-recently-used end; when a
    mutation pushes the total over capacity, least-recently-used entries are
    evicted until it fits again.

    Callbacks:
      - ``size_of(key, value) -> int`` runs *inside* the lock and must be cheap,
        pure and must never call back into the cache. An entry's size must not
        change while it is cached.
      - ``create(key) -> value | None`` runs on a miss *outside* the lock. It may
        be slow. If another thread caches a value for the same key while it
        runs, that value wins and the created one is handed to ``on_removed``.
      - ``on_removed(evicted, key, old_value, new_value)`` runs outside the lock,
        once for every eviction, removal, overwrite or discarded creation.
        ``evicted`` is True only for capacity evictions.

    None is never a valid key or value, so a None result from ``get``,
    ``put`` or ``remove`` unambiguously means "not cached".
    """

    def __init__(
        self,
        capacity: int,
        *,
        size_of: Optional[SizeOf[K, V]] = None,
        create: Optional[Create[K, V]] = None,
        on_removed: Optional[OnRemoved[K, V]] = None,
    ):
        capacity = _check_capacity(capacity)
        self._size_of: SizeOf[K, V] = size_of or unit_size
        self._create: Create[K, V] = create or _create_nothing
        self._on_removed: OnRemoved[K, V] = on_removed or _ignore_removal

        self._lock = threading.Lock()
        self._state: _CacheState[K, V] = _CacheState(capacity=capacity)

    # ----------------------------
    # Core operations
    # ----------------------------

    def get(self, key: K) -> Optional[V]:
        """
        Return the cached value for ``key``, creating it on a miss.

        Returns None if the key is not cached and ``create`` yields no value.
        """
        _require(key, "key")

        with self._lock:
            st = self._state
            value = st.touch(key)
            if value is not None:
                st.hit_count += 1
                return value
            st.miss_count += 1

        # The lock is released while creating; the map may change meanwhile.
        created = self._create(key)
        if created is None:
            return None

        with self._lock:
            st = self._state
            st.create_count += 1
            existing = st.touch(key)
            if existing is None:
                st.size += self._safe_size_of(key, created)
                st.insert_or_replace(key, created)
            capacity = st.capacity

        if existing is not None:
            logger.debug("Discarding created value for %r: key was cached concurrently", key)
            self._on_removed(False, key, created, None)
            return existing

        self.trim_to_size(capacity)
        return created

    def put(self, key: K, value: V) -> Optional[V]:
        """
        Cache ``value`` for ``key`` as most recently used.

        Returns the value previously mapped by ``key``, if any.
        """
        _require(key, "key")
        _require(value, "value")

        with self._lock:
            st = self._state
            added = self._safe_size_of(key, value)
            st.put_count += 1
            st.size += added
            previous = st.insert_or_replace(key, value)
            if previous is not None:
                st.size -= self._safe_size_of(key, previous)
            capacity = st.capacity

        if previous is not None:
            self._on_removed(False, key, previous, value)

        self.trim_to_size(capacity)
        return previous

    def remove(self, key: K) -> Optional[V]:
        """Remove ``key`` if cached and return its value."""
        _require(key, "key")

        with self._lock:
            st = self._state
            previous = st.remove_exact(key)
            if previous is not None:
                st.size -= self._safe_size_of(key, previous)

        if previous is not None:
            self._on_removed(False, key, previous, None)
        return previous

    def trim_to_size(self, max_size: int) -> None:
        """
        Evict least-recently-used entries until the total size is <= ``max_size``.

        ``max_size`` may be -1 to evict everything, including zero-sized entries.
        Each pass either removes one entry or stops, so this ends after at most
        ``len(self)`` evictions.
        """
        while True:
            with self._lock:
                st = self._state
                if st.size < 0 or (not st.entries and st.size != 0):
                    msg = f"{type(self).__name__}.size_of() is reporting inconsistent results!"
                    logger.error("%s (size=%d, entries=%d)", msg, st.size, len(st.entries))
                    raise InvariantViolationError(msg)

                if st.size <= max_size:
                    break

                item = st.remove_lru()
                if item is None:
                    break
                key, value = item
                st.size -= self._safe_size_of(key, value)
                st.eviction_count += 1

            logger.debug("Evicted %r", key)
            self._on_removed(True, key, value, None)

    def evict_all(self) -> None:
        """Empty the cache, reporting every entry to ``on_removed`` as evicted."""
        self.trim_to_size(-1)

    def resize(self, capacity: int) -> None:
        """Change the capacity, evicting entries if the cache no longer fits."""
        capacity = _check_capacity(capacity)
        with self._lock:
            self._state.capacity = capacity
        self.trim_to_size(capacity)

    def _safe_size_of(self, key: K, value: V) -> int:
        result = self._size_of(key, value)
        if result < 0:
            logger.error("size_of returned %d for key %r", result, key)
            raise InvariantViolationError(f"Negative size: {key!r}={value!r}")
        return int(result)

    # ----------------------------
    # Accessors
    # ----------------------------

    @property
    def size(self) -> int:
        """Sum of ``size_of`` over cached entries (the entry count by default)."""
        with self._lock:
            return self._state.size

    @property
    def capacity(self) -> int:
        with self._lock:
            return self._state.capacity

    @property
    def hit_count(self) -> int:
        """Number of times ``get`` found a value already cached."""
        with self._lock:
            return self._state.hit_count

    @property
    def miss_count(self) -> int:
        """Number of times ``get`` had to call ``create`` (or returned None)."""
        with self._lock:
            return self._state.miss_count

    @property
    def put_count(self) -> int:
        with self._lock:
            return self._state.put_count

    @property
    def create_count(self) -> int:
        """Number of times ``create`` returned a value."""
        with self._lock:
            return self._state.create_count

    @property
    def eviction_count(self) -> int:
        with self._lock:
            return self._state.eviction_count

    def snapshot(self) -> "OrderedDict[K, V]":
        """Copy of the contents, ordered least to most recently used."""
        with self._lock:
            return OrderedDict(self._state.entries)

    def stats(self) -> CacheStats:
        with self._lock:
            st = self._state
            return CacheStats(
                capacity=st.capacity,
                size=st.size,
                entries=len(st.entries),
                hit_count=st.hit_count,
                miss_count=st.miss_count,
                put_count=st.put_count,
                create_count=st.create_count,
                eviction_count=st.eviction_count,
            )

    def __contains__(self, key: object) -> bool:
        # Membership only: does not count as an access or change recency.
        with self._lock:
            return key in self._state.entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._state.entries)

    def __str__(self) -> str:
        s = self.stats()
        return f"LRUCache[maxSize={s.capacity},hits={s.hit_count},misses={s.miss_count},hitRate={s.hit_rate}%]"

    def __repr__(self) -> str:
        with self._lock:
            return f"LRUCache(capacity={self._state.capacity}, size={self._state.size})"
