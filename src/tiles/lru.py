"""In-memory LRU cache bounded by the estimated byte size of its values.

Entries form a doubly linked list ordered from the newest (most recently used)
to the oldest entry; a dict maps keys to their list nodes for O(1) lookup.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any, Generic, TypeVar

from shared.constants import (
    BYTES_IN_BOOLEAN,
    BYTES_IN_MB,
    BYTES_IN_NUMBER,
    BYTES_PER_CHAR,
    INDEX_CACHE_CAPACITY_MB,
)

logger = logging.getLogger(__name__)

K = TypeVar('K')
V = TypeVar('V')


class CacheCapacityError(ValueError):
    """Raised when a single value does not fit into the whole cache."""


def estimate_data_size(data: Any) -> int:
    """Rough in-memory size of plain data in bytes.

    Numbers cost 8 bytes, booleans 4, strings 2 per character; dicts, lists and
    tuples are summed recursively (dict keys are not counted). Anything else is
    measured by the length of its ``str()``.
    """
    if data is None:
        return 0
    if isinstance(data, bool):
        return BYTES_IN_BOOLEAN
    if isinstance(data, (int, float)):
        return BYTES_IN_NUMBER
    if isinstance(data, str):
        return len(data) * BYTES_PER_CHAR
    if isinstance(data, Mapping):
        return sum(estimate_data_size(v) for v in data.values())
    if isinstance(data, (list, tuple)):
        return sum(estimate_data_size(v) for v in data)
    return len(str(data)) * BYTES_PER_CHAR


class _Entry(Generic[K, V]):
    __slots__ = ('key', 'newer', 'older', 'size', 'value')

    def __init__(self, key: K, value: V, size: int) -> None:
        self.key = key
        self.value = value
        self.size = size
        self.newer: _Entry[K, V] | None = None
        self.older: _Entry[K, V] | None = None


class LRUCache(Generic[K, V]):
    """Fixed capacity cache evicting least recently used entries first.

    Not thread-safe: all mutations are expected to run on one event loop.

    Usage:
        cache = LRUCache(capacity_mb=2, size_function=len)
        cache.set('a', 'value')
        cache.get('a')
    """

    def __init__(
        self,
        capacity_mb: float = INDEX_CACHE_CAPACITY_MB,
        size_function: Callable[[V], int] = estimate_data_size,
    ) -> None:
        self._max_capacity = int(capacity_mb * BYTES_IN_MB)
        self._size_function = size_function
        self._cache_size = 0
        self._map: dict[K, _Entry[K, V]] = {}
        self._newest: _Entry[K, V] | None = None
        self._oldest: _Entry[K, V] | None = None

    @classmethod
    def with_capacity_bytes(
        cls,
        capacity_bytes: int,
        size_function: Callable[[V], int] = estimate_data_size,
    ) -> LRUCache[K, V]:
        cache: LRUCache[K, V] = cls(0, size_function)
        cache._max_capacity = int(capacity_bytes)
        return cache

    def __len__(self) -> int:
        return len(self._map)

    def __contains__(self, key: object) -> bool:
        return key in self._map

    def get_size(self) -> int:
        """Sum of the sizes of all cached values, in bytes."""
        return self._cache_size

    def get_capacity(self) -> int:
        """Maximum total size in bytes."""
        return self._max_capacity

    def set_capacity(self, capacity_mb: float) -> None:
        """Change the capacity and evict down to it immediately."""
        self._max_capacity = int(capacity_mb * BYTES_IN_MB)
        self._evict()
        logger.info(
            'LRU cache capacity set to %d bytes (size %d, %d entries)',
            self._max_capacity,
            self._cache_size,
            len(self._map),
        )

    def keys(self) -> list[K]:
        """Keys ordered from the newest to the oldest entry."""
        out: list[K] = []
        entry = self._newest
        while entry is not None:
            out.append(entry.key)
            entry = entry.older
        return out

    def set(self, key: K, value: V) -> None:
        """Insert or update ``key`` as the most recently used entry.

        Raises:
            CacheCapacityError: ``key`` is new and ``value`` alone is larger
                than the whole cache. The cache is left unchanged.
        """
        value_size = self._size_function(value)
        entry = self._map.get(key)
        if entry is not None:
            self._cache_size += value_size - entry.size
            entry.value = value
            entry.size = value_size
            self._promote(entry)
            self._evict()
            return

        if value_size > self._max_capacity:
            msg = (
                f'Value size ({value_size}) is too big for the cache '
                f'capacity ({self._max_capacity})'
            )
            raise CacheCapacityError(msg)

        entry = _Entry(key, value, value_size)
        if self._newest is None:
            self._newest = self._oldest = entry
        else:
            entry.older = self._newest
            self._newest.newer = entry
            self._newest = entry
        self._map[key] = entry
        self._cache_size += value_size
        self._evict()

    def get(self, key: K, default: V | None = None) -> V | None:
        """Value for ``key`` (promoted to newest), or ``default`` on a miss.

        Pass a sentinel ``default`` to tell a miss from a stored ``None``.
        """
        entry = self._map.get(key)
        if entry is None:
            return default
        self._promote(entry)
        return entry.value

    def has(self, key: K) -> bool:
        """Membership test; does not change the LRU order."""
        return key in self._map

    def delete(self, key: K) -> bool:
        entry = self._map.pop(key, None)
        if entry is None:
            return False
        self._unlink(entry)
        self._cache_size -= entry.size
        return True

    def clear(self) -> None:
        self._map.clear()
        self._newest = self._oldest = None
        self._cache_size = 0

    def _evict(self) -> None:
        while self._oldest is not None and self._cache_size > self._max_capacity:
            evicted = self._oldest
            self._unlink(evicted)
            del self._map[evicted.key]
            self._cache_size -= evicted.size
            logger.debug('LRU evicted %r (%d bytes)', evicted.key, evicted.size)

    def _unlink(self, entry: _Entry[K, V]) -> None:
        if entry.newer is not None:
            entry.newer.older = entry.older
        else:
            self._newest = entry.older
        if entry.older is not None:
            entry.older.newer = entry.newer
        else:
            self._oldest = entry.newer
        entry.newer = entry.older = None

    def _promote(self, entry: _Entry[K, V]) -> None:
        if entry is self._newest:
            return
        self._unlink(entry)
        entry.older = self._newest
        if self._newest is not None:
            self._newest.newer = entry
        self._newest = entry
        if self._oldest is None:
            self._oldest = entry
