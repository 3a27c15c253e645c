"""Result cache capability.

BatchProcessor takes a cache explicitly; there is no module-level cache.
Any object implementing TensorCache can be injected, LRUTensorCache is
the bundled implementation.
"""

import threading
from collections import OrderedDict
from typing import Any, Hashable, Optional, Protocol

from vision_utils.config import get_settings
from vision_utils.processing.pipeline import TensorResult


class TensorCache(Protocol):
    """Protocol for caching pipeline results."""

    def get(self, key: Hashable) -> Optional[TensorResult]:
        """Return the cached result, or None on a miss."""
        ...

    def put(self, key: Hashable, value: TensorResult) -> None:
        """Store a result."""
        ...

    def clear(self) -> None:
        """Drop all entries."""
        ...

    def stats(self) -> dict[str, Any]:
        """Size and hit/miss counters."""
        ...


class LRUTensorCache:
    """Thread-safe least-recently-used cache with hit/miss counters.

    Args:
        capacity: Maximum entries (default: Settings.CACHE_SIZE)

    Example:
        >>> cache = LRUTensorCache(capacity=2)
        >>> cache.get("missing") is None
        True
        >>> cache.stats()["misses"]
        1
    """

    def __init__(self, capacity: Optional[int] = None) -> None:
        if capacity is None:
            capacity = get_settings().CACHE_SIZE
        if capacity < 1:
            raise ValueError(f"Cache capacity must be >= 1, got {capacity}")
        self.capacity = capacity
        self._entries: OrderedDict[Hashable, TensorResult] = OrderedDict()
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, key: Hashable) -> Optional[TensorResult]:
        with self._lock:
            value = self._entries.get(key)
            if value is None:
                self.misses += 1
                return None
            self._entries.move_to_end(key)
            self.hits += 1
            return value

    def put(self, key: Hashable, value: TensorResult) -> None:
        with self._lock:
            self._entries[key] = value
            self._entries.move_to_end(key)
            while len(self._entries) > self.capacity:
                self._entries.popitem(last=False)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self.hits = 0
            self.misses = 0

    def stats(self) -> dict[str, Any]:
        with self._lock:
            lookups = self.hits + self.misses
            return {
                "size": len(self._entries),
                "capacity": self.capacity,
                "hits": self.hits,
                "misses": self.misses,
                "hit_rate": self.hits / lookups if lookups else 0.0,
            }

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._entries
