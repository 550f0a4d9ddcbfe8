"""Thread-safe bounded caches for embeddings and query suggestions."""

from __future__ import annotations

from collections import OrderedDict
import threading
from typing import Any, Sequence

import numpy as np


class LRUCache:
    """Least-recently-used map guarded by a lock; safe to share across request threads."""

    def __init__(self, max_entries: int) -> None:
        self.max_entries = max(1, int(max_entries))
        self._data: OrderedDict[str, Any] = OrderedDict()
        self._lock = threading.Lock()
        self._hits = 0
        self._misses = 0

    def normalize_key(self, key: str) -> str:
        return key

    def get(self, key: str) -> Any | None:
        cache_key = self.normalize_key(key)
        with self._lock:
            if cache_key not in self._data:
                self._misses += 1
                return None
            self._data.move_to_end(cache_key)
            self._hits += 1
            return self._data[cache_key]

    def put(self, key: str, value: Any) -> None:
        cache_key = self.normalize_key(key)
        with self._lock:
            self._data[cache_key] = value
            self._data.move_to_end(cache_key)
            while len(self._data) > self.max_entries:
                self._data.popitem(last=False)

    def __contains__(self, key: str) -> bool:
        cache_key = self.normalize_key(key)
        with self._lock:
            return cache_key in self._data

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)

    def clear(self) -> None:
        with self._lock:
            self._data.clear()
            self._hits = 0
            self._misses = 0

    def stats(self) -> dict[str, int]:
        with self._lock:
            return {
                "size": len(self._data),
                "capacity": self.max_entries,
                "hits": self._hits,
                "misses": self._misses,
            }


class EmbeddingCache(LRUCache):
    """Maps normalized text to a read-only embedding vector."""

    def normalize_key(self, key: str) -> str:
        return str(key).strip().lower()

    def put(self, key: str, value: Sequence[float] | np.ndarray) -> None:
        vector = np.array(value, dtype=np.float32)
        vector.flags.writeable = False
        super().put(key, vector)
