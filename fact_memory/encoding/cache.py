"""
In-process TTL cache for query embeddings.
"""

import time
from typing import Callable


class EmbeddingCache:
    """
    Query embedding cache keyed by the lowercased, trimmed query.

    Entries expire after ``ttl_seconds``. When full, the oldest inserted
    entry is evicted.
    """

    def __init__(
        self,
        ttl_seconds: float = 300.0,
        max_size: int = 500,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_size = max_size
        self._clock = clock
        self._entries: dict[str, tuple[list[float], float]] = {}

    @staticmethod
    def key(query: str) -> str:
        return query.lower().strip()

    def get(self, query: str) -> list[float] | None:
        key = self.key(query)
        entry = self._entries.get(key)
        if entry is None:
            return None
        embedding, stored_at = entry
        if self._clock() - stored_at >= self.ttl_seconds:
            del self._entries[key]
            return None
        return embedding

    def set(self, query: str, embedding: list[float]) -> None:
        key = self.key(query)
        if key in self._entries:
            del self._entries[key]
        elif len(self._entries) >= self.max_size:
            oldest = next(iter(self._entries))
            del self._entries[oldest]
        self._entries[key] = (embedding, self._clock())

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, query: str) -> bool:
        return self.get(query) is not None
