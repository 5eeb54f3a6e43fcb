"""
Query Vector Cache - In-memory caching of query embeddings with TTL.

Repeated searches for the same text reuse the query vector instead of
calling the embedding function again.
"""

from __future__ import annotations

import hashlib
import logging
from datetime import datetime, timedelta, timezone
from typing import Any

import numpy as np
from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

__all__ = ["CachedVector", "QueryVectorCache"]


def _now() -> datetime:
    return datetime.now(timezone.utc)


class CachedVector(BaseModel):
    """Cached query embedding."""

    key: str
    vector: np.ndarray
    created_at: datetime
    expires_at: datetime
    hit_count: int = 0

    model_config = ConfigDict(arbitrary_types_allowed=True)


class QueryVectorCache:
    """
    In-memory query vector cache with TTL.

    Features:
    - Automatic TTL expiration
    - Oldest-first eviction at capacity
    - Hit tracking
    """

    def __init__(self, max_size: int = 512, ttl_seconds: int = 300) -> None:
        """
        Initialize cache.

        Args:
            max_size: Maximum number of cached vectors (0 disables caching)
            ttl_seconds: Lifetime of an entry in seconds
        """
        self._cache: dict[str, CachedVector] = {}
        self._max_size = max_size
        self._ttl = ttl_seconds

    async def get(self, key: str) -> np.ndarray | None:
        """Get cached vector if not expired."""
        entry = self._cache.get(key)
        if not entry:
            return None

        if _now() > entry.expires_at:
            del self._cache[key]
            logger.debug("Cache entry expired: %s", key[:16])
            return None

        entry.hit_count += 1
        logger.debug("Cache hit: %s (hits: %d)", key[:16], entry.hit_count)
        return entry.vector

    async def set(self, key: str, vector: np.ndarray) -> None:
        """Cache a vector."""
        if self._max_size <= 0:
            return
        if key not in self._cache and len(self._cache) >= self._max_size:
            self._evict_oldest()

        created = _now()
        self._cache[key] = CachedVector(
            key=key,
            vector=vector,
            created_at=created,
            expires_at=created + timedelta(seconds=self._ttl),
        )

    async def clear(self) -> None:
        """Clear all cache entries."""
        count = len(self._cache)
        self._cache.clear()
        logger.info("Cleared %d cache entries", count)

    def _evict_oldest(self) -> None:
        """Evict the oldest 10% of entries to make room."""
        if not self._cache:
            return

        sorted_keys = sorted(self._cache, key=lambda k: self._cache[k].created_at)
        evict_count = max(1, len(sorted_keys) // 10)
        for key in sorted_keys[:evict_count]:
            del self._cache[key]

        logger.debug("Evicted %d oldest cache entries", evict_count)

    def stats(self) -> dict[str, Any]:
        """Get cache statistics."""
        return {
            "size": len(self._cache),
            "max_size": self._max_size,
            "total_hits": sum(e.hit_count for e in self._cache.values()),
        }

    def __len__(self) -> int:
        return len(self._cache)

    @staticmethod
    def generate_key(query: str, model: str = "") -> str:
        """Cache key from normalized query text and embedding model."""
        normalized = " ".join(query.split())
        key_string = f"{model}|{normalized}"
        return hashlib.sha256(key_string.encode()).hexdigest()[:32]
