"""
Entity Type Repository - One entity type's vector and lexical search.

Vectors are owned by SQLite; the per-type FAISS index is a derived copy
loaded at startup and kept current by the embedding generator (same process)
or by periodic ``sync_vectors`` calls (vectors written by another process).
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

import numpy as np

from hybridrag.adapters.faiss import FAISSIndex

from .models import EntityType, SearchableEntity

if TYPE_CHECKING:
    from hybridrag.adapters.sqlite import SQLiteRepository

logger = logging.getLogger(__name__)

__all__ = ["EntityTypeRepository", "similarity_to_score"]


def similarity_to_score(similarity: float) -> float:
    """Cosine similarity -> vector_score = 1 / (1 + cosine distance)."""
    distance = max(0.0, 1.0 - similarity)
    return 1.0 / (1.0 + distance)


class EntityTypeRepository:
    """
    Search-side repository for a single entity type.

    Example:
        >>> lists = EntityTypeRepository(store, EntityType.LIST, dimension=384)
        >>> await lists.load_vectors()
        >>> hits = await lists.keyword_search("quarterly", k=30)
    """

    def __init__(
        self,
        store: SQLiteRepository,
        entity_type: EntityType,
        dimension: int,
    ) -> None:
        self.entity_type = entity_type
        self._store = store
        self._index = FAISSIndex(dimension=dimension)
        self._watermark: tuple[str, int] | None = None

    @property
    def dimension(self) -> int:
        return self._index.dimension

    @property
    def vector_count(self) -> int:
        return self._index.size

    def has_vectors(self) -> bool:
        return self._index.size > 0

    async def load_vectors(self) -> int:
        """Rebuild the index from every stored vector of this type."""
        ids, vectors, newest = await self._store.load_vectors(self.entity_type.value)
        await self._index.rebuild(ids, vectors)
        self._watermark = newest
        return len(ids)

    async def sync_vectors(self) -> int:
        """Pull vectors generated since the last load/sync."""
        if self._watermark is None:
            return await self.load_vectors()
        ids, vectors, newest = await self._store.load_vectors(
            self.entity_type.value, generated_after=self._watermark
        )
        if ids:
            await self._index.upsert(ids, vectors)
            self._watermark = newest
            logger.debug("Synced %d %s vectors", len(ids), self.entity_type.value)
        return len(ids)

    async def index_vector(self, entity_id: int, vector: np.ndarray) -> None:
        """Replace one entity's vector in the index."""
        await self._index.upsert([entity_id], vector.reshape(1, -1))

    async def drop_vectors(self, entity_ids: Sequence[int]) -> int:
        """Remove deleted entities from the index."""
        return await self._index.remove(entity_ids)

    async def vector_search(
        self,
        query_vector: np.ndarray,
        k: int,
    ) -> list[tuple[int, float]]:
        hits = await self._index.search(query_vector, k=k)
        return [(hit["id"], similarity_to_score(hit["similarity"])) for hit in hits]

    async def keyword_search(
        self,
        query: str,
        k: int,
    ) -> list[tuple[int, float, str]]:
        rows = await self._store.search_fts(query, entity_type=self.entity_type.value, limit=k)
        # BM25 scores are negative; larger magnitude means more relevant
        return [
            (row["id"], max(0.0, -float(row["score"])), row.get("snippet") or "")
            for row in rows
        ]

    async def fetch(self, entity_ids: Sequence[int]) -> list[SearchableEntity]:
        rows = await self._store.fetch_entities(entity_ids, entity_type=self.entity_type.value)
        return [SearchableEntity.from_row(row) for row in rows]
