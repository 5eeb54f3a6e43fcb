"""
FAISS Index - Vector similarity search over mutable entity vectors.

Features:
- Async-compatible operations
- Entity ids carried inside the index (IndexIDMap2), so vectors can be
  replaced or removed when entities are re-embedded or deleted
- Cosine similarity via inner product over L2-normalized vectors
- Short critical sections: the lock only covers the in-memory index op,
  never an embedding call
"""

from __future__ import annotations

import asyncio
import logging
import threading
from collections.abc import Sequence
from typing import Any

import faiss
import numpy as np

from hybridrag.config import ConfigurationError, ErrorCode

logger = logging.getLogger(__name__)

__all__ = ["FAISSIndex"]


class FAISSIndex:
    """
    FAISS vector index keyed by entity id.

    Example:
        >>> index = FAISSIndex(dimension=384)
        >>> await index.upsert([7], np.ones((1, 384)))
        >>> results = await index.search(query_vector, k=10)
    """

    def __init__(self, dimension: int = 384) -> None:
        """
        Initialize FAISS index.

        Args:
            dimension: Vector dimension (384 for MiniLM, 768 for MPNet)
        """
        self.dimension = dimension
        self._index = self._create_index()
        self._lock = threading.Lock()

    def _create_index(self) -> faiss.Index:
        """Exact inner-product index wrapped with id mapping."""
        return faiss.IndexIDMap2(faiss.IndexFlatIP(self.dimension))

    def _prepare(self, vectors: np.ndarray | Sequence[np.ndarray]) -> np.ndarray:
        # Copy: normalize_L2 works in place and callers may share their buffer
        matrix = np.array(vectors, dtype="float32", order="C", copy=True)
        if matrix.ndim == 1:
            matrix = matrix.reshape(1, -1)
        if matrix.shape[1] != self.dimension:
            raise ConfigurationError(
                "Vector dimension does not match index dimension",
                {"expected": self.dimension, "actual": int(matrix.shape[1])},
                code=ErrorCode.CONFIGURATION_DIMENSION_MISMATCH,
            )
        # Normalize for inner product (cosine similarity)
        faiss.normalize_L2(matrix)
        return matrix

    def _upsert_sync(self, ids: np.ndarray, matrix: np.ndarray) -> None:
        with self._lock:
            self._index.remove_ids(ids)
            self._index.add_with_ids(matrix, ids)

    def _remove_sync(self, ids: np.ndarray) -> int:
        with self._lock:
            return int(self._index.remove_ids(ids))

    def _rebuild_sync(self, ids: np.ndarray, matrix: np.ndarray) -> None:
        index = self._create_index()
        if len(ids):
            index.add_with_ids(matrix, ids)
        with self._lock:
            self._index = index

    def _search_sync(self, query: np.ndarray, k: int) -> tuple[np.ndarray, np.ndarray]:
        with self._lock:
            k = min(k, self._index.ntotal)
            if k <= 0:
                return np.empty((1, 0), dtype="float32"), np.empty((1, 0), dtype="int64")
            return self._index.search(query, k)

    async def upsert(
        self,
        ids: Sequence[int],
        vectors: np.ndarray | Sequence[np.ndarray],
    ) -> None:
        """
        Insert or replace vectors.

        Args:
            ids: Entity ids, one per vector
            vectors: Array of shape (n, dimension)
        """
        if not len(ids):
            return
        matrix = self._prepare(vectors)
        id_array = np.asarray(ids, dtype="int64")
        await asyncio.to_thread(self._upsert_sync, id_array, matrix)
        logger.debug("Upserted %d vectors", len(id_array))

    async def remove(self, ids: Sequence[int]) -> int:
        """Remove vectors by entity id. Returns the number removed."""
        if not len(ids):
            return 0
        return await asyncio.to_thread(
            self._remove_sync, np.asarray(ids, dtype="int64")
        )

    async def rebuild(
        self,
        ids: Sequence[int],
        vectors: np.ndarray | Sequence[np.ndarray],
    ) -> None:
        """Replace the whole index contents."""
        if len(ids):
            matrix = self._prepare(vectors)
        else:
            matrix = np.empty((0, self.dimension), dtype="float32")
        await asyncio.to_thread(
            self._rebuild_sync, np.asarray(ids, dtype="int64"), matrix
        )
        logger.info("FAISS index rebuilt: dimension=%d, vectors=%d", self.dimension, len(ids))

    async def search(
        self,
        query_vector: np.ndarray,
        k: int = 10,
    ) -> list[dict[str, Any]]:
        """
        Search for similar vectors.

        Args:
            query_vector: Query vector of shape (dimension,) or (1, dimension)
            k: Number of results

        Returns:
            List of dicts with 'id' and 'similarity' (cosine, in [-1, 1])
        """
        if self.size == 0 or k <= 0:
            return []

        query = self._prepare(query_vector)
        scores, ids = await asyncio.to_thread(self._search_sync, query, k)

        results = []
        for score, entity_id in zip(scores[0], ids[0]):
            if entity_id >= 0:
                results.append({"id": int(entity_id), "similarity": float(score)})
        return results

    @property
    def size(self) -> int:
        """Get number of vectors in index."""
        return int(self._index.ntotal)
