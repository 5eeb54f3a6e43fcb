"""
Embedding Generator - Turns an entity's embedding text into a stored vector.

The generator is the only writer of an entity's vector, generation time and
the cleared stale flag. It makes exactly one bounded external call per
invocation; retries belong to the embedding worker.

Truncation: embedding text longer than ``max_chars`` characters is cut to its
first ``max_chars`` characters before embedding. The stored text is never
modified, so staleness detection keeps comparing the full text.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING

import numpy as np

from hybridrag.adapters.sqlite import utcnow
from hybridrag.config import ConfigurationError, EmbeddingError, ErrorCode
from hybridrag.domains.entities import (
    EntityRef,
    EntityType,
    StalenessEvent,
    StalenessState,
    next_state,
)

from .contracts import Embedder
from .models import GenerationOutcome

if TYPE_CHECKING:
    from hybridrag.adapters.sqlite import SQLiteRepository
    from hybridrag.domains.entities import EntityTypeRepository

logger = logging.getLogger(__name__)

__all__ = ["EmbeddingGenerator", "truncate_embedding_text"]


def truncate_embedding_text(text: str, max_chars: int) -> str:
    """First ``max_chars`` characters of ``text``."""
    return text[:max_chars]


def _state_of(row: dict) -> StalenessState:
    if row.get("embedding_generated_at") is None:
        return StalenessState.ABSENT
    return StalenessState.STALE if row.get("stale") else StalenessState.FRESH


class EmbeddingGenerator:
    """
    Generate and persist the embedding of one entity.

    Example:
        >>> generator = EmbeddingGenerator(store, embedder, repositories, dimension=384)
        >>> outcome = await generator.generate(EntityRef(entity_type="list", entity_id=7))
        >>> outcome
        <GenerationOutcome.GENERATED: 'generated'>
    """

    def __init__(
        self,
        store: SQLiteRepository,
        embedder: Embedder,
        repositories: Mapping[EntityType, EntityTypeRepository] | None = None,
        dimension: int = 384,
        max_chars: int = 8000,
    ) -> None:
        """
        Initialize generator.

        Args:
            store: Entity store (source of truth for vectors)
            embedder: External embedding function
            repositories: Per-type repositories whose indexes receive new vectors
            dimension: Expected vector dimension D
            max_chars: Truncation budget for embedding text
        """
        self._store = store
        self._embedder = embedder
        self._repositories = dict(repositories or {})
        self.dimension = dimension
        self.max_chars = max_chars

    async def generate(self, ref: EntityRef) -> GenerationOutcome:
        """
        Embed the entity's current text and store the vector.

        Returns:
            What happened; empty text and deleted entities are no-ops

        Raises:
            EmbeddingError: external call failed (entity state unchanged)
            ConfigurationError: embedder returned a vector of the wrong dimension
        """
        row = await self._store.get_entity(ref.entity_id)
        if row is None or row["entity_type"] != ref.entity_type.value:
            return GenerationOutcome.SKIPPED_MISSING

        text = row["embedding_text"] or ""
        if not text.strip():
            return GenerationOutcome.SKIPPED_EMPTY

        state = _state_of(row)
        payload = truncate_embedding_text(text, self.max_chars)
        try:
            raw = await self._embedder.embed(payload)
        except EmbeddingError as e:
            logger.warning(
                "Embedding failed for %s (%s); state stays %s",
                ref,
                e.code.value,
                next_state(state, StalenessEvent.GENERATE_FAILED).value,
            )
            raise

        vector = np.asarray(raw, dtype=np.float32).reshape(-1)
        if vector.shape[0] != self.dimension:
            raise ConfigurationError(
                "Embedding function returned a vector of unexpected dimension",
                {"expected": self.dimension, "actual": int(vector.shape[0]), "entity": str(ref)},
                code=ErrorCode.CONFIGURATION_DIMENSION_MISMATCH,
            )

        async with self._store.transaction() as tx:
            stored = await tx.store_embedding(ref.entity_id, text, vector, utcnow())

        if not stored:
            # Deleted or re-edited meanwhile; the newer edit queued its own job
            logger.info("Embedding for %s superseded by a newer change", ref)
            return GenerationOutcome.SUPERSEDED

        repository = self._repositories.get(ref.entity_type)
        if repository is not None:
            await repository.index_vector(ref.entity_id, vector)

        logger.info(
            "Generated embedding for %s: %s -> %s (%d chars%s)",
            ref,
            state.value,
            next_state(state, StalenessEvent.GENERATE_SUCCEEDED).value,
            len(payload),
            ", truncated" if len(payload) < len(text) else "",
        )
        return GenerationOutcome.GENERATED
