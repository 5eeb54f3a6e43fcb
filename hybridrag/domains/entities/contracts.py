"""
Entity Contracts - Interfaces for the entities domain.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Protocol, runtime_checkable

import numpy as np

from .models import AccessDescriptor, EntityRef, EntityType, SearchableEntity, StalenessState


@runtime_checkable
class Embeddable(Protocol):
    """
    Contract every searchable entity satisfies.

    ``embedding_text`` must be a deterministic function of the entity's
    current fields; ``stale`` must be true whenever that text changed since
    ``vector_generated_at`` or no vector exists.
    """

    @property
    def ref(self) -> EntityRef: ...

    @property
    def embedding_text(self) -> str: ...

    @property
    def vector(self) -> list[float] | None: ...

    @property
    def vector_generated_at(self) -> datetime | None: ...

    @property
    def stale(self) -> bool: ...

    @property
    def staleness_state(self) -> StalenessState: ...

    @property
    def access(self) -> AccessDescriptor: ...


@runtime_checkable
class EntityRepository(Protocol):
    """Read side of one entity type's store, as the search engine sees it."""

    entity_type: EntityType

    def has_vectors(self) -> bool:
        """Whether any entity of this type has a vector to search."""
        ...

    async def vector_search(
        self,
        query_vector: np.ndarray,
        k: int,
    ) -> list[tuple[int, float]]:
        """Nearest neighbours as (entity_id, vector_score in [0, 1])."""
        ...

    async def keyword_search(
        self,
        query: str,
        k: int,
    ) -> list[tuple[int, float, str]]:
        """Lexical matches as (entity_id, raw relevance >= 0, snippet)."""
        ...

    async def fetch(self, entity_ids: Sequence[int]) -> list[SearchableEntity]:
        """Hydrate entities; deleted ids are absent from the result."""
        ...
