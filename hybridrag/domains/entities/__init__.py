"""
Entities Domain - Searchable entities and their embedding lifecycle.

This domain handles:
- The searchable entity union (lists, items, comments, tags)
- Deterministic embedding text per entity kind
- Staleness tracking with an explicit mark_stale hook
- Per-type repositories for vector and lexical search
"""

from .contracts import Embeddable, EntityRepository
from .kinds import ENTITY_KINDS, EntityKind, compute_embedding_text, kind_for
from .models import (
    AccessDescriptor,
    EntityRef,
    EntityType,
    SearchableEntity,
    StalenessState,
    Visibility,
)
from .repository import EntityTypeRepository, similarity_to_score
from .service import EntityService
from .staleness import StalenessEvent, next_state, requires_regeneration

__all__ = [
    # Contracts
    "Embeddable",
    "EntityRepository",
    # Models
    "AccessDescriptor",
    "EntityRef",
    "EntityType",
    "SearchableEntity",
    "StalenessState",
    "Visibility",
    # Kinds
    "ENTITY_KINDS",
    "EntityKind",
    "compute_embedding_text",
    "kind_for",
    # Implementations
    "EntityService",
    "EntityTypeRepository",
    "similarity_to_score",
    # Staleness
    "StalenessEvent",
    "next_state",
    "requires_regeneration",
]
