"""
Entity Models - Data types for searchable entities.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class EntityType(str, Enum):
    """Discriminator of the searchable entity union."""

    LIST = "list"
    LIST_ITEM = "list_item"
    COMMENT = "comment"
    TAG = "tag"


class Visibility(str, Enum):
    """Read-time visibility of an entity."""

    PRIVATE = "private"
    PUBLIC_READ = "public_read"
    PUBLIC_WRITE = "public_write"

    @property
    def is_public(self) -> bool:
        return self is not Visibility.PRIVATE


class StalenessState(str, Enum):
    """Embedding lifecycle state."""

    ABSENT = "absent"  # no vector yet
    FRESH = "fresh"  # vector reflects current text
    STALE = "stale"  # vector exists but text changed since


class EntityRef(BaseModel):
    """Discriminated reference: (entity_type, entity_id)."""

    entity_type: EntityType
    entity_id: int

    model_config = {"frozen": True}

    def __str__(self) -> str:
        return f"{self.entity_type.value}:{self.entity_id}"


class AccessDescriptor(BaseModel):
    """Tenant/visibility facts the access filter decides on."""

    tenant_id: str | None = None
    owner_id: str
    visibility: Visibility = Visibility.PRIVATE
    collaborator_ids: frozenset[str] = Field(default_factory=frozenset)

    model_config = {"frozen": True}


class SearchableEntity(BaseModel):
    """
    One searchable record of any entity type.

    Items and comments carry the tenant/visibility of the list that governs
    them (``root_id``); the mutation service keeps these in step.
    """

    id: int
    entity_type: EntityType
    owner_id: str
    tenant_id: str | None = None
    visibility: Visibility = Visibility.PRIVATE
    collaborator_ids: frozenset[str] = Field(default_factory=frozenset)
    parent_id: int | None = None
    root_id: int | None = None
    parent_title: str | None = None
    title: str = ""
    body: str = ""
    embedding_text: str = ""
    vector: list[float] | None = None
    vector_generated_at: datetime | None = None
    stale: bool = True
    created_at: datetime
    updated_at: datetime

    @property
    def ref(self) -> EntityRef:
        return EntityRef(entity_type=self.entity_type, entity_id=self.id)

    @property
    def access(self) -> AccessDescriptor:
        return AccessDescriptor(
            tenant_id=self.tenant_id,
            owner_id=self.owner_id,
            visibility=self.visibility,
            collaborator_ids=self.collaborator_ids,
        )

    @property
    def has_vector(self) -> bool:
        return self.vector_generated_at is not None

    @property
    def staleness_state(self) -> StalenessState:
        if not self.has_vector:
            return StalenessState.ABSENT
        return StalenessState.STALE if self.stale else StalenessState.FRESH

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> SearchableEntity:
        """Build from a SQLite repository row."""
        generated = row.get("embedding_generated_at")
        vector = row.get("vector")
        return cls(
            id=row["id"],
            entity_type=EntityType(row["entity_type"]),
            owner_id=row["owner_id"],
            tenant_id=row.get("tenant_id"),
            visibility=Visibility(row.get("visibility") or Visibility.PRIVATE.value),
            collaborator_ids=frozenset(row.get("collaborator_ids") or ()),
            parent_id=row.get("parent_id"),
            root_id=row.get("root_id"),
            parent_title=row.get("parent_title"),
            title=row.get("title") or "",
            body=row.get("body") or "",
            embedding_text=row.get("embedding_text") or "",
            vector=[float(x) for x in vector] if vector is not None else None,
            vector_generated_at=datetime.fromisoformat(generated) if generated else None,
            stale=bool(row.get("stale", 1)),
            created_at=datetime.fromisoformat(row["created_at"]),
            updated_at=datetime.fromisoformat(row["updated_at"]),
        )
