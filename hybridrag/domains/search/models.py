"""
Search Models - Data types for search domain.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator

from hybridrag.domains.entities import EntityRef, EntityType


class SearchQuery(BaseModel):
    """Search request."""

    query: str = Field(..., min_length=1)
    limit: int | None = Field(default=None, ge=1)
    entity_types: tuple[EntityType, ...] | None = None

    model_config = {"frozen": True}

    @field_validator("query")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("query must not be blank")
        return value


class SearchResult(BaseModel):
    """Single ranked search result."""

    entity_ref: EntityRef
    title: str
    snippet: str = ""
    locator: str
    vector_score: float | None = None  # only when both vectors exist
    keyword_score: float | None = None  # only when the lexical index matched
    combined_score: float = 0.0
    updated_at: datetime

    model_config = {"frozen": True}

    @property
    def entity_type(self) -> EntityType:
        return self.entity_ref.entity_type

    @property
    def entity_id(self) -> int:
        return self.entity_ref.entity_id

    @property
    def source(self) -> str:
        """Which modalities matched: "vector", "keyword" or "hybrid"."""
        if self.vector_score is not None and self.keyword_score is not None:
            return "hybrid"
        return "vector" if self.vector_score is not None else "keyword"

    def to_dict(self) -> dict[str, Any]:
        """JSON shape returned to API and CLI callers."""
        return {
            "id": self.entity_id,
            "type": self.entity_type.value,
            "title": self.title,
            "snippet": self.snippet,
            "locator": self.locator,
            "vector_score": self.vector_score,
            "keyword_score": self.keyword_score,
            "combined_score": self.combined_score,
            "source": self.source,
            "updated_at": self.updated_at.isoformat(),
        }


class SearchOutcome(BaseModel):
    """Results plus how the search degraded, if it did."""

    results: list[SearchResult] = Field(default_factory=list)
    timed_out: list[EntityType] = Field(default_factory=list)
    lexical_only: list[EntityType] = Field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return bool(self.timed_out or self.lexical_only)
