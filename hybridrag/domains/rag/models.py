"""
RAG Models - Data types for context assembly.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field

from hybridrag.domains.entities import EntityType


class ContextSource(BaseModel):
    """One numbered, attributable entry of a context block."""

    source_number: int
    entity_type: EntityType
    entity_id: int
    label: str
    title: str
    snippet: str = ""
    locator: str

    model_config = {"frozen": True}

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_number": self.source_number,
            "type": self.entity_type.value,
            "id": self.entity_id,
            "label": self.label,
            "title": self.title,
            "snippet": self.snippet,
            "locator": self.locator,
        }


class RAGContext(BaseModel):
    """Assembled context for a downstream language model call."""

    query: str
    sources: list[ContextSource] = Field(default_factory=list)
    context_text: str = ""
    prompt_text: str = ""
    token_budget: int
    tokens_used: int = 0

    @property
    def context_count(self) -> int:
        return len(self.sources)

    def to_dict(self) -> dict[str, Any]:
        return {
            "query": self.query,
            "prompt": self.prompt_text,
            "context_sources": [s.to_dict() for s in self.sources],
            "context_count": self.context_count,
            "token_budget": self.token_budget,
            "tokens_used": self.tokens_used,
        }
