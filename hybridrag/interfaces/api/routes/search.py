"""
Search Routes - Hybrid search over lists, items, comments and tags.

Results only ever contain entities visible to the requesting principal
(X-Principal-ID header; anonymous callers see public content).
"""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from hybridrag.config import SearchError
from hybridrag.domains.entities import EntityType
from hybridrag.domains.search import HybridSearchEngine, Principal, SearchQuery
from hybridrag.interfaces.api.auth import get_principal
from hybridrag.interfaces.api.deps import get_search_engine

router = APIRouter()


class SearchRequest(BaseModel):
    """Search request body."""

    query: str = Field(..., min_length=1, description="Search query")
    limit: int | None = Field(
        default=None, ge=1, description="Maximum results (default and cap are configured)"
    )
    entity_types: list[EntityType] | None = Field(
        default=None, description="Restrict to these entity types (default: all)"
    )


class SearchResultItem(BaseModel):
    """Single search result."""

    id: int
    type: EntityType
    title: str
    snippet: str
    locator: str
    vector_score: float | None
    keyword_score: float | None
    combined_score: float
    source: str
    updated_at: datetime


class SearchResponse(BaseModel):
    """Search response."""

    query: str
    results: list[SearchResultItem]
    count: int
    degraded: bool = False
    timed_out: list[EntityType] = Field(default_factory=list)
    lexical_only: list[EntityType] = Field(default_factory=list)


@router.post("", response_model=SearchResponse)
async def search(
    request: SearchRequest,
    principal: Principal = Depends(get_principal),
    engine: HybridSearchEngine = Depends(get_search_engine),
):
    """
    Search everything the caller can see.

    - **query**: Search query text
    - **limit**: Maximum results (configured default, clamped to the configured cap)
    - **entity_types**: Optional subset of list, list_item, comment, tag

    A search that finds nothing returns an empty list. When embeddings are
    unavailable the response is keyword-ranked and flagged as degraded.
    """
    if not request.query.strip():
        raise SearchError("Query cannot be blank")

    outcome = await engine.execute(
        SearchQuery(
            query=request.query,
            limit=request.limit,
            entity_types=tuple(request.entity_types) if request.entity_types else None,
        ),
        principal,
    )

    return SearchResponse(
        query=request.query,
        results=[SearchResultItem(**result.to_dict()) for result in outcome.results],
        count=len(outcome.results),
        degraded=outcome.degraded,
        timed_out=outcome.timed_out,
        lexical_only=outcome.lexical_only,
    )
