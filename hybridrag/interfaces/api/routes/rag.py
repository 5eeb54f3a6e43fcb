"""
RAG Routes - Context assembly for chat orchestrators.

The engine does not call a language model; the orchestrator injects the
returned prompt into its own request and renders source locators as links.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from hybridrag.config import SearchError
from hybridrag.domains.rag import ContextBuilder
from hybridrag.domains.search import Principal
from hybridrag.interfaces.api.auth import get_principal
from hybridrag.interfaces.api.deps import get_context_builder

router = APIRouter()


class ContextRequest(BaseModel):
    """Context request body."""

    query: str = Field(..., min_length=1, description="User question")
    token_budget: int | None = Field(default=None, ge=1, description="Context block budget")
    max_sources: int | None = Field(default=None, ge=1)


@router.post("/context")
async def build_context(
    request: ContextRequest,
    principal: Principal = Depends(get_principal),
    builder: ContextBuilder = Depends(get_context_builder),
) -> dict[str, Any]:
    """
    Build a numbered, budget-bounded context block for a question.

    Returns the prompt text, the numbered sources with locators, and the
    number of sources included.
    """
    if not request.query.strip():
        raise SearchError("Query cannot be blank")

    context = await builder.build_context(
        request.query,
        principal,
        token_budget=request.token_budget,
        max_sources=request.max_sources,
    )
    return context.to_dict()
