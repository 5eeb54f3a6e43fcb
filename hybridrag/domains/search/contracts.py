"""
Search Contracts - Interfaces for search domain.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from .access import Principal
from .models import SearchOutcome, SearchQuery, SearchResult


@runtime_checkable
class SearchEngine(Protocol):
    """Contract for search implementations."""

    async def search(
        self,
        query: SearchQuery,
        principal: Principal,
    ) -> list[SearchResult]:
        """Execute search and return results visible to ``principal``."""
        ...

    async def execute(
        self,
        query: SearchQuery,
        principal: Principal,
    ) -> SearchOutcome:
        """Execute search and report degradation alongside the results."""
        ...
