"""
Search Domain - Access-controlled hybrid search.

This domain handles:
- Vector similarity search (FAISS) per entity type
- Keyword search (SQLite FTS5) per entity type
- Visibility filtering before scoring
- Weighted score combination with recency boost
- Query vector caching
"""

from .access import (
    AccessFilter,
    Membership,
    MembershipStatus,
    Principal,
    PrincipalDirectory,
    visible,
)
from .cache import QueryVectorCache
from .contracts import SearchEngine
from .hybrid_search import HybridSearchEngine, excerpt
from .models import SearchOutcome, SearchQuery, SearchResult
from .scoring import Scorer, recency_boost

__all__ = [
    # Contracts
    "SearchEngine",
    # Models
    "SearchQuery",
    "SearchResult",
    "SearchOutcome",
    # Access
    "AccessFilter",
    "Membership",
    "MembershipStatus",
    "Principal",
    "PrincipalDirectory",
    "visible",
    # Implementations
    "HybridSearchEngine",
    "QueryVectorCache",
    "Scorer",
    "excerpt",
    "recency_boost",
]
