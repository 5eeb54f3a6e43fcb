"""
HybridRAG - Hybrid search and RAG context assembly over tenant-scoped content.

Example:
    >>> from hybridrag.domains.search import HybridSearchEngine, Scorer, SearchQuery
    >>> engine = HybridSearchEngine(repositories, embedder, Scorer())
    >>> results = await engine.search(SearchQuery(query="quarterly plan"), principal)
"""

__version__ = "1.0.0"
__all__ = ["__version__"]
