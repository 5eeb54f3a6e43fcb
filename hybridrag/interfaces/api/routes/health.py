"""
Health Routes - System health and status endpoints.
"""

from typing import Any

from fastapi import APIRouter, Depends

from hybridrag import __version__
from hybridrag.container import EngineContainer
from hybridrag.interfaces.api.deps import get_container

router = APIRouter()


@router.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint."""
    return {"status": "healthy", "service": "hybridrag"}


@router.get("/api")
async def api_info() -> dict[str, Any]:
    """API info endpoint."""
    return {
        "name": "HybridRAG API",
        "version": __version__,
        "description": "Access-controlled hybrid search and RAG context assembly",
        "docs": "/docs",
    }


@router.get("/api/stats")
async def stats(container: EngineContainer = Depends(get_container)) -> dict[str, Any]:
    """Entity, staleness, job queue and index statistics."""
    store_stats = await container.store.get_stats()
    return {
        **store_stats,
        "indexes": {
            entity_type.value: repository.vector_count
            for entity_type, repository in container.repositories.items()
        },
        "query_cache": container.cache.stats(),
    }
