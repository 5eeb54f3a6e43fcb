"""
API Dependencies - Dependency injection for FastAPI routes.

Provides the engine container built at startup and its components.
"""

from __future__ import annotations

import asyncio
import logging

from hybridrag.config import HybridRAGError, Settings, get_settings
from hybridrag.container import EngineContainer, build_container
from hybridrag.domains.rag import ContextBuilder
from hybridrag.domains.search import HybridSearchEngine, PrincipalDirectory

logger = logging.getLogger(__name__)

_container: EngineContainer | None = None
_sync_task: asyncio.Task | None = None


def get_container() -> EngineContainer:
    """Get the engine container initialized at startup."""
    if _container is None:
        raise RuntimeError("Services not initialized; call init_services() first")
    return _container


def get_search_engine() -> HybridSearchEngine:
    return get_container().engine


def get_context_builder() -> ContextBuilder:
    return get_container().context_builder


def get_principal_directory() -> PrincipalDirectory:
    return get_container().principals


async def _sync_indexes_forever(container: EngineContainer, interval: float) -> None:
    """Keep in-memory vector indexes current with vectors written by the worker process."""
    while True:
        await asyncio.sleep(interval)
        try:
            synced = await container.sync_indexes()
        except HybridRAGError as e:
            logger.warning("Index sync failed: %s", e.message)
            continue
        if synced:
            logger.info("Index sync: %d new vectors", synced)


async def init_services(settings: Settings | None = None) -> None:
    """
    Initialize services on startup.

    This should be called from the FastAPI lifespan handler.

    Raises:
        ConfigurationError: the engine cannot start with these settings
    """
    global _container, _sync_task
    settings = settings or get_settings()
    _container = await build_container(settings)

    if settings.index_sync_interval_seconds > 0:
        _sync_task = asyncio.create_task(
            _sync_indexes_forever(_container, settings.index_sync_interval_seconds)
        )


async def cleanup_services() -> None:
    """Cleanup services on shutdown."""
    global _container, _sync_task
    if _sync_task is not None:
        _sync_task.cancel()
        await asyncio.gather(_sync_task, return_exceptions=True)
        _sync_task = None
    if _container is not None:
        await _container.close()
        _container = None
