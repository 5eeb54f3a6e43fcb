"""
Engine Container - Wires the engine's components from settings.

Startup is the only place configuration errors surface: settings are
validated, the embedding function's dimension is checked against the
configured D, and stored vectors of any other dimension refuse the start.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from hybridrag.adapters.embeddings import OllamaEmbedder, SentenceTransformerEmbedder
from hybridrag.adapters.sqlite import SQLiteRepository
from hybridrag.config import ConfigurationError, ErrorCode, Settings, get_settings
from hybridrag.domains.embeddings import Embedder, EmbeddingGenerator, EmbeddingWorker
from hybridrag.domains.entities import EntityService, EntityType, EntityTypeRepository
from hybridrag.domains.rag import ContextBuilder, RAGContextAssembler
from hybridrag.domains.search import (
    AccessFilter,
    HybridSearchEngine,
    PrincipalDirectory,
    QueryVectorCache,
    Scorer,
)

logger = logging.getLogger(__name__)

__all__ = ["EngineContainer", "build_container", "create_embedder"]


@dataclass
class EngineContainer:
    """Every long-lived engine component, sharing one store."""

    settings: Settings
    store: SQLiteRepository
    embedder: Embedder
    repositories: dict[EntityType, EntityTypeRepository]
    entities: EntityService
    principals: PrincipalDirectory
    generator: EmbeddingGenerator
    worker: EmbeddingWorker
    engine: HybridSearchEngine
    context_builder: ContextBuilder
    cache: QueryVectorCache = field(default_factory=QueryVectorCache)

    async def load_indexes(self) -> int:
        """Rebuild every per-type vector index from the store."""
        total = 0
        for repository in self.repositories.values():
            total += await repository.load_vectors()
        logger.info("Vector indexes loaded: %d vectors", total)
        return total

    async def sync_indexes(self) -> int:
        """Pull vectors written by other processes since the last load/sync."""
        total = 0
        for repository in self.repositories.values():
            total += await repository.sync_vectors()
        return total

    async def close(self) -> None:
        close = getattr(self.embedder, "close", None)
        if close is not None:
            await close()
        await self.store.close()


def create_embedder(settings: Settings) -> Embedder:
    """Embedding function for the configured provider."""
    if settings.embedding_provider == "ollama":
        return OllamaEmbedder(
            model=settings.embedding_model,
            dimension=settings.embedding_dimension,
            base_url=settings.ollama_url,
            timeout_seconds=settings.embedding_timeout_seconds,
        )
    return SentenceTransformerEmbedder(
        model_name=settings.embedding_model,
        timeout_seconds=settings.embedding_timeout_seconds,
    )


async def _check_dimensions(settings: Settings, store: SQLiteRepository, embedder: Embedder) -> None:
    expected = settings.embedding_dimension
    if embedder.dimension != expected:
        raise ConfigurationError(
            "Embedding function dimension differs from embedding_dimension",
            {"expected": expected, "actual": embedder.dimension},
            code=ErrorCode.CONFIGURATION_DIMENSION_MISMATCH,
        )
    stored = await store.embedding_dimensions()
    mismatched = {
        entity_type: dims for entity_type, dims in stored.items() if set(dims) != {expected}
    }
    if mismatched:
        raise ConfigurationError(
            "Stored vectors have a different dimension; re-embed before starting",
            {"expected": expected, "stored": mismatched},
            code=ErrorCode.CONFIGURATION_DIMENSION_MISMATCH,
        )


async def build_container(
    settings: Settings | None = None,
    embedder: Embedder | None = None,
    load_indexes: bool = True,
) -> EngineContainer:
    """
    Build and validate the engine.

    Args:
        settings: Settings (default: get_settings())
        embedder: Embedding function (default: from settings)
        load_indexes: Load stored vectors into the per-type indexes

    Raises:
        ConfigurationError: invalid settings or mixed vector dimensions
    """
    settings = settings or get_settings()
    settings.validate_engine()

    store = SQLiteRepository(settings.db_path)
    await store.initialize()
    try:
        embedder = embedder or create_embedder(settings)
        await _check_dimensions(settings, store, embedder)
    except BaseException:
        await store.close()
        raise

    dimension = settings.embedding_dimension
    repositories = {
        entity_type: EntityTypeRepository(store, entity_type, dimension)
        for entity_type in EntityType
    }
    cache = QueryVectorCache(
        max_size=settings.query_cache_size,
        ttl_seconds=settings.query_cache_ttl_seconds,
    )
    generator = EmbeddingGenerator(
        store,
        embedder,
        repositories,
        dimension=dimension,
        max_chars=settings.embedding_max_chars,
    )
    engine = HybridSearchEngine(
        repositories,
        embedder,
        Scorer(
            vector_weight=settings.vector_weight,
            keyword_weight=settings.keyword_weight,
            recency_boost_max=settings.recency_boost_max,
            recency_half_life_days=settings.recency_half_life_days,
            type_priority=settings.type_priority_order,
        ),
        access_filter=AccessFilter(),
        cache=cache,
        fanout_multiplier=settings.search_fanout_multiplier,
        timeout_seconds=settings.search_timeout_seconds,
        default_limit=settings.search_default_limit,
        max_limit=settings.search_max_limit,
        embedding_max_chars=settings.embedding_max_chars,
        model_name=settings.embedding_model,
    )
    container = EngineContainer(
        settings=settings,
        store=store,
        embedder=embedder,
        repositories=repositories,
        entities=EntityService(store, repositories),
        principals=PrincipalDirectory(store),
        generator=generator,
        worker=EmbeddingWorker(
            store,
            generator,
            batch_size=settings.worker_batch_size,
            poll_interval_seconds=settings.worker_poll_interval_seconds,
            max_attempts=settings.worker_max_attempts,
            backoff_base_seconds=settings.worker_backoff_base_seconds,
            backoff_max_seconds=settings.worker_backoff_max_seconds,
            staleness_max_age_days=settings.staleness_max_age_days,
        ),
        engine=engine,
        context_builder=ContextBuilder(
            engine,
            RAGContextAssembler(),
            default_budget=settings.rag_token_budget,
            max_sources=settings.rag_max_sources,
        ),
        cache=cache,
    )
    if load_indexes:
        await container.load_indexes()
    return container
