"""Tests for engine wiring and startup validation."""

from pathlib import Path

import numpy as np
import pytest

from hybridrag.adapters.sqlite import SQLiteRepository, utcnow
from hybridrag.config import ConfigurationError, ErrorCode, Settings
from hybridrag.container import build_container
from hybridrag.domains.entities import EntityType
from hybridrag.domains.search import Principal, SearchQuery

from .conftest import HashingEmbedder


def _settings(tmp_path: Path, **overrides) -> Settings:
    return Settings(db_path=tmp_path / "engine.db", embedding_dimension=64, **overrides)


async def test_build_container_end_to_end(tmp_path: Path):
    container = await build_container(_settings(tmp_path), embedder=HashingEmbedder())
    try:
        plan = await container.entities.create(EntityType.LIST, "u1", "Quarterly Plan")
        report = await container.worker.run_once()
        results = await container.engine.search(SearchQuery(query="quarterly"), Principal(id="u1"))
        context = await container.context_builder.build_context("quarterly?", Principal(id="u1"))
    finally:
        await container.close()

    assert report.generated == 1
    assert [r.entity_ref for r in results] == [plan.ref]
    assert context.context_count == 1


async def test_search_limits_come_from_settings(tmp_path: Path):
    settings = _settings(tmp_path, search_default_limit=1, search_max_limit=150)
    container = await build_container(settings, embedder=HashingEmbedder())
    try:
        for title in ("Plan A", "Plan B", "Plan C"):
            await container.entities.create(EntityType.LIST, "u1", title)
        defaulted = await container.engine.search(SearchQuery(query="plan"), Principal(id="u1"))
        wide = await container.engine.search(SearchQuery(query="plan", limit=120), Principal(id="u1"))
    finally:
        await container.close()

    assert len(defaulted) == 1
    assert len(wide) == 3


async def test_indexes_reload_from_store(tmp_path: Path):
    settings = _settings(tmp_path)
    first = await build_container(settings, embedder=HashingEmbedder())
    await first.entities.create(EntityType.TAG, "u1", "urgent")
    await first.worker.run_once()
    await first.close()

    second = await build_container(settings, embedder=HashingEmbedder())
    try:
        assert second.repositories[EntityType.TAG].vector_count == 1
        assert await second.sync_indexes() >= 0
    finally:
        await second.close()


async def test_embedder_dimension_must_match(tmp_path: Path):
    with pytest.raises(ConfigurationError) as exc_info:
        await build_container(_settings(tmp_path), embedder=HashingEmbedder(dimension=32))
    assert exc_info.value.code == ErrorCode.CONFIGURATION_DIMENSION_MISMATCH


async def test_stored_vectors_of_other_dimension_refuse_start(tmp_path: Path):
    store = SQLiteRepository(tmp_path / "engine.db")
    await store.initialize()
    async with store.transaction() as tx:
        entity_id = await tx.insert_entity("list", "u1", "Plan", "", "Plan", "private")
        await tx.store_embedding(entity_id, "Plan", np.ones(32, dtype=np.float32), utcnow())
    await store.close()

    with pytest.raises(ConfigurationError) as exc_info:
        await build_container(_settings(tmp_path), embedder=HashingEmbedder())
    assert exc_info.value.details["stored"] == {"list": [32]}


async def test_invalid_settings_refuse_start(tmp_path: Path):
    with pytest.raises(ConfigurationError):
        await build_container(
            _settings(tmp_path, vector_weight=0, keyword_weight=0), embedder=HashingEmbedder()
        )
