"""Shared fixtures: a temporary store and a deterministic embedder."""

from __future__ import annotations

import re
import zlib
from pathlib import Path

import numpy as np
import pytest

from hybridrag.adapters.sqlite import SQLiteRepository
from hybridrag.domains.embeddings import EmbeddingGenerator, EmbeddingWorker
from hybridrag.domains.entities import EntityService, EntityType, EntityTypeRepository

DIMENSION = 64


class HashingEmbedder:
    """Bag-of-words vectors: each word lands in a crc32-chosen bucket."""

    def __init__(self, dimension: int = DIMENSION) -> None:
        self.dimension = dimension
        self.calls: list[str] = []

    async def embed(self, text: str) -> np.ndarray:
        self.calls.append(text)
        vector = np.zeros(self.dimension, dtype=np.float32)
        for token in re.findall(r"\w+", text.lower()):
            vector[zlib.crc32(token.encode()) % self.dimension] += 1.0
        norm = np.linalg.norm(vector)
        return vector / norm if norm else vector


@pytest.fixture
async def store(tmp_path: Path):
    """Initialized store on a temporary database."""
    repo = SQLiteRepository(tmp_path / "test.db")
    await repo.initialize()
    yield repo
    await repo.close()


@pytest.fixture
def embedder() -> HashingEmbedder:
    return HashingEmbedder()


@pytest.fixture
def repositories(store: SQLiteRepository) -> dict[EntityType, EntityTypeRepository]:
    return {t: EntityTypeRepository(store, t, DIMENSION) for t in EntityType}


@pytest.fixture
def entities(store, repositories) -> EntityService:
    return EntityService(store, repositories)


@pytest.fixture
def generator(store, embedder, repositories) -> EmbeddingGenerator:
    return EmbeddingGenerator(store, embedder, repositories, dimension=DIMENSION)


@pytest.fixture
def worker(store, generator) -> EmbeddingWorker:
    return EmbeddingWorker(
        store,
        generator,
        batch_size=50,
        poll_interval_seconds=0.01,
        max_attempts=3,
        backoff_base_seconds=2.0,
        backoff_max_seconds=60.0,
    )
