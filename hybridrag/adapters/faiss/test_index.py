"""Tests for the FAISS index."""

import numpy as np
import pytest

from hybridrag.config import ConfigurationError, ErrorCode

from .index import FAISSIndex


def _unit(*values: float) -> np.ndarray:
    return np.asarray(values, dtype=np.float32)


@pytest.fixture
async def index() -> FAISSIndex:
    index = FAISSIndex(dimension=3)
    await index.upsert(
        [10, 20, 30],
        np.stack([_unit(1, 0, 0), _unit(0, 1, 0), _unit(1, 1, 0)]),
    )
    return index


async def test_search_orders_by_similarity(index: FAISSIndex):
    results = await index.search(_unit(1, 0, 0), k=3)

    assert [r["id"] for r in results] == [10, 30, 20]
    assert results[0]["similarity"] == pytest.approx(1.0)
    assert results[1]["similarity"] == pytest.approx(np.sqrt(0.5))
    assert results[2]["similarity"] == pytest.approx(0.0)


async def test_search_caps_k_at_size(index: FAISSIndex):
    assert len(await index.search(_unit(0, 1, 0), k=50)) == 3


async def test_upsert_replaces_vector(index: FAISSIndex):
    await index.upsert([20], _unit(1, 0, 0))

    assert index.size == 3
    top_two = {r["id"] for r in await index.search(_unit(1, 0, 0), k=2)}
    assert top_two == {10, 20}


async def test_remove(index: FAISSIndex):
    assert await index.remove([20, 999]) == 1
    assert index.size == 2
    assert 20 not in {r["id"] for r in await index.search(_unit(0, 1, 0), k=5)}
    assert await index.remove([]) == 0


async def test_rebuild(index: FAISSIndex):
    await index.rebuild([1], [_unit(0, 0, 1)])
    assert index.size == 1
    assert (await index.search(_unit(0, 0, 1), k=5))[0]["id"] == 1

    await index.rebuild([], [])
    assert index.size == 0
    assert await index.search(_unit(0, 0, 1), k=5) == []


async def test_dimension_mismatch(index: FAISSIndex):
    with pytest.raises(ConfigurationError) as exc_info:
        await index.upsert([40], np.ones(4, dtype=np.float32))
    assert exc_info.value.code == ErrorCode.CONFIGURATION_DIMENSION_MISMATCH


async def test_inputs_are_not_normalized_in_place(index: FAISSIndex):
    query = _unit(3, 4, 0)
    stored = np.stack([_unit(0, 0, 2)])

    await index.search(query, k=1)
    await index.upsert([40], stored)

    np.testing.assert_array_equal(query, _unit(3, 4, 0))
    np.testing.assert_array_equal(stored, np.stack([_unit(0, 0, 2)]))
