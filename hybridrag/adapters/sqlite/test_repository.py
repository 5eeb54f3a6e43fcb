"""Tests for SQLite Repository."""

from datetime import datetime, timedelta, timezone

import numpy as np
import pytest

from .repository import SQLiteRepository, build_match_query

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


async def _insert(repo: SQLiteRepository, entity_type: str = "list", title: str = "Plan", **kwargs) -> int:
    async with repo.transaction() as tx:
        return await tx.insert_entity(
            entity_type=entity_type,
            owner_id=kwargs.pop("owner_id", "u1"),
            title=title,
            body=kwargs.pop("body", ""),
            embedding_text=kwargs.pop("embedding_text", title),
            visibility=kwargs.pop("visibility", "private"),
            **kwargs,
        )


async def test_initialize_creates_tables(store: SQLiteRepository):
    """Test that initialize creates all required tables."""
    conn = await store._get_reader()
    cursor = await conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
    tables = {row[0] for row in await cursor.fetchall()}

    assert {"entities", "entities_fts", "memberships", "collaborators", "embedding_jobs"} <= tables


async def test_initialize_is_idempotent(store: SQLiteRepository):
    await store.initialize()
    assert await store.get_entity_count() == 0


def test_build_match_query():
    assert build_match_query("Quarterly plan, quarterly!") == '"quarterly"* OR "plan"*'
    assert build_match_query('say "hi" OR NOT') == '"say"* OR "hi"* OR "or"* OR "not"*'
    assert build_match_query("?!  ...") is None


async def test_insert_and_get_entity(store: SQLiteRepository):
    """A new entity has no vector and is stale."""
    entity_id = await _insert(store, title="Groceries", body="milk and eggs", tenant_id="acme")

    row = await store.get_entity(entity_id, with_vector=True)
    assert row is not None
    assert row["title"] == "Groceries"
    assert row["tenant_id"] == "acme"
    assert row["stale"] == 1
    assert row["vector"] is None
    assert row["embedding_generated_at"] is None
    assert row["collaborator_ids"] == []


async def test_get_missing_entity(store: SQLiteRepository):
    assert await store.get_entity(999) is None


async def test_search_fts_filters_by_type(store: SQLiteRepository):
    """Test full-text search."""
    list_id = await _insert(store, "list", "Quarterly plan")
    item_id = await _insert(store, "list_item", "Quarterly numbers", parent_id=list_id, root_id=list_id)
    await _insert(store, "list", "Shopping")

    lists = await store.search_fts("quarterly", entity_type="list")
    items = await store.search_fts("quarterly", entity_type="list_item")

    assert [r["id"] for r in lists] == [list_id]
    assert [r["id"] for r in items] == [item_id]
    assert lists[0]["score"] < 0
    assert "Quarterly" in lists[0]["snippet"]


async def test_search_fts_stems_and_prefixes(store: SQLiteRepository):
    entity_id = await _insert(store, title="Planning sessions")
    assert [r["id"] for r in await store.search_fts("plan", entity_type="list")] == [entity_id]
    assert await store.search_fts("%%%", entity_type="list") == []


async def test_fts_follows_content_updates(store: SQLiteRepository):
    entity_id = await _insert(store, title="Alpha")
    async with store.transaction() as tx:
        await tx.update_content(entity_id, "Beta", "", "Beta")

    assert await store.search_fts("alpha", entity_type="list") == []
    assert [r["id"] for r in await store.search_fts("beta", entity_type="list")] == [entity_id]


async def test_transaction_rolls_back_on_error(store: SQLiteRepository):
    with pytest.raises(RuntimeError):
        async with store.transaction() as tx:
            await tx.insert_entity("list", "u1", "Doomed", "", "Doomed", "private")
            raise RuntimeError("abort")

    assert await store.get_entity_count() == 0


async def test_enqueue_job_deduplicates(store: SQLiteRepository):
    entity_id = await _insert(store)
    async with store.transaction() as tx:
        await tx.enqueue_job("list", entity_id, now=NOW)
        await tx.enqueue_job("list", entity_id, now=NOW + timedelta(minutes=5))

    assert await store.get_job_counts() == {"pending": 1}
    job = await store.get_job(entity_id)
    assert job["available_at"] == NOW.isoformat()


async def test_enqueue_while_running_requeues(store: SQLiteRepository):
    """A job re-published mid-flight goes back to pending and survives completion."""
    entity_id = await _insert(store)
    async with store.transaction() as tx:
        await tx.enqueue_job("list", entity_id, now=NOW)
        [job] = await tx.claim_jobs(10, NOW)
    assert job["attempts"] == 1

    async with store.transaction() as tx:
        await tx.enqueue_job("list", entity_id, now=NOW)
        await tx.complete_job(job["id"])

    row = await store.get_job(entity_id)
    assert row["status"] == "pending"
    assert row["attempts"] == 0


async def test_claim_respects_available_at(store: SQLiteRepository):
    entity_id = await _insert(store)
    async with store.transaction() as tx:
        await tx.enqueue_job("list", entity_id, now=NOW + timedelta(hours=1))
        assert await tx.claim_jobs(10, NOW) == []
        assert len(await tx.claim_jobs(10, NOW + timedelta(hours=2))) == 1


async def test_reschedule_and_fail_job(store: SQLiteRepository):
    entity_id = await _insert(store)
    async with store.transaction() as tx:
        await tx.enqueue_job("list", entity_id, now=NOW)
        [job] = await tx.claim_jobs(10, NOW)
        await tx.reschedule_job(job["id"], NOW + timedelta(seconds=30), "timeout")

    row = await store.get_job(entity_id)
    assert row["status"] == "pending"
    assert row["last_error"] == "timeout"

    async with store.transaction() as tx:
        [job] = await tx.claim_jobs(10, NOW + timedelta(minutes=1))
        await tx.fail_job(job["id"], "gave up")

    row = await store.get_job(entity_id)
    assert row["status"] == "failed"
    assert row["attempts"] == 2


async def test_store_embedding_is_conditional(store: SQLiteRepository):
    """Vectors only land when the embedded text is still current."""
    entity_id = await _insert(store, title="Alpha", embedding_text="Alpha")
    vector = np.ones(8, dtype=np.float32)

    async with store.transaction() as tx:
        assert not await tx.store_embedding(entity_id, "Outdated", vector, NOW)
        assert await tx.store_embedding(entity_id, "Alpha", vector, NOW)

    row = await store.get_entity(entity_id, with_vector=True)
    assert row["stale"] == 0
    assert row["embedding_dim"] == 8
    assert row["embedding_generated_at"] == NOW.isoformat()
    np.testing.assert_array_equal(row["vector"], vector)


async def test_load_vectors_with_watermark(store: SQLiteRepository):
    first = await _insert(store, title="One")
    second = await _insert(store, title="Two")
    async with store.transaction() as tx:
        await tx.store_embedding(first, "One", np.ones(4), NOW)
        await tx.store_embedding(second, "Two", np.ones(4), NOW + timedelta(minutes=1))

    ids, vectors, newest = await store.load_vectors("list")
    assert ids == [first, second]
    assert vectors[0].shape == (4,)
    assert newest == ((NOW + timedelta(minutes=1)).isoformat(), second)

    ids, _, after = await store.load_vectors("list", generated_after=newest)
    assert ids == []
    assert after is None

    # Same timestamp as the watermark but a higher id is still new
    third = await _insert(store, title="Three")
    async with store.transaction() as tx:
        await tx.store_embedding(third, "Three", np.ones(4), NOW + timedelta(minutes=1))
    ids, _, _ = await store.load_vectors("list", generated_after=newest)
    assert ids == [third]

    ids, _, _ = await store.load_vectors("list", generated_after=(NOW.isoformat(), first))
    assert ids == [second, third]
    assert (await store.load_vectors("tag"))[0] == []


async def test_delete_entities_removes_jobs_and_fts(store: SQLiteRepository):
    list_id = await _insert(store, title="Garden")
    item_id = await _insert(store, "list_item", "Garden hose", parent_id=list_id, root_id=list_id)
    async with store.transaction() as tx:
        await tx.enqueue_job("list_item", item_id)
        await tx.add_collaborator(list_id, "u2")
        assert await tx.descendant_ids(list_id) == [item_id]
        deleted = await tx.delete_entities([list_id, item_id])

    assert sorted(deleted) == [("list", list_id), ("list_item", item_id)]
    assert await store.get_job(item_id) is None
    assert await store.search_fts("garden", entity_type="list") == []
    assert await store.fetch_entities([list_id, item_id]) == []


async def test_update_access_cascades_to_root(store: SQLiteRepository):
    list_id = await _insert(store, title="Shared")
    async with store.transaction() as tx:
        await tx.set_root(list_id, list_id)
    item_id = await _insert(store, "list_item", "Thing", parent_id=list_id, root_id=list_id)

    async with store.transaction() as tx:
        updated = await tx.update_access(list_id, "acme", "public_read")

    assert updated == 2
    for row in await store.fetch_entities([list_id, item_id]):
        assert row["tenant_id"] == "acme"
        assert row["visibility"] == "public_read"


async def test_collaborators_attach_to_governed_rows(store: SQLiteRepository):
    list_id = await _insert(store, title="Trip")
    async with store.transaction() as tx:
        await tx.set_root(list_id, list_id)
    item_id = await _insert(store, "list_item", "Tickets", parent_id=list_id, root_id=list_id)
    async with store.transaction() as tx:
        await tx.add_collaborator(list_id, "u2")
        await tx.add_collaborator(list_id, "u3")

    [item] = await store.fetch_entities([item_id], entity_type="list_item")
    assert sorted(item["collaborator_ids"]) == ["u2", "u3"]
    assert item["parent_title"] == "Trip"

    async with store.transaction() as tx:
        await tx.remove_collaborator(list_id, "u3")
    [item] = await store.fetch_entities([item_id])
    assert item["collaborator_ids"] == ["u2"]


async def test_memberships(store: SQLiteRepository):
    async with store.transaction() as tx:
        await tx.upsert_membership("u1", "acme")
        await tx.upsert_membership("u1", "beta", status="suspended")
        await tx.upsert_membership("u1", "acme", role="admin")

    rows = await store.get_memberships("u1")
    assert rows == [
        {"tenant_id": "acme", "role": "admin", "status": "active"},
        {"tenant_id": "beta", "role": "member", "status": "suspended"},
    ]


async def test_enqueue_backfill(store: SQLiteRepository):
    fresh = await _insert(store, title="Fresh")
    missing = await _insert(store, title="Missing")
    async with store.transaction() as tx:
        await tx.store_embedding(fresh, "Fresh", np.ones(4), NOW - timedelta(days=60))

    async with store.transaction() as tx:
        assert await tx.enqueue_backfill(None, NOW) == 1
    assert await store.get_job(missing) is not None
    assert await store.get_job(fresh) is None

    async with store.transaction() as tx:
        await tx.enqueue_backfill(NOW - timedelta(days=30), NOW)
    assert await store.get_job(fresh) is not None


async def test_embedding_dimensions_and_stats(store: SQLiteRepository):
    first = await _insert(store, title="One")
    await _insert(store, "tag", "urgent")
    async with store.transaction() as tx:
        await tx.store_embedding(first, "One", np.ones(4), NOW)
        await tx.enqueue_job("tag", 2)

    assert await store.embedding_dimensions() == {"list": [4]}
    stats = await store.get_stats()
    assert stats["entities"]["list"] == {"total": 1, "stale": 0, "without_vector": 0}
    assert stats["entities"]["tag"] == {"total": 1, "stale": 1, "without_vector": 1}
    assert stats["jobs"] == {"pending": 1}
