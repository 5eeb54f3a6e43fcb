"""
Tests for RAG context assembly.
"""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import AsyncMock

import pytest

from hybridrag.domains.entities import EntityRef, EntityType
from hybridrag.domains.search import Principal, SearchQuery, SearchResult

from .assembler import EMPTY_CONTEXT, PREAMBLE, ContextBuilder, RAGContextAssembler, count_words

NOW = datetime(2026, 3, 1, tzinfo=timezone.utc)


def _result(entity_id: int, snippet_words: int = 47, entity_type: EntityType = EntityType.LIST) -> SearchResult:
    return SearchResult(
        entity_ref=EntityRef(entity_type=entity_type, entity_id=entity_id),
        title=f"T{entity_id}",
        snippet=" ".join(["word"] * snippet_words),
        locator=f"/lists/{entity_id}",
        keyword_score=1.0,
        combined_score=1.0,
        updated_at=NOW,
    )


@pytest.fixture
def assembler() -> RAGContextAssembler:
    return RAGContextAssembler()


def test_count_words() -> None:
    assert count_words("") == 0
    assert count_words("[1] List: Plan\nsome  words") == 5


def test_format_entry() -> None:
    assert RAGContextAssembler.format_entry(2, "Item", "Milk", "two liters") == "[2] Item: Milk\ntwo liters"


def test_budget_admits_exactly_four_fifty_token_entries(assembler: RAGContextAssembler) -> None:
    """Ten 50-token entries under a 200-token budget: sources 1-4, no gaps."""
    results = [_result(i) for i in range(1, 11)]
    assert count_words(assembler.format_entry(1, "List", "T1", results[0].snippet)) == 50

    context = assembler.assemble("what is planned?", results, budget=200)

    assert context.context_count == 4
    assert [s.source_number for s in context.sources] == [1, 2, 3, 4]
    assert [s.entity_id for s in context.sources] == [1, 2, 3, 4]
    assert context.tokens_used == 200
    assert count_words(context.context_text) <= 200


def test_stops_at_first_overflow(assembler: RAGContextAssembler) -> None:
    """A short entry after an oversized one is not pulled forward."""
    results = [_result(1, 10), _result(2, 500), _result(3, 1)]

    context = assembler.assemble("q", results, budget=100)

    assert [s.entity_id for s in context.sources] == [1]
    assert "[2]" not in context.context_text


def test_context_block_layout(assembler: RAGContextAssembler) -> None:
    results = [_result(1, 2), _result(2, 2, EntityType.COMMENT)]

    context = assembler.assemble("When is it due?", results, budget=100)

    assert context.context_text == "[1] List: T1\nword word\n\n[2] Comment: T2\nword word"
    assert context.prompt_text == (
        f"{PREAMBLE}\n\nUser's Context:\n{context.context_text}\n\nUser Question: When is it due?"
    )
    assert context.sources[1].locator == "/lists/2"
    assert context.sources[1].label == "Comment"


def test_empty_results_use_placeholder(assembler: RAGContextAssembler) -> None:
    context = assembler.assemble("anything?", [], budget=100)

    assert context.sources == []
    assert context.context_text == EMPTY_CONTEXT
    assert EMPTY_CONTEXT in context.prompt_text
    assert context.tokens_used == 0


def test_budget_too_small_for_any_entry(assembler: RAGContextAssembler) -> None:
    context = assembler.assemble("q", [_result(1)], budget=10)
    assert context.context_count == 0
    assert context.context_text == EMPTY_CONTEXT


@pytest.mark.parametrize("budget", [10, 50, 120, 1000])
def test_budget_bounds_context_block_and_frame_is_fixed(assembler: RAGContextAssembler, budget: int) -> None:
    question = "what is planned for the launch?"
    results = [_result(i, snippet_words=i * 7) for i in range(1, 8)]

    context = assembler.assemble(question, results, budget=budget)
    empty = assembler.assemble(question, [], budget=budget)

    assert context.tokens_used <= budget
    if context.sources:
        assert count_words(context.context_text) == context.tokens_used
    # Preamble and question cost the same whatever the budget admits
    frame = count_words(empty.prompt_text) - count_words(EMPTY_CONTEXT)
    assert count_words(context.prompt_text) - count_words(context.context_text) == frame
    assert context.context_text.count("\n\n[") == max(context.context_count - 1, 0)


def test_custom_token_counter() -> None:
    assembler = RAGContextAssembler(token_counter=len, preamble="Be brief.")
    context = assembler.assemble("q", [_result(1, 1), _result(2, 1)], budget=20)

    # "[1] List: T1\nword" is 17 characters; adding the second overflows
    assert context.context_count == 1
    assert context.tokens_used == 17
    assert context.prompt_text.startswith("Be brief.\n\n")


def test_to_dict(assembler: RAGContextAssembler) -> None:
    data = assembler.assemble("q", [_result(1, 2)], budget=100).to_dict()

    assert data["context_count"] == 1
    assert data["token_budget"] == 100
    assert data["context_sources"] == [
        {
            "source_number": 1,
            "type": "list",
            "id": 1,
            "label": "List",
            "title": "T1",
            "snippet": "word word",
            "locator": "/lists/1",
        }
    ]
    assert data["prompt"].endswith("User Question: q")


async def test_context_builder_searches_then_assembles(assembler: RAGContextAssembler) -> None:
    engine = AsyncMock()
    engine.search.return_value = [_result(i) for i in range(1, 11)]
    builder = ContextBuilder(engine, assembler, default_budget=200, max_sources=10)
    principal = Principal(id="u1")

    context = await builder.build_context("what is planned?", principal)

    assert context.context_count == 4
    query, passed_principal = engine.search.call_args.args
    assert query == SearchQuery(
        query="what is planned?",
        limit=10,
        entity_types=(EntityType.LIST, EntityType.LIST_ITEM, EntityType.COMMENT),
    )
    assert passed_principal is principal


async def test_context_builder_overrides(assembler: RAGContextAssembler) -> None:
    engine = AsyncMock()
    engine.search.return_value = []
    builder = ContextBuilder(engine, assembler)

    context = await builder.build_context("q", Principal.anonymous(), token_budget=50, max_sources=3)

    assert context.token_budget == 50
    assert engine.search.call_args.args[0].limit == 3
    assert context.context_text == EMPTY_CONTEXT


async def test_context_from_real_search(entities, worker, repositories, embedder) -> None:
    from hybridrag.domains.search import HybridSearchEngine, Scorer

    plan = await entities.create(EntityType.LIST, "u1", "Trip", body="Pack for the mountain trip")
    await entities.create(EntityType.LIST_ITEM, "u1", "Buy mountain boots", parent=plan.ref)
    await entities.create(EntityType.TAG, "u1", "mountain")
    await entities.create(EntityType.LIST, "u2", "Someone else's mountain trip")
    await worker.run_once()

    builder = ContextBuilder(
        HybridSearchEngine(repositories, embedder, Scorer()), RAGContextAssembler(), default_budget=500
    )
    context = await builder.build_context("mountain trip", Principal(id="u1"))

    assert {s.entity_type for s in context.sources} <= {EntityType.LIST, EntityType.LIST_ITEM}
    assert {s.title for s in context.sources} == {"Trip", "Buy mountain boots (in Trip)"}
    assert [s.source_number for s in context.sources] == list(range(1, context.context_count + 1))
