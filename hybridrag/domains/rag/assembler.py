"""
RAG Context Assembler - Numbered, attributable, budget-bounded context blocks.

The token budget bounds the context block: the numbered entries joined
together. Entries are taken in rank order and assembly stops at the first
entry that would overflow the budget, so entries are never cut mid-way and
source numbers run 1..N without gaps. The preamble and the question are a
fixed frame around the block.

This module never calls a language model; the caller injects ``prompt_text``
into its own request and renders each source's ``locator`` as a link.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING

from hybridrag.domains.entities import EntityType, kind_for
from hybridrag.domains.search import Principal, SearchQuery, SearchResult

from .models import ContextSource, RAGContext

if TYPE_CHECKING:
    from hybridrag.domains.search import SearchEngine

logger = logging.getLogger(__name__)

__all__ = [
    "ContextBuilder",
    "EMPTY_CONTEXT",
    "PREAMBLE",
    "RAGContextAssembler",
    "TokenCounter",
    "count_words",
]

TokenCounter = Callable[[str], int]

ENTRY_SEPARATOR = "\n\n"
EMPTY_CONTEXT = "No relevant context found for this query."

PREAMBLE = """You are a helpful assistant for a task and list management application.
You have access to the user's lists, items, and comments.

When answering questions, prioritize using the context from the user's lists and items.
If citing information from the context, reference the source number (e.g., "[Source 1]").

If the context doesn't contain relevant information, say so and provide general advice."""


def count_words(text: str) -> int:
    """Whitespace-delimited word count."""
    return len(text.split())


class RAGContextAssembler:
    """
    Turns ranked search results into a prompt-ready context.

    Example:
        >>> assembler = RAGContextAssembler()
        >>> context = assembler.assemble("what is due?", results, budget=200)
        >>> [s.source_number for s in context.sources]
        [1, 2, 3]
    """

    def __init__(
        self,
        token_counter: TokenCounter = count_words,
        preamble: str = PREAMBLE,
    ) -> None:
        self._count = token_counter
        self._preamble = preamble

    @staticmethod
    def format_entry(source_number: int, label: str, title: str, snippet: str) -> str:
        return f"[{source_number}] {label}: {title}\n{snippet}"

    def assemble(
        self,
        query: str,
        results: Sequence[SearchResult],
        budget: int,
    ) -> RAGContext:
        """
        Build the context for ``query`` from ``results`` in rank order.

        Args:
            query: The user's question
            results: Ranked search results
            budget: Maximum tokens of the context block

        Returns:
            Context whose block fits ``budget`` tokens
        """
        entries: list[str] = []
        sources: list[ContextSource] = []
        used = 0

        for result in results:
            number = len(sources) + 1
            label = kind_for(result.entity_type).label
            entry = self.format_entry(number, label, result.title, result.snippet)
            cost = self._count(ENTRY_SEPARATOR.join([*entries, entry]))
            if cost > budget:
                break
            entries.append(entry)
            used = cost
            sources.append(
                ContextSource(
                    source_number=number,
                    entity_type=result.entity_type,
                    entity_id=result.entity_id,
                    label=label,
                    title=result.title,
                    snippet=result.snippet,
                    locator=result.locator,
                )
            )

        if len(sources) < len(results):
            logger.debug(
                "Context budget %d reached: kept %d of %d results", budget, len(sources), len(results)
            )

        context_text = ENTRY_SEPARATOR.join(entries) if entries else EMPTY_CONTEXT
        prompt_text = (
            f"{self._preamble}\n\n"
            f"User's Context:\n{context_text}\n\n"
            f"User Question: {query}"
        )
        return RAGContext(
            query=query,
            sources=sources,
            context_text=context_text,
            prompt_text=prompt_text,
            token_budget=budget,
            tokens_used=used,
        )


class ContextBuilder:
    """
    Search, then assemble: the RAG entry point for chat orchestrators.

    Example:
        >>> builder = ContextBuilder(engine, RAGContextAssembler())
        >>> context = await builder.build_context("what is due?", principal, token_budget=500)
    """

    DEFAULT_ENTITY_TYPES = (EntityType.LIST, EntityType.LIST_ITEM, EntityType.COMMENT)

    def __init__(
        self,
        engine: SearchEngine,
        assembler: RAGContextAssembler,
        default_budget: int = 1500,
        max_sources: int = 5,
        entity_types: Sequence[EntityType] = DEFAULT_ENTITY_TYPES,
    ) -> None:
        self._engine = engine
        self._assembler = assembler
        self.default_budget = default_budget
        self.max_sources = max_sources
        self.entity_types = tuple(entity_types)

    async def build_context(
        self,
        query: str,
        principal: Principal,
        token_budget: int | None = None,
        max_sources: int | None = None,
    ) -> RAGContext:
        """
        Retrieve the most relevant visible content and assemble it.

        Args:
            query: The user's question
            principal: Requesting principal (drives visibility)
            token_budget: Context block budget (default: configured budget)
            max_sources: Search results to consider (default: configured)
        """
        search_query = SearchQuery(
            query=query,
            limit=max_sources or self.max_sources,
            entity_types=self.entity_types,
        )
        results = await self._engine.search(search_query, principal)
        budget = self.default_budget if token_budget is None else token_budget
        context = self._assembler.assemble(query, results, budget)
        logger.info(
            "RAG context: query='%s' -> %d sources (%d/%d tokens)",
            query[:50],
            context.context_count,
            context.tokens_used,
            budget,
        )
        return context
