"""
Hybrid Search Engine - Combines vector and keyword search across entity types.

Features:
- Per-type FAISS vector search and SQLite FTS5 keyword search, all in parallel
- One shared query embedding (cached), awaited only by vector sub-queries
- Access filter applied to every candidate before any scoring
- Weighted score combination with recency boost and a total tie-break order
- Overall deadline: late sub-queries are dropped, never waited on
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime

import numpy as np

from hybridrag.adapters.sqlite import utcnow
from hybridrag.config import EmbeddingError
from hybridrag.domains.embeddings import Embedder
from hybridrag.domains.entities import (
    EntityRepository,
    EntityType,
    SearchableEntity,
    kind_for,
)

from .access import AccessFilter, Principal
from .cache import QueryVectorCache
from .models import SearchOutcome, SearchQuery, SearchResult
from .scoring import Scorer

logger = logging.getLogger(__name__)

__all__ = ["HybridSearchEngine", "excerpt"]

SNIPPET_CHARS = 200


def excerpt(text: str, max_chars: int = SNIPPET_CHARS) -> str:
    """Whitespace-collapsed prefix of ``text``, ellipsized past ``max_chars``."""
    flat = " ".join(text.split())
    if len(flat) <= max_chars:
        return flat
    return flat[: max_chars - 3].rstrip() + "..."


@dataclass
class _Hit:
    vector_score: float | None = None
    raw_keyword: float | None = None
    snippet: str = ""


@dataclass
class _Candidate:
    entity: SearchableEntity
    hit: _Hit


class HybridSearchEngine:
    """
    Hybrid search combining vector and keyword approaches.

    Example:
        >>> engine = HybridSearchEngine(repositories, embedder, Scorer())
        >>> results = await engine.search(SearchQuery(query="quarterly"), principal)
    """

    def __init__(
        self,
        repositories: Mapping[EntityType, EntityRepository],
        embedder: Embedder | None,
        scorer: Scorer,
        access_filter: AccessFilter | None = None,
        cache: QueryVectorCache | None = None,
        fanout_multiplier: int = 3,
        timeout_seconds: float = 5.0,
        default_limit: int = 20,
        max_limit: int = 100,
        embedding_max_chars: int = 8000,
        model_name: str = "",
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """
        Initialize hybrid search engine.

        Args:
            repositories: One repository per searchable entity type
            embedder: Query embedding function (None for lexical-only search)
            scorer: Score combination and ordering
            access_filter: Visibility filter (default: AccessFilter())
            cache: Query vector cache
            fanout_multiplier: Per-sub-query cap = limit * multiplier
            timeout_seconds: Overall deadline for the sub-queries of one search
            default_limit: Result count when the query names none
            max_limit: Hard cap on result count
            embedding_max_chars: Truncation budget for the query text
            model_name: Embedding model name, part of the cache key
            clock: Source of "now" for recency
        """
        self._repositories = dict(repositories)
        self._embedder = embedder
        self._scorer = scorer
        self._access = access_filter or AccessFilter()
        self._cache = cache
        self._fanout_multiplier = fanout_multiplier
        self._timeout = timeout_seconds
        self._default_limit = default_limit
        self._max_limit = max_limit
        self._max_chars = embedding_max_chars
        self._model_name = model_name
        self._clock = clock

    async def search(self, query: SearchQuery, principal: Principal) -> list[SearchResult]:
        """
        Execute hybrid search.

        Returns:
            Results visible to ``principal``, best first, at most the
            resolved limit
        """
        outcome = await self.execute(query, principal)
        return outcome.results

    async def execute(self, query: SearchQuery, principal: Principal) -> SearchOutcome:
        """Execute hybrid search, reporting any degradation."""
        limit = min(query.limit or self._default_limit, self._max_limit)
        fanout = limit * self._fanout_multiplier
        types = self._resolve_types(query.entity_types)
        outcome = SearchOutcome()
        if not types:
            return outcome

        vector_types = [t for t in types if self._repositories[t].has_vectors()]
        embed_task: asyncio.Task | None = None
        if vector_types and self._embedder is not None:
            embed_task = asyncio.create_task(self._embed_query(self._embedder, query.query))

        keyword_tasks = {
            t: asyncio.create_task(self._repositories[t].keyword_search(query.query, fanout))
            for t in types
        }
        vector_tasks: dict[EntityType, asyncio.Task] = {}
        if embed_task is not None:
            vector_tasks = {
                t: asyncio.create_task(
                    self._vector_hits(self._repositories[t], embed_task, fanout)
                )
                for t in vector_types
            }

        all_tasks = [*keyword_tasks.values(), *vector_tasks.values()]
        try:
            _, pending = await asyncio.wait(all_tasks, timeout=self._timeout)
        finally:
            for task in all_tasks:
                if not task.done():
                    task.cancel()
            if embed_task is not None:
                self._settle_embedding(embed_task)
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        hits_by_type: dict[EntityType, dict[int, _Hit]] = {}
        for entity_type in types:
            hits: dict[int, _Hit] = {}
            keyword_task = keyword_tasks[entity_type]
            if keyword_task.cancelled():
                outcome.timed_out.append(entity_type)
                logger.warning("Keyword search for %s missed the deadline", entity_type.value)
            else:
                for entity_id, raw, snippet in keyword_task.result():
                    hits[entity_id] = _Hit(raw_keyword=raw, snippet=snippet)

            if entity_type in vector_types:
                vector_task = vector_tasks.get(entity_type)
                vector_hits = None
                if vector_task is not None and not vector_task.cancelled():
                    vector_hits = vector_task.result()
                if vector_hits is None:
                    outcome.lexical_only.append(entity_type)
                else:
                    for entity_id, score in vector_hits:
                        hits.setdefault(entity_id, _Hit()).vector_score = score
            hits_by_type[entity_type] = hits

        candidates = await self._hydrate(hits_by_type, principal)
        outcome.results = self._rank(candidates, limit)

        logger.info(
            "Hybrid search: query='%s' -> %d results (candidates=%d, vector=%d, keyword=%d%s)",
            query.query[:50],
            len(outcome.results),
            len(candidates),
            sum(1 for c in candidates if c.hit.vector_score is not None),
            sum(1 for c in candidates if c.hit.raw_keyword is not None),
            ", degraded" if outcome.degraded else "",
        )
        return outcome

    def _resolve_types(self, requested: tuple[EntityType, ...] | None) -> list[EntityType]:
        wanted = set(requested) if requested else set(self._repositories)
        types = [t for t in self._repositories if t in wanted]
        return sorted(types, key=lambda t: (self._scorer.type_rank(t), t.value))

    async def _embed_query(self, embedder: Embedder, text: str) -> np.ndarray:
        key = QueryVectorCache.generate_key(text, self._model_name)
        if self._cache is not None:
            cached = await self._cache.get(key)
            if cached is not None:
                return cached

        try:
            raw = await embedder.embed(text[: self._max_chars])
        except EmbeddingError as e:
            logger.warning("Query embedding failed (%s); falling back to keyword search", e.code.value)
            raise

        vector = np.asarray(raw, dtype=np.float32).reshape(-1)
        if self._cache is not None:
            await self._cache.set(key, vector)
        return vector

    @staticmethod
    async def _vector_hits(
        repository: EntityRepository,
        embed_task: asyncio.Task,
        fanout: int,
    ) -> list[tuple[int, float]] | None:
        """Vector sub-query; None when the query could not be embedded."""
        try:
            query_vector = await asyncio.shield(embed_task)
        except EmbeddingError:
            return None
        return await repository.vector_search(query_vector, fanout)

    @staticmethod
    def _settle_embedding(embed_task: asyncio.Task) -> None:
        if not embed_task.done():
            embed_task.cancel()
        elif not embed_task.cancelled():
            # Mark a failure as retrieved; it was already reported as degradation
            embed_task.exception()

    async def _hydrate(
        self,
        hits_by_type: dict[EntityType, dict[int, _Hit]],
        principal: Principal,
    ) -> list[_Candidate]:
        """Load candidate entities and drop deleted or invisible ones."""
        types = [t for t, hits in hits_by_type.items() if hits]
        fetched = await asyncio.gather(
            *(self._repositories[t].fetch(list(hits_by_type[t])) for t in types)
        )
        candidates: list[_Candidate] = []
        for entity_type, entities in zip(types, fetched):
            hits = hits_by_type[entity_type]
            for entity in self._access.apply(entities, principal):
                candidates.append(_Candidate(entity=entity, hit=hits[entity.id]))
        return candidates

    def _rank(self, candidates: list[_Candidate], limit: int) -> list[SearchResult]:
        now = self._clock()
        # Only visible candidates set the lexical scale
        max_raw = max(
            (c.hit.raw_keyword for c in candidates if c.hit.raw_keyword is not None),
            default=0.0,
        )

        results: list[SearchResult] = []
        for candidate in candidates:
            entity, hit = candidate.entity, candidate.hit
            keyword_score = None
            if hit.raw_keyword is not None:
                keyword_score = hit.raw_keyword / max_raw if max_raw > 0 else 1.0
            kind = kind_for(entity.entity_type)
            results.append(
                SearchResult(
                    entity_ref=entity.ref,
                    title=kind.display_title(entity),
                    snippet=hit.snippet or excerpt(entity.body or entity.title),
                    locator=kind.locator(entity),
                    vector_score=hit.vector_score,
                    keyword_score=keyword_score,
                    combined_score=self._scorer.combine(
                        hit.vector_score, keyword_score, entity.updated_at, now
                    ),
                    updated_at=entity.updated_at,
                )
            )

        results.sort(
            key=lambda r: self._scorer.sort_key(
                r.combined_score, r.entity_type, r.updated_at, r.entity_id
            )
        )
        return results[:limit]
