"""
Scoring - Combined relevance score and the total result order.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

from hybridrag.domains.entities import EntityType

__all__ = ["Scorer", "recency_boost"]

SCORE_PRECISION = 9
_SECONDS_PER_DAY = 86400.0


def recency_boost(
    updated_at: datetime,
    now: datetime,
    boost_max: float = 0.1,
    half_life_days: float = 30.0,
) -> float:
    """
    Multiplier in [1, 1 + boost_max] that halves its excess every half-life.

    Non-increasing in age; content dated in the future counts as brand new.
    """
    age_days = max(0.0, (now - updated_at).total_seconds() / _SECONDS_PER_DAY)
    return 1.0 + boost_max * 0.5 ** (age_days / half_life_days)


class Scorer:
    """
    Weighted score combination plus tie-break ordering.

    Example:
        >>> scorer = Scorer(vector_weight=0.5, keyword_weight=0.5)
        >>> scorer.combine(0.8, 1.0, updated_at, now)
        0.99
    """

    def __init__(
        self,
        vector_weight: float = 0.5,
        keyword_weight: float = 0.5,
        recency_boost_max: float = 0.1,
        recency_half_life_days: float = 30.0,
        type_priority: Sequence[EntityType | str] = (),
    ) -> None:
        self.vector_weight = vector_weight
        self.keyword_weight = keyword_weight
        self.recency_boost_max = recency_boost_max
        self.recency_half_life_days = recency_half_life_days
        self._priority = {EntityType(t): rank for rank, t in enumerate(type_priority)}

    def combine(
        self,
        vector_score: float | None,
        keyword_score: float | None,
        updated_at: datetime,
        now: datetime,
    ) -> float:
        """
        Combined score of one candidate.

        Both modalities present: weighted sum. One present: that score alone.
        The result is multiplied by the recency boost and rounded so equal
        inputs compare equal.
        """
        if vector_score is not None and keyword_score is not None:
            base = self.vector_weight * vector_score + self.keyword_weight * keyword_score
        elif vector_score is not None:
            base = vector_score
        elif keyword_score is not None:
            base = keyword_score
        else:
            base = 0.0
        boost = recency_boost(
            updated_at, now, self.recency_boost_max, self.recency_half_life_days
        )
        return round(base * boost, SCORE_PRECISION)

    def type_rank(self, entity_type: EntityType) -> int:
        """Position in the priority list; unlisted types sort last."""
        return self._priority.get(entity_type, len(self._priority))

    def sort_key(
        self,
        combined_score: float,
        entity_type: EntityType,
        updated_at: datetime,
        entity_id: int,
    ) -> tuple[float, int, float, int]:
        """Score desc, type priority, newer first, then id asc."""
        return (
            -combined_score,
            self.type_rank(entity_type),
            -updated_at.timestamp(),
            entity_id,
        )
