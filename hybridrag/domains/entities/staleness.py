"""
Staleness - The embedding lifecycle of a searchable entity.

    absent --generate ok--> fresh --content mutated--> stale --generate ok--> fresh

A failed generation leaves the state unchanged. Content mutation of an
absent entity keeps it absent (it is already stale).
"""

from __future__ import annotations

from enum import Enum

from .models import StalenessState

__all__ = ["StalenessEvent", "next_state", "requires_regeneration"]


class StalenessEvent(str, Enum):
    CONTENT_MUTATED = "content_mutated"
    GENERATE_SUCCEEDED = "generate_succeeded"
    GENERATE_FAILED = "generate_failed"


_TRANSITIONS: dict[tuple[StalenessState, StalenessEvent], StalenessState] = {
    (StalenessState.ABSENT, StalenessEvent.GENERATE_SUCCEEDED): StalenessState.FRESH,
    (StalenessState.STALE, StalenessEvent.GENERATE_SUCCEEDED): StalenessState.FRESH,
    (StalenessState.FRESH, StalenessEvent.GENERATE_SUCCEEDED): StalenessState.FRESH,
    (StalenessState.FRESH, StalenessEvent.CONTENT_MUTATED): StalenessState.STALE,
}


def next_state(state: StalenessState, event: StalenessEvent) -> StalenessState:
    """Apply one lifecycle event; unlisted pairs are self-loops."""
    return _TRANSITIONS.get((state, event), state)


def requires_regeneration(previous_text: str, new_text: str) -> bool:
    """Whether a content write must mark the entity stale."""
    return previous_text != new_text
