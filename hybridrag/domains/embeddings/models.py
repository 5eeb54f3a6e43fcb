"""
Embedding Models - Data types for embeddings domain.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel


class GenerationOutcome(str, Enum):
    """What one generate() call did."""

    GENERATED = "generated"  # vector stored, stale cleared
    SKIPPED_EMPTY = "skipped_empty"  # nothing to embed
    SKIPPED_MISSING = "skipped_missing"  # entity deleted
    SUPERSEDED = "superseded"  # content changed while embedding


class JobStatus(str, Enum):
    """Outbox job status."""

    PENDING = "pending"
    RUNNING = "running"
    FAILED = "failed"


class WorkerReport(BaseModel):
    """Counts from one worker batch."""

    claimed: int = 0
    generated: int = 0
    skipped: int = 0
    superseded: int = 0
    retried: int = 0
    failed: int = 0

    def merge(self, other: WorkerReport) -> WorkerReport:
        """Add another batch's counts."""
        return WorkerReport(
            **{name: getattr(self, name) + getattr(other, name) for name in WorkerReport.model_fields}
        )
