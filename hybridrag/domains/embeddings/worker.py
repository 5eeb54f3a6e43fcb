"""
Embedding Worker - Consumes the embedding job outbox.

Mutation transactions publish (entity_type, entity_id) work items; this
worker claims due items, runs the generator on each, and owns the retry
policy: exponential backoff per attempt, parking a job as ``failed`` once
its attempts are exhausted or the input can never succeed.

Delivery is at-least-once. A worker that dies mid-batch leaves jobs in
``running``; they are returned to the queue when the next worker starts.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from hybridrag.adapters.sqlite import utcnow
from hybridrag.config import ConfigurationError, EmbeddingError
from hybridrag.domains.entities import EntityRef, EntityType

from .models import GenerationOutcome, WorkerReport

if TYPE_CHECKING:
    from hybridrag.adapters.sqlite import SQLiteRepository

    from .generator import EmbeddingGenerator

logger = logging.getLogger(__name__)

__all__ = ["EmbeddingWorker"]


class EmbeddingWorker:
    """
    Outbox consumer for embedding generation.

    Example:
        >>> worker = EmbeddingWorker(store, generator, batch_size=10)
        >>> report = await worker.run_once()
        >>> report.generated
        3
    """

    def __init__(
        self,
        store: SQLiteRepository,
        generator: EmbeddingGenerator,
        batch_size: int = 10,
        poll_interval_seconds: float = 1.0,
        max_attempts: int = 5,
        backoff_base_seconds: float = 2.0,
        backoff_max_seconds: float = 300.0,
        staleness_max_age_days: int | None = 30,
    ) -> None:
        self._store = store
        self._generator = generator
        self.batch_size = batch_size
        self.poll_interval_seconds = poll_interval_seconds
        self.max_attempts = max_attempts
        self.backoff_base_seconds = backoff_base_seconds
        self.backoff_max_seconds = backoff_max_seconds
        self.staleness_max_age_days = staleness_max_age_days

    def backoff_seconds(self, attempts: int) -> float:
        """Delay before retrying a job that has failed ``attempts`` times."""
        return min(
            self.backoff_max_seconds,
            self.backoff_base_seconds * 2 ** max(0, attempts - 1),
        )

    async def run_once(self, now: datetime | None = None) -> WorkerReport:
        """
        Claim and process one batch of due jobs.

        Raises:
            ConfigurationError: embedder produced vectors of the wrong dimension
        """
        now = now or utcnow()
        async with self._store.transaction() as tx:
            jobs = await tx.claim_jobs(self.batch_size, now)

        report = WorkerReport(claimed=len(jobs))
        if not jobs:
            return report

        logger.debug("Claimed %d embedding jobs", len(jobs))
        for job in jobs:
            self._count(report, await self._process(job, now))

        logger.info(
            "Embedding batch: claimed=%d generated=%d skipped=%d superseded=%d retried=%d failed=%d",
            report.claimed,
            report.generated,
            report.skipped,
            report.superseded,
            report.retried,
            report.failed,
        )
        return report

    async def _process(self, job: dict[str, Any], now: datetime) -> str:
        ref = EntityRef(entity_type=EntityType(job["entity_type"]), entity_id=job["entity_id"])
        try:
            outcome = await self._generator.generate(ref)
        except EmbeddingError as e:
            async with self._store.transaction() as tx:
                if not e.retryable or job["attempts"] >= self.max_attempts:
                    await tx.fail_job(job["id"], str(e))
                    logger.warning(
                        "Embedding job for %s failed permanently after %d attempts: %s",
                        ref,
                        job["attempts"],
                        e.message,
                    )
                    return "failed"
                delay = self.backoff_seconds(job["attempts"])
                await tx.reschedule_job(job["id"], now + timedelta(seconds=delay), str(e))
            logger.info("Embedding job for %s rescheduled in %.0fs", ref, delay)
            return "retried"
        except ConfigurationError as e:
            async with self._store.transaction() as tx:
                await tx.fail_job(job["id"], str(e))
            raise

        async with self._store.transaction() as tx:
            await tx.complete_job(job["id"])
        if outcome == GenerationOutcome.SKIPPED_MISSING:
            logger.warning("Embedding job for %s: entity no longer exists", ref)
        return outcome.value

    @staticmethod
    def _count(report: WorkerReport, result: str) -> None:
        if result == GenerationOutcome.GENERATED.value:
            report.generated += 1
        elif result == GenerationOutcome.SUPERSEDED.value:
            report.superseded += 1
        elif result in (GenerationOutcome.SKIPPED_EMPTY.value, GenerationOutcome.SKIPPED_MISSING.value):
            report.skipped += 1
        elif result == "retried":
            report.retried += 1
        else:
            report.failed += 1

    async def run_forever(self, stop: asyncio.Event | None = None) -> WorkerReport:
        """
        Poll the outbox until ``stop`` is set.

        Returns:
            Totals over every batch processed
        """
        stop = stop or asyncio.Event()
        requeued = await self.requeue_running_jobs()
        if requeued:
            logger.info("Requeued %d jobs left running by a previous worker", requeued)

        total = WorkerReport()
        while not stop.is_set():
            report = await self.run_once()
            total = total.merge(report)
            if report.claimed:
                continue
            try:
                await asyncio.wait_for(stop.wait(), timeout=self.poll_interval_seconds)
            except asyncio.TimeoutError:
                pass
        return total

    async def requeue_running_jobs(self) -> int:
        """Return orphaned ``running`` jobs to the queue."""
        async with self._store.transaction() as tx:
            return await tx.requeue_running_jobs()

    async def enqueue_backfill(
        self,
        include_aged: bool = True,
        now: datetime | None = None,
    ) -> int:
        """
        Enqueue every entity that needs an embedding.

        Stale entities and entities without a vector are always included;
        with ``include_aged``, so are vectors older than the staleness age.

        Returns:
            Number of jobs created or revived
        """
        now = now or utcnow()
        cutoff = None
        if include_aged and self.staleness_max_age_days:
            cutoff = now - timedelta(days=self.staleness_max_age_days)
        async with self._store.transaction() as tx:
            count = await tx.enqueue_backfill(cutoff, now)
        logger.info("Backfill enqueued %d embedding jobs", count)
        return count
