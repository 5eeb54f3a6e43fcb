"""
Embeddings Domain - Keeping entity vectors in step with entity text.

This domain handles:
- Embedding generation (one bounded external call, conditional vector write)
- The outbox worker with retry/backoff
- Backfill of missing, stale and aged vectors
"""

from .contracts import Embedder
from .generator import EmbeddingGenerator, truncate_embedding_text
from .models import GenerationOutcome, JobStatus, WorkerReport
from .worker import EmbeddingWorker

__all__ = [
    "Embedder",
    "EmbeddingGenerator",
    "EmbeddingWorker",
    "GenerationOutcome",
    "JobStatus",
    "WorkerReport",
    "truncate_embedding_text",
]
