"""
Sentence Transformer Embedder - Local embedding model.

The model runs in a worker thread; each call is bounded by a timeout and
never retried here (retries belong to the job worker).
"""

from __future__ import annotations

import asyncio
import logging

import numpy as np
from sentence_transformers import SentenceTransformer

from hybridrag.config import EmbeddingError, ErrorCode

logger = logging.getLogger(__name__)

__all__ = ["SentenceTransformerEmbedder"]


class SentenceTransformerEmbedder:
    """
    Embed text with a local sentence-transformers model.

    Example:
        >>> embedder = SentenceTransformerEmbedder("all-MiniLM-L6-v2")
        >>> vector = await embedder.embed("Quarterly plan")
        >>> vector.shape
        (384,)
    """

    def __init__(
        self,
        model_name: str = "all-MiniLM-L6-v2",
        timeout_seconds: float = 30.0,
    ) -> None:
        """
        Load the embedding model.

        Args:
            model_name: Sentence transformer model name
            timeout_seconds: Upper bound on one embed call
        """
        self.model_name = model_name
        self.timeout_seconds = timeout_seconds
        self._model = SentenceTransformer(model_name)
        self.dimension = int(self._model.get_sentence_embedding_dimension())
        logger.info("Embedding model loaded: %s (dimension=%d)", model_name, self.dimension)

    async def embed(self, text: str) -> np.ndarray:
        """
        Embed one text.

        Raises:
            EmbeddingError: empty input, timeout, or model failure
        """
        if not text.strip():
            raise EmbeddingError(
                "Cannot embed empty text", code=ErrorCode.EMBEDDING_INVALID_INPUT
            )
        try:
            vector = await asyncio.wait_for(
                asyncio.to_thread(self._model.encode, text, normalize_embeddings=True),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            raise EmbeddingError(
                f"Embedding timed out after {self.timeout_seconds}s",
                {"model": self.model_name},
                code=ErrorCode.EMBEDDING_TIMEOUT,
            ) from e
        except Exception as e:
            raise EmbeddingError(
                f"Embedding model failed: {e}", {"model": self.model_name}
            ) from e
        return np.asarray(vector, dtype=np.float32)
