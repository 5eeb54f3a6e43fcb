"""
Ollama Embedder - Embeddings from an Ollama server over HTTP.

Features:
- Async HTTP client with a bounded timeout
- Error classification (rate limit, timeout, malformed input) for the job worker
"""

from __future__ import annotations

import logging

import httpx
import numpy as np

from hybridrag.config import EmbeddingError, ErrorCode

logger = logging.getLogger(__name__)

__all__ = ["OllamaEmbedder"]


class OllamaEmbedder:
    """
    Ollama embedding client.

    Example:
        >>> embedder = OllamaEmbedder(model="nomic-embed-text", dimension=768)
        >>> vector = await embedder.embed("Quarterly plan")
    """

    def __init__(
        self,
        model: str,
        dimension: int,
        base_url: str = "http://localhost:11434",
        timeout_seconds: float = 30.0,
    ) -> None:
        """
        Initialize Ollama embedder.

        Args:
            model: Embedding model name (e.g., "nomic-embed-text")
            dimension: Vector dimension the model produces
            base_url: Ollama server URL
            timeout_seconds: Request timeout in seconds
        """
        self.model = model
        self.dimension = dimension
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout_seconds,
            )
        return self._client

    async def embed(self, text: str) -> np.ndarray:
        """
        Embed one text via POST /api/embed.

        Raises:
            EmbeddingError: classified by cause
        """
        if not text.strip():
            raise EmbeddingError(
                "Cannot embed empty text", code=ErrorCode.EMBEDDING_INVALID_INPUT
            )

        client = await self._get_client()
        try:
            response = await client.post(
                "/api/embed", json={"model": self.model, "input": text}
            )
        except httpx.TimeoutException as e:
            raise EmbeddingError(
                f"Ollama embedding timed out after {self.timeout_seconds}s",
                {"model": self.model},
                code=ErrorCode.EMBEDDING_TIMEOUT,
            ) from e
        except httpx.HTTPError as e:
            raise EmbeddingError(f"Ollama request failed: {e}", {"model": self.model}) from e

        if response.status_code == 429:
            raise EmbeddingError(
                "Ollama rate limit exceeded",
                {"model": self.model},
                code=ErrorCode.EMBEDDING_RATE_LIMITED,
            )
        if response.status_code == 400:
            raise EmbeddingError(
                f"Ollama rejected input: {response.text[:200]}",
                {"model": self.model},
                code=ErrorCode.EMBEDDING_INVALID_INPUT,
            )
        if response.status_code >= 400:
            raise EmbeddingError(
                f"Ollama error {response.status_code}: {response.text[:200]}",
                {"model": self.model, "status": response.status_code},
            )

        embeddings = response.json().get("embeddings") or []
        if not embeddings:
            raise EmbeddingError("Ollama returned no embedding", {"model": self.model})
        return np.asarray(embeddings[0], dtype=np.float32)

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
