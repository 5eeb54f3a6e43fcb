"""
Embedding Contracts - Interfaces for the embeddings domain.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

import numpy as np


@runtime_checkable
class Embedder(Protocol):
    """
    Contract for external text-to-vector functions.

    Example:
        >>> class MyEmbedder:
        ...     dimension = 384
        ...     async def embed(self, text: str) -> np.ndarray:
        ...         ...
        >>> assert isinstance(MyEmbedder(), Embedder)
    """

    dimension: int

    async def embed(self, text: str) -> np.ndarray:
        """
        Embed one text.

        Args:
            text: Non-empty UTF-8 text, already truncated by the caller

        Returns:
            Vector of shape (dimension,)

        Raises:
            EmbeddingError: timeout, rate limit, or malformed input
        """
        ...
