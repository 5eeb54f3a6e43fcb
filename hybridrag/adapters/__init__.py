"""
Adapters - External service integrations.

All storage, index and embedding calls are wrapped here to isolate domains from third-party changes.
"""

from .embeddings import OllamaEmbedder, SentenceTransformerEmbedder
from .faiss import FAISSIndex
from .sqlite import SQLiteRepository, StoreTransaction

__all__ = [
    # Storage
    "SQLiteRepository",
    "StoreTransaction",
    # Vector index
    "FAISSIndex",
    # Embedding functions
    "SentenceTransformerEmbedder",
    "OllamaEmbedder",
]
