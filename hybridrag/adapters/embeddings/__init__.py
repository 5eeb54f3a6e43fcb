"""
Embedding Adapters - External text-to-vector functions.

All embedding API calls are wrapped here; failures surface as EmbeddingError.
"""

from .ollama import OllamaEmbedder
from .sentence_transformer import SentenceTransformerEmbedder

__all__ = ["SentenceTransformerEmbedder", "OllamaEmbedder"]
