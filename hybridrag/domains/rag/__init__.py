"""
RAG Domain - Context assembly for retrieval-augmented generation.
"""

from .assembler import (
    EMPTY_CONTEXT,
    PREAMBLE,
    ContextBuilder,
    RAGContextAssembler,
    TokenCounter,
    count_words,
)
from .models import ContextSource, RAGContext

__all__ = [
    "ContextBuilder",
    "ContextSource",
    "EMPTY_CONTEXT",
    "PREAMBLE",
    "RAGContext",
    "RAGContextAssembler",
    "TokenCounter",
    "count_words",
]
