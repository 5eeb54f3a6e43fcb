"""
API Routes.
"""

from . import health, rag, search

__all__ = ["health", "search", "rag"]
