"""
CLI Interface - Command-line tools for HybridRAG.

Provides commands for:
- Database initialization
- Search and RAG context queries
- The embedding worker and backfill
- Serving the API
"""

from .main import app, main

__all__ = ["app", "main"]
