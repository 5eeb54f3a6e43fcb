"""
SQLite Adapter - Entity storage, FTS5 lexical index, and embedding job outbox.
"""

from .repository import SQLiteRepository, StoreTransaction, build_match_query, utcnow

__all__ = ["SQLiteRepository", "StoreTransaction", "build_match_query", "utcnow"]
