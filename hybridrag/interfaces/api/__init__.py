"""
API Interface - FastAPI REST API for search and RAG context assembly.
"""

from .main import app, create_app

__all__ = ["app", "create_app"]
