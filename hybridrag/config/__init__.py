"""
Configuration - Application settings, error taxonomy, and logging setup.
"""

from .errors import (
    ConfigurationError,
    EmbeddingError,
    EntityNotFoundError,
    ErrorCode,
    HybridRAGError,
    SearchError,
    StorageError,
)
from .logging_setup import setup_logging
from .settings import Settings, get_settings

__all__ = [
    # Settings
    "Settings",
    "get_settings",
    "setup_logging",
    # Errors
    "ErrorCode",
    "HybridRAGError",
    "EmbeddingError",
    "ConfigurationError",
    "SearchError",
    "StorageError",
    "EntityNotFoundError",
]
