"""
Error Taxonomy - Consistent error codes across the engine.

Usage:
    from hybridrag.config.errors import ErrorCode, HybridRAGError

    raise HybridRAGError(ErrorCode.CONFIGURATION_INVALID, "weights must not both be zero")

Access denial is not an error: invisible candidates are dropped silently by the
access filter. Partial degradation during search is reported as data on the
search outcome, never raised.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Standardized error codes for machine-readable error responses."""

    # Embedding errors (transient, retried by the job worker)
    EMBEDDING_FAILED = "EMBEDDING_FAILED"
    EMBEDDING_TIMEOUT = "EMBEDDING_TIMEOUT"
    EMBEDDING_RATE_LIMITED = "EMBEDDING_RATE_LIMITED"
    EMBEDDING_INVALID_INPUT = "EMBEDDING_INVALID_INPUT"

    # Search errors
    SEARCH_INVALID_QUERY = "SEARCH_INVALID_QUERY"

    # Configuration errors (fatal at startup)
    CONFIGURATION_INVALID = "CONFIGURATION_INVALID"
    CONFIGURATION_DIMENSION_MISMATCH = "CONFIGURATION_DIMENSION_MISMATCH"

    # Storage errors
    STORAGE_CONNECTION_FAILED = "STORAGE_CONNECTION_FAILED"
    STORAGE_READ_FAILED = "STORAGE_READ_FAILED"
    STORAGE_WRITE_FAILED = "STORAGE_WRITE_FAILED"

    # Security errors
    SECURITY_RATE_LIMITED = "SECURITY_RATE_LIMITED"

    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_FOUND = "NOT_FOUND"


class HybridRAGError(Exception):
    """Base exception with error code support."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(f"[{code.value}] {message}")

    def to_dict(self) -> dict[str, Any]:
        """Convert to API-friendly dictionary."""
        return {
            "code": self.code.value,
            "message": self.message,
            "details": self.details,
        }


class EmbeddingError(HybridRAGError):
    """External embedding call failed. Never surfaced as a search failure."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        code: ErrorCode = ErrorCode.EMBEDDING_FAILED,
    ) -> None:
        super().__init__(code, message, details)

    @property
    def retryable(self) -> bool:
        """Malformed input will fail the same way on every attempt."""
        return self.code != ErrorCode.EMBEDDING_INVALID_INPUT


class ConfigurationError(HybridRAGError):
    """Invalid engine configuration. Raised at startup, not at query time."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        code: ErrorCode = ErrorCode.CONFIGURATION_INVALID,
    ) -> None:
        super().__init__(code, message, details)


class SearchError(HybridRAGError):
    """Search request errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(ErrorCode.SEARCH_INVALID_QUERY, message, details)


class StorageError(HybridRAGError):
    """Storage/database errors."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        code: ErrorCode = ErrorCode.STORAGE_CONNECTION_FAILED,
    ) -> None:
        super().__init__(code, message, details)


class EntityNotFoundError(HybridRAGError):
    """Entity does not exist (or was deleted)."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(ErrorCode.NOT_FOUND, message, details)
