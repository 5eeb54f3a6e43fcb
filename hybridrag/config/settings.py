"""
Settings - Application configuration using Pydantic Settings.

Loads from HYBRIDRAG_* environment variables and .env files.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError

KNOWN_ENTITY_TYPES = ("list", "list_item", "comment", "tag")
EMBEDDING_PROVIDERS = ("sentence_transformers", "ollama")


class Settings(BaseSettings):
    """Application settings."""

    # Paths
    db_path: Path = Path("data/hybridrag.db")

    # Embeddings: "sentence_transformers" (local) or "ollama" (HTTP)
    embedding_provider: str = "sentence_transformers"
    embedding_model: str = "all-MiniLM-L6-v2"
    embedding_dimension: int = 384
    embedding_max_chars: int = 8000
    embedding_timeout_seconds: float = 30.0
    ollama_url: str = "http://localhost:11434"

    # Search
    search_default_limit: int = 20
    search_max_limit: int = 100
    search_fanout_multiplier: int = 3
    search_timeout_seconds: float = 5.0
    vector_weight: float = 0.5
    keyword_weight: float = 0.5
    recency_boost_max: float = 0.1
    recency_half_life_days: float = 30.0
    type_priority: str = "list,list_item,comment,tag"
    query_cache_size: int = 512
    query_cache_ttl_seconds: int = 300

    # RAG
    rag_token_budget: int = 1500
    rag_max_sources: int = 5

    # Embedding worker
    staleness_max_age_days: int = 30
    worker_batch_size: int = 10
    worker_poll_interval_seconds: float = 1.0
    worker_max_attempts: int = 5
    worker_backoff_base_seconds: float = 2.0
    worker_backoff_max_seconds: float = 300.0

    # API
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    api_debug: bool = False
    api_rate_limit_per_minute: int = 120
    index_sync_interval_seconds: float = 5.0

    # Logging
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="HYBRIDRAG_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @property
    def type_priority_order(self) -> list[str]:
        """Entity types in tie-break order, highest priority first."""
        return [t.strip() for t in self.type_priority.split(",") if t.strip()]

    def validate_engine(self) -> None:
        """
        Check engine invariants that must hold before serving.

        Raises:
            ConfigurationError: on any inconsistent setting
        """
        if self.embedding_dimension <= 0:
            raise ConfigurationError(
                "embedding_dimension must be positive",
                {"embedding_dimension": self.embedding_dimension},
            )
        if self.embedding_provider not in EMBEDDING_PROVIDERS:
            raise ConfigurationError(
                f"Unknown embedding provider: {self.embedding_provider}",
                {"allowed": list(EMBEDDING_PROVIDERS)},
            )
        if self.vector_weight < 0 or self.keyword_weight < 0:
            raise ConfigurationError(
                "Search weights must be non-negative",
                {"vector_weight": self.vector_weight, "keyword_weight": self.keyword_weight},
            )
        if self.vector_weight + self.keyword_weight <= 0:
            raise ConfigurationError("Search weights must not both be zero")
        if not 1 <= self.search_default_limit <= self.search_max_limit:
            raise ConfigurationError(
                "search_default_limit must be between 1 and search_max_limit",
                {
                    "search_default_limit": self.search_default_limit,
                    "search_max_limit": self.search_max_limit,
                },
            )
        if self.search_fanout_multiplier < 1:
            raise ConfigurationError("search_fanout_multiplier must be at least 1")
        if self.recency_half_life_days <= 0 or self.recency_boost_max < 0:
            raise ConfigurationError("Recency boost settings are out of range")
        if self.embedding_max_chars <= 0:
            raise ConfigurationError("embedding_max_chars must be positive")

        order = self.type_priority_order
        unknown = [t for t in order if t not in KNOWN_ENTITY_TYPES]
        if unknown or len(set(order)) != len(order):
            raise ConfigurationError(
                "type_priority must list known entity types without repeats",
                {"type_priority": order, "unknown": unknown},
            )


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
