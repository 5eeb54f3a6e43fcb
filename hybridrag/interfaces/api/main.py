"""
FastAPI Main Application - Search and RAG API entry point.

Run with: uvicorn hybridrag.interfaces.api.main:app --reload
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from hybridrag import __version__
from hybridrag.config import get_settings, setup_logging

from .deps import cleanup_services, init_services
from .middleware import (
    ErrorHandlerMiddleware,
    LatencyMiddleware,
    RateLimitMiddleware,
    RequestIDMiddleware,
)
from .routes import health, rag, search

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    settings = get_settings()
    setup_logging(settings.log_level)
    logger.info("Starting HybridRAG API...")
    logger.info("  Database: %s", settings.db_path)
    logger.info(
        "  Embeddings: %s/%s (D=%d)",
        settings.embedding_provider,
        settings.embedding_model,
        settings.embedding_dimension,
    )

    # Validates configuration; a ConfigurationError aborts startup
    await init_services(settings)
    logger.info("  Services initialized")

    yield

    logger.info("Shutting down HybridRAG API...")
    await cleanup_services()


def create_app() -> FastAPI:
    """Create FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="HybridRAG API",
        description="Access-controlled hybrid search and RAG context assembly",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters - last added = outermost)
    app.add_middleware(RateLimitMiddleware, requests_per_minute=settings.api_rate_limit_per_minute)
    app.add_middleware(ErrorHandlerMiddleware)
    app.add_middleware(LatencyMiddleware)
    app.add_middleware(RequestIDMiddleware)

    allowed_origins = [
        "http://localhost:3000",
        "http://localhost:8000",
        "http://127.0.0.1:3000",
        "http://127.0.0.1:8000",
    ]
    if settings.api_debug:
        allowed_origins.append("http://localhost:*")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "X-Principal-ID", "X-Request-ID"],
    )

    app.include_router(health.router, tags=["Health"])
    app.include_router(search.router, prefix="/api/search", tags=["Search"])
    app.include_router(rag.router, prefix="/api/rag", tags=["RAG"])

    return app


# Create app instance
app = create_app()
