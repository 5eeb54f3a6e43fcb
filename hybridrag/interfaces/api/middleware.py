"""
API Middleware - Request/response processing.

Provides:
- Request ID tracking
- Response latency measurement
- Error handling with taxonomy codes
- Per-caller rate limiting
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from hybridrag.config.errors import ErrorCode, HybridRAGError

logger = logging.getLogger(__name__)

CallNext = Callable[[Request], Awaitable[Response]]


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "unknown")


def _error_body(code: ErrorCode, message: str, request_id: str, **details: object) -> dict:
    return {
        "error": {"code": code.value, "message": message, "details": details},
        "request_id": request_id,
    }


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Attach request ID for tracing across logs and responses."""

    async def dispatch(self, request: Request, call_next: CallNext) -> Response:
        request.state.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        response = await call_next(request)
        response.headers["X-Request-ID"] = request.state.request_id
        return response


class LatencyMiddleware(BaseHTTPMiddleware):
    """Track and log request latency."""

    async def dispatch(self, request: Request, call_next: CallNext) -> Response:
        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000

        response.headers["X-Response-Time-Ms"] = f"{elapsed_ms:.2f}"
        logger.info(
            "%s %s status=%d latency_ms=%.2f request_id=%s",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
            _request_id(request),
        )
        return response


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Convert HybridRAGError exceptions to structured JSON responses."""

    async def dispatch(self, request: Request, call_next: CallNext) -> Response:
        try:
            return await call_next(request)
        except HybridRAGError as e:
            request_id = _request_id(request)
            logger.error(
                "HybridRAGError: %s request_id=%s details=%s",
                e.message,
                request_id,
                e.details,
            )
            return JSONResponse(
                status_code=_error_code_to_status(e.code),
                content={"error": e.to_dict(), "request_id": request_id},
            )
        except Exception:
            request_id = _request_id(request)
            logger.exception("Unhandled error request_id=%s", request_id)
            return JSONResponse(
                status_code=500,
                content=_error_body(ErrorCode.INTERNAL_ERROR, "Internal server error", request_id),
            )


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    Fixed one-minute window rate limiting.

    Callers are keyed by X-Principal-ID when present, else by client IP.
    Only the current minute's counters are kept.
    """

    def __init__(
        self,
        app: ASGIApp,
        requests_per_minute: int = 120,
        exempt_paths: tuple[str, ...] = ("/health",),
    ) -> None:
        super().__init__(app)
        self.requests_per_minute = requests_per_minute
        self.exempt_paths = exempt_paths
        self._minute = 0
        self._remaining: dict[str, int] = {}

    def _caller(self, request: Request) -> str:
        principal_id = request.headers.get("X-Principal-ID")
        if principal_id:
            return f"principal:{principal_id}"
        return f"ip:{request.client.host if request.client else 'unknown'}"

    def consume(self, caller: str, minute: int) -> int | None:
        """Take one request from ``caller``'s window; None when exhausted."""
        if minute != self._minute:
            self._minute = minute
            self._remaining.clear()

        remaining = self._remaining.get(caller, self.requests_per_minute)
        if remaining <= 0:
            return None
        self._remaining[caller] = remaining - 1
        return remaining - 1

    @property
    def tracked_callers(self) -> int:
        return len(self._remaining)

    async def dispatch(self, request: Request, call_next: CallNext) -> Response:
        if request.url.path in self.exempt_paths:
            return await call_next(request)

        caller = self._caller(request)
        remaining = self.consume(caller, int(time.time() // 60))
        if remaining is None:
            request_id = _request_id(request)
            logger.warning("Rate limit exceeded for %s request_id=%s", caller, request_id)
            return JSONResponse(
                status_code=429,
                content=_error_body(
                    ErrorCode.SECURITY_RATE_LIMITED,
                    "Too many requests. Please retry after 60 seconds.",
                    request_id,
                    retry_after=60,
                ),
                headers={"Retry-After": "60"},
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Remaining"] = str(remaining)
        response.headers["X-RateLimit-Limit"] = str(self.requests_per_minute)
        return response


def _error_code_to_status(code: ErrorCode) -> int:
    """Map error codes to HTTP status codes."""
    mapping = {
        # 400 Bad Request
        ErrorCode.SEARCH_INVALID_QUERY: 400,
        ErrorCode.VALIDATION_ERROR: 400,
        ErrorCode.EMBEDDING_INVALID_INPUT: 400,
        # 404 Not Found
        ErrorCode.NOT_FOUND: 404,
        # 429 Rate Limited
        ErrorCode.SECURITY_RATE_LIMITED: 429,
        ErrorCode.EMBEDDING_RATE_LIMITED: 429,
        # 503 Service Unavailable
        ErrorCode.EMBEDDING_FAILED: 503,
        ErrorCode.EMBEDDING_TIMEOUT: 503,
        ErrorCode.STORAGE_CONNECTION_FAILED: 503,
        ErrorCode.STORAGE_READ_FAILED: 503,
        ErrorCode.STORAGE_WRITE_FAILED: 503,
    }
    return mapping.get(code, 500)
