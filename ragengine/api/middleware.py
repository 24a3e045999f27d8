"""API middleware: CORS, request logging, and error handling.

Starlette runs middleware last-added-first, so with the order used in
:func:`ragengine.main.create_app` the request logger wraps the error
handler and records the final status code.
"""

from __future__ import annotations

import time
import uuid

import structlog
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from ragengine.api.schemas import ErrorResponse
from ragengine.utils.errors import (
    ChunkingError,
    ConfigurationError,
    ProviderUnavailableError,
    QueryError,
    RAGEngineError,
    RateLimitError,
    VectorStoreError,
)
from ragengine.utils.logging import bind_request_context, clear_request_context, get_logger

_logger: structlog.BoundLogger = get_logger(__name__)

# Most specific first; anything else derived from RAGEngineError is a 500.
_STATUS_BY_ERROR: tuple[tuple[type[RAGEngineError], int], ...] = (
    (QueryError, 400),
    (ChunkingError, 422),
    (RateLimitError, 429),
    (ProviderUnavailableError, 503),
    (VectorStoreError, 502),
    (ConfigurationError, 500),
)


def status_for(exc: RAGEngineError) -> int:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status
    return 500


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------


def configure_cors(app: FastAPI, *, allowed_origins: list[str] | None = None) -> None:
    """Add CORS middleware; all origins unless *allowed_origins* is given."""
    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


# ---------------------------------------------------------------------------
# Request Logging
# ---------------------------------------------------------------------------


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every request with method, path, status and duration.

    A request id (taken from ``X-Request-ID`` or generated) is bound into
    the structlog context for the duration of the request and echoed back
    in the response header.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:12]
        bind_request_context(request_id=request_id)
        start = time.perf_counter()
        response: Response | None = None

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            duration_ms = round((time.perf_counter() - start) * 1000, 2)
            _logger.info(
                "http_request",
                method=request.method,
                path=str(request.url.path),
                status=response.status_code if response else 500,
                duration_ms=duration_ms,
            )
            clear_request_context("request_id")


# ---------------------------------------------------------------------------
# Error Handling
# ---------------------------------------------------------------------------


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Convert ``RAGEngineError`` subclasses into structured JSON errors.

    Stack traces stay in the server log; the client sees the error class,
    its message and the provider that raised it.
    """

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        try:
            return await call_next(request)
        except RAGEngineError as exc:
            status = status_for(exc)
            log = _logger.warning if status < 500 else _logger.error
            log(
                "application_error",
                error_type=type(exc).__name__,
                message=exc.message,
                provider=exc.provider_name,
                path=str(request.url.path),
                status=status,
            )
            body = ErrorResponse(
                error=type(exc).__name__,
                detail=exc.message,
                provider=exc.provider_name,
            )
            headers = {}
            if isinstance(exc, RateLimitError) and exc.retry_after > 0:
                headers["Retry-After"] = str(max(1, round(exc.retry_after)))
            return JSONResponse(status_code=status, content=body.model_dump(), headers=headers)
