"""
Shared API Middleware
======================

Request middleware and the exception handlers that turn every failure into
a `{"message", "correlation_id"}` JSON body.
"""

import time
import uuid
from dataclasses import dataclass, field
from typing import Callable, Dict

from fastapi import Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from src.core import ApplicationException
from src.shared.infrastructure.logging import (
    bind_correlation_id,
    current_correlation_id,
    get_logger,
    reset_correlation_id,
)

logger = get_logger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"


def _correlation_id(request: Request) -> str:
    return getattr(request.state, "correlation_id", None) or current_correlation_id() or "unknown"


class CorrelationIDMiddleware(BaseHTTPMiddleware):
    """
    Accepts or mints a correlation id and binds it for the request's logs.

    The id is echoed in the response header and in every error body.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
        request.state.correlation_id = correlation_id
        token = bind_correlation_id(correlation_id)
        try:
            response = await call_next(request)
        finally:
            reset_correlation_id(token)
        response.headers[CORRELATION_HEADER] = correlation_id
        return response


@dataclass
class RequestStats:
    """Process-lifetime request counters reported by /health."""
    total: int = 0
    by_status_class: Dict[str, int] = field(default_factory=dict)
    total_time_ms: float = 0.0

    def record(self, status_code: int, elapsed_ms: float) -> None:
        self.total += 1
        bucket = f"{status_code // 100}xx"
        self.by_status_class[bucket] = self.by_status_class.get(bucket, 0) + 1
        self.total_time_ms += elapsed_ms

    def snapshot(self) -> dict:
        return {
            "requests": self.total,
            "by_status": dict(self.by_status_class),
            "avg_response_ms": round(self.total_time_ms / self.total, 2) if self.total else 0.0,
        }


class MetricsMiddleware(BaseHTTPMiddleware):
    """Feeds RequestStats and sets X-Response-Time."""

    def __init__(self, app: ASGIApp, stats: RequestStats):
        super().__init__(app)
        self.stats = stats

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000

        self.stats.record(response.status_code, elapsed_ms)
        response.headers["X-Response-Time"] = f"{elapsed_ms:.1f}ms"
        return response


class LoggingMiddleware(BaseHTTPMiddleware):
    """One log line per request; unhandled errors are logged and re-raised."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start = time.perf_counter()
        context = {
            "method": request.method,
            "path": request.url.path,
            "client": request.client.host if request.client else None,
        }

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error("Request failed", extra={
                **context,
                "error": str(e),
                "response_time_ms": int((time.perf_counter() - start) * 1000),
            })
            raise

        level = logger.warning if response.status_code >= 500 else logger.info
        level("Request completed", extra={
            **context,
            "status_code": response.status_code,
            "response_time_ms": int((time.perf_counter() - start) * 1000),
        })
        return response


async def application_exception_handler(request: Request, exc: ApplicationException) -> JSONResponse:
    """Render domain errors with the status the exception carries."""
    correlation_id = _correlation_id(request)

    log = logger.error if exc.status_code >= 500 else logger.info
    log("Request rejected", extra={
        "path": request.url.path,
        "error_type": type(exc).__name__,
        "status_code": exc.status_code,
        "error_message": exc.message,
    })

    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.message, "correlation_id": correlation_id}
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Request body/query validation failures are client errors (400)."""
    errors = exc.errors()

    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
    else:
        message = "Invalid request"

    return JSONResponse(
        status_code=400,
        content={"message": message, "correlation_id": _correlation_id(request)}
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Anything unexpected is a 500; details only leave the process in development."""
    correlation_id = _correlation_id(request)

    logger.exception("Unhandled exception", extra={
        "correlation_id": correlation_id,
        "path": request.url.path,
        "method": request.method,
        "error_type": type(exc).__name__,
    })

    config = getattr(request.app.state, "settings", None)
    content = {"message": "Internal server error", "correlation_id": correlation_id}
    if getattr(config, "environment", None) == "development":
        content["debug_info"] = f"{type(exc).__name__}: {exc}"

    return JSONResponse(status_code=500, content=content)
