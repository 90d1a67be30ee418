"""
API Middleware - Request/response processing.

Provides:
- Request ID tracking
- Response latency measurement
- Error handling with taxonomy codes
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Awaitable, Callable

from fastapi import Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from maktaba.config.errors import ErrorCode, MaktabaError, SearchError

logger = logging.getLogger(__name__)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Attach request ID for tracing across logs and responses."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        return response


class LatencyMiddleware(BaseHTTPMiddleware):
    """Track and log request latency."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        start_time = time.perf_counter()

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        response.headers["X-Response-Time-Ms"] = f"{duration_ms:.2f}"

        request_id = getattr(request.state, "request_id", "unknown")
        logger.info(
            "%s %s status=%d latency_ms=%.2f request_id=%s",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            request_id,
        )

        return response


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Convert MaktabaError exceptions to structured JSON responses."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        try:
            return await call_next(request)
        except MaktabaError as e:
            return error_response(request, e)
        except Exception as e:
            request_id = getattr(request.state, "request_id", "unknown")
            logger.exception("Unhandled error: %s request_id=%s", str(e), request_id)
            return JSONResponse(
                status_code=500,
                content={
                    "error": {
                        "code": ErrorCode.INTERNAL_ERROR.value,
                        "message": "Internal server error",
                        "details": {},
                    },
                    "request_id": request_id,
                },
            )


def error_response(request: Request, error: MaktabaError) -> JSONResponse:
    """Render a taxonomy error as JSON with its mapped status code."""
    request_id = getattr(request.state, "request_id", "unknown")
    status_code = error_code_to_status(error.code)
    log = logger.warning if status_code < 500 else logger.error
    log(
        "MaktabaError: %s request_id=%s details=%s",
        error.message,
        request_id,
        error.details,
    )
    return JSONResponse(
        status_code=status_code,
        content={
            "error": error.to_dict(),
            "request_id": request_id,
        },
    )


def error_code_to_status(code: ErrorCode) -> int:
    """Map error codes to HTTP status codes."""
    mapping = {
        # 400 Bad Request
        ErrorCode.SEARCH_INVALID_QUERY: 400,
        ErrorCode.VALIDATION_ERROR: 400,
        # 404 Not Found
        ErrorCode.NOT_FOUND: 404,
        # 503 Service Unavailable
        ErrorCode.SEARCH_INDEX_UNAVAILABLE: 503,
        ErrorCode.LLM_UNAVAILABLE: 503,
        ErrorCode.STORAGE_CONNECTION_FAILED: 503,
    }
    return mapping.get(code, 500)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Report malformed query parameters as invalid search requests."""
    errors = [
        {"loc": [str(part) for part in error.get("loc", ())], "msg": str(error.get("msg", ""))}
        for error in exc.errors()
    ]
    return error_response(request, SearchError("Invalid search parameters", {"errors": errors}))
