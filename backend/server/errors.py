"""
API error types and their HTTP mapping.

Every error leaves the server as the same JSON envelope:
    {"success": false, "error": "<message>", ...extra fields}

Handlers are registered once by the app factory.
"""

from __future__ import annotations

import time
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from observability.logger import log_event, log_exception
from protocol.intent import failure_envelope


class ApiError(Exception):
    """Base class for errors with a defined HTTP status."""

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None, **fields: Any) -> None:
        self.message = message or self.default_message
        self.fields = fields
        super().__init__(self.message)


class InvalidRequest(ApiError):
    """Malformed or incomplete client request."""

    status_code = 400
    default_message = "Invalid request"


class UpstreamParseError(ApiError):
    """Model output was not JSON, or not the expected shape."""

    status_code = 500
    default_message = "Model returned an unexpected response"


class UpstreamModelError(ApiError):
    """The model provider call itself failed."""

    status_code = 502
    default_message = "Model provider unavailable"


class PersistenceFailure(ApiError):
    """A note could not be written."""

    status_code = 500
    default_message = "Failed to save note"


def register_exception_handlers(app: FastAPI) -> None:
    """Map error types onto envelope responses."""

    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse: # pyright: ignore[reportUnusedFunction]
        log_event({
            "ts_ms": time.time_ns() // 1_000_000,
            "event_type": "API_ERROR",
            "path": request.url.path,
            "error_type": type(exc).__name__,
            "status_code": exc.status_code,
            "message": exc.message,
            "cause": repr(exc.__cause__) if exc.__cause__ else None,
        })
        return JSONResponse(
            status_code=exc.status_code,
            content=failure_envelope(exc.message, **exc.fields),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse: # pyright: ignore[reportUnusedFunction]
        log_event({
            "ts_ms": time.time_ns() // 1_000_000,
            "event_type": "API_INVALID_BODY",
            "path": request.url.path,
            "errors": [str(err.get("msg")) for err in exc.errors()],
        })
        return JSONResponse(
            status_code=400,
            content=failure_envelope("Invalid request body"),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse: # pyright: ignore[reportUnusedFunction]
        log_exception("API_UNHANDLED_ERROR", exc, path=request.url.path)
        return JSONResponse(
            status_code=500,
            content=failure_envelope(ApiError.default_message),
        )
