"""Fetch error hierarchy and FastAPI exception handlers.

All fetch failures extend FetchError. Each error carries the context needed
for logging (target url, fetch mode, proxy, underlying cause) in ``details``.
The FastAPI exception handlers turn these errors (plus Pydantic's
RequestValidationError and unhandled exceptions) into the JSON envelope:
{ success, data, error, meta }.
"""

from __future__ import annotations

import logging
import traceback

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Error hierarchy
# ---------------------------------------------------------------------------


class FetchError(Exception):
    """Base error for all fetch failures."""

    status_code: int = 500
    message: str = "Fetch failed"

    def __init__(self, message: str | None = None, **kwargs: object) -> None:
        self.message = message or self.__class__.message
        self.details = {key: value for key, value in kwargs.items() if value is not None}
        super().__init__(self.message)

    @property
    def url(self) -> str | None:
        return self.details.get("url")  # type: ignore[return-value]


class TransientNetworkError(FetchError):
    """Timeout, reset, aborted or unclassified failure that survived the replay."""

    status_code = 504
    message = "Transient network failure"


class TerminalRequestError(FetchError):
    """Non-retryable failure; switching network path would not help."""

    status_code = 502
    message = "Upstream request failed"


class ProxyRefreshError(FetchError):
    """The proxy list could not be fetched."""

    status_code = 503
    message = "Proxy list refresh failed"


class ProxyValidationError(FetchError):
    """A freshly rotated proxy failed the IP echo check."""

    status_code = 502
    message = "Rotated proxy failed validation"


class RenderError(FetchError):
    """Browser launch or navigation failure for one queued render."""

    status_code = 502
    message = "Browser render failed"


class RenderTimeoutError(RenderError):
    """A render exceeded the configured render timeout."""

    status_code = 504
    message = "Browser render timed out"


class RenderQueueFullError(FetchError):
    """Render queue is full or draining."""

    status_code = 503
    message = "Render queue is full"


# ---------------------------------------------------------------------------
# FastAPI exception handlers
# ---------------------------------------------------------------------------


def _envelope(
    status_code: int,
    error: str,
    meta: dict | None = None,
) -> JSONResponse:
    """Build a JSON envelope error response."""
    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "data": None,
            "error": error,
            "meta": meta,
        },
    )


async def _fetch_error_handler(_request: Request, exc: FetchError) -> JSONResponse:
    """Handle FetchError subclasses."""
    meta = {key: str(value) for key, value in exc.details.items()} or None
    return _envelope(exc.status_code, exc.message, meta=meta)


async def _validation_error_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle FastAPI / Pydantic RequestValidationError (422)."""
    field_errors = [
        {
            "field": " -> ".join(str(loc) for loc in err["loc"]),
            "message": err["msg"],
            "type": err["type"],
        }
        for err in exc.errors()
    ]
    return _envelope(
        status_code=422,
        error="Validation error",
        meta={"fields": field_errors},
    )


async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all: log the traceback with the request path, return a generic 500."""
    logger.error(
        "Unhandled exception on %s %s: %s",
        request.method,
        request.url.path,
        exc,
        extra={"error_reason": traceback.format_exc()},
    )
    return _envelope(status_code=500, error="Internal server error")


def register_error_handlers(app: FastAPI) -> None:
    """Wire up all exception handlers on the FastAPI application."""
    app.add_exception_handler(FetchError, _fetch_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _unhandled_error_handler)  # type: ignore[arg-type]
