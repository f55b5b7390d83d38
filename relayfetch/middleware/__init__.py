"""Middleware package: error hierarchy and exception handlers."""

from relayfetch.middleware.error_handler import (
    FetchError,
    ProxyRefreshError,
    ProxyValidationError,
    RenderError,
    RenderQueueFullError,
    RenderTimeoutError,
    TerminalRequestError,
    TransientNetworkError,
    register_error_handlers,
)

__all__ = [
    "FetchError",
    "ProxyRefreshError",
    "ProxyValidationError",
    "RenderError",
    "RenderQueueFullError",
    "RenderTimeoutError",
    "TerminalRequestError",
    "TransientNetworkError",
    "register_error_handlers",
]
