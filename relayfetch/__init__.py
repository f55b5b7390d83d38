"""relayfetch: fetch web content directly or via a headless browser, through a rotating proxy pool."""

from relayfetch.config.settings import FetcherSettings
from relayfetch.fetcher import Fetcher
from relayfetch.middleware.error_handler import (
    FetchError,
    ProxyRefreshError,
    ProxyValidationError,
    RenderError,
    RenderQueueFullError,
    RenderTimeoutError,
    TerminalRequestError,
    TransientNetworkError,
)
from relayfetch.models.requests import FetchMode, FetchRequest

__all__ = [
    "FetchError",
    "FetchMode",
    "FetchRequest",
    "Fetcher",
    "FetcherSettings",
    "ProxyRefreshError",
    "ProxyValidationError",
    "RenderError",
    "RenderQueueFullError",
    "RenderTimeoutError",
    "TerminalRequestError",
    "TransientNetworkError",
]
