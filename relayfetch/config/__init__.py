"""Configuration module."""

from relayfetch.config.settings import (
    DEFAULT_PROXY_LIST_URL,
    DEFAULT_VALIDATION_URL,
    FetcherSettings,
)

__all__ = [
    "DEFAULT_PROXY_LIST_URL",
    "DEFAULT_VALIDATION_URL",
    "FetcherSettings",
]
