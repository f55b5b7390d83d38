"""Data models for fetch requests and API responses."""

from relayfetch.models.requests import FetchMode, FetchPayload, FetchRequest
from relayfetch.models.responses import ApiResponse, FetchResult

__all__ = [
    "ApiResponse",
    "FetchMode",
    "FetchPayload",
    "FetchRequest",
    "FetchResult",
]
