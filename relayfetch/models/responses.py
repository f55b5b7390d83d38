"""API response models.

Every API response is wrapped in the same envelope:
{ success: bool, data: T | None, error: str | None, meta: dict | None }
"""

from __future__ import annotations

from typing import Generic, TypeVar

from pydantic import BaseModel

from relayfetch.models.requests import FetchMode

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """JSON envelope for all API responses."""

    success: bool
    data: T | None = None
    error: str | None = None
    meta: dict | None = None


class FetchResult(BaseModel):
    """Payload returned for a completed fetch."""

    url: str
    mode: FetchMode
    use_proxy: bool
    content: str
    duration_ms: float
