"""Fetch request models: the in-process request value and the API payload."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from pydantic import BaseModel, Field


class FetchMode(str, Enum):
    """Transport used to retrieve a document."""

    DIRECT = "direct"
    RENDER = "render"


@dataclass(frozen=True)
class FetchRequest:
    """A single logical fetch. Replayed verbatim when a proxy is rotated."""

    url: str
    mode: FetchMode = FetchMode.DIRECT
    use_proxy: bool = False


class FetchPayload(BaseModel):
    """Request body for ``POST /api/v1/fetch``."""

    url: str = Field(..., min_length=1, pattern=r"^https?://")
    mode: FetchMode = FetchMode.DIRECT
    use_proxy: bool = False

    def to_request(self) -> FetchRequest:
        return FetchRequest(url=self.url, mode=self.mode, use_proxy=self.use_proxy)
