"""Fetch endpoint.

- POST /api/v1/fetch: fetch a URL directly or through the render queue
"""

from __future__ import annotations

import logging
import time
from typing import Any

from fastapi import APIRouter

from relayfetch.models.requests import FetchPayload
from relayfetch.models.responses import ApiResponse, FetchResult

logger = logging.getLogger(__name__)


def create_fetch_router(*, fetcher: Any) -> APIRouter:
    """Factory that creates the fetch router bound to *fetcher*.

    Fetch failures propagate as ``FetchError`` and are rendered by the
    registered exception handlers.
    """
    fetch_router = APIRouter(prefix="/api/v1/fetch", tags=["fetch"])

    @fetch_router.post("")
    async def fetch(body: FetchPayload) -> dict:
        request = body.to_request()
        start = time.monotonic()
        content = await fetcher.fetch(request.url, request.mode, request.use_proxy)
        duration_ms = round((time.monotonic() - start) * 1000, 2)

        logger.info(
            "Fetch completed",
            extra={
                "target_url": request.url,
                "fetch_mode": request.mode.value,
                "duration_ms": duration_ms,
            },
        )
        return ApiResponse(
            success=True,
            data=FetchResult(
                url=request.url,
                mode=request.mode,
                use_proxy=request.use_proxy,
                content=content,
                duration_ms=duration_ms,
            ),
        ).model_dump(mode="json")

    return fetch_router
