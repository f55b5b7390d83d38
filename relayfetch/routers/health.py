"""Health and metrics endpoints.

- GET /health: service status, proxy pool and render queue state
- GET /metrics: fetch counters plus component statistics
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from relayfetch.models.responses import ApiResponse


def create_health_router(*, fetcher: Any = None) -> APIRouter:
    """Factory that creates the health router with injected dependencies."""

    health_router = APIRouter(tags=["health"])

    @health_router.get("/health")
    async def health() -> dict:
        """Service health check with proxy and queue state."""
        stats = fetcher.get_stats() if fetcher else {}
        return ApiResponse(
            success=True,
            data={
                "status": "healthy",
                "proxy_pool": stats.get("proxy_pool", {}),
                "render_queue": stats.get("render_queue", {}),
            },
        ).model_dump()

    @health_router.get("/metrics")
    async def metrics() -> dict:
        """Operational metrics endpoint."""
        return ApiResponse(
            success=True,
            data=fetcher.get_stats() if fetcher else {},
        ).model_dump()

    return health_router
