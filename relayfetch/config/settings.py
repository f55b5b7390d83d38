"""Pydantic Settings for the fetch service.

All environment variables use the RELAYFETCH_ prefix.
Example: RELAYFETCH_PROXY_LIST_URL=https://example.com/proxies.txt
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings

DEFAULT_PROXY_LIST_URL = "https://github.com/zloi-user/hideip.me/raw/main/https.txt"
DEFAULT_VALIDATION_URL = "https://api.ipify.org"


class FetcherSettings(BaseSettings):
    """Fetcher configuration validated from environment variables."""

    # Service
    port: int = 8001
    log_level: str = "INFO"

    # Proxy pool
    proxy_list_url: str = DEFAULT_PROXY_LIST_URL
    proxy_refresh_interval_seconds: int = Field(default=3600, ge=1)  # 1 hour
    validation_url: str = DEFAULT_VALIDATION_URL

    # HTTP transport
    request_timeout_seconds: float = Field(default=2.0, gt=0)
    max_rotations_per_request: int = Field(default=1, ge=0)

    # Render queue
    render_concurrency: int = Field(default=2, ge=1, le=20)
    max_render_queue_depth: int = Field(default=500, ge=1)
    render_timeout_seconds: int = Field(default=60, ge=5)
    navigation_timeout_ms: int = Field(default=30000, ge=1000)
    block_images: bool = True

    # Shutdown
    graceful_shutdown_seconds: int = Field(default=30, ge=0)

    model_config = {"env_prefix": "RELAYFETCH_"}
