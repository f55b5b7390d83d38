"""Plain HTTP fetches with failure-triggered proxy rotation.

A fetch that opts into proxying goes through the proxy currently selected by
the pool. When it fails transiently the pool is rotated and the identical
request is replayed through the new transport, up to
``max_rotations_per_request`` times. Rotation is process-wide: later,
unrelated requests see the new selection too.
"""

from __future__ import annotations

import logging

import httpx

from relayfetch.config.settings import FetcherSettings
from relayfetch.middleware.error_handler import (
    FetchError,
    ProxyValidationError,
    TerminalRequestError,
    TransientNetworkError,
)
from relayfetch.models.requests import FetchMode, FetchRequest
from relayfetch.proxy.pool import ProxyPool
from relayfetch.proxy.types import TransportConfig
from relayfetch.transport.classify import FailureKind, classify_failure
from relayfetch.useragents import default_headers

logger = logging.getLogger(__name__)

class TransportClient:
    """Performs single HTTP fetches, optionally through the proxy pool.

    Parameters
    ----------
    proxy_pool:
        Shared pool consulted for the current proxy and rotated on failure.
    request_timeout_seconds:
        Deadline applied to every outbound request.
    max_rotations_per_request:
        How many rotate-and-replay cycles one logical request may trigger.
    """

    def __init__(
        self,
        proxy_pool: ProxyPool,
        *,
        request_timeout_seconds: float = 2.0,
        max_rotations_per_request: int = 1,
    ) -> None:
        self._pool = proxy_pool
        self._timeout = request_timeout_seconds
        self._max_rotations = max_rotations_per_request

        self._request_count = 0
        self._replay_count = 0
        self._failure_count = 0

    @classmethod
    def from_settings(cls, settings: FetcherSettings, proxy_pool: ProxyPool) -> "TransportClient":
        return cls(
            proxy_pool,
            request_timeout_seconds=settings.request_timeout_seconds,
            max_rotations_per_request=settings.max_rotations_per_request,
        )

    async def fetch(self, url: str, use_proxy: bool = False) -> str:
        """Fetch *url* and return the response body as text.

        Raises
        ------
        TransientNetworkError
            The last permitted attempt failed transiently.
        TerminalRequestError
            The request failed in a way another network path would not fix.
        ProxyValidationError
            Rotation landed on a proxy that failed the IP echo check.
        """
        request = FetchRequest(url=url, mode=FetchMode.DIRECT, use_proxy=use_proxy)
        self._request_count += 1

        if not use_proxy:
            config = TransportConfig(proxy=None, timeout=self._timeout)
            try:
                return await self._send(request, config)
            except Exception as exc:
                raise self._fail(request, config, exc, attempt=1) from exc

        await self._pool.ensure_fresh()
        config = self._pool.current()
        attempt = 1

        while True:
            try:
                return await self._send(request, config)
            except Exception as exc:
                kind = classify_failure(exc)
                if kind is FailureKind.TERMINAL or attempt > self._max_rotations:
                    raise self._fail(request, config, exc, attempt=attempt) from exc

                logger.warning(
                    "Request failed, rotating proxy",
                    extra={
                        "target_url": request.url,
                        "proxy_used": config.label,
                        "error_reason": repr(exc),
                        "attempt": attempt,
                    },
                )
                config = await self._rotate(request)
                attempt += 1
                self._replay_count += 1

    async def _rotate(self, request: FetchRequest) -> TransportConfig:
        try:
            return await self._pool.rotate()
        except ProxyValidationError as exc:
            self._failure_count += 1
            raise ProxyValidationError(
                exc.message,
                **exc.details,
                target_url=request.url,
                mode=request.mode.value,
            ) from exc

    async def _send(self, request: FetchRequest, config: TransportConfig) -> str:
        async with config.build_client() as client:
            response = await client.get(request.url, headers=default_headers())
            response.raise_for_status()
            return response.text

    def _fail(
        self,
        request: FetchRequest,
        config: TransportConfig,
        exc: Exception,
        *,
        attempt: int,
    ) -> FetchError:
        self._failure_count += 1
        kind = classify_failure(exc)
        logger.error(
            "Fetch failed (%s)",
            kind.value,
            extra={
                "target_url": request.url,
                "fetch_mode": request.mode.value,
                "proxy_used": config.label,
                "error_reason": repr(exc),
                "attempt": attempt,
            },
        )

        details: dict = {
            "url": request.url,
            "mode": request.mode.value,
            "proxy": config.label,
            "attempt": attempt,
            "cause": repr(exc),
        }
        if kind is FailureKind.TERMINAL:
            if isinstance(exc, httpx.HTTPStatusError):
                details["upstream_status"] = exc.response.status_code
            return TerminalRequestError(f"Request to {request.url} failed", **details)
        return TransientNetworkError(f"Request to {request.url} failed transiently", **details)

    def get_stats(self) -> dict:
        return {
            "requests": self._request_count,
            "replays": self._replay_count,
            "failures": self._failure_count,
        }
