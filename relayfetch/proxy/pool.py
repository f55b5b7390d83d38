"""Proxy pool with periodic list refresh and round-robin rotation.

The pool is loaded from a newline-delimited list served over HTTP(S). Each
entry looks like ``host:port[:extra-fields]``; only ``host:port`` is kept.

Rotation walks a cycle of ``len(proxies) + 1`` slots. Slot 0 means "direct,
no proxy" and slot ``i`` selects ``proxies[i - 1]``, so rotating always ends
up back on a plain connection after one full pass through the list. A proxy
reached by rotation is checked against an IP echo endpoint before it is handed
back to the caller.

Refresh is single-flight: concurrent callers share one in-flight
``asyncio.Task`` and all observe the list it produced.
"""

from __future__ import annotations

import asyncio
import logging
import time

import httpx

from relayfetch.config.settings import (
    DEFAULT_PROXY_LIST_URL,
    DEFAULT_VALIDATION_URL,
    FetcherSettings,
)
from relayfetch.middleware.error_handler import ProxyRefreshError, ProxyValidationError
from relayfetch.proxy.types import ProxyEndpoint, TransportConfig
from relayfetch.useragents import default_headers

logger = logging.getLogger(__name__)


class ProxyPool:
    """Owns the proxy list, the selected index and the refresh timestamp.

    All reads and writes of that state go through the methods below; callers
    only ever see ``TransportConfig`` values.
    """

    def __init__(
        self,
        *,
        source_url: str = DEFAULT_PROXY_LIST_URL,
        validation_url: str = DEFAULT_VALIDATION_URL,
        refresh_interval_seconds: float = 3600,
        request_timeout_seconds: float = 2.0,
    ) -> None:
        self._source_url = source_url
        self._validation_url = validation_url
        self._refresh_interval = refresh_interval_seconds
        self._timeout = request_timeout_seconds

        self._proxies: list[ProxyEndpoint] = []
        self._index: int = 0
        self._last_refresh: float | None = None
        self._refresh_task: asyncio.Task[None] | None = None

        # Stats
        self._refresh_count = 0
        self._refresh_failures = 0
        self._rotation_count = 0
        self._validation_failures = 0

    @classmethod
    def from_settings(cls, settings: FetcherSettings) -> "ProxyPool":
        return cls(
            source_url=settings.proxy_list_url,
            validation_url=settings.validation_url,
            refresh_interval_seconds=settings.proxy_refresh_interval_seconds,
            request_timeout_seconds=settings.request_timeout_seconds,
        )

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def proxies(self) -> tuple[ProxyEndpoint, ...]:
        return tuple(self._proxies)

    @property
    def index(self) -> int:
        return self._index

    @property
    def refreshing(self) -> bool:
        return self._refresh_task is not None and not self._refresh_task.done()

    def is_stale(self) -> bool:
        """Return ``True`` if the pool is empty or older than the refresh interval."""
        if not self._proxies or self._last_refresh is None:
            return True
        return (time.monotonic() - self._last_refresh) > self._refresh_interval

    # ------------------------------------------------------------------
    # Loading / refresh
    # ------------------------------------------------------------------

    def load(self, entries: list[str]) -> None:
        """Replace the pool with *entries* and reset the selection to direct.

        Blank and malformed entries are dropped. Insertion order is rotation
        order.
        """
        proxies = [p for p in (ProxyEndpoint.parse(line) for line in entries) if p is not None]
        self._proxies = proxies
        self._index = 0
        self._last_refresh = time.monotonic()
        logger.info("Proxy pool loaded with %d endpoints", len(proxies))

    async def ensure_fresh(self) -> None:
        """Refresh the pool if it is empty or stale.

        Callers arriving while a refresh is in flight wait for it and then
        proceed with whatever list it produced.
        """
        if self.refreshing:
            await self._join_refresh()
            return
        if self.is_stale():
            await self.refresh()

    async def refresh(self) -> None:
        """Fetch the proxy list and replace the pool contents.

        Only one refresh runs at a time; concurrent callers join it. Fetch
        failures are logged and leave the previous list untouched.
        """
        if not self.refreshing:
            self._refresh_task = asyncio.create_task(
                self._refresh(), name="proxy-pool-refresh"
            )
        await self._join_refresh()

    async def _join_refresh(self) -> None:
        task = self._refresh_task
        if task is not None and not task.done():
            # Shielded so a cancelled caller does not cancel the shared refresh
            await asyncio.shield(task)

    async def _refresh(self) -> None:
        try:
            entries = await self._fetch_proxy_list()
        except ProxyRefreshError as exc:
            self._refresh_failures += 1
            logger.error(
                "Failed to refresh proxy list, keeping %d existing proxies",
                len(self._proxies),
                extra={
                    "target_url": self._source_url,
                    "error_reason": exc.details.get("cause", exc.message),
                },
            )
            return

        self.load(entries)
        self._refresh_count += 1

    async def _fetch_proxy_list(self) -> list[str]:
        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
                follow_redirects=True,
            ) as client:
                response = await client.get(self._source_url, headers=default_headers())
                response.raise_for_status()
        except httpx.HTTPError as exc:
            raise ProxyRefreshError(url=self._source_url, cause=repr(exc)) from exc

        entries = response.text.split("\n")
        logger.debug("Fetched proxy list: %d lines", len(entries))
        return entries

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------

    def current(self) -> TransportConfig:
        """Transport for the currently selected slot, without advancing."""
        return self._config_for(self._index)

    async def rotate(self) -> TransportConfig:
        """Advance to the next slot and return its transport.

        Waits for any in-flight refresh first. The index is advanced before
        any I/O, so concurrent rotations never read the same slot. A proxy
        slot is validated against the IP echo endpoint; a failed check raises
        ``ProxyValidationError`` and the index stays on the new slot.
        """
        await self._join_refresh()

        self._index = (self._index + 1) % (len(self._proxies) + 1)
        self._rotation_count += 1
        config = self._config_for(self._index)

        if config.is_direct:
            logger.info("Rotated to direct connection (no proxy)")
            return config

        logger.info(
            "Rotated to proxy %d/%d",
            self._index,
            len(self._proxies),
            extra={"proxy_used": config.label},
        )
        await self._validate(config)
        return config

    def _config_for(self, index: int) -> TransportConfig:
        if index == 0 or index > len(self._proxies):
            return TransportConfig(proxy=None, timeout=self._timeout)
        return TransportConfig(proxy=self._proxies[index - 1], timeout=self._timeout)

    async def _validate(self, config: TransportConfig) -> None:
        try:
            async with config.build_client() as client:
                response = await client.get(self._validation_url, headers=default_headers())
                response.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as exc:
            self._validation_failures += 1
            logger.warning(
                "Rotated proxy failed validation",
                extra={"proxy_used": config.label, "error_reason": repr(exc)},
            )
            raise ProxyValidationError(
                url=self._validation_url,
                proxy=config.label,
                cause=repr(exc),
            ) from exc

        logger.info(
            "Proxy validated, egress IP %s",
            response.text.strip(),
            extra={"proxy_used": config.label},
        )

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    def get_stats(self) -> dict:
        """Return proxy pool statistics for the health endpoint."""
        age = (
            round(time.monotonic() - self._last_refresh, 1)
            if self._last_refresh is not None
            else None
        )
        return {
            "total": len(self._proxies),
            "index": self._index,
            "current": self.current().label,
            "refreshing": self.refreshing,
            "seconds_since_refresh": age,
            "refresh_count": self._refresh_count,
            "refresh_failures": self._refresh_failures,
            "rotation_count": self._rotation_count,
            "validation_failures": self._validation_failures,
        }
