"""Fetcher facade: the single entry point for retrieving documents.

``direct`` fetches go through :class:`TransportClient`; ``render`` fetches are
queued on :class:`RenderQueue`. Both can opt into the shared proxy pool.
"""

from __future__ import annotations

import logging
from collections import Counter

from relayfetch.config.settings import FetcherSettings
from relayfetch.models.requests import FetchMode
from relayfetch.proxy.pool import ProxyPool
from relayfetch.render.queue import RenderQueue
from relayfetch.render.session import BrowserRenderer
from relayfetch.transport.client import TransportClient

logger = logging.getLogger(__name__)


class Fetcher:
    """Routes fetches to the HTTP transport or the render queue.

    Dependencies are injected via the constructor so the facade is testable
    without real browsers or network calls; ``from_settings`` wires the
    production components.
    """

    def __init__(
        self,
        *,
        proxy_pool: ProxyPool,
        transport_client: TransportClient,
        render_queue: RenderQueue,
        renderer: BrowserRenderer | None = None,
        shutdown_timeout_seconds: float = 30.0,
    ) -> None:
        self._proxy_pool = proxy_pool
        self._transport = transport_client
        self._render_queue = render_queue
        self._renderer = renderer
        self._shutdown_timeout = shutdown_timeout_seconds
        self._fetch_counts: Counter[str] = Counter()

    @classmethod
    def from_settings(cls, settings: FetcherSettings | None = None) -> "Fetcher":
        settings = settings or FetcherSettings()
        proxy_pool = ProxyPool.from_settings(settings)
        renderer = BrowserRenderer.from_settings(settings)
        return cls(
            proxy_pool=proxy_pool,
            transport_client=TransportClient.from_settings(settings, proxy_pool),
            render_queue=RenderQueue.from_settings(settings, renderer, proxy_pool),
            renderer=renderer,
            shutdown_timeout_seconds=settings.graceful_shutdown_seconds,
        )

    @property
    def proxy_pool(self) -> ProxyPool:
        return self._proxy_pool

    async def fetch(
        self,
        url: str,
        mode: FetchMode | str = FetchMode.DIRECT,
        use_proxy: bool = False,
    ) -> str:
        """Return the textual content of *url*.

        Raises a :class:`~relayfetch.middleware.error_handler.FetchError`
        subclass on failure. ``ValueError`` if *mode* is not a known mode.
        """
        mode = FetchMode(mode)
        logger.info(
            "Fetching URL",
            extra={"target_url": url, "fetch_mode": mode.value, "proxy_used": use_proxy},
        )
        self._fetch_counts[mode.value] += 1

        if mode is FetchMode.RENDER:
            return await self._render_queue.enqueue(url, use_proxy)
        return await self._transport.fetch(url, use_proxy)

    async def aclose(self) -> None:
        """Drain the render queue and stop the browser driver."""
        await self._render_queue.drain(timeout=self._shutdown_timeout)
        if self._renderer is not None:
            await self._renderer.close()

    async def __aenter__(self) -> "Fetcher":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    def get_stats(self) -> dict:
        return {
            "fetches": dict(self._fetch_counts),
            "proxy_pool": self._proxy_pool.get_stats(),
            "transport": self._transport.get_stats(),
            "render_queue": self._render_queue.get_stats(),
        }
