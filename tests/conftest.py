"""Shared test fixtures and helpers for the relayfetch test suite."""

from __future__ import annotations

import asyncio
from collections import defaultdict

import httpx
import pytest

from relayfetch.config.settings import DEFAULT_VALIDATION_URL, FetcherSettings
from relayfetch.proxy.pool import ProxyPool

PROXY_SOURCE_URL = "https://proxies.test/list.txt"
THREE_PROXIES = ["1.1.1.1:8080", "2.2.2.2:8080", "3.3.3.3:8080"]


def make_response(url: str, text: str = "", status_code: int = 200) -> httpx.Response:
    """Build an ``httpx.Response`` bound to a request so ``raise_for_status`` works."""
    return httpx.Response(status_code, text=text, request=httpx.Request("GET", url))


class GatedRenderer:
    """Fake renderer whose renders block until ``release(url)`` is called.

    Records start order, the proxy each render received and peak concurrency.
    Renders of URLs in ``failing`` raise after release.
    """

    def __init__(self, failing: set[str] | None = None) -> None:
        self.started: list[str] = []
        self.proxies: list[object] = []
        self.active = 0
        self.peak = 0
        self.failing = failing or set()
        self._gates: dict[str, asyncio.Event] = defaultdict(asyncio.Event)

    def release(self, url: str) -> None:
        self._gates[url].set()

    async def render(self, url: str, proxy=None) -> str:  # noqa: ANN001
        self.started.append(url)
        self.proxies.append(proxy)
        self.active += 1
        self.peak = max(self.peak, self.active)
        try:
            await self._gates[url].wait()
            if url in self.failing:
                raise RuntimeError(f"navigation to {url} failed")
            return f"<html>{url}</html>"
        finally:
            self.active -= 1


async def wait_until(predicate, timeout: float = 1.0) -> None:  # noqa: ANN001
    """Yield to the event loop until *predicate* holds or *timeout* elapses."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not reached before timeout")
        await asyncio.sleep(0.001)


# ---------------------------------------------------------------------------
# Settings fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> FetcherSettings:
    """Test settings with safe defaults."""
    return FetcherSettings(
        proxy_list_url=PROXY_SOURCE_URL,
        render_concurrency=2,
        max_render_queue_depth=10,
        render_timeout_seconds=5,
    )


# ---------------------------------------------------------------------------
# Component fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def proxy_pool(settings: FetcherSettings) -> ProxyPool:
    return ProxyPool.from_settings(settings)


@pytest.fixture
def loaded_pool(proxy_pool: ProxyPool) -> ProxyPool:
    """A fresh pool holding the three reference proxies, index on direct."""
    proxy_pool.load(THREE_PROXIES)
    return proxy_pool


@pytest.fixture
def validation_ok():
    """Side effect for ``httpx.AsyncClient.get`` answering the IP echo check."""

    async def _get(url: str, **kwargs: object) -> httpx.Response:
        assert url == DEFAULT_VALIDATION_URL
        return make_response(url, "203.0.113.7")

    return _get
