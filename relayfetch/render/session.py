"""Isolated Playwright render sessions.

Every render launches its own headless Chromium process, opens one context
and one page, navigates until the DOM is ready and returns the serialized
document. The page, context and browser are always closed before ``render``
returns or raises. Only the Playwright driver is shared between renders.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from relayfetch.config.settings import FetcherSettings
from relayfetch.middleware.error_handler import RenderError
from relayfetch.useragents import random_user_agent

if TYPE_CHECKING:
    from playwright.async_api import Route

    from relayfetch.proxy.types import ProxyEndpoint

logger = logging.getLogger(__name__)

# Chromium flags for containerized / headless operation
CHROMIUM_ARGS: list[str] = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
]

BLOCKED_RESOURCE_TYPES: frozenset[str] = frozenset({"image"})


def launch_args(proxy: "ProxyEndpoint | None" = None) -> list[str]:
    """Chromium command line for one render, with the proxy flag if any."""
    args = list(CHROMIUM_ARGS)
    if proxy is not None:
        args.append(f"--proxy-server={proxy.url}")
    return args


async def block_heavy_resources(route: "Route") -> None:
    """Route handler that aborts image loads and lets everything else through."""
    if route.request.resource_type in BLOCKED_RESOURCE_TYPES:
        await route.abort()
    else:
        await route.continue_()


class BrowserRenderer:
    """Renders pages in disposable Chromium processes.

    Lifecycle
    ---------
    1. ``start()``: start the Playwright driver (done lazily by ``render``).
    2. ``render(url, proxy)``: launch, navigate, extract, close.
    3. ``close()``: stop the Playwright driver.
    """

    def __init__(
        self,
        *,
        navigation_timeout_ms: int = 30000,
        block_images: bool = True,
    ) -> None:
        self._playwright: Any = None  # Playwright instance (lazy import)
        self._lock = asyncio.Lock()
        self._navigation_timeout_ms = navigation_timeout_ms
        self._block_images = block_images

    @classmethod
    def from_settings(cls, settings: FetcherSettings) -> "BrowserRenderer":
        return cls(
            navigation_timeout_ms=settings.navigation_timeout_ms,
            block_images=settings.block_images,
        )

    async def start(self) -> None:
        """Start the Playwright driver if it is not running yet."""
        async with self._lock:
            if self._playwright is not None:
                return
            from playwright.async_api import async_playwright

            self._playwright = await async_playwright().start()
            logger.info("Playwright driver started")

    async def close(self) -> None:
        """Stop the Playwright driver."""
        async with self._lock:
            if self._playwright is None:
                return
            await self._playwright.stop()
            self._playwright = None
            logger.info("Playwright driver stopped")

    async def render(self, url: str, proxy: "ProxyEndpoint | None" = None) -> str:
        """Render *url* and return the serialized DOM.

        Raises :class:`RenderError` on launch or navigation failure, after the
        session has been released.
        """
        await self.start()
        proxy_label = proxy.address if proxy is not None else "direct"

        browser = None
        context = None
        page = None
        try:
            browser = await self._playwright.chromium.launch(
                headless=True,
                args=launch_args(proxy),
            )
            context = await browser.new_context(user_agent=random_user_agent())
            page = await context.new_page()
            if self._block_images:
                await page.route("**/*", block_heavy_resources)

            await page.goto(
                url,
                wait_until="domcontentloaded",
                timeout=self._navigation_timeout_ms,
            )
            return await page.content()
        except Exception as exc:
            logger.error(
                "Browser render failed",
                extra={
                    "target_url": url,
                    "fetch_mode": "render",
                    "proxy_used": proxy_label,
                    "error_reason": repr(exc),
                },
            )
            raise RenderError(
                f"Render of {url} failed",
                url=url,
                mode="render",
                proxy=proxy_label,
                cause=repr(exc),
            ) from exc
        finally:
            await self._release(page, context, browser)

    async def _release(self, page: Any, context: Any, browser: Any) -> None:
        """Close page, context and browser, tolerating already-closed objects."""
        for resource in (page, context, browser):
            if resource is None:
                continue
            try:
                await resource.close()
            except Exception:
                logger.debug(
                    "Error closing %s (may already be closed)",
                    type(resource).__name__,
                    exc_info=True,
                )
