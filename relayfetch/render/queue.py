"""FIFO render queue with a fixed concurrency ceiling.

Browser renders are expensive (one Chromium process each), so they are
admitted through a FIFO ``asyncio.Queue`` drained by exactly ``concurrency``
worker coroutines. Tasks start in submission order; they complete in whatever
order their I/O finishes. Each task owns one future, resolved exactly once
with the rendered document or a ``RenderError``.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol
from uuid import uuid4

from relayfetch.config.settings import FetcherSettings
from relayfetch.middleware.error_handler import (
    RenderError,
    RenderQueueFullError,
    RenderTimeoutError,
)

if TYPE_CHECKING:
    from relayfetch.proxy.pool import ProxyPool
    from relayfetch.proxy.types import ProxyEndpoint

logger = logging.getLogger(__name__)


class Renderer(Protocol):
    async def render(self, url: str, proxy: "ProxyEndpoint | None" = None) -> str: ...


@dataclass
class QueuedRenderTask:
    """A render waiting for (or holding) a worker slot."""

    url: str
    use_proxy: bool
    future: asyncio.Future[str]
    id: str = field(default_factory=lambda: str(uuid4()))
    enqueued_at: float = field(default_factory=time.monotonic)


class RenderQueue:
    """Admission-controlled queue for browser renders.

    Parameters
    ----------
    renderer:
        Object whose ``render(url, proxy)`` performs one isolated render.
    proxy_pool:
        Pool whose current selection is used for ``use_proxy`` renders.
    concurrency:
        Number of workers, and so the maximum number of renders in flight.
    max_queue_depth:
        Maximum number of pending renders before ``RenderQueueFullError``.
    render_timeout_seconds:
        Upper bound on a single render, including browser launch.
    """

    def __init__(
        self,
        renderer: Renderer,
        proxy_pool: "ProxyPool | None" = None,
        *,
        concurrency: int = 2,
        max_queue_depth: int = 500,
        render_timeout_seconds: float = 60.0,
    ) -> None:
        self._renderer = renderer
        self._pool = proxy_pool
        self._concurrency = concurrency
        self._max_queue_depth = max_queue_depth
        self._render_timeout = render_timeout_seconds

        # None entries are worker stop signals
        self._queue: asyncio.Queue[QueuedRenderTask | None] = asyncio.Queue()
        self._workers: list[asyncio.Task[None]] = []
        self._draining = False

        # Renders waiting for a worker (excludes stop signals)
        self._pending_count = 0
        self._active = 0
        self._peak_active = 0
        self._completed_count = 0
        self._failed_count = 0
        self._total_duration_ms = 0.0

    @classmethod
    def from_settings(
        cls,
        settings: FetcherSettings,
        renderer: Renderer,
        proxy_pool: "ProxyPool | None" = None,
    ) -> "RenderQueue":
        return cls(
            renderer,
            proxy_pool,
            concurrency=settings.render_concurrency,
            max_queue_depth=settings.max_render_queue_depth,
            render_timeout_seconds=settings.render_timeout_seconds,
        )

    @property
    def active(self) -> int:
        return self._active

    @property
    def pending(self) -> int:
        return self._pending_count

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def enqueue(self, url: str, use_proxy: bool = False) -> str:
        """Queue a render of *url* and wait for its document.

        Raises
        ------
        RenderQueueFullError
            If the queue is draining or holds ``max_queue_depth`` pending tasks.
        RenderError
            If this render fails (other queued renders are unaffected).
        """
        if self._draining:
            raise RenderQueueFullError("Render queue is draining", url=url)
        if self._pending_count >= self._max_queue_depth:
            raise RenderQueueFullError(
                f"Render queue is full ({self._max_queue_depth} pending renders)",
                url=url,
            )

        task = QueuedRenderTask(
            url=url,
            use_proxy=use_proxy,
            future=asyncio.get_running_loop().create_future(),
        )
        self._queue.put_nowait(task)
        self._pending_count += 1
        logger.debug(
            "Enqueued render %s (queue_depth=%d)",
            task.id,
            self._pending_count,
            extra={"target_url": url, "fetch_mode": "render"},
        )

        await self.start()
        return await task.future

    async def start(self) -> None:
        """Start the worker pool. Safe to call repeatedly."""
        if self._workers:
            return

        for i in range(self._concurrency):
            worker = asyncio.create_task(
                self._worker_loop(i), name=f"render-queue-worker-{i}"
            )
            self._workers.append(worker)

        logger.info("Started %d render queue workers", self._concurrency)

    async def drain(self, timeout: float = 30.0) -> None:
        """Stop admitting renders and let workers finish queued work.

        Workers still busy after *timeout* seconds are cancelled; any render
        left in the queue fails with ``RenderError``.
        """
        self._draining = True
        logger.info("Draining render queue (timeout=%.1fs)…", timeout)

        # Stop signals go behind queued work, so pending renders run first
        for _ in self._workers:
            self._queue.put_nowait(None)

        if self._workers:
            _done, pending = await asyncio.wait(self._workers, timeout=timeout)
            for worker in pending:
                worker.cancel()
            await asyncio.gather(*pending, return_exceptions=True)

        while not self._queue.empty():
            leftover = self._queue.get_nowait()
            if leftover is not None:
                self._pending_count -= 1
                self._reject(
                    leftover,
                    RenderError("Render queue shut down", url=leftover.url, mode="render"),
                )

        self._workers.clear()
        logger.info("Render queue drained")

    def get_stats(self) -> dict:
        """Return current queue statistics."""
        finished = self._completed_count + self._failed_count
        avg_ms = self._total_duration_ms / finished if finished > 0 else 0.0
        return {
            "queue_depth": self._pending_count,
            "concurrency": self._concurrency,
            "active": self._active,
            "peak_active": self._peak_active,
            "completed_count": self._completed_count,
            "failed_count": self._failed_count,
            "avg_duration_ms": round(avg_ms, 2),
        }

    # ------------------------------------------------------------------
    # Worker loop
    # ------------------------------------------------------------------

    async def _worker_loop(self, worker_id: int) -> None:
        """Worker coroutine: pull renders in FIFO order and run them."""
        logger.debug("Render worker %d started", worker_id)

        while True:
            task = await self._queue.get()
            if task is None:
                break

            self._pending_count -= 1

            # Caller stopped waiting before the render started
            if task.future.done():
                continue

            await self._run(task, worker_id)

        logger.debug("Render worker %d stopped", worker_id)

    async def _run(self, task: QueuedRenderTask, worker_id: int) -> None:
        self._active += 1
        self._peak_active = max(self._peak_active, self._active)
        start_time = time.monotonic()

        proxy = None
        if task.use_proxy and self._pool is not None:
            proxy = self._pool.current().proxy
        proxy_label = proxy.address if proxy is not None else "direct"

        try:
            content = await asyncio.wait_for(
                self._renderer.render(task.url, proxy),
                timeout=self._render_timeout,
            )
        except asyncio.TimeoutError:
            self._failed_count += 1
            logger.error(
                "Worker %d: render %s timed out",
                worker_id,
                task.id,
                extra={"target_url": task.url, "fetch_mode": "render", "proxy_used": proxy_label},
            )
            self._reject(
                task,
                RenderTimeoutError(
                    f"Render of {task.url} timed out after {self._render_timeout}s",
                    url=task.url,
                    mode="render",
                    proxy=proxy_label,
                ),
            )
        except asyncio.CancelledError:
            self._failed_count += 1
            self._reject(
                task,
                RenderError("Render cancelled during drain", url=task.url, mode="render"),
            )
            raise
        except RenderError as exc:
            self._failed_count += 1
            self._reject(task, exc)
        except Exception as exc:
            self._failed_count += 1
            logger.error(
                "Worker %d: render %s unexpected error: %s",
                worker_id,
                task.id,
                exc,
                extra={"target_url": task.url, "fetch_mode": "render"},
            )
            self._reject(
                task,
                RenderError(
                    f"Render of {task.url} failed",
                    url=task.url,
                    mode="render",
                    proxy=proxy_label,
                    cause=repr(exc),
                ),
            )
        else:
            self._completed_count += 1
            if not task.future.done():
                task.future.set_result(content)
        finally:
            elapsed_ms = (time.monotonic() - start_time) * 1000
            self._total_duration_ms += elapsed_ms
            self._active -= 1
            logger.debug(
                "Worker %d finished render %s",
                worker_id,
                task.id,
                extra={"target_url": task.url, "duration_ms": round(elapsed_ms, 2)},
            )

    @staticmethod
    def _reject(task: QueuedRenderTask, exc: Exception) -> None:
        if not task.future.done():
            task.future.set_exception(exc)
