"""Browser rendering: isolated Playwright sessions behind a bounded FIFO queue."""

from relayfetch.render.queue import QueuedRenderTask, RenderQueue, Renderer
from relayfetch.render.session import CHROMIUM_ARGS, BrowserRenderer, launch_args

__all__ = [
    "CHROMIUM_ARGS",
    "BrowserRenderer",
    "QueuedRenderTask",
    "RenderQueue",
    "Renderer",
    "launch_args",
]
