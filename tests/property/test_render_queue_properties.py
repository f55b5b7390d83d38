"""Property tests for the render queue.

Validates the concurrency ceiling, FIFO start order, and that every queued
render settles exactly once regardless of completion order or failures.
"""

from __future__ import annotations

import asyncio

from hypothesis import given, settings
from hypothesis import strategies as st

from conftest import GatedRenderer, wait_until
from relayfetch.render.queue import RenderQueue

# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

ceilings = st.integers(min_value=1, max_value=4)


@st.composite
def workloads(draw):
    """A ceiling, a task count above it, a release order and a failure set."""
    ceiling = draw(ceilings)
    count = draw(st.integers(min_value=ceiling + 1, max_value=ceiling + 8))
    order = draw(st.permutations(list(range(count))))
    failing = draw(st.sets(st.integers(min_value=0, max_value=count - 1)))
    return ceiling, count, order, failing


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run_async(coro):
    """Run an async coroutine synchronously."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


def _url(i: int) -> str:
    return f"https://site.test/page/{i}"


# ---------------------------------------------------------------------------
# Properties
# ---------------------------------------------------------------------------


@settings(max_examples=60, deadline=None)
@given(workload=workloads())
def test_ceiling_fifo_and_settlement(workload) -> None:  # noqa: ANN001
    """Active renders never exceed the ceiling, start in enqueue order, and all settle."""
    ceiling, count, order, failing = workload

    async def _scenario() -> None:
        renderer = GatedRenderer(failing={_url(i) for i in failing})
        queue = RenderQueue(renderer, concurrency=ceiling, max_queue_depth=count)

        callers = [asyncio.ensure_future(queue.enqueue(_url(i))) for i in range(count)]
        await wait_until(lambda: renderer.active == ceiling)
        assert queue.pending == count - ceiling

        for i in order:
            renderer.release(_url(i))
            for _ in range(5):
                await asyncio.sleep(0)
            assert renderer.active <= ceiling

        results = await asyncio.wait_for(
            asyncio.gather(*callers, return_exceptions=True), timeout=5
        )
        await queue.drain(timeout=1)

        assert renderer.peak == ceiling
        assert renderer.started == [_url(i) for i in range(count)]

        for i, result in enumerate(results):
            if i in failing:
                assert isinstance(result, Exception)
            else:
                assert result == f"<html>{_url(i)}</html>"

        stats = queue.get_stats()
        assert stats["peak_active"] == ceiling
        assert stats["completed_count"] + stats["failed_count"] == count
        assert stats["failed_count"] == len(failing)
        assert stats["queue_depth"] == 0

    _run_async(_scenario())
