"""Property tests for proxy pool rotation and single-flight refresh.

Validates that the rotation index cycles through the direct slot and every
proxy in order, that a refresh resets the index, and that any number of
concurrent callers share exactly one proxy list download.
"""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock, patch

from hypothesis import given, settings
from hypothesis import strategies as st

from relayfetch.proxy.pool import ProxyPool
from relayfetch.proxy.types import ProxyEndpoint

# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

proxy_lists = st.lists(
    st.tuples(
        st.integers(min_value=1, max_value=254),
        st.integers(min_value=1024, max_value=65535),
    ),
    min_size=0,
    max_size=12,
).map(lambda pairs: [f"10.0.0.{host}:{port}" for host, port in pairs])

rotation_counts = st.integers(min_value=0, max_value=40)
caller_counts = st.integers(min_value=1, max_value=30)


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


# ---------------------------------------------------------------------------
# Rotation cycle
# ---------------------------------------------------------------------------


@settings(max_examples=100, deadline=None)
@given(entries=proxy_lists, rotations=rotation_counts)
def test_index_cycles_through_direct_slot(entries: list[str], rotations: int) -> None:
    """After k rotations over N proxies the index is k mod (N + 1), and slot 0 is direct."""

    async def _scenario() -> None:
        pool = ProxyPool()
        pool.load(entries)
        n = len(pool.proxies)

        with patch.object(ProxyPool, "_validate", new_callable=AsyncMock) as validate:
            for k in range(1, rotations + 1):
                config = await pool.rotate()
                assert pool.index == k % (n + 1)
                if pool.index == 0:
                    assert config.is_direct
                else:
                    assert config.proxy == pool.proxies[pool.index - 1]

        # Only proxy slots are validated
        direct_visits = rotations // (n + 1)
        assert validate.await_count == rotations - direct_visits

    _run_async(_scenario())


@settings(max_examples=50, deadline=None)
@given(entries=proxy_lists, rotations=rotation_counts)
def test_load_resets_index(entries: list[str], rotations: int) -> None:
    """Loading a new list always returns the pool to the direct slot."""

    async def _scenario() -> None:
        pool = ProxyPool()
        pool.load(entries)
        with patch.object(ProxyPool, "_validate", new_callable=AsyncMock):
            for _ in range(rotations):
                await pool.rotate()
        pool.load(entries)
        assert pool.index == 0
        assert pool.current().is_direct

    _run_async(_scenario())


@settings(max_examples=100)
@given(
    host=st.from_regex(r"[a-z0-9.]{1,20}", fullmatch=True),
    port=st.integers(min_value=1, max_value=65535),
    suffix=st.from_regex(r"(:[a-z0-9]{0,8}){0,3}", fullmatch=True),
)
def test_parse_keeps_host_and_port(host: str, port: int, suffix: str) -> None:
    """Trailing colon fields are ignored; host and port survive parsing."""
    endpoint = ProxyEndpoint.parse(f"{host}:{port}{suffix}")
    assert endpoint is not None
    assert endpoint.address == f"{host}:{port}"


@settings(max_examples=100)
@given(
    host=st.from_regex(r"[a-z0-9.]{1,20}", fullmatch=True),
    port=st.one_of(
        st.from_regex(r"[0-9]{0,3}[a-z_-][0-9a-z]{0,3}", fullmatch=True),
        st.integers(min_value=65536, max_value=99999).map(str),
        st.just("0"),
    ),
)
def test_parse_rejects_unusable_ports(host: str, port: str) -> None:
    """Ports that are not decimal numbers in 1-65535 never enter the pool."""
    assert ProxyEndpoint.parse(f"{host}:{port}") is None


# ---------------------------------------------------------------------------
# Single-flight refresh
# ---------------------------------------------------------------------------


@settings(max_examples=50, deadline=None)
@given(callers=caller_counts, entries=proxy_lists)
def test_concurrent_refreshes_share_one_download(callers: int, entries: list[str]) -> None:
    """K concurrent refresh or ensure_fresh callers trigger exactly one list fetch."""

    async def _scenario() -> None:
        pool = ProxyPool()
        gate = asyncio.Event()

        async def _slow_fetch() -> list[str]:
            await gate.wait()
            return entries

        with patch.object(
            ProxyPool, "_fetch_proxy_list", new_callable=AsyncMock, side_effect=_slow_fetch
        ) as fetch:
            waiters = [
                asyncio.ensure_future(pool.refresh() if i % 2 else pool.ensure_fresh())
                for i in range(callers)
            ]
            await asyncio.sleep(0)
            assert pool.refreshing
            gate.set()
            await asyncio.gather(*waiters)

        assert fetch.await_count == 1
        assert not pool.refreshing
        assert [p.address for p in pool.proxies] == entries
        assert pool.index == 0

    _run_async(_scenario())
