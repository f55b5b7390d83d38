"""Proxy data models for the proxy pool."""

from __future__ import annotations

import re
from dataclasses import dataclass

import httpx

_PORT = re.compile(r"[0-9]{1,5}")


@dataclass(frozen=True)
class ProxyEndpoint:
    """A ``host:port`` forward proxy parsed from the external proxy list."""

    host: str
    port: str

    @classmethod
    def parse(cls, line: str) -> "ProxyEndpoint | None":
        """Parse one list entry of the form ``host:port[:extra-fields]``.

        Only the first two colon-delimited fields are kept. Returns ``None``
        for blank lines and entries whose port is missing or not in 1-65535.
        """
        fields = [part.strip() for part in line.strip().split(":")]
        if len(fields) < 2 or not fields[0] or not _PORT.fullmatch(fields[1]):
            return None
        if not 1 <= int(fields[1]) <= 65535:
            return None
        return cls(host=fields[0], port=fields[1])

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"

    @property
    def url(self) -> str:
        return f"http://{self.address}"


@dataclass(frozen=True)
class TransportConfig:
    """How a request leaves the process: directly, or through one proxy."""

    proxy: ProxyEndpoint | None = None
    timeout: float = 2.0

    @property
    def is_direct(self) -> bool:
        return self.proxy is None

    @property
    def label(self) -> str:
        return "direct" if self.proxy is None else self.proxy.address

    def build_client(self) -> httpx.AsyncClient:
        """Create an ``httpx.AsyncClient`` carrying the deadline and proxy."""
        kwargs: dict = {
            "timeout": httpx.Timeout(self.timeout),
            "follow_redirects": True,
        }
        if self.proxy is not None:
            kwargs["proxy"] = self.proxy.url
        return httpx.AsyncClient(**kwargs)
