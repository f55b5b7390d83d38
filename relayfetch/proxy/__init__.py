"""Proxy pool package: list refresh, rotation and validation."""

from relayfetch.proxy.pool import ProxyPool
from relayfetch.proxy.types import ProxyEndpoint, TransportConfig

__all__ = ["ProxyEndpoint", "ProxyPool", "TransportConfig"]
