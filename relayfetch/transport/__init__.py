"""HTTP transport: single fetches with rotate-and-replay on transient failure."""

from relayfetch.transport.classify import FailureKind, classify_failure
from relayfetch.transport.client import TransportClient

__all__ = ["FailureKind", "TransportClient", "classify_failure"]
