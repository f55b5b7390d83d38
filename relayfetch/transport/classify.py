"""Failure classification for plain HTTP fetches.

TRANSIENT failures are plausibly fixed by switching network path (another
proxy, or none) and retrying. TERMINAL failures would fail the same way
through any path.
"""

from __future__ import annotations

from enum import Enum

import httpx


class FailureKind(str, Enum):
    TRANSIENT = "transient"
    TERMINAL = "terminal"


# Errors caused by the request itself rather than the path it took
_TERMINAL_ERRORS: tuple[type[Exception], ...] = (
    httpx.InvalidURL,
    httpx.UnsupportedProtocol,
    httpx.TooManyRedirects,
)


def classify_failure(exc: BaseException) -> FailureKind:
    """Classify an exception raised while fetching.

    - timeouts, resets and other network/protocol/proxy errors: TRANSIENT
    - 4xx responses (blocked or rejected by the upstream): TRANSIENT
    - 5xx responses: TERMINAL
    - invalid URLs, unsupported schemes, redirect loops: TERMINAL
    - anything else, including unclassified httpx errors: TRANSIENT
    """
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        if 400 <= status < 500:
            return FailureKind.TRANSIENT
        return FailureKind.TERMINAL

    if isinstance(exc, _TERMINAL_ERRORS):
        return FailureKind.TERMINAL

    return FailureKind.TRANSIENT
