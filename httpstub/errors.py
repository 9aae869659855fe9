"""Error types raised and delivered by the stub engine."""

from __future__ import annotations

from enum import Enum

import httpx


class ErrorCode(str, Enum):
    """Simulated network failure kinds."""

    NOT_CONNECTED_TO_INTERNET = "not_connected_to_internet"
    TIMED_OUT = "timed_out"
    CANNOT_FIND_HOST = "cannot_find_host"
    CANNOT_CONNECT_TO_HOST = "cannot_connect_to_host"
    NETWORK_CONNECTION_LOST = "network_connection_lost"
    BAD_SERVER_RESPONSE = "bad_server_response"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"


class StubError(Exception):
    """Base class for engine configuration errors."""


class MalformedPatternError(StubError, ValueError):
    """Raised when a regex rule cannot be compiled."""

    def __init__(self, pattern: str, reason: str) -> None:
        self.pattern = pattern
        super().__init__(f"Invalid URL pattern {pattern!r}: {reason}")


class UnresolvableRequestError(StubError):
    """Diagnostic for a request without a usable URL. Logged, never raised."""


class SimulatedFailure(httpx.TransportError):
    """Failure delivered in place of a response body."""

    def __init__(self, code: ErrorCode | str, message: str | None = None) -> None:
        self.code = ErrorCode(code)
        super().__init__(message or f"Simulated network failure: {self.code.value}")


class DeliveryCancelled(httpx.TransportError):
    """The delivery was cancelled before a response was produced."""

    code = ErrorCode.CANCELLED

    def __init__(self, message: str = "Stubbed request was cancelled") -> None:
        super().__init__(message)


class UnmatchedRequestError(httpx.TransportError):
    """Raised by an exclusive stub transport when no rule claims a request."""

    def __init__(self, method: str, url: str) -> None:
        self.method = method
        self.url = url
        super().__init__(f"No stub rule matched {method} {url}")
