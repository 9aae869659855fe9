"""Immutable descriptions of stubbed responses."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import timedelta
from types import MappingProxyType
from typing import Any, Mapping, Union

HTTP_VERSION = "HTTP/1.1"
FAILURE_STATUS_CODE = 999


@dataclass(frozen=True)
class Success:
    """Outcome carrying the response body."""

    body: bytes = b""


@dataclass(frozen=True)
class Failure:
    """Outcome carrying the error delivered instead of a body."""

    error: BaseException


Outcome = Union[Success, Failure]


@dataclass(frozen=True)
class MockResponse:
    """Simulated response returned for a matched request.

    ``status_code`` and ``headers`` are independent of the outcome: a success
    may carry any status and no realism checks are applied. ``delay`` is the
    simulated latency in seconds before delivery starts.
    """

    status_code: int
    outcome: Outcome
    headers: Mapping[str, str] | None = None
    delay: float | None = None
    http_version: str = field(default=HTTP_VERSION, init=False)

    def __post_init__(self) -> None:
        if not isinstance(self.outcome, (Success, Failure)):
            raise TypeError("outcome must be Success or Failure")
        if self.headers is not None:
            object.__setattr__(self, "headers", MappingProxyType(dict(self.headers)))
        delay = self.delay
        if isinstance(delay, timedelta):
            delay = delay.total_seconds()
        if delay is not None:
            delay = float(delay)
            if delay < 0:
                raise ValueError(f"delay must be non-negative, got {delay}")
        object.__setattr__(self, "delay", delay)

    def __hash__(self) -> int:
        headers = tuple(sorted(self.headers.items())) if self.headers is not None else None
        return hash((self.status_code, self.outcome, headers, self.delay))

    @property
    def is_success(self) -> bool:
        return isinstance(self.outcome, Success)

    @classmethod
    def success(
        cls,
        data: bytes = b"",
        *,
        status_code: int = 200,
        headers: Mapping[str, str] | None = None,
        delay: float | timedelta | None = None,
    ) -> "MockResponse":
        if headers is None:
            headers = {"Content-Type": "application/json"}
        return cls(status_code=status_code, outcome=Success(bytes(data)), headers=headers, delay=delay)

    @classmethod
    def json(
        cls,
        payload: Any,
        *,
        status_code: int = 200,
        headers: Mapping[str, str] | None = None,
        delay: float | timedelta | None = None,
    ) -> "MockResponse":
        merged = {"Content-Type": "application/json"}
        merged.update(headers or {})
        body = json.dumps(payload).encode("utf-8")
        return cls(status_code=status_code, outcome=Success(body), headers=merged, delay=delay)

    @classmethod
    def failure(
        cls,
        error: BaseException,
        *,
        delay: float | timedelta | None = None,
    ) -> "MockResponse":
        return cls(status_code=FAILURE_STATUS_CODE, outcome=Failure(error), headers=None, delay=delay)

    def summary(self) -> str:
        """Short human readable description used in logs and CLI output."""

        if isinstance(self.outcome, Success):
            result = f"{len(self.outcome.body)} bytes"
        else:
            result = f"error {type(self.outcome.error).__name__}"
        delay = f" after {self.delay:g}s" if self.delay else ""
        return f"{self.status_code} {result}{delay}"
