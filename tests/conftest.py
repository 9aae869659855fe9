"""Test bootstrap for httpstub."""

from __future__ import annotations

import sys
import threading
from pathlib import Path
from typing import Any, Mapping

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from httpstub.pytest_plugin import http_stub  # noqa: E402,F401


class FakeRequest:
    """Minimal request descriptor: only ``url`` and ``method``."""

    def __init__(self, url: Any, method: str = "GET") -> None:
        self.url = url
        self.method = method

    def __repr__(self) -> str:
        return f"FakeRequest({self.method} {self.url})"


class RecordingClient:
    """Delivery client recording every signal it receives, in order."""

    def __init__(self) -> None:
        self.events: list[tuple[str, Any]] = []
        self.done = threading.Event()

    def on_response_metadata(self, status_code: int, headers: Mapping[str, str]) -> None:
        self.events.append(("metadata", (status_code, dict(headers))))

    def on_body_chunk(self, data: bytes) -> None:
        self.events.append(("body", data))

    def on_complete(self) -> None:
        self.events.append(("complete", None))
        self.done.set()

    def on_error(self, error: BaseException) -> None:
        self.events.append(("error", error))
        self.done.set()

    @property
    def kinds(self) -> list[str]:
        return [kind for kind, _ in self.events]


@pytest.fixture
def recording_client() -> RecordingClient:
    return RecordingClient()
