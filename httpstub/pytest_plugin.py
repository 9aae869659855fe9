"""pytest fixtures for stubbing httpx traffic.

Enable in a ``conftest.py`` with ``pytest_plugins = ["httpstub.pytest_plugin"]``.
"""

from __future__ import annotations

from typing import Iterator

import pytest

from .engine import StubEngine


@pytest.fixture
def http_stub() -> Iterator[StubEngine]:
    """Installed engine with no rules; torn down after the test."""

    engine = StubEngine()
    engine.install()
    try:
        yield engine
    finally:
        engine.cancel_all()
        engine.clear_all_rules()
        engine.set_observer(None)
        engine.uninstall()
