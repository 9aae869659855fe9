"""Stub engine: rule configuration, request claiming and lifecycle."""

from __future__ import annotations

import re
import threading
from typing import Any, Callable, Optional, Protocol

import httpx
import structlog

from . import transport as _transport
from .delivery import DeliveryClient, DeliveryTask
from .logging_utils import ensure_logging
from .models import MockResponse
from .rules import DynamicRule, ExactPattern, PatternRule, RegexPattern, RuleSet, request_url

LOGGER = structlog.get_logger("httpstub")


class RequestObserver(Protocol):
    def notify(self, request: Any) -> None:
        ...


class StubEngine:
    """Intercepts httpx requests and answers them from registered rules.

    Typical test lifecycle::

        engine = StubEngine()
        engine.install()
        engine.add_rule("https://example.com/hello", MockResponse.success(b"hi"))
        ...
        engine.clear_all_rules()
        engine.uninstall()
    """

    def __init__(self) -> None:
        ensure_logging()
        self._rules = RuleSet()
        self._observer: Callable[[Any], None] | None = None
        self._tasks: set[DeliveryTask] = set()
        self._tasks_lock = threading.Lock()
        self._logger = LOGGER.bind(engine=hex(id(self)))

    @property
    def rules(self) -> RuleSet:
        return self._rules

    @property
    def installed(self) -> bool:
        return _transport.installed_engine() is self

    # Configuration

    def add_rule(
        self,
        pattern: str | re.Pattern[str],
        response: MockResponse,
        *,
        regex: bool = False,
        name: str | None = None,
    ) -> PatternRule:
        """Append a rule matching the request URL.

        A plain string matches the URL exactly unless ``regex=True``; a compiled
        pattern (or ``regex=True``) must match the whole URL. Invalid regexes
        raise :class:`~httpstub.errors.MalformedPatternError`.
        """

        if isinstance(pattern, re.Pattern):
            compiled = RegexPattern(pattern)
        elif regex:
            compiled = RegexPattern.compile(pattern)
        else:
            compiled = ExactPattern(pattern)
        rule = self._rules.add_pattern_rule(compiled, response, name=name)
        self._logger.debug("rule_added", rule=rule.describe(), response=response.summary(), total=len(self._rules))
        return rule

    def set_dynamic_rule(self, rule: DynamicRule | Callable[[Any], Optional[MockResponse]] | None) -> None:
        self._rules.set_dynamic_rule(rule)
        self._logger.debug("dynamic_rule_set", enabled=rule is not None)

    def set_observer(self, observer: RequestObserver | Callable[[Any], None] | None) -> None:
        """Register a callback notified with every claimed request."""

        if observer is not None and hasattr(observer, "notify"):
            observer = observer.notify
        elif observer is not None and not callable(observer):
            raise TypeError("observer must be callable or define notify(request)")
        self._observer = observer
        self._logger.debug("observer_set", enabled=observer is not None)

    def clear_all_rules(self) -> None:
        self._rules.clear()
        self._logger.debug("rules_cleared")

    # Matching

    def match(self, request: Any) -> MockResponse | None:
        return self._rules.match(request)

    def should_intercept(self, request: Any) -> bool:
        return self._rules.match(request) is not None

    # Delivery

    def claim(self, request: Any, client: DeliveryClient) -> DeliveryTask | None:
        """Schedule delivery of the matching response to ``client``.

        Returns ``None`` when no rule matches the request.
        """

        rule, response = self._rules.find(request)
        log = self._logger.bind(method=getattr(request, "method", None), url=request_url(request))
        if response is None:
            log.info("request_unmatched")
            return None
        if self._observer is not None:
            self._observer(request)
        task = DeliveryTask(response, client, request=request, on_finished=self._forget)
        with self._tasks_lock:
            self._tasks.add(task)
        log.info(
            "request_claimed",
            rule=rule.describe() if rule is not None else "dynamic",
            response=response.summary(),
            task=task.id[:8],
        )
        return task.start()

    def in_flight(self) -> list[DeliveryTask]:
        with self._tasks_lock:
            return list(self._tasks)

    def cancel_all(self) -> int:
        """Cancel every scheduled delivery; returns how many were cancelled."""

        return sum(1 for task in self.in_flight() if task.cancel())

    def _forget(self, task: DeliveryTask) -> None:
        with self._tasks_lock:
            self._tasks.discard(task)

    # Host networking layer

    def install(self) -> None:
        """Route every httpx request the rules claim through this engine."""

        if _transport.install_engine(self):
            self._logger.info("engine_installed")

    def uninstall(self) -> None:
        if _transport.uninstall_engine(self):
            self._logger.info("engine_uninstalled")

    def transport(self) -> httpx.BaseTransport:
        """Transport answering only from this engine; unmatched requests fail."""

        return _transport.StubTransport(self)

    def async_transport(self) -> httpx.AsyncBaseTransport:
        return _transport.AsyncStubTransport(self)

    def client(self, **kwargs: Any) -> httpx.Client:
        return httpx.Client(transport=self.transport(), **kwargs)

    def async_client(self, **kwargs: Any) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.async_transport(), **kwargs)

    def __enter__(self) -> "StubEngine":
        self.install()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cancel_all()
        self.clear_all_rules()
        self.uninstall()
