"""Ordered rule set and the matching algorithm."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol, Union

import structlog

from .errors import MalformedPatternError, UnresolvableRequestError
from .models import MockResponse

LOGGER = structlog.get_logger("httpstub")


class DynamicRule(Protocol):
    """Single-slot rule consulted before any pattern rule."""

    def evaluate(self, request: Any) -> Optional[MockResponse]:
        ...


@dataclass(frozen=True)
class ExactPattern:
    url: str

    def matches(self, url: str) -> bool:
        return url == self.url

    def describe(self) -> str:
        return self.url


@dataclass(frozen=True)
class RegexPattern:
    regex: re.Pattern[str]

    @classmethod
    def compile(cls, pattern: str) -> "RegexPattern":
        try:
            return cls(re.compile(pattern))
        except re.error as exc:
            raise MalformedPatternError(pattern, str(exc)) from exc

    def matches(self, url: str) -> bool:
        return self.regex.fullmatch(url) is not None

    def describe(self) -> str:
        return f"/{self.regex.pattern}/"


Pattern = Union[ExactPattern, RegexPattern]


@dataclass(frozen=True)
class PatternRule:
    pattern: Pattern
    response: MockResponse
    name: str | None = None

    def describe(self) -> str:
        return self.name or self.pattern.describe()


class _CallableRule:
    def __init__(self, func: Callable[[Any], Optional[MockResponse]]) -> None:
        self._func = func

    def evaluate(self, request: Any) -> Optional[MockResponse]:
        return self._func(request)

    def __repr__(self) -> str:
        return f"_CallableRule({self._func!r})"


def as_dynamic_rule(rule: DynamicRule | Callable[[Any], Optional[MockResponse]] | None) -> DynamicRule | None:
    """Accept either an object with ``evaluate`` or a plain callable."""

    if rule is None or hasattr(rule, "evaluate"):
        return rule  # type: ignore[return-value]
    if callable(rule):
        return _CallableRule(rule)
    raise TypeError("dynamic rule must be callable or define evaluate(request)")


def request_url(request: Any) -> str | None:
    """Return the absolute URL string of a request, or ``None`` if it has none."""

    url = getattr(request, "url", None)
    if url is None:
        return None
    text = str(url)
    return text or None


class RuleSet:
    """Pattern rules in insertion order plus at most one dynamic rule.

    Matching never mutates the set. Mutation is not synchronized against
    concurrent matching; configure rules while no request is in flight.
    """

    def __init__(self) -> None:
        self._rules: list[PatternRule] = []
        self._dynamic: DynamicRule | None = None

    @property
    def rules(self) -> tuple[PatternRule, ...]:
        return tuple(self._rules)

    @property
    def dynamic_rule(self) -> DynamicRule | None:
        return self._dynamic

    def __len__(self) -> int:
        return len(self._rules)

    def add_pattern_rule(self, pattern: Pattern, response: MockResponse, *, name: str | None = None) -> PatternRule:
        rule = PatternRule(pattern=pattern, response=response, name=name)
        self._rules.append(rule)
        return rule

    def set_dynamic_rule(self, rule: DynamicRule | Callable[[Any], Optional[MockResponse]] | None) -> None:
        self._dynamic = as_dynamic_rule(rule)

    def clear(self) -> None:
        self._rules.clear()
        self._dynamic = None

    def find(self, request: Any) -> tuple[PatternRule | None, MockResponse | None]:
        """Return the winning pattern rule (``None`` for the dynamic rule) and its response."""

        if self._dynamic is not None:
            response = self._dynamic.evaluate(request)
            if response is not None:
                return None, response

        url = request_url(request)
        if url is None:
            error = UnresolvableRequestError("request has no usable URL")
            LOGGER.error("request_url_unresolvable", error=str(error), request=repr(request))
            return None, None

        for rule in self._rules:
            if rule.pattern.matches(url):
                return rule, rule.response
        return None, None

    def match(self, request: Any) -> MockResponse | None:
        return self.find(request)[1]
