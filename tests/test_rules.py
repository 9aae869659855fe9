from __future__ import annotations

import re

import httpx
import pytest

from conftest import FakeRequest
from httpstub import MalformedPatternError, MockResponse, StubEngine
from httpstub.rules import ExactPattern, RegexPattern, RuleSet


def test_exact_rule_matches_only_the_literal_url() -> None:
    engine = StubEngine()
    assert engine.match(FakeRequest("https://example.com/hello")) is None

    response = MockResponse.success(b"")
    engine.add_rule("https://example.com/hello", response)

    assert engine.match(FakeRequest("https://example.com/hello")) is response
    assert engine.match(FakeRequest("https://example.com/hello?x=1")) is None
    assert engine.match(FakeRequest("https://EXAMPLE.com/hello")) is None


def test_exact_rule_treats_regex_metacharacters_literally() -> None:
    engine = StubEngine()
    engine.add_rule("https://example.com/a.b?x=(1)", MockResponse.success(b""))

    assert engine.match(FakeRequest("https://example.com/a.b?x=(1)")) is not None
    assert engine.match(FakeRequest("https://example.com/aXb?x=(1)")) is None


def test_exact_rule_accepts_custom_schemes() -> None:
    engine = StubEngine()
    engine.add_rule("abc://example.com/hello", MockResponse.success(b""))

    assert engine.match(FakeRequest("abc://example.com/hello")) is not None


def test_regex_rule_requires_whole_match() -> None:
    engine = StubEngine()
    engine.add_rule(re.compile(r"https://example\.com.+"), MockResponse.success(b""))

    assert engine.match(FakeRequest("https://example.com/hello")) is not None
    assert engine.match(FakeRequest("https://example.com/world")) is not None
    assert engine.match(FakeRequest("https://example.com/path%20")) is not None
    assert engine.match(FakeRequest("http://example.com/hello")) is None
    assert engine.match(FakeRequest("xhttps://example.com/hello")) is None


def test_regex_rule_from_string() -> None:
    engine = StubEngine()
    engine.add_rule(r".+example\.com.+", MockResponse.success(b""), regex=True)

    assert engine.match(FakeRequest("https://example.com/path%20?abcd=efg")) is not None
    assert engine.match(FakeRequest("https://example.org/hello")) is None


def test_regex_rule_without_anchors_does_not_match_substring() -> None:
    engine = StubEngine()
    engine.add_rule("example", MockResponse.success(b""), regex=True)

    assert engine.match(FakeRequest("https://example.com/")) is None


def test_malformed_regex_fails_at_registration() -> None:
    engine = StubEngine()

    with pytest.raises(MalformedPatternError) as excinfo:
        engine.add_rule("https://example.com/(unclosed", MockResponse.success(b""), regex=True)

    assert excinfo.value.pattern == "https://example.com/(unclosed"
    assert isinstance(excinfo.value.__cause__, re.error)
    assert len(engine.rules) == 0


def test_first_registered_rule_wins() -> None:
    engine = StubEngine()
    first = MockResponse.success(b"first")
    second = MockResponse.success(b"second")
    engine.add_rule(re.compile(r"https://example\.com/.*"), first)
    engine.add_rule("https://example.com/hello", second)

    assert engine.match(FakeRequest("https://example.com/hello")) is first


def test_duplicate_rules_are_kept_in_order() -> None:
    engine = StubEngine()
    first = MockResponse.success(b"1")
    second = MockResponse.success(b"2")
    engine.add_rule("https://example.com/hello", first)
    engine.add_rule("https://example.com/hello", second)

    assert len(engine.rules) == 2
    assert engine.match(FakeRequest("https://example.com/hello")) is first


def test_dynamic_rule_wins_over_pattern_rules() -> None:
    engine = StubEngine()
    pattern_response = MockResponse.success(b"pattern")
    dynamic_response = MockResponse.success(b"dynamic")
    engine.add_rule("https://example.com/hello", pattern_response)
    engine.set_dynamic_rule(lambda request: dynamic_response)

    assert engine.match(FakeRequest("https://example.com/hello")) is dynamic_response
    assert engine.match(FakeRequest("abcd://abcd.com/abcd")) is dynamic_response
    assert engine.match(FakeRequest("b://bbb.com/bbb?bb=")) is dynamic_response


def test_dynamic_rule_returning_none_falls_through() -> None:
    engine = StubEngine()
    pattern_response = MockResponse.success(b"pattern")
    engine.add_rule("https://example.com/hello", pattern_response)
    engine.set_dynamic_rule(lambda request: None)

    assert engine.match(FakeRequest("https://example.com/hello")) is pattern_response
    assert engine.match(FakeRequest("https://example.com/other")) is None


def test_dynamic_rule_object_and_replacement() -> None:
    class PostOnly:
        def __init__(self, response: MockResponse) -> None:
            self.response = response
            self.calls = 0

        def evaluate(self, request):
            self.calls += 1
            return self.response if request.method == "POST" else None

    engine = StubEngine()
    old = PostOnly(MockResponse.success(b"old"))
    new = PostOnly(MockResponse.success(b"new"))
    engine.set_dynamic_rule(old)
    engine.set_dynamic_rule(new)

    assert engine.match(FakeRequest("https://example.com/", method="POST")) is new.response
    assert engine.match(FakeRequest("https://example.com/", method="GET")) is None
    assert old.calls == 0

    engine.set_dynamic_rule(None)
    assert engine.rules.dynamic_rule is None


def test_dynamic_rule_must_be_callable() -> None:
    with pytest.raises(TypeError):
        RuleSet().set_dynamic_rule(42)  # type: ignore[arg-type]


def test_clear_all_rules_removes_patterns_and_dynamic_rule() -> None:
    engine = StubEngine()
    engine.add_rule("https://example.com/hello", MockResponse.success(b""))
    engine.set_dynamic_rule(lambda request: MockResponse.success(b""))

    engine.clear_all_rules()
    engine.clear_all_rules()

    assert engine.match(FakeRequest("https://example.com/hello")) is None
    assert engine.rules.dynamic_rule is None
    assert len(engine.rules) == 0


def test_match_is_repeatable_and_side_effect_free() -> None:
    engine = StubEngine()
    response = MockResponse.success(b"")
    engine.add_rule("https://example.com/hello", response)
    request = httpx.Request("GET", "https://example.com/hello")

    results = {id(engine.match(request)) for _ in range(5)}
    assert results == {id(response)}
    assert engine.should_intercept(request)
    assert engine.should_intercept(request)
    assert engine.in_flight() == []


def test_request_without_url_is_not_matched() -> None:
    engine = StubEngine()
    engine.add_rule(re.compile(".*"), MockResponse.success(b""))

    assert engine.match(FakeRequest(None)) is None
    assert engine.match(object()) is None
    assert engine.should_intercept(object()) is False


def test_pattern_descriptions() -> None:
    assert ExactPattern("https://example.com").describe() == "https://example.com"
    assert RegexPattern.compile(r"https://.+").describe() == "/https://.+/"
