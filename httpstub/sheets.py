"""Declarative rule sheets loaded from YAML or JSON."""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional

import yaml
from pydantic import BaseModel, Field, model_validator

from .errors import ErrorCode, SimulatedFailure
from .models import MockResponse

if TYPE_CHECKING:  # pragma: no cover
    from .engine import StubEngine
    from .rules import PatternRule


class ResponseSpec(BaseModel):
    """Response returned when a sheet rule matches."""

    status: Optional[int] = None
    headers: Optional[dict[str, str]] = None
    body: Any = None
    error: Optional[ErrorCode] = None
    message: Optional[str] = None
    delay_ms: float = Field(default=0, ge=0)

    @model_validator(mode="after")
    def _body_or_error(self) -> "ResponseSpec":
        if self.error is not None and self.body is not None:
            raise ValueError("response cannot define both 'body' and 'error'")
        return self

    def to_mock_response(self) -> MockResponse:
        delay = self.delay_ms / 1000 if self.delay_ms else None
        if self.error is not None:
            failure = MockResponse.failure(SimulatedFailure(self.error, self.message), delay=delay)
            if self.status is None and self.headers is None:
                return failure
            return MockResponse(
                status_code=self.status if self.status is not None else failure.status_code,
                outcome=failure.outcome,
                headers=self.headers,
                delay=delay,
            )
        status = self.status if self.status is not None else 200
        if isinstance(self.body, (dict, list)):
            return MockResponse.json(self.body, status_code=status, headers=self.headers, delay=delay)
        if self.body is None:
            data = b""
        elif isinstance(self.body, str):
            data = self.body.encode("utf-8")
        else:
            data = json.dumps(self.body).encode("utf-8")
        return MockResponse.success(data, status_code=status, headers=self.headers, delay=delay)


class RuleSpec(BaseModel):
    """Single rule: exactly one of ``url`` (exact) or ``regex``."""

    name: Optional[str] = None
    url: Optional[str] = None
    regex: Optional[str] = None
    response: ResponseSpec = Field(default_factory=ResponseSpec)

    @model_validator(mode="after")
    def _one_pattern(self) -> "RuleSpec":
        if (self.url is None) == (self.regex is None):
            raise ValueError("rule must define exactly one of 'url' or 'regex'")
        return self

    @property
    def pattern(self) -> str:
        return self.url if self.url is not None else f"/{self.regex}/"


class RuleSheet(BaseModel):
    """Top-level rule sheet document."""

    description: Optional[str] = None
    rules: list[RuleSpec] = Field(default_factory=list)

    def apply(self, engine: "StubEngine") -> list["PatternRule"]:
        """Add every rule to ``engine`` in document order."""

        added = []
        for spec in self.rules:
            response = spec.response.to_mock_response()
            if spec.regex is not None:
                added.append(engine.add_rule(spec.regex, response, regex=True, name=spec.name))
            else:
                added.append(engine.add_rule(spec.url, response, name=spec.name))
        return added


def load_sheet(path: Path) -> RuleSheet:
    """Load and validate a rule sheet file."""

    raw_text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        data = json.loads(raw_text)
    else:
        data = yaml.safe_load(raw_text)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError(f"Rule sheet {path} must contain a mapping")
    return RuleSheet.model_validate(data)
