"""Rule-based interception of httpx requests for tests."""

from .delivery import DeliveryClient, DeliveryState, DeliveryTask
from .engine import StubEngine
from .errors import (
    DeliveryCancelled,
    ErrorCode,
    MalformedPatternError,
    SimulatedFailure,
    StubError,
    UnmatchedRequestError,
    UnresolvableRequestError,
)
from .models import Failure, MockResponse, Success
from .rules import DynamicRule, RuleSet

__all__ = [
    "DeliveryCancelled",
    "DeliveryClient",
    "DeliveryState",
    "DeliveryTask",
    "DynamicRule",
    "ErrorCode",
    "Failure",
    "MalformedPatternError",
    "MockResponse",
    "RuleSet",
    "SimulatedFailure",
    "StubEngine",
    "StubError",
    "Success",
    "UnmatchedRequestError",
    "UnresolvableRequestError",
]

__version__ = "0.1.0"
