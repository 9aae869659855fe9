"""Per-request delivery of a stubbed response.

A :class:`DeliveryTask` is created for every claimed request. It owns a single
worker thread that waits out the configured delay and then hands the response
to a :class:`DeliveryClient`. Cancellation and firing race for the same lock;
whichever takes the task out of ``SCHEDULED`` first decides the single
terminal signal the client receives.
"""

from __future__ import annotations

import threading
import uuid
from enum import Enum
from typing import Any, Callable, Mapping, Optional, Protocol

import structlog

from .errors import DeliveryCancelled
from .models import MockResponse, Success
from .rules import request_url

LOGGER = structlog.get_logger("httpstub")


class DeliveryClient(Protocol):
    """Receiver of delivery signals, usually the transport answering a caller."""

    def on_response_metadata(self, status_code: int, headers: Mapping[str, str]) -> None:
        ...

    def on_body_chunk(self, data: bytes) -> None:
        ...

    def on_complete(self) -> None:
        ...

    def on_error(self, error: BaseException) -> None:
        ...


class DeliveryState(str, Enum):
    SCHEDULED = "scheduled"
    DELIVERING = "delivering"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (DeliveryState.COMPLETED, DeliveryState.FAILED, DeliveryState.CANCELLED)


class DeliveryTask:
    """Cancellable, possibly delayed delivery of one response to one client."""

    def __init__(
        self,
        response: MockResponse,
        client: DeliveryClient,
        *,
        request: Any = None,
        on_finished: Optional[Callable[["DeliveryTask"], None]] = None,
    ) -> None:
        self.response = response
        self.request = request
        self.id = uuid.uuid4().hex
        self._client = client
        self._on_finished = on_finished
        self._state = DeliveryState.SCHEDULED
        self._terminal_sent = False
        self._lock = threading.RLock()
        self._cancel_requested = threading.Event()
        self._finished = threading.Event()
        self._thread: threading.Thread | None = None
        self._logger = LOGGER.bind(task=self.id[:8], url=request_url(request))

    @property
    def state(self) -> DeliveryState:
        return self._state

    @property
    def delay(self) -> float:
        return self.response.delay or 0.0

    def start(self) -> "DeliveryTask":
        if self._thread is not None:
            raise RuntimeError("delivery task already started")
        self._thread = threading.Thread(
            target=self._run,
            name=f"httpstub-{self.id}",
            daemon=True,
        )
        self._logger.debug("delivery_scheduled", delay=self.delay)
        self._thread.start()
        return self

    def cancel(self) -> bool:
        """Cancel the delivery unless it already started.

        Returns ``True`` when this call won the task. Calling it again, or
        after completion, is a no-op returning ``False``. A delivery already in
        progress is allowed to finish.
        """

        with self._lock:
            if self._state is not DeliveryState.SCHEDULED:
                return False
            self._state = DeliveryState.CANCELLED
            self._cancel_requested.set()
            self._terminal_sent = True
            self._logger.info("delivery_cancelled")
            try:
                self._client.on_error(DeliveryCancelled())
            finally:
                self._finish()
        return True

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the task reaches a terminal state."""

        return self._finished.wait(timeout)

    def _run(self) -> None:
        # Returns early when cancel() sets the event.
        self._cancel_requested.wait(self.delay)
        with self._lock:
            if self._state is not DeliveryState.SCHEDULED:
                return
            self._state = DeliveryState.DELIVERING
            try:
                self._deliver()
            except Exception as exc:
                if self._terminal_sent:
                    raise
                # A callback raised before the terminal signal; report it as the failure.
                self._state = DeliveryState.FAILED
                self._terminal_sent = True
                self._logger.error("delivery_callback_failed", error=f"{type(exc).__name__}: {exc}")
                self._client.on_error(exc)
            finally:
                self._finish()

    def _deliver(self) -> None:
        response = self.response
        client = self._client
        client.on_response_metadata(response.status_code, dict(response.headers or {}))
        outcome = response.outcome
        if isinstance(outcome, Success):
            client.on_body_chunk(outcome.body)
            self._state = DeliveryState.COMPLETED
            self._logger.info("delivery_completed", status=response.status_code, size=len(outcome.body))
            self._terminal_sent = True
            client.on_complete()
        else:
            self._state = DeliveryState.FAILED
            self._logger.info(
                "delivery_failed",
                status=response.status_code,
                error=type(outcome.error).__name__,
            )
            self._terminal_sent = True
            client.on_error(outcome.error)

    def _finish(self) -> None:
        if self._state is DeliveryState.DELIVERING:
            # A client callback raised mid-delivery.
            self._state = DeliveryState.FAILED
        try:
            if self._on_finished is not None:
                self._on_finished(self)
        finally:
            self._finished.set()

    def __repr__(self) -> str:
        return f"DeliveryTask(id={self.id[:8]}, state={self._state.value})"

