"""httpx integration: delivery receivers, stub transports and global install."""

from __future__ import annotations

import asyncio
import threading
from concurrent.futures import Future, InvalidStateError
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import TYPE_CHECKING, Mapping

import httpx
import structlog

from .errors import StubError, UnmatchedRequestError
from .models import HTTP_VERSION

if TYPE_CHECKING:  # pragma: no cover
    from .engine import StubEngine

LOGGER = structlog.get_logger("httpstub")

_ORIGINAL_HANDLE_REQUEST = httpx.HTTPTransport.handle_request
_ORIGINAL_HANDLE_ASYNC_REQUEST = httpx.AsyncHTTPTransport.handle_async_request

_install_lock = threading.Lock()
_installed: "StubEngine | None" = None


class ResponseCollector:
    """Delivery client that turns delivery signals into an ``httpx.Response``.

    The outcome is published on :attr:`future`: either the response or the
    delivered error.
    """

    def __init__(self, request: httpx.Request) -> None:
        self.request = request
        self.future: Future[httpx.Response] = Future()
        self._status_code: int | None = None
        self._headers: dict[str, str] = {}
        self._chunks: list[bytes] = []

    def on_response_metadata(self, status_code: int, headers: Mapping[str, str]) -> None:
        self._status_code = status_code
        self._headers = dict(headers)

    def on_body_chunk(self, data: bytes) -> None:
        self._chunks.append(data)

    def on_complete(self) -> None:
        try:
            response = httpx.Response(
                self._status_code if self._status_code is not None else 200,
                headers=self._headers,
                content=b"".join(self._chunks),
                request=self.request,
                extensions={"http_version": HTTP_VERSION.encode("ascii")},
            )
        except (TypeError, ValueError) as exc:
            # e.g. non-ASCII header values
            error = httpx.DecodingError(f"Stubbed response could not be built: {exc}", request=self.request)
            error.__cause__ = exc
            self._settle(error=error)
            return
        self._settle(response=response)

    def on_error(self, error: BaseException) -> None:
        if isinstance(error, httpx.RequestError) and getattr(error, "_request", None) is None:
            error.request = self.request
        self._settle(error=error)

    def _settle(self, *, response: httpx.Response | None = None, error: BaseException | None = None) -> None:
        try:
            if error is not None:
                self.future.set_exception(error)
            else:
                self.future.set_result(response)
        except InvalidStateError:
            LOGGER.debug("delivery_discarded", url=str(self.request.url), reason="caller gone")


def _read_timeout(request: httpx.Request) -> float | None:
    timeout = request.extensions.get("timeout") or {}
    return timeout.get("read")


def _unmatched(request: httpx.Request) -> UnmatchedRequestError:
    error = UnmatchedRequestError(request.method, str(request.url))
    error.request = request
    return error


def _timed_out(request: httpx.Request, timeout: float) -> httpx.ReadTimeout:
    return httpx.ReadTimeout(f"Stubbed response not delivered within {timeout:g}s", request=request)


def _settled_result(collector: ResponseCollector, request: httpx.Request, timeout: float) -> httpx.Response:
    # Cancel lost, so the task is terminal; its outcome is published unless a callback broke.
    if not collector.future.done():
        raise _timed_out(request, timeout)
    return collector.future.result(timeout=0)


def send(engine: "StubEngine", request: httpx.Request) -> httpx.Response:
    """Claim ``request`` and block until its delivery settles."""

    collector = ResponseCollector(request)
    task = engine.claim(request, collector)
    if task is None:
        raise _unmatched(request)
    timeout = _read_timeout(request)
    try:
        return collector.future.result(timeout=timeout)
    except FutureTimeoutError:
        if task.cancel():
            raise _timed_out(request, timeout) from None
        return _settled_result(collector, request, timeout)


async def send_async(engine: "StubEngine", request: httpx.Request) -> httpx.Response:
    """Claim ``request`` and await its delivery; cancelling the caller cancels the delivery."""

    collector = ResponseCollector(request)
    task = engine.claim(request, collector)
    if task is None:
        raise _unmatched(request)
    waiter = asyncio.wrap_future(collector.future)
    waiter.add_done_callback(_consume)
    timeout = _read_timeout(request)
    try:
        return await asyncio.wait_for(asyncio.shield(waiter), timeout)
    except asyncio.TimeoutError:
        if task.cancel():
            raise _timed_out(request, timeout) from None
        return _settled_result(collector, request, timeout)
    except asyncio.CancelledError:
        task.cancel()
        raise


def _consume(waiter: asyncio.Future) -> None:
    # Marks an outcome nobody awaited any more as retrieved.
    if not waiter.cancelled():
        waiter.exception()


class StubTransport(httpx.BaseTransport):
    """Transport that answers exclusively from a stub engine."""

    def __init__(self, engine: "StubEngine") -> None:
        self.engine = engine

    def handle_request(self, request: httpx.Request) -> httpx.Response:
        return send(self.engine, request)


class AsyncStubTransport(httpx.AsyncBaseTransport):
    """Async counterpart of :class:`StubTransport`."""

    def __init__(self, engine: "StubEngine") -> None:
        self.engine = engine

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        return await send_async(self.engine, request)


def _intercepting_handle_request(self: httpx.HTTPTransport, request: httpx.Request) -> httpx.Response:
    engine = _installed
    if engine is not None and engine.should_intercept(request):
        return send(engine, request)
    return _ORIGINAL_HANDLE_REQUEST(self, request)


async def _intercepting_handle_async_request(
    self: httpx.AsyncHTTPTransport, request: httpx.Request
) -> httpx.Response:
    engine = _installed
    if engine is not None and engine.should_intercept(request):
        return await send_async(engine, request)
    return await _ORIGINAL_HANDLE_ASYNC_REQUEST(self, request)


def installed_engine() -> "StubEngine | None":
    return _installed


def install_engine(engine: "StubEngine") -> bool:
    """Patch httpx's default transports. Returns ``False`` if already installed."""

    global _installed
    with _install_lock:
        if _installed is engine:
            return False
        if _installed is not None:
            raise StubError("another StubEngine is already installed; uninstall it first")
        httpx.HTTPTransport.handle_request = _intercepting_handle_request  # type: ignore[method-assign]
        httpx.AsyncHTTPTransport.handle_async_request = _intercepting_handle_async_request  # type: ignore[method-assign]
        _installed = engine
        return True


def uninstall_engine(engine: "StubEngine") -> bool:
    global _installed
    with _install_lock:
        if _installed is not engine:
            return False
        httpx.HTTPTransport.handle_request = _ORIGINAL_HANDLE_REQUEST  # type: ignore[method-assign]
        httpx.AsyncHTTPTransport.handle_async_request = _ORIGINAL_HANDLE_ASYNC_REQUEST  # type: ignore[method-assign]
        _installed = None
        return True
