"""Dispatcher — correlates requests and responses over one transport.

Both ends of a connection run the same dispatcher.  Outgoing requests get a
fresh integer id and a pending future; incoming responses resolve the future
with the same id; incoming requests are routed to registered handlers, each
in its own task.  Because correlation is purely by id, a handler may issue
its own requests (in either direction) while the request that triggered it
is still unanswered.
"""

from __future__ import annotations

import asyncio
import inspect
import itertools
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from tandem.protocol import codec
from tandem.protocol.errors import (
    HandlerFailureError,
    MalformedEnvelopeError,
    MethodNotFoundError,
    ProtocolError,
    RequestTimedOutError,
    RpcError,
    TransportClosedError,
)
from tandem.protocol.models import (
    JsonRpcError,
    JsonRpcMessage,
    JsonRpcNotification,
    JsonRpcRequest,
    JsonRpcResponse,
    RequestId,
)
from tandem.protocol.transport import Transport
from tandem.utils.telemetry import ATTR_RPC_ID, ATTR_RPC_METHOD, ATTR_RPC_SIDE, get_tracer

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)

RequestHandler = Callable[[dict[str, Any]], "dict[str, Any] | Awaitable[dict[str, Any]]"]
NotificationHandler = Callable[[dict[str, Any]], "None | Awaitable[None]"]

DEFAULT_TIMEOUT: Any = object()


@dataclass
class PendingRequest:
    """An outgoing request waiting for its response."""

    id: RequestId
    method: str
    future: asyncio.Future[dict[str, Any]]
    created_at: float = field(default_factory=time.monotonic)


class Dispatcher:
    """Symmetric JSON-RPC endpoint bound to a single transport.

    Usage::

        dispatcher = Dispatcher(transport, name="host")
        dispatcher.register_handler("sampling/createMessage", handle_sampling)
        await dispatcher.start()
        result = await dispatcher.request("tools/list")
    """

    def __init__(
        self,
        transport: Transport,
        *,
        name: str = "dispatcher",
        request_timeout: float | None = None,
    ) -> None:
        self.name = name
        self.request_timeout = request_timeout
        self._transport = transport
        self._handlers: dict[str, RequestHandler] = {}
        self._notification_handlers: dict[str, NotificationHandler] = {}
        self._pending: dict[RequestId, PendingRequest] = {}
        self._inflight: dict[RequestId, asyncio.Task[None]] = {}
        self._ids = itertools.count(1)
        self._reader_task: asyncio.Task[None] | None = None
        self._background: set[asyncio.Task[None]] = set()
        self._close_callbacks: list[Callable[[], None]] = []
        self._closed = asyncio.Event()

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register_handler(self, method: str, handler: RequestHandler) -> None:
        """Route incoming requests for *method* to *handler*."""
        self._handlers[method] = handler

    def register_notification_handler(self, method: str, handler: NotificationHandler) -> None:
        """Route incoming notifications for *method* to *handler*."""
        self._notification_handlers[method] = handler

    def add_close_callback(self, callback: Callable[[], None]) -> None:
        """Call *callback* once when the dispatcher shuts down."""
        self._close_callbacks.append(callback)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    @property
    def transport(self) -> Transport:
        return self._transport

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def start(self) -> None:
        """Start the background read loop."""
        if self._reader_task is not None:
            return
        if self.closed:
            raise TransportClosedError()
        self._reader_task = asyncio.create_task(self._read_loop(), name=f"{self.name}-reader")

    async def close(self) -> None:
        """Close the transport and reject everything still pending."""
        if self.closed:
            return
        self._shutdown()
        reader = self._reader_task
        if reader is not None and reader is not asyncio.current_task():
            reader.cancel()
            try:
                await reader
            except asyncio.CancelledError:
                pass
        await self._transport.close()

    async def wait_closed(self) -> None:
        """Block until the dispatcher has shut down."""
        await self._closed.wait()

    # ------------------------------------------------------------------
    # Outgoing
    # ------------------------------------------------------------------

    async def request(
        self,
        method: str,
        params: dict[str, Any] | None = None,
        *,
        timeout: float | None = DEFAULT_TIMEOUT,
    ) -> dict[str, Any]:
        """Send a request and wait for the matching response.

        Args:
            method: Remote method name.
            params: Request parameters (a JSON object).
            timeout: Seconds to wait; ``None`` waits forever.  Defaults to the
                dispatcher's ``request_timeout``.

        Raises:
            RpcError: The other side answered with an error envelope.
            RequestTimedOutError: No response within *timeout*.
            MalformedEnvelopeError: The response for this request was invalid.
            TransportClosedError: The transport closed while waiting.
        """
        if self.closed:
            raise TransportClosedError()
        effective_timeout = self.request_timeout if timeout is DEFAULT_TIMEOUT else timeout

        request_id = next(self._ids)
        future: asyncio.Future[dict[str, Any]] = asyncio.get_running_loop().create_future()
        self._pending[request_id] = PendingRequest(id=request_id, method=method, future=future)

        with _tracer.start_as_current_span("rpc.request") as span:
            span.set_attribute(ATTR_RPC_METHOD, method)
            span.set_attribute(ATTR_RPC_ID, str(request_id))
            span.set_attribute(ATTR_RPC_SIDE, self.name)
            try:
                await self._send(JsonRpcRequest(id=request_id, method=method, params=params or {}))
                if effective_timeout is None:
                    return await future
                return await asyncio.wait_for(future, timeout=effective_timeout)
            except TimeoutError:
                logger.warning(
                    "%s: request %s (%s) timed out after %ss",
                    self.name, request_id, method, effective_timeout,
                )
                raise RequestTimedOutError(method, effective_timeout) from None
            finally:
                self._pending.pop(request_id, None)

    async def notify(self, method: str, params: dict[str, Any] | None = None) -> None:
        """Send a notification (no response expected)."""
        if self.closed:
            raise TransportClosedError()
        await self._send(JsonRpcNotification(method=method, params=params or {}))

    async def _send(self, message: JsonRpcMessage) -> None:
        await self._transport.send(codec.encode(message))

    # ------------------------------------------------------------------
    # Incoming
    # ------------------------------------------------------------------

    async def _read_loop(self) -> None:
        """Receive messages until the transport closes."""
        try:
            while not self.closed:
                raw = await self._transport.receive()
                await self._on_raw(raw)
        except TransportClosedError:
            logger.info("%s: transport closed", self.name)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception("%s: read loop failed", self.name)
        self._shutdown()
        await self._transport.close()

    async def _on_raw(self, raw: str) -> None:
        try:
            message = codec.decode(raw)
        except MalformedEnvelopeError as exc:
            logger.warning("%s: %s", self.name, exc)
            if exc.response:
                self._reject_pending(exc)
                return
            error = JsonRpcError(code=exc.code, message=exc.message)
            await self._send_quietly(JsonRpcResponse(id=exc.request_id, error=error))
            return
        self.on_envelope(message)

    def on_envelope(self, message: JsonRpcMessage) -> None:
        """Route one decoded envelope.

        Responses settle the matching pending request; requests and
        notifications are handed to their handlers in new tasks so that the
        read loop is never blocked by a handler.
        """
        if self.closed:
            return
        if isinstance(message, JsonRpcResponse):
            self._on_response(message)
        elif isinstance(message, JsonRpcRequest):
            if message.id in self._inflight:
                logger.warning(
                    "%s: dropping duplicate request id %s (%s)", self.name, message.id, message.method
                )
                return
            task = asyncio.create_task(self._handle_request(message))
            self._inflight[message.id] = task
            task.add_done_callback(lambda _t, rid=message.id: self._inflight.pop(rid, None))
        else:
            task = asyncio.create_task(self._handle_notification(message))
            self._background.add(task)
            task.add_done_callback(self._background.discard)

    def _on_response(self, response: JsonRpcResponse) -> None:
        pending = self._pending.pop(response.id, None) if response.id is not None else None
        if pending is None:
            if response.error is not None:
                logger.warning(
                    "%s: error for unknown request %s: %s",
                    self.name, response.id, response.error.message,
                )
            else:
                logger.warning("%s: response for unknown request %s", self.name, response.id)
            return
        if pending.future.done():
            return
        if response.error is not None:
            err = response.error
            pending.future.set_exception(RpcError(err.code, err.message, err.data))
        else:
            pending.future.set_result(response.result or {})

    def _reject_pending(self, exc: MalformedEnvelopeError) -> None:
        """Fail the request a malformed response was meant for, if any."""
        pending = self._pending.pop(exc.request_id, None) if exc.request_id is not None else None
        if pending is not None and not pending.future.done():
            pending.future.set_exception(exc)

    async def _handle_request(self, request: JsonRpcRequest) -> None:
        with _tracer.start_as_current_span("rpc.handle") as span:
            span.set_attribute(ATTR_RPC_METHOD, request.method)
            span.set_attribute(ATTR_RPC_ID, str(request.id))
            span.set_attribute(ATTR_RPC_SIDE, self.name)
            try:
                handler = self._handlers.get(request.method)
                if handler is None:
                    raise MethodNotFoundError(request.method)
                result = handler(request.params)
                if inspect.isawaitable(result):
                    result = await result
                response = JsonRpcResponse(id=request.id, result=result or {})
            except ProtocolError as exc:
                logger.info("%s: %s failed: %s", self.name, request.method, exc)
                response = JsonRpcResponse(
                    id=request.id,
                    error=JsonRpcError(code=exc.code, message=exc.message, data=exc.data),
                )
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.exception("%s: handler for %s raised", self.name, request.method)
                failure = HandlerFailureError(str(exc) or type(exc).__name__)
                response = JsonRpcResponse(
                    id=request.id,
                    error=JsonRpcError(code=failure.code, message=failure.message),
                )
        await self._send_quietly(response)

    async def _handle_notification(self, notification: JsonRpcNotification) -> None:
        handler = self._notification_handlers.get(notification.method)
        if handler is None:
            logger.debug("%s: ignoring notification %s", self.name, notification.method)
            return
        try:
            result = handler(notification.params)
            if inspect.isawaitable(result):
                await result
        except Exception:
            logger.exception("%s: notification handler for %s raised", self.name, notification.method)

    async def _send_quietly(self, message: JsonRpcMessage) -> None:
        """Send a response; a closed transport only means nobody is listening."""
        if self.closed:
            return
        try:
            await self._send(message)
        except TransportClosedError:
            logger.debug("%s: transport closed before response could be sent", self.name)

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    def _shutdown(self) -> None:
        if self.closed:
            return
        self._closed.set()

        pending = list(self._pending.values())
        self._pending.clear()
        for item in pending:
            if not item.future.done():
                item.future.set_exception(TransportClosedError())
        if pending:
            logger.info("%s: rejected %d pending request(s)", self.name, len(pending))

        for task in list(self._inflight.values()):
            if task is not asyncio.current_task():
                task.cancel()

        for callback in self._close_callbacks:
            try:
                callback()
            except Exception:
                logger.exception("%s: close callback failed", self.name)
