"""Asynchronous, subscription based access to a MAVLink connection."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Optional, Protocol

from .messages import Heartbeat, MavHeader
from .types import AsyncMavlinkError, ConnectionLost, MavMessageType, SendAckError, TaskEmitError

_log = logging.getLogger(__name__)

_END = object()


class MavTransport(Protocol):
    """A blocking MAVLink link that the connection drives from a worker thread."""

    def send(self, header: MavHeader, message: Any) -> int:
        """Write one message with the given header and return the number of bytes written."""

    def recv(self) -> tuple[MavHeader, Any]:
        """Block until a message arrives; raise EOFError once the link is closed for good."""


class _Subscription:
    """Stream of the messages of one type, fed by the event loop."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue = asyncio.Queue()
        self._ended = False
        self.closed = False

    def _deliver(self, message: Any) -> None:
        self._queue.put_nowait(message)

    def _finish(self) -> None:
        self._queue.put_nowait(_END)

    def close(self) -> None:
        """Stop the stream; the event loop drops it on the next message."""
        if not self.closed:
            self.closed = True
            self._finish()

    async def aclose(self) -> None:
        self.close()

    def __aiter__(self) -> "_Subscription":
        return self

    async def __anext__(self) -> Any:
        if self._ended:
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _END:
            self._ended = True
            self.closed = True
            raise StopAsyncIteration
        return item


@dataclass
class _Subscribe:
    message_type: MavMessageType
    subscription: _Subscription


@dataclass
class _Emit:
    header: MavHeader
    message: Any
    future: asyncio.Future


@dataclass
class _Incoming:
    header: MavHeader
    message: Any


class AsyncMavConn:
    """Async adapter for a MAVLink transport.

    The coroutine returned by :meth:`run` is the event loop; it must be running
    as a task for subscriptions, requests and sends to make progress.
    """

    def __init__(self, transport: MavTransport) -> None:
        self._transport = transport
        self._events: asyncio.Queue = asyncio.Queue()
        self._messages: asyncio.Queue = asyncio.Queue()
        self._subscriptions: dict[MavMessageType, list[_Subscription]] = {}
        self._last_heartbeat: Optional[float] = None
        self._running = False
        self._closed = False

    async def run(self) -> None:
        """Run the event loop until it is cancelled."""
        if self._running or self._closed:
            raise RuntimeError("the event loop is already running or has stopped")
        self._running = True
        _log.debug("started event loop")
        reader = asyncio.create_task(self._read_messages())
        try:
            while True:
                self._handle(await self._events.get())
        finally:
            reader.cancel()
            self._running = False
            self._closed = True
            self._shutdown()

    async def _read_messages(self) -> None:
        while True:
            try:
                header, message = await asyncio.to_thread(self._transport.recv)
            except EOFError:
                _log.debug("transport closed, no more messages will be received")
                return
            except Exception as exc:  # a bad frame or a transient read error
                _log.debug("failed to receive a message: %s", exc)
                continue
            self._events.put_nowait(_Incoming(header, message))

    def _handle(self, event: Any) -> None:
        match event:
            case _Subscribe(message_type=message_type, subscription=subscription):
                _log.debug("subscribed to %s", message_type)
                self._subscriptions.setdefault(message_type, []).append(subscription)
            case _Emit(header=header, message=message, future=future):
                self._emit(header, message, future)
            case _Incoming(header=header, message=message):
                self._dispatch(header, message)

    def _emit(self, header: MavHeader, message: Any, future: asyncio.Future) -> None:
        if future.done():
            return
        try:
            written = self._transport.send(header, message)
        except AsyncMavlinkError as exc:
            future.set_exception(exc)
            return
        except OSError as exc:
            error = ConnectionLost()
            error.__cause__ = exc
            future.set_exception(error)
            return
        _log.debug(
            "sent a message to system %s, component %s: %r",
            header.system_id,
            header.component_id,
            message,
        )
        future.set_result(written)

    def _dispatch(self, header: MavHeader, message: Any) -> None:
        if isinstance(message, Heartbeat):
            _log.debug(
                "received heartbeat from system %s, component %s",
                header.system_id,
                header.component_id,
            )
            self._last_heartbeat = time.monotonic()
        else:
            _log.debug(
                "received a message from system %s, component %s: %r",
                header.system_id,
                header.component_id,
                message,
            )
        self._messages.put_nowait(message)
        subscribers = self._subscriptions.setdefault(MavMessageType(message), [])
        subscribers[:] = [sub for sub in subscribers if not sub.closed]
        for subscription in subscribers:
            subscription._deliver(message)

    def _shutdown(self) -> None:
        while not self._events.empty():
            event = self._events.get_nowait()
            if isinstance(event, _Emit) and not event.future.done():
                event.future.set_exception(SendAckError())
            elif isinstance(event, _Subscribe):
                event.subscription._finish()
        for subscribers in self._subscriptions.values():
            for subscription in subscribers:
                subscription._finish()
        self._subscriptions.clear()
        self._messages.put_nowait(_END)

    def _ensure_open(self) -> None:
        if self._closed:
            raise TaskEmitError()

    async def subscribe(self, message_type: MavMessageType) -> _Subscription:
        """Return an async stream of every later message of the given type."""
        self._ensure_open()
        subscription = _Subscription()
        self._events.put_nowait(_Subscribe(message_type, subscription))
        return subscription

    async def request(self, message_type: MavMessageType) -> Any:
        """Wait for the next message of the given type and return it."""
        subscription = await self.subscribe(message_type)
        try:
            return await anext(subscription)
        except StopAsyncIteration:
            raise AsyncMavlinkError("the event loop stopped before a message arrived") from None
        finally:
            subscription.close()

    async def send(self, header: MavHeader, message: Any) -> int:
        """Send a message with the given header; return the number of bytes written."""
        self._ensure_open()
        future = asyncio.get_running_loop().create_future()
        self._events.put_nowait(_Emit(header, message, future))
        return await future

    async def send_default(self, message: Any) -> int:
        """Send a message with a default header."""
        return await self.send(MavHeader(), message)

    def last_heartbeat(self) -> Optional[float]:
        """Monotonic time at which the last heartbeat arrived, or None."""
        return self._last_heartbeat

    async def next_message(self) -> Any:
        """Wait for the next received message of any type."""
        item = await self._messages.get()
        if item is _END:
            self._messages.put_nowait(_END)
            raise AsyncMavlinkError("the event loop has stopped")
        return item