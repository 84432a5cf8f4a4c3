"""The MAVLink parameter protocol with a local parameter cache."""

from __future__ import annotations

import asyncio
import logging
import struct
import time
from typing import Any, Awaitable, Callable, Optional

from .connection import AsyncMavConn
from .messages import (
    MavHeader,
    MavParamType,
    ParamRequestList,
    ParamRequestRead,
    ParamSet,
    ParamValue,
)
from .types import AsyncMavlinkError, MavMessageType, MaxRetriesReached
from .util import decode_param_id, encode_param_id

_log = logging.getLogger(__name__)

_UNKNOWN_COUNT = 0xFFFF
_RESEND_INTERVAL = 0.1
_STREAM_END = object()


def _to_f32(value: float) -> float:
    return struct.unpack("<f", struct.pack("<f", value))[0]


class ParameterProtocol:
    """Parameter protocol client that keeps a cache of the target's parameters.

    Lost packets are tolerated: after every timeout the missing parameters are
    requested again, one by one when at most ``max_missing`` are missing,
    otherwise as a whole list. After more than ``max_retries`` timeouts in a
    row without any ``PARAM_VALUE`` arriving, :class:`MaxRetriesReached` is
    raised.
    """

    def __init__(
        self,
        conn: AsyncMavConn,
        stream: Any,
        target_system: int,
        target_component: int,
        timeout_fn: Callable[[], Awaitable[Any]],
        max_missing: int,
        max_retries: int,
    ) -> None:
        self._conn = conn
        self._stream = stream
        self._target_system = target_system
        self._target_component = target_component
        self._timeout_fn = timeout_fn
        self._max_missing = max_missing
        self._max_retries = max_retries
        self._params: dict[str, tuple[float, MavParamType]] = {}
        self._missing: set[int] = set()
        self._total_count = _UNKNOWN_COUNT
        self._retries_attempted = 0

    @classmethod
    async def create(
        cls,
        conn: AsyncMavConn,
        target_system: int,
        target_component: int,
        timeout_fn: Callable[[], Awaitable[Any]],
        max_missing: int = 64,
        max_retries: int = 50,
    ) -> "ParameterProtocol":
        """Subscribe to parameter values and request the full parameter list."""
        stream = await conn.subscribe(MavMessageType(ParamValue))
        protocol = cls(
            conn,
            stream,
            target_system,
            target_component,
            timeout_fn,
            max_missing,
            max_retries,
        )
        await conn.send(protocol._header(), protocol._request_list())
        return protocol

    async def get(self, param_name: str) -> Optional[float]:
        """Return the value of a parameter, or None if the target has no such parameter."""
        while await self._update() is not None:
            pass
        while True:
            entry = self._params.get(param_name)
            if entry is not None:
                return entry[0]
            if self._all_synced():
                return None
            await self._update()

    async def get_all(self) -> dict[str, float]:
        """Synchronise fully with the target and return every parameter."""
        while (await self._update()) is not None or not self._all_synced():
            pass
        return {name: value for name, (value, _) in self._params.items()}

    async def set(self, param_name: str, param_value: float) -> bool:
        """Change a parameter; return False if the target has no such parameter."""
        while not self._all_synced():
            await self._update()

        entry = self._params.get(param_name)
        if entry is None:
            return False

        message = ParamSet(
            param_value=param_value,
            target_system=self._target_system,
            target_component=self._target_component,
            param_id=encode_param_id(param_name),
            param_type=entry[1],
        )
        wanted = _to_f32(param_value)
        await self._conn.send(self._header(), message)
        last_send = time.monotonic()

        while True:
            received = await self._update()
            if received is not None:
                current = self._params.get(param_name)
                if current is not None and _to_f32(current[0]) == wanted:
                    return True
            elif time.monotonic() - last_send > _RESEND_INTERVAL:
                _log.debug("re-sending the change of %s", param_name)
                await self._conn.send(self._header(), message)
                last_send = time.monotonic()

    def _all_synced(self) -> bool:
        return not self._missing and self._total_count == len(self._params)

    async def _process_message(self, message: Any) -> None:
        if not isinstance(message, ParamValue):
            raise AsyncMavlinkError(f"expected a PARAM_VALUE message, got {message!r}")
        _log.debug(
            "processing param #%s, %s in total", message.param_index, self._total_count
        )
        if message.param_count != self._total_count:
            _log.debug(
                "number of parameters changed, from %s to %s",
                self._total_count,
                message.param_count,
            )
            await self._conn.send_default(self._request_list())
            self._total_count = message.param_count
            self._params.clear()
            self._missing = set(range(self._total_count))

        self._missing.discard(message.param_index)
        self._params[decode_param_id(message.param_id)] = (
            message.param_value,
            message.param_type,
        )

    async def _update(self) -> Optional[ParamValue]:
        """Process at most one message; return it, or None after a timeout."""
        if self._retries_attempted > self._max_retries:
            raise MaxRetriesReached()

        message = await self._next_or_timeout()
        if message is _STREAM_END:
            raise AsyncMavlinkError("the stream of parameter values ended")
        if message is not None:
            self._retries_attempted = 0
            await self._process_message(message)
            return message

        self._retries_attempted += 1
        if len(self._missing) > self._max_missing:
            _log.debug(
                "re-requesting all parameters, %s are missing. %s retries left.",
                len(self._missing),
                self._max_retries - self._retries_attempted,
            )
            await self._conn.send(self._header(), self._request_list())
        else:
            _log.debug(
                "re-requesting the %s missing parameters. %s retries left.",
                len(self._missing),
                self._max_retries - self._retries_attempted,
            )
            for index in sorted(self._missing):
                await self._conn.send(self._header(), self._param_read("", index))
        return None

    async def _receive(self) -> Any:
        try:
            return await anext(self._stream)
        except StopAsyncIteration:
            return _STREAM_END

    async def _timeout(self) -> None:
        await self._timeout_fn()

    async def _next_or_timeout(self) -> Any:
        receive = asyncio.ensure_future(self._receive())
        timer = asyncio.ensure_future(self._timeout())
        try:
            await asyncio.wait({receive, timer}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            pending = [task for task in (receive, timer) if not task.done()]
            for task in pending:
                task.cancel()
            if pending:
                await asyncio.gather(*pending, return_exceptions=True)
        if receive.done() and not receive.cancelled():
            return receive.result()
        return None

    def _param_read(self, param_id: str, param_index: int) -> ParamRequestRead:
        return ParamRequestRead(
            param_index=param_index,
            target_system=self._target_system,
            target_component=self._target_component,
            param_id=encode_param_id(param_id),
        )

    def _request_list(self) -> ParamRequestList:
        return ParamRequestList(
            target_system=self._target_system,
            target_component=self._target_component,
        )

    def _header(self) -> MavHeader:
        return MavHeader(
            system_id=self._target_system, component_id=self._target_component
        )