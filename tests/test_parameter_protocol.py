import asyncio
import contextlib
import queue
import threading

import pytest

from asyncmav.connection import AsyncMavConn
from asyncmav.messages import (
    MavHeader,
    MavParamType,
    ParamRequestList,
    ParamRequestRead,
    ParamSet,
    ParamValue,
)
from asyncmav.parameter_protocol import ParameterProtocol
from asyncmav.types import MaxRetriesReached
from asyncmav.util import decode_param_id, encode_param_id

REAL32 = MavParamType.MAV_PARAM_TYPE_REAL32
INT32 = MavParamType.MAV_PARAM_TYPE_INT32


class FakeVehicle:
    """A transport that answers parameter requests like a vehicle would."""

    def __init__(
        self,
        params,
        drop_lists=0,
        drop_index=None,
        ignore_sets=0,
        silent=False,
    ):
        self.params = dict(params)
        self.sent = []
        self._drop_lists = drop_lists
        self._drop_index = drop_index
        self._ignore_sets = ignore_sets
        self._silent = silent
        self._lists = 0
        self._outbox = queue.Queue()
        self._closed = threading.Event()

    def _value(self, index):
        name = list(self.params)[index]
        value, ptype = self.params[name]
        return ParamValue(
            param_value=value,
            param_count=len(self.params),
            param_index=index,
            param_id=encode_param_id(name),
            param_type=ptype,
        )

    def push(self, index):
        self._outbox.put((MavHeader(system_id=1, component_id=1), self._value(index)))

    def send(self, header, message):
        self.sent.append((header, message))
        if self._silent:
            return 0
        match message:
            case ParamRequestList():
                self._lists += 1
                for index in range(len(self.params)):
                    if self._lists <= self._drop_lists and index == self._drop_index:
                        continue
                    self.push(index)
            case ParamRequestRead(param_index=index):
                self.push(index)
            case ParamSet():
                if self._ignore_sets > 0:
                    self._ignore_sets -= 1
                    return 0
                name = decode_param_id(message.param_id)
                _, ptype = self.params[name]
                self.params[name] = (message.param_value, ptype)
                self.push(list(self.params).index(name))
        return 1

    def recv(self):
        while True:
            try:
                return self._outbox.get(timeout=0.02)
            except queue.Empty:
                if self._closed.is_set():
                    raise EOFError

    def close(self):
        self._closed.set()

    def sent_of(self, kind):
        return [(h, m) for h, m in self.sent if isinstance(m, kind)]


@contextlib.asynccontextmanager
async def running(vehicle):
    conn = AsyncMavConn(vehicle)
    task = asyncio.create_task(conn.run())
    try:
        yield conn
    finally:
        vehicle.close()
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task


def short_timeout():
    return asyncio.sleep(0.03)


PARAMS = {
    "param_1": (13.0, REAL32),
    "param_2": (2.5, REAL32),
    "count": (7.0, INT32),
}


@pytest.mark.asyncio
async def test_get_all_returns_every_parameter():
    vehicle = FakeVehicle(PARAMS)
    async with running(vehicle) as conn:
        protocol = await ParameterProtocol.create(conn, 1, 1, short_timeout)
        result = await asyncio.wait_for(protocol.get_all(), 5)
    assert result == {name: value for name, (value, _) in PARAMS.items()}


@pytest.mark.asyncio
async def test_create_requests_list_with_target_header():
    vehicle = FakeVehicle(PARAMS)
    async with running(vehicle) as conn:
        await ParameterProtocol.create(conn, 3, 4, short_timeout)
        await asyncio.sleep(0.05)
    header, message = vehicle.sent_of(ParamRequestList)[0]
    assert header == MavHeader(system_id=3, component_id=4)
    assert message == ParamRequestList(target_system=3, target_component=4)


@pytest.mark.asyncio
async def test_get_known_and_unknown_parameter():
    vehicle = FakeVehicle(PARAMS)
    async with running(vehicle) as conn:
        protocol = await ParameterProtocol.create(conn, 1, 1, short_timeout)
        known = await asyncio.wait_for(protocol.get("param_2"), 5)
        unknown = await asyncio.wait_for(protocol.get("missing"), 5)
    assert known == 2.5
    assert unknown is None


@pytest.mark.asyncio
async def test_few_missing_parameters_are_read_by_index():
    vehicle = FakeVehicle(PARAMS, drop_lists=10, drop_index=1)
    async with running(vehicle) as conn:
        protocol = await ParameterProtocol.create(conn, 1, 1, short_timeout)
        result = await asyncio.wait_for(protocol.get_all(), 5)
    assert result["param_2"] == 2.5
    assert len(result) == len(PARAMS)
    reads = vehicle.sent_of(ParamRequestRead)
    assert reads
    assert {m.param_index for _, m in reads} == {1}
    assert all(decode_param_id(m.param_id) == "" for _, m in reads)


@pytest.mark.asyncio
async def test_many_missing_parameters_trigger_full_request():
    vehicle = FakeVehicle(PARAMS, drop_lists=2, drop_index=1)
    async with running(vehicle) as conn:
        protocol = await ParameterProtocol.create(
            conn, 1, 1, short_timeout, max_missing=0
        )
        result = await asyncio.wait_for(protocol.get_all(), 5)
    assert set(result) == set(PARAMS)
    assert vehicle.sent_of(ParamRequestRead) == []
    lists = vehicle.sent_of(ParamRequestList)
    assert len(lists) >= 3
    assert lists[-1][0] == MavHeader(system_id=1, component_id=1)


@pytest.mark.asyncio
async def test_silent_target_raises_max_retries():
    vehicle = FakeVehicle(PARAMS, silent=True)
    async with running(vehicle) as conn:
        protocol = await ParameterProtocol.create(
            conn, 1, 1, lambda: asyncio.sleep(0.01), max_retries=2
        )
        with pytest.raises(MaxRetriesReached):
            await asyncio.wait_for(protocol.get_all(), 5)


@pytest.mark.asyncio
async def test_set_known_parameter_keeps_its_type():
    vehicle = FakeVehicle(PARAMS)
    async with running(vehicle) as conn:
        protocol = await ParameterProtocol.create(conn, 1, 1, short_timeout)
        changed = await asyncio.wait_for(protocol.set("count", 9.0), 5)
        value = await asyncio.wait_for(protocol.get("count"), 5)
    assert changed is True
    assert value == 9.0
    assert vehicle.params["count"] == (9.0, INT32)
    _, message = vehicle.sent_of(ParamSet)[0]
    assert message.param_type == INT32
    assert decode_param_id(message.param_id) == "count"


@pytest.mark.asyncio
async def test_set_unknown_parameter_returns_false():
    vehicle = FakeVehicle(PARAMS)
    async with running(vehicle) as conn:
        protocol = await ParameterProtocol.create(conn, 1, 1, short_timeout)
        changed = await asyncio.wait_for(protocol.set("nope", 1.0), 5)
    assert changed is False
    assert vehicle.sent_of(ParamSet) == []


@pytest.mark.asyncio
async def test_set_is_resent_until_acknowledged():
    vehicle = FakeVehicle(PARAMS, ignore_sets=1)
    async with running(vehicle) as conn:
        protocol = await ParameterProtocol.create(conn, 1, 1, short_timeout)
        changed = await asyncio.wait_for(protocol.set("param_1", 4.5), 5)
    assert changed is True
    assert len(vehicle.sent_of(ParamSet)) >= 2
    assert vehicle.params["param_1"][0] == 4.5


@pytest.mark.asyncio
async def test_changed_parameter_count_invalidates_cache():
    vehicle = FakeVehicle(PARAMS)
    async with running(vehicle) as conn:
        protocol = await ParameterProtocol.create(conn, 1, 1, short_timeout)
        first = await asyncio.wait_for(protocol.get_all(), 5)
        vehicle.params["extra"] = (1.5, REAL32)
        vehicle.push(len(vehicle.params) - 1)
        second = await asyncio.wait_for(protocol.get_all(), 5)
    assert set(first) == set(PARAMS)
    assert set(second) == set(PARAMS) | {"extra"}
    assert second["extra"] == 1.5
    assert any(header == MavHeader() for header, _ in vehicle.sent_of(ParamRequestList))