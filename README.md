# asyncmav

An asyncio adapter for MAVLink connections.

A MAVLink link carries a stream of messages. `asyncmav` lets you subscribe to
that stream by message type. Subscribe to a type, and every later message of
that type arrives on its own async stream. One event loop task reads from the
link. It hands each message to its subscribers, sends outgoing messages and
records when the last `HEARTBEAT` arrived.

The package also has a client for the MAVLink parameter protocol. The client
keeps a cache of the target's parameters and requests missing ones again when
packets are lost.

The package uses only the standard library.

## Installation

```
pip install asyncmav
```

To run the test suite:

```
pip install "asyncmav[test]"
pytest
```

## Modules

* `asyncmav.connection`: `AsyncMavConn`, the event loop and subscription API,
  and `MavTransport`, the protocol a link must follow.
* `asyncmav.messages`: frozen dataclasses for the messages the package handles:
  `MavHeader`, `Heartbeat`, `ParamValue`, `ParamRequestList`,
  `ParamRequestRead` and `ParamSet`. It also has the enums `MavParamType`,
  `MavType` and `MavAutopilot`.
* `asyncmav.types`: `MavMessageType`, a hashable key for a message class. It
  also has the error hierarchy rooted at `AsyncMavlinkError`.
* `asyncmav.util`: `encode_param_id` and `decode_param_id`, which convert
  between parameter names and the 16-byte NUL-padded identifiers.
* `asyncmav.parameter_protocol`: `ParameterProtocol`, the cached parameter
  client.

## Transports

`AsyncMavConn` works over any object that follows the `MavTransport` protocol.
Such an object has two blocking methods:

* `send(header, message)` writes one message and returns the number of bytes
  written.
* `recv()` blocks until a message arrives and returns a `(header, message)`
  pair. It raises `EOFError` once the link is closed for good.

`AsyncMavConn` calls `recv()` in a worker thread, so a blocking reader can be
used directly. If `recv()` raises any other exception, the message is skipped
and reading goes on. If `send()` raises `OSError`, the awaiting caller gets
`ConnectionLost`.

## Subscribing to messages

```python
import asyncio

from asyncmav.connection import AsyncMavConn
from asyncmav.messages import Heartbeat, MavAutopilot, MavType, ParamRequestList, ParamValue
from asyncmav.types import MavMessageType
from asyncmav.util import decode_param_id


async def main(transport):
    conn = AsyncMavConn(transport)
    loop_task = asyncio.create_task(conn.run())

    async def heartbeat():
        beat = Heartbeat(mavtype=MavType.MAV_TYPE_GCS, autopilot=MavAutopilot.MAV_AUTOPILOT_INVALID)
        while True:
            await conn.send_default(beat)
            await asyncio.sleep(1)

    beat_task = asyncio.create_task(heartbeat())

    stream = await conn.subscribe(MavMessageType(ParamValue))
    await conn.send_default(ParamRequestList())

    parameters = {}
    async for value in stream:
        parameters[decode_param_id(value.param_id)] = value.param_value
        if value.param_count == len(parameters):
            break

    print(parameters)
    beat_task.cancel()
    loop_task.cancel()
```

You can build `MavMessageType` from a message class or from a message instance.
Two message types are equal when they name the same class.

Other parts of the connection API:

* `await conn.request(message_type)` waits for the next message of one type and
  returns it.
* `await conn.next_message()` returns the next received message of any type.
* `await conn.send(header, message)` sends with an explicit `MavHeader`.
  `send_default` uses a default header, with system id 255 and component id 0.
* `conn.last_heartbeat()` returns the `time.monotonic()` value of the most
  recent heartbeat, or `None` if none has arrived.

`run()` may only be started once. When the `run()` task is cancelled, the
connection shuts down:

* Open subscription streams end.
* Sends still queued fail with `SendAckError`.
* Later calls to `subscribe` or `send` raise `TaskEmitError`.
* `next_message` and `request` raise `AsyncMavlinkError`.

You can close a subscription stream with `close()` or `await aclose()`.

## Parameter protocol

```python
import asyncio

from asyncmav.parameter_protocol import ParameterProtocol


async def dump_parameters(conn):
    params = await ParameterProtocol.create(
        conn,
        1,                               # target system
        1,                               # target component
        lambda: asyncio.sleep(0.5),      # awaitable timeout before a re-request
        max_missing=64,                  # above this many missing, request the whole list
        max_retries=50,                  # give up after this many timeouts in a row
    )
    for name, value in (await params.get_all()).items():
        print(f"{name} = {value}")

    if await params.set("SYSID_THISMAV", 2.0):
        print(await params.get("SYSID_THISMAV"))
```

`create` subscribes to `PARAM_VALUE` and sends a `PARAM_REQUEST_LIST` to the
target.

* `get_all()` waits until every parameter is cached and returns them as a dict.
* `get(name)` returns the parameter's value. It returns `None` once a full sync
  shows the target has no parameter of that name.
* `set(name, value)` returns `False` for an unknown parameter. Otherwise it
  sends `PARAM_SET` and returns `True` once the target reports the new value,
  compared at 32-bit float precision. While no reply arrives, it sends the
  change again, at most every 0.1 s.

If a `PARAM_VALUE` reports a different parameter count, the cache is cleared and
the full list is requested again.

After each timeout without a `PARAM_VALUE`, the client requests what is still
missing. It requests each missing index with `PARAM_REQUEST_READ` when at most
`max_missing` are missing, and the whole list otherwise. After more than
`max_retries` such timeouts in a row, it raises
`asyncmav.types.MaxRetriesReached`.

Every error the package raises derives from `asyncmav.types.AsyncMavlinkError`.

## What the package does not do

* It does not encode or decode MAVLink frames on the wire.
* It does not open UDP, TCP, serial or file links. You supply a `MavTransport`
  that does this.
* It defines only the messages listed above.
* It has no command-line program.