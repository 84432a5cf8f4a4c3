"""Error types and the message-type key used for subscriptions."""

from typing import Any


class AsyncMavlinkError(Exception):
    """Base class of all errors raised by this package."""

    default_message = "MAVLink connection error"

    def __init__(self, *args: object) -> None:
        super().__init__(*(args or (self.default_message,)))


class MavConnectionRefused(AsyncMavlinkError):
    """Opening the connection to the target system failed."""

    default_message = "error on opening connection to the target system"


class ConnectionLost(AsyncMavlinkError):
    """Writing to the target system failed."""

    default_message = "connection to the target system broke"


class TaskEmitError(AsyncMavlinkError):
    """A task could not be handed to the event loop."""

    default_message = "unable to emit task to event loop"


class SendAckError(AsyncMavlinkError):
    """The event loop dropped the acknowledgement of a send."""

    default_message = "the event loop canceled a send ack channel"


class MaxRetriesReached(AsyncMavlinkError):
    """Too many consecutive retries went unanswered."""

    default_message = "the maximum number of retries was reached"


class MavMessageType:
    """The type of a MAVLink message, usable as a hashable subscription key.

    Two instances are equal when they describe the same message class,
    whatever the field values of the messages they were made from.
    """

    __slots__ = ("_kind", "_name")

    def __init__(self, message: Any) -> None:
        kind = message if isinstance(message, type) else type(message)
        self._kind = kind
        self._name = getattr(kind, "MESSAGE_NAME", kind.__name__)

    @property
    def name(self) -> str:
        return self._name

    def matches(self, message: Any) -> bool:
        """Tell whether the message is of this type."""
        return type(message) is self._kind

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MavMessageType):
            return NotImplemented
        return self._kind is other._kind

    def __hash__(self) -> int:
        return hash(self._kind)

    def __str__(self) -> str:
        return self._name

    def __repr__(self) -> str:
        return f"MavMessageType({self._name})"