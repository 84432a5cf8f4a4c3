"""MAVLink message definitions used by the connection and the parameter protocol."""

from dataclasses import dataclass
from enum import IntEnum
from typing import ClassVar

from .util import PARAM_ID_LENGTH


class MavParamType(IntEnum):
    """Data type of an onboard parameter."""

    MAV_PARAM_TYPE_UINT8 = 1
    MAV_PARAM_TYPE_INT8 = 2
    MAV_PARAM_TYPE_UINT16 = 3
    MAV_PARAM_TYPE_INT16 = 4
    MAV_PARAM_TYPE_UINT32 = 5
    MAV_PARAM_TYPE_INT32 = 6
    MAV_PARAM_TYPE_UINT64 = 7
    MAV_PARAM_TYPE_INT64 = 8
    MAV_PARAM_TYPE_REAL32 = 9
    MAV_PARAM_TYPE_REAL64 = 10


class MavType(IntEnum):
    """Kind of vehicle or component sending a heartbeat."""

    MAV_TYPE_GENERIC = 0
    MAV_TYPE_FIXED_WING = 1
    MAV_TYPE_QUADROTOR = 2
    MAV_TYPE_COAXIAL = 3
    MAV_TYPE_HELICOPTER = 4
    MAV_TYPE_ANTENNA_TRACKER = 5
    MAV_TYPE_GCS = 6
    MAV_TYPE_AIRSHIP = 7
    MAV_TYPE_FREE_BALLOON = 8
    MAV_TYPE_ROCKET = 9
    MAV_TYPE_GROUND_ROVER = 10
    MAV_TYPE_SURFACE_BOAT = 11
    MAV_TYPE_SUBMARINE = 12
    MAV_TYPE_HEXAROTOR = 13
    MAV_TYPE_OCTOROTOR = 14
    MAV_TYPE_TRICOPTER = 15
    MAV_TYPE_FLAPPING_WING = 16
    MAV_TYPE_KITE = 17
    MAV_TYPE_ONBOARD_CONTROLLER = 18
    MAV_TYPE_VTOL_DUOROTOR = 19
    MAV_TYPE_VTOL_QUADROTOR = 20
    MAV_TYPE_VTOL_TILTROTOR = 21


class MavAutopilot(IntEnum):
    """Autopilot software running on the sender of a heartbeat."""

    MAV_AUTOPILOT_GENERIC = 0
    MAV_AUTOPILOT_RESERVED = 1
    MAV_AUTOPILOT_SLUGS = 2
    MAV_AUTOPILOT_ARDUPILOTMEGA = 3
    MAV_AUTOPILOT_OPENPILOT = 4
    MAV_AUTOPILOT_GENERIC_WAYPOINTS_ONLY = 5
    MAV_AUTOPILOT_GENERIC_WAYPOINTS_AND_SIMPLE_NAVIGATION_ONLY = 6
    MAV_AUTOPILOT_GENERIC_MISSION_FULL = 7
    MAV_AUTOPILOT_INVALID = 8
    MAV_AUTOPILOT_PPZ = 9
    MAV_AUTOPILOT_UDB = 10
    MAV_AUTOPILOT_FP = 11
    MAV_AUTOPILOT_PX4 = 12
    MAV_AUTOPILOT_SMACCMPILOT = 13
    MAV_AUTOPILOT_AUTOQUAD = 14
    MAV_AUTOPILOT_ARMAZILA = 15
    MAV_AUTOPILOT_AEROB = 16
    MAV_AUTOPILOT_ASLUAV = 17
    MAV_AUTOPILOT_SMARTAP = 18
    MAV_AUTOPILOT_AIRRAILS = 19


def _check_param_id(param_id: bytes) -> None:
    if len(param_id) != PARAM_ID_LENGTH:
        raise ValueError(
            f"param_id must be {PARAM_ID_LENGTH} bytes long, got {len(param_id)}"
        )


@dataclass(frozen=True)
class MavHeader:
    """Header of a MAVLink frame: sender ids and sequence number."""

    system_id: int = 255
    component_id: int = 0
    sequence: int = 0


@dataclass(frozen=True)
class Heartbeat:
    """HEARTBEAT message announcing the presence of a system."""

    MESSAGE_ID: ClassVar[int] = 0
    MESSAGE_NAME: ClassVar[str] = "HEARTBEAT"

    custom_mode: int = 0
    mavtype: MavType = MavType.MAV_TYPE_GENERIC
    autopilot: MavAutopilot = MavAutopilot.MAV_AUTOPILOT_GENERIC
    base_mode: int = 0
    system_status: int = 0
    mavlink_version: int = 0


@dataclass(frozen=True)
class ParamRequestRead:
    """PARAM_REQUEST_READ message asking for one parameter by name or index."""

    MESSAGE_ID: ClassVar[int] = 20
    MESSAGE_NAME: ClassVar[str] = "PARAM_REQUEST_READ"

    param_index: int = 0
    target_system: int = 0
    target_component: int = 0
    param_id: bytes = bytes(PARAM_ID_LENGTH)

    def __post_init__(self) -> None:
        _check_param_id(self.param_id)


@dataclass(frozen=True)
class ParamRequestList:
    """PARAM_REQUEST_LIST message asking for all parameters."""

    MESSAGE_ID: ClassVar[int] = 21
    MESSAGE_NAME: ClassVar[str] = "PARAM_REQUEST_LIST"

    target_system: int = 0
    target_component: int = 0


@dataclass(frozen=True)
class ParamValue:
    """PARAM_VALUE message carrying the value of one parameter."""

    MESSAGE_ID: ClassVar[int] = 22
    MESSAGE_NAME: ClassVar[str] = "PARAM_VALUE"

    param_value: float = 0.0
    param_count: int = 0
    param_index: int = 0
    param_id: bytes = bytes(PARAM_ID_LENGTH)
    param_type: MavParamType = MavParamType.MAV_PARAM_TYPE_UINT8

    def __post_init__(self) -> None:
        _check_param_id(self.param_id)


@dataclass(frozen=True)
class ParamSet:
    """PARAM_SET message requesting a parameter change."""

    MESSAGE_ID: ClassVar[int] = 23
    MESSAGE_NAME: ClassVar[str] = "PARAM_SET"

    param_value: float = 0.0
    target_system: int = 0
    target_component: int = 0
    param_id: bytes = bytes(PARAM_ID_LENGTH)
    param_type: MavParamType = MavParamType.MAV_PARAM_TYPE_UINT8

    def __post_init__(self) -> None:
        _check_param_id(self.param_id)