"""Data models for the Automower Platform integration."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import StrEnum
from typing import Any, TypeVar

_LOGGER = logging.getLogger(__name__)

_EnumT = TypeVar("_EnumT", bound=StrEnum)

MINUTES_PER_HOUR = 60


def parse_enum(
    enum_type: type[_EnumT],
    value: Any,  # noqa: ANN401
    default: _EnumT,
) -> _EnumT:
    """Parse a raw backend value into an enum member, falling back to a default."""
    try:
        return enum_type(value)
    except ValueError:
        _LOGGER.debug("Value not supported by %s: %s", enum_type.__name__, value)
        return default


class Activity(StrEnum):
    """Vendor-neutral description of what the mower is physically doing."""

    UNKNOWN = "unknown"
    PARKED = "parked"
    LEAVING_HOME = "leaving_home"
    MOWING = "mowing"
    GOING_HOME = "going_home"
    CHARGING = "charging"


class State(StrEnum):
    """Vendor-neutral operational status of the mower."""

    UNKNOWN = "unknown"
    READY = "ready"
    IN_OPERATION = "in_operation"
    PAUSED = "paused"
    STOPPED = "stopped"
    OFF = "off"
    FAULTED = "faulted"
    TAMPERED = "tampered"
    CHARGING = "charging"


class MowerActivities(StrEnum):
    """Activity values reported by Automower Connect."""

    UNKNOWN = "UNKNOWN"
    NOT_APPLICABLE = "NOT_APPLICABLE"
    MOWING = "MOWING"
    GOING_HOME = "GOING_HOME"
    CHARGING = "CHARGING"
    LEAVING = "LEAVING"
    PARKED_IN_CS = "PARKED_IN_CS"
    STOPPED_IN_GARDEN = "STOPPED_IN_GARDEN"


class MowerStates(StrEnum):
    """State values reported by Automower Connect."""

    UNKNOWN = "UNKNOWN"
    NOT_APPLICABLE = "NOT_APPLICABLE"
    PAUSED = "PAUSED"
    IN_OPERATION = "IN_OPERATION"
    WAIT_UPDATING = "WAIT_UPDATING"
    WAIT_POWER_UP = "WAIT_POWER_UP"
    RESTRICTED = "RESTRICTED"
    OFF = "OFF"
    STOPPED = "STOPPED"
    ERROR = "ERROR"
    FATAL_ERROR = "FATAL_ERROR"
    ERROR_AT_POWER_UP = "ERROR_AT_POWER_UP"


class MowerModes(StrEnum):
    """Mowing-area modes reported by Automower Connect."""

    UNKNOWN = "UNKNOWN"
    MAIN_AREA = "MAIN_AREA"
    SECONDARY_AREA = "SECONDARY_AREA"
    HOME = "HOME"
    DEMO = "DEMO"


class OverrideActions(StrEnum):
    """Planner override actions reported by Automower Connect."""

    NOT_ACTIVE = "NOT_ACTIVE"
    FORCE_PARK = "FORCE_PARK"
    FORCE_MOW = "FORCE_MOW"
    NO_SOURCE = "NO_SOURCE"


class RestrictedReasons(StrEnum):
    """Reasons the planner restricts the mower from operating."""

    NONE = "NONE"
    WEEK_SCHEDULE = "WEEK_SCHEDULE"
    PARK_OVERRIDE = "PARK_OVERRIDE"
    SENSOR = "SENSOR"
    DAILY_LIMIT = "DAILY_LIMIT"
    FOTA = "FOTA"
    FROST = "FROST"
    ALL_WORK_AREAS_COMPLETED = "ALL_WORK_AREAS_COMPLETED"
    EXTERNAL = "EXTERNAL"
    NOT_APPLICABLE = "NOT_APPLICABLE"


class GardenaMowerActivities(StrEnum):
    """Activity values reported by the Gardena MOWER service."""

    NONE = "NONE"
    PAUSED = "PAUSED"
    OK_CUTTING = "OK_CUTTING"
    OK_CUTTING_TIMER_OVERRIDDEN = "OK_CUTTING_TIMER_OVERRIDDEN"
    OK_SEARCHING = "OK_SEARCHING"
    OK_LEAVING = "OK_LEAVING"
    OK_CHARGING = "OK_CHARGING"
    PARKED_TIMER = "PARKED_TIMER"
    PARKED_PARK_SELECTED = "PARKED_PARK_SELECTED"
    PARKED_AUTOTIMER = "PARKED_AUTOTIMER"


class GardenaServiceStates(StrEnum):
    """Service states reported by the Gardena smart system."""

    OK = "OK"
    WARNING = "WARNING"
    ERROR = "ERROR"
    UNAVAILABLE = "UNAVAILABLE"


class GardenaRfLinkStates(StrEnum):
    """Radio link states reported by the Gardena COMMON service."""

    ONLINE = "ONLINE"
    OFFLINE = "OFFLINE"
    UNKNOWN = "UNKNOWN"


@dataclass(frozen=True)
class AccessToken:
    """Represents an access token issued by the authentication API."""

    value: str
    provider: str
    expires_at: datetime | None = None

    def is_expired(self, now: datetime, skew: timedelta = timedelta(0)) -> bool:
        """Return True if the token expires within the skew of the given time."""
        if self.expires_at is None:
            return False
        return now + skew >= self.expires_at


@dataclass(frozen=True)
class Battery:
    """Battery snapshot reported by Automower Connect."""

    battery_percent: int

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Battery:
        """Create the Battery from its API representation."""
        return cls(battery_percent=int(data["batteryPercent"]))


@dataclass(frozen=True)
class MowerState:
    """Snapshot of the mower state, superseded entirely by the next snapshot."""

    activity: MowerActivities
    state: MowerStates
    mode: MowerModes = MowerModes.UNKNOWN
    error_code: int = 0
    error_code_timestamp: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MowerState:
        """Create the MowerState from its API representation."""
        return cls(
            activity=parse_enum(
                MowerActivities, data.get("activity"), MowerActivities.UNKNOWN
            ),
            state=parse_enum(MowerStates, data.get("state"), MowerStates.UNKNOWN),
            mode=parse_enum(MowerModes, data.get("mode"), MowerModes.UNKNOWN),
            error_code=int(data.get("errorCode") or 0),
            error_code_timestamp=int(data.get("errorCodeTimestamp") or 0),
        )


@dataclass(frozen=True)
class StatusMetadata:
    """Connectivity metadata attached to a status update."""

    connected: bool
    status_timestamp: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> StatusMetadata:
        """Create the StatusMetadata from its API representation."""
        return cls(
            connected=bool(data.get("connected", False)),
            status_timestamp=int(data.get("statusTimestamp") or 0),
        )


@dataclass(frozen=True)
class CalendarTask:
    """A recurring mowing window.

    Attributes:
        start: Minutes after midnight when the window opens.
        duration: Length of the window in minutes.

    """

    start: int
    duration: int
    monday: bool = False
    tuesday: bool = False
    wednesday: bool = False
    thursday: bool = False
    friday: bool = False
    saturday: bool = False
    sunday: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CalendarTask:
        """Create the CalendarTask from its API representation."""
        return cls(
            start=int(data["start"]),
            duration=int(data["duration"]),
            monday=bool(data.get("monday", False)),
            tuesday=bool(data.get("tuesday", False)),
            wednesday=bool(data.get("wednesday", False)),
            thursday=bool(data.get("thursday", False)),
            friday=bool(data.get("friday", False)),
            saturday=bool(data.get("saturday", False)),
            sunday=bool(data.get("sunday", False)),
        )

    def is_scheduled_on(self, weekday: int) -> bool:
        """Return True if the task runs on the weekday (Monday is 0)."""
        return (
            self.monday,
            self.tuesday,
            self.wednesday,
            self.thursday,
            self.friday,
            self.saturday,
            self.sunday,
        )[weekday]

    def is_active_at(self, moment: datetime) -> bool:
        """Return True if the moment falls within [start, start + duration)."""
        if not self.is_scheduled_on(moment.weekday()):
            return False

        minute_of_day = moment.hour * MINUTES_PER_HOUR + moment.minute
        return self.start <= minute_of_day < self.start + self.duration


@dataclass(frozen=True)
class Calendar:
    """The user-configured mowing schedule."""

    tasks: tuple[CalendarTask, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Calendar:
        """Create the Calendar from its API representation."""
        return cls(
            tasks=tuple(CalendarTask.from_dict(t) for t in data.get("tasks", []))
        )


@dataclass(frozen=True)
class PlannerOverride:
    """An override applied on top of the planner schedule."""

    action: OverrideActions | None = None


@dataclass(frozen=True)
class Planner:
    """The backend's own computed schedule and any restriction in effect."""

    next_start_timestamp: int = 0
    override: PlannerOverride = field(default_factory=PlannerOverride)
    restricted_reason: RestrictedReasons | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Planner:
        """Create the Planner from its API representation."""
        override = data.get("override") or {}
        action = override.get("action")
        reason = data.get("restrictedReason")

        return cls(
            next_start_timestamp=int(data.get("nextStartTimestamp") or 0),
            override=PlannerOverride(
                action=None
                if action is None
                else parse_enum(OverrideActions, action, OverrideActions.NO_SOURCE)
            ),
            restricted_reason=None
            if reason is None
            else parse_enum(
                RestrictedReasons, reason, RestrictedReasons.NOT_APPLICABLE
            ),
        )


@dataclass(frozen=True)
class Position:
    """A GPS position reported by the mower."""

    latitude: float
    longitude: float

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Position:
        """Create the Position from its API representation."""
        return cls(latitude=float(data["latitude"]), longitude=float(data["longitude"]))


@dataclass(frozen=True)
class BatteryLevel:
    """Vendor-neutral battery information."""

    level: int
    is_charging: bool = False


@dataclass(frozen=True)
class MowerConnection:
    """Vendor-neutral connectivity information."""

    connected: bool


@dataclass(frozen=True)
class MowerMetadata:
    """Identifies the physical mower."""

    manufacturer: str
    model: str
    name: str
    serial_number: str


@dataclass(frozen=True)
class MowerStatus:
    """Vendor-neutral activity and state of the mower."""

    activity: Activity
    state: State
    enabled: bool = True


@dataclass(frozen=True)
class MowerAttributes:
    """Attribute bag describing a mower."""

    battery: BatteryLevel
    connection: MowerConnection
    metadata: MowerMetadata
    mower: MowerStatus
    location_id: str | None = None
    calendar: Calendar | None = None
    planner: Planner | None = None
    state: MowerState | None = None
    positions: tuple[Position, ...] = ()


@dataclass(frozen=True)
class Mower:
    """A mower normalized into a vendor-neutral shape."""

    id: str
    attributes: MowerAttributes
