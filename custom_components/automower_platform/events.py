"""Typed events received over the mower event streams.

The Automower stream delivers frames shaped as ``{id, type, attributes}``
once the ``{connectionId, ready}`` handshake has been received. The Gardena
stream delivers one item per frame, each describing a location, device or
service of the location being listened to.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from .models import (
    Battery,
    Calendar,
    MowerState,
    Planner,
    Position,
    StatusMetadata,
)


class EventType(StrEnum):
    """Tags of the events delivered by the Automower stream."""

    UNKNOWN = "unknown-event"
    STATUS = "status-event"
    POSITIONS = "positions-event"
    SETTINGS = "settings-event"


class GardenaItemType(StrEnum):
    """Item types delivered by the Gardena stream."""

    LOCATION = "LOCATION"
    DEVICE = "DEVICE"
    COMMON = "COMMON"
    MOWER = "MOWER"
    POWER_SOCKET = "POWER_SOCKET"
    SENSOR = "SENSOR"
    VALVE = "VALVE"
    VALVE_SET = "VALVE_SET"


@dataclass(frozen=True)
class ConnectedEvent:
    """Handshake frame which marks the Automower stream as connected."""

    connection_id: str
    ready: bool


@dataclass(frozen=True)
class StatusEvent:
    """A full status snapshot for a mower."""

    id: str
    battery: Battery
    mower: MowerState
    planner: Planner
    metadata: StatusMetadata
    type: EventType = field(default=EventType.STATUS, init=False)


@dataclass(frozen=True)
class PositionsEvent:
    """The most recent GPS positions of a mower."""

    id: str
    positions: tuple[Position, ...]
    type: EventType = field(default=EventType.POSITIONS, init=False)


@dataclass(frozen=True)
class SettingsEvent:
    """Occurs when the settings have been modified on a mower.

    Every attribute is optional since only the changed settings are sent.
    """

    id: str
    calendar: Calendar | None = None
    cutting_height: int | None = None
    headlight_mode: str | None = None
    type: EventType = field(default=EventType.SETTINGS, init=False)


@dataclass(frozen=True)
class UnknownEvent:
    """An event with a type this integration does not understand."""

    id: str
    raw_type: str
    attributes: dict[str, Any] = field(default_factory=dict)
    type: EventType = field(default=EventType.UNKNOWN, init=False)


@dataclass(frozen=True)
class GardenaEvent:
    """A single item pushed by the Gardena stream."""

    id: str
    type: str
    attributes: dict[str, Any] = field(default_factory=dict)


MowerEvent = StatusEvent | PositionsEvent | SettingsEvent | UnknownEvent


def _parse_status(event_id: str, attributes: dict[str, Any]) -> StatusEvent:
    return StatusEvent(
        id=event_id,
        battery=Battery.from_dict(attributes["battery"]),
        mower=MowerState.from_dict(attributes["mower"]),
        planner=Planner.from_dict(attributes["planner"]),
        metadata=StatusMetadata.from_dict(attributes["metadata"]),
    )


def _parse_positions(event_id: str, attributes: dict[str, Any]) -> PositionsEvent:
    return PositionsEvent(
        id=event_id,
        positions=tuple(Position.from_dict(p) for p in attributes["positions"]),
    )


def _parse_settings(event_id: str, attributes: dict[str, Any]) -> SettingsEvent:
    calendar = attributes.get("calendar")
    cutting_height = attributes.get("cuttingHeight")
    headlight = attributes.get("headlight") or {}

    return SettingsEvent(
        id=event_id,
        calendar=None if calendar is None else Calendar.from_dict(calendar),
        cutting_height=None if cutting_height is None else int(cutting_height),
        headlight_mode=headlight.get("mode"),
    )


_PARSERS = {
    EventType.STATUS: _parse_status,
    EventType.POSITIONS: _parse_positions,
    EventType.SETTINGS: _parse_settings,
}


def is_connected_event(data: dict[str, Any]) -> bool:
    """Check if a decoded frame is the stream handshake.

    Args:
        data: Decoded frame.

    Returns:
        True if the frame carries a connection id, False otherwise.

    """
    return data.get("connectionId") is not None


def parse_connected_event(data: dict[str, Any]) -> ConnectedEvent:
    """Parse the stream handshake frame."""
    return ConnectedEvent(
        connection_id=str(data["connectionId"]),
        ready=bool(data.get("ready", False)),
    )


def parse_event(data: dict[str, Any]) -> MowerEvent:
    """Parse a decoded Automower frame into a typed event.

    Args:
        data: Decoded frame with ``id``, ``type`` and ``attributes`` keys.

    Returns:
        The typed event; unrecognized types become an UnknownEvent.

    Raises:
        KeyError: If a mandatory field is missing.
        AttributeError: If a nested field is not an object.
        TypeError: If a field has an unexpected shape.
        ValueError: If a field value cannot be converted.

    """
    event_id = str(data["id"])
    raw_type = str(data["type"])
    attributes = data.get("attributes") or {}

    parser = _PARSERS.get(raw_type)
    if parser is None:
        return UnknownEvent(id=event_id, raw_type=raw_type, attributes=attributes)

    return parser(event_id, attributes)


def parse_gardena_event(data: dict[str, Any]) -> GardenaEvent:
    """Parse a decoded Gardena frame into an item event.

    Raises:
        KeyError: If the item id or type is missing.

    """
    return GardenaEvent(
        id=str(data["id"]),
        type=str(data["type"]),
        attributes=data.get("attributes") or {},
    )
