"""Mower discovery and control services for both vendor backends.

Each service performs a single authenticated request through the API client.
When the backend rejects the token, the token is flagged as invalid so the
next call logs in again, and the error is re-raised to the caller.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, TypeVar

from . import api
from .const import DEFAULT_START_DURATION
from .events import GardenaItemType
from .models import (
    Activity,
    BatteryLevel,
    Calendar,
    GardenaMowerActivities,
    GardenaRfLinkStates,
    GardenaServiceStates,
    Mower,
    MowerActivities,
    MowerAttributes,
    MowerConnection,
    MowerMetadata,
    MowerState,
    MowerStates,
    MowerStatus,
    Planner,
    Position,
    State,
    parse_enum,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    import httpx

    from .coordinator import AccessTokenManager
    from .models import AccessToken

_LOGGER = logging.getLogger(__name__)

_T = TypeVar("_T")

SECONDS_PER_MINUTE = 60

_AUTOMOWER_ACTIVITIES = {
    MowerActivities.CHARGING: Activity.PARKED,
    MowerActivities.PARKED_IN_CS: Activity.PARKED,
    MowerActivities.NOT_APPLICABLE: Activity.PARKED,
    MowerActivities.GOING_HOME: Activity.GOING_HOME,
    MowerActivities.LEAVING: Activity.LEAVING_HOME,
    MowerActivities.STOPPED_IN_GARDEN: Activity.MOWING,
    MowerActivities.MOWING: Activity.MOWING,
    MowerActivities.UNKNOWN: Activity.UNKNOWN,
}

_AUTOMOWER_STATES = {
    MowerStates.IN_OPERATION: State.IN_OPERATION,
    MowerStates.ERROR: State.FAULTED,
    MowerStates.ERROR_AT_POWER_UP: State.FAULTED,
    MowerStates.FATAL_ERROR: State.FAULTED,
    MowerStates.RESTRICTED: State.FAULTED,
    MowerStates.STOPPED: State.FAULTED,
    MowerStates.PAUSED: State.PAUSED,
    MowerStates.NOT_APPLICABLE: State.OFF,
    MowerStates.OFF: State.OFF,
    MowerStates.WAIT_POWER_UP: State.UNKNOWN,
    MowerStates.WAIT_UPDATING: State.UNKNOWN,
    MowerStates.UNKNOWN: State.UNKNOWN,
}

_GARDENA_ACTIVITIES = {
    GardenaMowerActivities.OK_CHARGING: Activity.CHARGING,
    GardenaMowerActivities.OK_CUTTING: Activity.MOWING,
    GardenaMowerActivities.OK_CUTTING_TIMER_OVERRIDDEN: Activity.MOWING,
    GardenaMowerActivities.PAUSED: Activity.MOWING,
    GardenaMowerActivities.OK_LEAVING: Activity.LEAVING_HOME,
    GardenaMowerActivities.OK_SEARCHING: Activity.GOING_HOME,
    GardenaMowerActivities.PARKED_AUTOTIMER: Activity.PARKED,
    GardenaMowerActivities.PARKED_PARK_SELECTED: Activity.PARKED,
    GardenaMowerActivities.PARKED_TIMER: Activity.PARKED,
    GardenaMowerActivities.NONE: Activity.UNKNOWN,
}

_GARDENA_SERVICE_STATES = {
    GardenaServiceStates.OK: State.READY,
    GardenaServiceStates.WARNING: State.FAULTED,
    GardenaServiceStates.ERROR: State.FAULTED,
    GardenaServiceStates.UNAVAILABLE: State.UNKNOWN,
}

GARDENA_ERROR_OFF_DISABLED = "OFF_DISABLED"
GARDENA_OFF_ERRORS = frozenset(
    {GARDENA_ERROR_OFF_DISABLED, "OFF_HATCH_CLOSED", "OFF_HATCH_OPEN"}
)
GARDENA_TAMPERED_ERRORS = frozenset(
    {"ALARM_MOWER_LIFTED", "LIFTED", "TEMPORARILY_LIFTED"}
)
GARDENA_FAULTED_ERRORS = frozenset({"TRAPPED", "UPSIDE_DOWN"})


def parse_model_information(value: str) -> tuple[str, str]:
    """Split a model string such as ``"HUSQVARNA AUTOMOWER® 430XH"``.

    Returns:
        Tuple of (manufacturer, model).

    """
    manufacturer, _, model = value.partition(" ")
    return manufacturer, model


def convert_automower_activity(mower_state: MowerState) -> Activity:
    """Convert an Automower activity into a vendor-neutral activity."""
    activity = _AUTOMOWER_ACTIVITIES.get(mower_state.activity)
    if activity is None:
        _LOGGER.debug("Activity not supported: %s", mower_state.activity)
        return Activity.UNKNOWN
    return activity


def convert_automower_state(mower_state: MowerState) -> State:
    """Convert an Automower state into a vendor-neutral state.

    A mower stopped with an error code has been lifted or tilted, and a
    charging mower is reported as charging whatever its state.
    """
    if mower_state.state == MowerStates.STOPPED and mower_state.error_code != 0:
        return State.TAMPERED

    if mower_state.activity == MowerActivities.CHARGING:
        return State.CHARGING

    state = _AUTOMOWER_STATES.get(mower_state.state)
    if state is None:
        _LOGGER.debug("State not supported: %s", mower_state.state)
        return State.UNKNOWN
    return state


def convert_automower_status(mower_state: MowerState) -> MowerStatus:
    return MowerStatus(
        activity=convert_automower_activity(mower_state),
        state=convert_automower_state(mower_state),
    )


def create_automower(item: dict[str, Any]) -> Mower:
    """Create a vendor-neutral mower from an Automower Connect mower item."""
    attributes = item["attributes"]
    system = attributes["system"]
    mower_state = MowerState.from_dict(attributes["mower"])
    manufacturer, model = parse_model_information(system["model"])
    calendar = attributes.get("calendar")
    planner = attributes.get("planner")

    return Mower(
        id=item["id"],
        attributes=MowerAttributes(
            battery=BatteryLevel(
                level=int(attributes["battery"]["batteryPercent"]),
                is_charging=mower_state.activity == MowerActivities.CHARGING,
            ),
            connection=MowerConnection(
                connected=bool(attributes["metadata"]["connected"])
            ),
            metadata=MowerMetadata(
                manufacturer=manufacturer,
                model=model,
                name=system["name"],
                serial_number=str(system["serialNumber"]),
            ),
            mower=convert_automower_status(mower_state),
            calendar=None if calendar is None else Calendar.from_dict(calendar),
            planner=None if planner is None else Planner.from_dict(planner),
            state=mower_state,
            positions=tuple(
                Position.from_dict(p) for p in attributes.get("positions", [])
            ),
        ),
    )


def _value(
    attributes: dict[str, Any], key: str, default: Any = None  # noqa: ANN401
) -> Any:  # noqa: ANN401
    return (attributes.get(key) or {}).get("value", default)


def convert_gardena_activity(mower_attributes: dict[str, Any]) -> Activity:
    """Convert the activity of a Gardena MOWER service."""
    raw = _value(mower_attributes, "activity")
    activity = _GARDENA_ACTIVITIES.get(raw)
    if activity is None:
        _LOGGER.debug("Activity not supported: %s", raw)
        return Activity.UNKNOWN
    return activity


def convert_gardena_state(mower_attributes: dict[str, Any]) -> State:
    """Convert the state of a Gardena MOWER service.

    The last error code takes precedence over the service state.
    """
    if _value(mower_attributes, "activity") == GardenaMowerActivities.PAUSED:
        return State.PAUSED

    error_code = _value(mower_attributes, "lastErrorCode")
    if error_code in GARDENA_OFF_ERRORS:
        return State.OFF
    if error_code in GARDENA_TAMPERED_ERRORS:
        return State.TAMPERED
    if error_code in GARDENA_FAULTED_ERRORS:
        return State.FAULTED

    service_state = parse_enum(
        GardenaServiceStates,
        _value(mower_attributes, "state"),
        GardenaServiceStates.UNAVAILABLE,
    )
    return _GARDENA_SERVICE_STATES[service_state]


def is_gardena_mower_enabled(mower_attributes: dict[str, Any]) -> bool:
    if _value(mower_attributes, "lastErrorCode") == GARDENA_ERROR_OFF_DISABLED:
        return False
    return (
        _value(mower_attributes, "activity")
        != GardenaMowerActivities.PARKED_PARK_SELECTED
    )


def convert_gardena_status(mower_attributes: dict[str, Any]) -> MowerStatus:
    return MowerStatus(
        activity=convert_gardena_activity(mower_attributes),
        state=convert_gardena_state(mower_attributes),
        enabled=is_gardena_mower_enabled(mower_attributes),
    )


def convert_gardena_battery(
    common_attributes: dict[str, Any], mower_attributes: dict[str, Any]
) -> BatteryLevel:
    return BatteryLevel(
        level=int(_value(common_attributes, "batteryLevel", 0)),
        is_charging=_value(mower_attributes, "activity")
        == GardenaMowerActivities.OK_CHARGING,
    )


def convert_gardena_connection(common_attributes: dict[str, Any]) -> MowerConnection:
    return MowerConnection(
        connected=_value(common_attributes, "rfLinkState")
        == GardenaRfLinkStates.ONLINE
    )


def create_gardena_mower(
    mower: dict[str, Any], common: dict[str, Any], location_id: str
) -> Mower:
    """Create a vendor-neutral mower from the MOWER and COMMON services of a device."""
    mower_attributes = mower.get("attributes", {})
    common_attributes = common.get("attributes", {})
    manufacturer, model = parse_model_information(
        str(_value(common_attributes, "modelType", ""))
    )

    return Mower(
        id=mower["id"],
        attributes=MowerAttributes(
            battery=convert_gardena_battery(common_attributes, mower_attributes),
            connection=convert_gardena_connection(common_attributes),
            metadata=MowerMetadata(
                manufacturer=manufacturer,
                model=model,
                name=str(_value(common_attributes, "name", "")),
                serial_number=str(_value(common_attributes, "serial", "")),
            ),
            mower=convert_gardena_status(mower_attributes),
            location_id=location_id,
        ),
    )


def find_mowers_at_location(location: dict[str, Any]) -> list[Mower]:
    """Find the mowers among the devices of a Gardena location document.

    Args:
        location: Location document with devices and services under ``included``.

    Returns:
        List of mowers; devices without a COMMON service are skipped.

    """
    location_id = location["data"]["id"]
    included = location.get("included", [])
    items = {(item["id"], item["type"]): item for item in included}

    device_refs = location["data"]["relationships"]["devices"]["data"]
    result = []

    for ref in device_refs:
        device = items.get((ref["id"], GardenaItemType.DEVICE))
        if device is None:
            continue

        services = [
            items[(service["id"], service["type"])]
            for service in device["relationships"]["services"]["data"]
            if (service["id"], service["type"]) in items
        ]
        mower = next((s for s in services if s["type"] == GardenaItemType.MOWER), None)
        if mower is None:
            continue

        _LOGGER.debug("Gardena mower detected: %s", mower["id"])
        common = next(
            (s for s in services if s["type"] == GardenaItemType.COMMON), None
        )
        if common is None:
            _LOGGER.warning(
                "Gardena mower %s is missing the required COMMON service",
                mower["id"],
            )
            continue

        result.append(create_gardena_mower(mower, common, location_id))

    return result


class _TokenService:
    """Runs authenticated requests, flagging the token when it is rejected."""

    def __init__(
        self,
        token_manager: AccessTokenManager,
        session: httpx.AsyncClient,
        api_key: str,
    ) -> None:
        self._token_manager = token_manager
        self._session = session
        self._api_key = api_key

    async def _async_call(
        self, request: Callable[[AccessToken], Awaitable[_T]]
    ) -> _T:
        token = await self._token_manager.async_get_current_token()
        try:
            return await request(token)
        except api.AutomowerApiAuthError:
            self._token_manager.flag_as_invalid()
            raise


class AutomowerGetMowersService(_TokenService):
    """Retrieves the mowers connected to an Automower Connect account."""

    async def async_get_mowers(self) -> list[Mower]:
        """Return the mowers of the account."""
        items = await self._async_call(
            lambda token: api.async_get_mowers(self._session, self._api_key, token)
        )
        return [create_automower(item) for item in items]


class GardenaGetMowersService(_TokenService):
    """Retrieves the mowers of the first Gardena location which exists."""

    async def async_get_mowers(self) -> list[Mower]:
        """Return the mowers of the account."""
        _LOGGER.warning(
            "Gardena support is a preview feature and may not behave as expected"
        )

        location_ids = await self._async_call(
            lambda token: api.async_get_locations(self._session, self._api_key, token)
        )
        for location_id in location_ids:
            location = await self._async_call(
                lambda token, location_id=location_id: api.async_get_location(
                    self._session, self._api_key, token, location_id
                )
            )
            if location:
                return find_mowers_at_location(location)

        return []


class AutomowerControlService(_TokenService):
    """Sends control actions to mowers through Automower Connect."""

    async def _async_send(self, mower_id: str, action: dict[str, Any]) -> None:
        await self._async_call(
            lambda token: api.async_send_action(
                self._session, self._api_key, token, mower_id, action
            )
        )

    async def async_start(self, mower_id: str) -> None:
        """Start mowing, overriding the schedule."""
        await self._async_send(
            mower_id,
            {"type": "Start", "attributes": {"duration": DEFAULT_START_DURATION}},
        )

    async def async_pause(self, mower_id: str) -> None:
        """Pause the mower."""
        await self._async_send(mower_id, {"type": "Pause"})

    async def async_resume_schedule(self, mower_id: str) -> None:
        """Resume the schedule of the mower."""
        await self._async_send(mower_id, {"type": "ResumeSchedule"})

    async def async_park_until_further_notice(self, mower_id: str) -> None:
        """Park the mower until it is told otherwise."""
        await self._async_send(mower_id, {"type": "ParkUntilFurtherNotice"})


class GardenaControlService(_TokenService):
    """Sends MOWER_CONTROL commands to Gardena mower services."""

    async def _async_send(
        self, mower_id: str, command: str, seconds: int | None = None
    ) -> None:
        await self._async_call(
            lambda token: api.async_send_gardena_command(
                self._session, self._api_key, token, mower_id, command, seconds
            )
        )

    async def async_start(self, mower_id: str) -> None:
        """Start mowing, overriding the schedule."""
        await self._async_send(
            mower_id,
            "START_SECONDS_TO_OVERRIDE",
            DEFAULT_START_DURATION * SECONDS_PER_MINUTE,
        )

    async def async_pause(self, mower_id: str) -> None:
        """Pause the mower."""
        await self._async_send(mower_id, "PARK_UNTIL_NEXT_TASK")

    async def async_resume_schedule(self, mower_id: str) -> None:
        """Resume the schedule of the mower."""
        await self._async_send(mower_id, "START_DONT_OVERRIDE")

    async def async_park_until_further_notice(self, mower_id: str) -> None:
        """Park the mower until it is told otherwise."""
        await self._async_send(mower_id, "PARK_UNTIL_FURTHER_NOTICE")
