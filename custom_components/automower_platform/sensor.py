"""Sensor entities for the Automower Platform integration."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from homeassistant.components.sensor import (
    SensorDeviceClass,
    SensorEntity,
    SensorEntityDescription,
    SensorStateClass,
)
from homeassistant.const import PERCENTAGE

from .const import DOMAIN
from .entity import AutomowerEntity
from .models import Activity, State

if TYPE_CHECKING:
    from collections.abc import Callable

    from homeassistant.config_entries import ConfigEntry
    from homeassistant.core import HomeAssistant
    from homeassistant.helpers.entity_platform import AddEntitiesCallback

    from .coordinator import AutomowerDeviceCoordinator
    from .entity import ControlService
    from .models import Mower


@dataclass(frozen=True, kw_only=True)
class MowerSensorEntityDescription(SensorEntityDescription):
    """Describes a mower sensor."""

    value_fn: Callable[[Mower], str | int | None]


SENSOR_DESCRIPTIONS: tuple[MowerSensorEntityDescription, ...] = (
    MowerSensorEntityDescription(
        key="battery_level",
        name="Battery",
        native_unit_of_measurement=PERCENTAGE,
        device_class=SensorDeviceClass.BATTERY,
        state_class=SensorStateClass.MEASUREMENT,
        value_fn=lambda mower: mower.attributes.battery.level,
    ),
    MowerSensorEntityDescription(
        key="activity",
        name="Activity",
        icon="mdi:robot-mower",
        device_class=SensorDeviceClass.ENUM,
        options=[activity.value for activity in Activity],
        value_fn=lambda mower: mower.attributes.mower.activity.value,
    ),
    MowerSensorEntityDescription(
        key="state",
        name="State",
        icon="mdi:state-machine",
        device_class=SensorDeviceClass.ENUM,
        options=[state.value for state in State],
        value_fn=lambda mower: mower.attributes.mower.state.value,
    ),
)


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up sensor entities for every mower."""
    entry_data = hass.data[DOMAIN][entry.entry_id]
    coordinator = entry_data["coordinator"]
    control_service = entry_data["control_service"]

    async_add_entities(
        MowerSensorEntity(coordinator, control_service, mower_id, description)
        for mower_id in coordinator.data
        for description in SENSOR_DESCRIPTIONS
    )


class MowerSensorEntity(AutomowerEntity, SensorEntity):
    """A sensor which reports a single value of the mower state."""

    entity_description: MowerSensorEntityDescription

    def __init__(
        self,
        coordinator: AutomowerDeviceCoordinator,
        control_service: ControlService,
        mower_id: str,
        description: MowerSensorEntityDescription,
    ) -> None:
        super().__init__(coordinator, control_service, mower_id, description.key)
        self.entity_description = description

    @property
    def native_value(self) -> str | int | None:
        """Return the value read from the mower."""
        mower = self.mower
        if mower is None:
            return None
        return self.entity_description.value_fn(mower)
