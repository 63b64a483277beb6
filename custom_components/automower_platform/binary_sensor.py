"""Binary sensor entities for the Automower Platform integration."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from homeassistant.components.binary_sensor import (
    BinarySensorDeviceClass,
    BinarySensorEntity,
    BinarySensorEntityDescription,
)
from homeassistant.core import callback

from .const import DOMAIN, LOW_BATTERY_LEVEL
from .entity import AutomowerEntity
from .policy import MowerIsArrivingPolicy, MowerIsLeavingPolicy

if TYPE_CHECKING:
    from collections.abc import Callable

    from homeassistant.config_entries import ConfigEntry
    from homeassistant.core import HomeAssistant
    from homeassistant.helpers.entity_platform import AddEntitiesCallback

    from .coordinator import AutomowerDeviceCoordinator
    from .entity import ControlService
    from .models import Mower


@dataclass(frozen=True, kw_only=True)
class MowerBinarySensorEntityDescription(BinarySensorEntityDescription):
    """Describes a mower binary sensor."""

    is_on_fn: Callable[[Mower], bool]


BINARY_SENSOR_DESCRIPTIONS: tuple[MowerBinarySensorEntityDescription, ...] = (
    MowerBinarySensorEntityDescription(
        key="charging",
        name="Charging",
        device_class=BinarySensorDeviceClass.BATTERY_CHARGING,
        is_on_fn=lambda mower: mower.attributes.battery.is_charging,
    ),
    MowerBinarySensorEntityDescription(
        key="low_battery",
        name="Low battery",
        device_class=BinarySensorDeviceClass.BATTERY,
        is_on_fn=lambda mower: mower.attributes.battery.level <= LOW_BATTERY_LEVEL,
    ),
    MowerBinarySensorEntityDescription(
        key="connected",
        name="Connected",
        device_class=BinarySensorDeviceClass.CONNECTIVITY,
        is_on_fn=lambda mower: mower.attributes.connection.connected,
    ),
)


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up binary sensor entities for every mower."""
    entry_data = hass.data[DOMAIN][entry.entry_id]
    coordinator = entry_data["coordinator"]
    control_service = entry_data["control_service"]

    entities: list[BinarySensorEntity] = []
    for mower_id in coordinator.data:
        entities.extend(
            MowerBinarySensorEntity(coordinator, control_service, mower_id, d)
            for d in BINARY_SENSOR_DESCRIPTIONS
        )
        entities.append(LeavingSensor(coordinator, control_service, mower_id))
        entities.append(ArrivingSensor(coordinator, control_service, mower_id))
    async_add_entities(entities)


class MowerBinarySensorEntity(AutomowerEntity, BinarySensorEntity):
    """A binary sensor which reports a single flag of the mower state."""

    entity_description: MowerBinarySensorEntityDescription

    def __init__(
        self,
        coordinator: AutomowerDeviceCoordinator,
        control_service: ControlService,
        mower_id: str,
        description: MowerBinarySensorEntityDescription,
    ) -> None:
        super().__init__(coordinator, control_service, mower_id, description.key)
        self.entity_description = description

    @property
    def is_on(self) -> bool | None:
        """Return True if the mower condition holds."""
        mower = self.mower
        if mower is None:
            return None
        return self.entity_description.is_on_fn(mower)


class _ActivitySensor(AutomowerEntity, BinarySensorEntity):
    """On while an activity policy holds for the mower."""

    _key: str

    def __init__(
        self,
        coordinator: AutomowerDeviceCoordinator,
        control_service: ControlService,
        mower_id: str,
        policy: MowerIsLeavingPolicy | MowerIsArrivingPolicy,
    ) -> None:
        super().__init__(coordinator, control_service, mower_id, self._key)
        self._policy = policy
        self._refresh_policy()

    def _refresh_policy(self) -> None:
        mower = self.mower
        self._policy.set_mower_status(None if mower is None else mower.attributes.mower)
        self._attr_is_on = self._policy.check()

    @callback
    def _handle_coordinator_update(self) -> None:
        self._refresh_policy()
        super()._handle_coordinator_update()


class LeavingSensor(_ActivitySensor):
    """On while the mower is leaving the charging station."""

    _key = "leaving"
    _attr_name = "Leaving"
    _attr_icon = "mdi:home-export-outline"

    def __init__(
        self,
        coordinator: AutomowerDeviceCoordinator,
        control_service: ControlService,
        mower_id: str,
    ) -> None:
        super().__init__(
            coordinator, control_service, mower_id, MowerIsLeavingPolicy()
        )


class ArrivingSensor(_ActivitySensor):
    """On while the mower is heading back to the charging station."""

    _key = "arriving"
    _attr_name = "Arriving"
    _attr_icon = "mdi:home-import-outline"

    def __init__(
        self,
        coordinator: AutomowerDeviceCoordinator,
        control_service: ControlService,
        mower_id: str,
    ) -> None:
        super().__init__(
            coordinator, control_service, mower_id, MowerIsArrivingPolicy()
        )
