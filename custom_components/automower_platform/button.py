"""Button entities for the Automower Platform integration."""

from __future__ import annotations

from typing import TYPE_CHECKING

from homeassistant.components.button import ButtonEntity

from .const import DOMAIN
from .entity import AutomowerEntity

if TYPE_CHECKING:
    from homeassistant.config_entries import ConfigEntry
    from homeassistant.core import HomeAssistant
    from homeassistant.helpers.entity_platform import AddEntitiesCallback

    from .coordinator import AutomowerDeviceCoordinator
    from .entity import ControlService


async def async_setup_entry(
    hass: HomeAssistant,
    entry: ConfigEntry,
    async_add_entities: AddEntitiesCallback,
) -> None:
    """Set up button entities for every mower."""
    entry_data = hass.data[DOMAIN][entry.entry_id]
    coordinator = entry_data["coordinator"]
    control_service = entry_data["control_service"]

    async_add_entities(
        StartButton(coordinator, control_service, mower_id)
        for mower_id in coordinator.data
    )


class StartButton(AutomowerEntity, ButtonEntity):
    """Starts the mower outside of its schedule."""

    _attr_name = "Start"
    _attr_icon = "mdi:play"

    def __init__(
        self,
        coordinator: AutomowerDeviceCoordinator,
        control_service: ControlService,
        mower_id: str,
    ) -> None:
        super().__init__(coordinator, control_service, mower_id, "start")

    async def async_press(self) -> None:
        """Send the start command."""
        await self._async_send_command(self._control_service.async_start)
