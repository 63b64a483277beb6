"""Switch entities for the Automower Platform integration."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from homeassistant.components.switch import SwitchEntity
from homeassistant.core import callback

from .const import DOMAIN
from .entity import AutomowerEntity
from .models import State
from .policy import DeterministicScheduleEnabledPolicy

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
    """Set up switch entities for every mower."""
    entry_data = hass.data[DOMAIN][entry.entry_id]
    coordinator = entry_data["coordinator"]
    control_service = entry_data["control_service"]

    entities: list[SwitchEntity] = []
    for mower_id in coordinator.data:
        entities.append(ScheduleSwitch(coordinator, control_service, mower_id))
        entities.append(PauseSwitch(coordinator, control_service, mower_id))
    async_add_entities(entities)


class ScheduleSwitch(AutomowerEntity, SwitchEntity):
    """Enables or disables the mowing schedule.

    Turning the switch off parks the mower until further notice, turning it
    on resumes the schedule.
    """

    _attr_name = "Schedule"
    _attr_icon = "mdi:calendar-clock"

    def __init__(
        self,
        coordinator: AutomowerDeviceCoordinator,
        control_service: ControlService,
        mower_id: str,
        policy: DeterministicScheduleEnabledPolicy | None = None,
    ) -> None:
        super().__init__(coordinator, control_service, mower_id, "schedule")
        self._policy = policy or DeterministicScheduleEnabledPolicy()
        self._refresh_schedule_state()

    def _refresh_schedule_state(self) -> None:
        mower = self.mower
        if mower is None:
            return

        attributes = mower.attributes
        if attributes.calendar is None and attributes.planner is None:
            # Gardena mowers only report whether they are enabled
            self._attr_is_on = attributes.mower.enabled
            return

        self._policy.set_calendar(attributes.calendar)
        self._policy.set_planner(attributes.planner)
        self._policy.set_mower_state(attributes.state)

        if self._policy.should_apply():
            self._attr_is_on = self._policy.apply()

    @callback
    def _handle_coordinator_update(self) -> None:
        self._refresh_schedule_state()
        super()._handle_coordinator_update()

    async def async_turn_on(self, **kwargs: Any) -> None:  # noqa: ARG002
        """Resume the mowing schedule."""
        if await self._async_send_command(self._control_service.async_resume_schedule):
            self._attr_is_on = True
            self.async_write_ha_state()

    async def async_turn_off(self, **kwargs: Any) -> None:  # noqa: ARG002
        """Park the mower until further notice."""
        if await self._async_send_command(
            self._control_service.async_park_until_further_notice
        ):
            self._attr_is_on = False
            self.async_write_ha_state()


class PauseSwitch(AutomowerEntity, SwitchEntity):
    """Pauses the mower where it is."""

    _attr_name = "Pause"
    _attr_icon = "mdi:pause"

    def __init__(
        self,
        coordinator: AutomowerDeviceCoordinator,
        control_service: ControlService,
        mower_id: str,
    ) -> None:
        super().__init__(coordinator, control_service, mower_id, "pause")

    @property
    def is_on(self) -> bool | None:
        """Return true while the mower is paused."""
        mower = self.mower
        if mower is None:
            return None
        return mower.attributes.mower.state == State.PAUSED

    async def async_turn_on(self, **kwargs: Any) -> None:  # noqa: ARG002
        """Pause the mower."""
        await self._async_send_command(self._control_service.async_pause)

    async def async_turn_off(self, **kwargs: Any) -> None:  # noqa: ARG002
        """Resume the mowing schedule."""
        await self._async_send_command(self._control_service.async_resume_schedule)
