"""Base entity for the Automower Platform integration."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import httpx
from homeassistant.helpers.device_registry import DeviceInfo
from homeassistant.helpers.update_coordinator import CoordinatorEntity

from .api import AutomowerApiAuthError, AutomowerApiClientError
from .const import DOMAIN
from .coordinator import AutomowerDeviceCoordinator

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from .models import Mower
    from .services import AutomowerControlService, GardenaControlService

    ControlService = AutomowerControlService | GardenaControlService

_LOGGER = logging.getLogger(__name__)


class AutomowerEntity(CoordinatorEntity[AutomowerDeviceCoordinator]):
    """An entity which presents part of the state of a single mower."""

    _attr_has_entity_name = True

    def __init__(
        self,
        coordinator: AutomowerDeviceCoordinator,
        control_service: ControlService,
        mower_id: str,
        key: str,
    ) -> None:
        super().__init__(coordinator)
        self._control_service = control_service
        self._mower_id = mower_id
        self._attr_unique_id = f"{mower_id}_{key}"

        metadata = coordinator.data[mower_id].attributes.metadata
        self._attr_device_info = DeviceInfo(
            identifiers={(DOMAIN, mower_id)},
            name=metadata.name,
            manufacturer=metadata.manufacturer,
            model=metadata.model,
            serial_number=metadata.serial_number,
        )

    @property
    def mower(self) -> Mower | None:
        """Return the latest state of the mower, if it is still known."""
        return self.coordinator.data.get(self._mower_id)

    @property
    def available(self) -> bool:
        """Return if entity is available."""
        return super().available and self.mower is not None

    async def _async_send_command(
        self, command: Callable[[str], Awaitable[None]]
    ) -> bool:
        """Send a command to the mower.

        Returns:
            True if the command was accepted, False otherwise.

        """
        try:
            await command(self._mower_id)
        except AutomowerApiAuthError:
            _LOGGER.exception(
                "Authentication error for %s. Please re-configure the integration.",
                self.entity_id,
            )
        except AutomowerApiClientError:
            _LOGGER.exception("API error while sending command to %s", self.entity_id)
        except httpx.RequestError:
            _LOGGER.exception(
                "Connection error while sending command to %s", self.entity_id
            )
        else:
            return True

        return False
