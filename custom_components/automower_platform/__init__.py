from __future__ import annotations

import logging

import aiohttp
import httpx
from homeassistant.config_entries import ConfigEntry
from homeassistant.const import CONF_PASSWORD, CONF_USERNAME, Platform
from homeassistant.core import HomeAssistant
from homeassistant.helpers.aiohttp_client import async_get_clientsession

from . import api
from .api import create_session_client
from .const import (
    CONF_API_KEY,
    CONF_APPLICATION_SECRET,
    CONF_DEVICE_TYPE,
    DEVICE_TYPE_GARDENA,
    DOMAIN,
)
from .coordinator import AccessTokenManager, AutomowerDeviceCoordinator
from .event_stream import EventStreamService, GardenaEventStreamService, Timer
from .services import (
    AutomowerControlService,
    AutomowerGetMowersService,
    GardenaControlService,
    GardenaGetMowersService,
)
from .websocket import AutomowerEventStreamClient, GardenaEventStreamClient

_LOGGER = logging.getLogger(__name__)

PLATFORMS = [
    Platform.BINARY_SENSOR,
    Platform.BUTTON,
    Platform.SENSOR,
    Platform.SWITCH,
]


def _create_event_stream(
    hass: HomeAssistant,
    entry: ConfigEntry,
    session: httpx.AsyncClient,
    token_manager: AccessTokenManager,
    coordinator: AutomowerDeviceCoordinator,
) -> EventStreamService | None:
    ws_session = async_get_clientsession(hass)
    timer = Timer(hass)

    if entry.data[CONF_DEVICE_TYPE] == DEVICE_TYPE_GARDENA:
        location_ids = {
            mower.attributes.location_id
            for mower in coordinator.data.values()
            if mower.attributes.location_id is not None
        }
        if not location_ids:
            _LOGGER.warning("No Gardena location found, event stream disabled")
            return None

        client = GardenaEventStreamClient(
            ws_session, session, entry.data[CONF_API_KEY], next(iter(location_ids))
        )
        service: EventStreamService = GardenaEventStreamService(
            token_manager, client, timer
        )
        service.on_status_event_received(coordinator.async_handle_gardena_event)
        return service

    service = EventStreamService(
        token_manager, AutomowerEventStreamClient(ws_session), timer
    )
    service.on_status_event_received(coordinator.async_handle_status_event)
    service.on_settings_event_received(coordinator.async_handle_settings_event)
    return service


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    _LOGGER.info(
        "Setting up Automower Platform integration for entry %s", entry.entry_id
    )

    session = create_session_client(hass)
    api_key = entry.data[CONF_API_KEY]
    token_manager = AccessTokenManager(
        session,
        api_key,
        username=entry.data.get(CONF_USERNAME),
        password=entry.data.get(CONF_PASSWORD),
        application_secret=entry.data.get(CONF_APPLICATION_SECRET),
    )

    if entry.data[CONF_DEVICE_TYPE] == DEVICE_TYPE_GARDENA:
        get_mowers_service = GardenaGetMowersService(token_manager, session, api_key)
        control_service = GardenaControlService(token_manager, session, api_key)
    else:
        get_mowers_service = AutomowerGetMowersService(
            token_manager, session, api_key
        )
        control_service = AutomowerControlService(token_manager, session, api_key)

    coordinator = AutomowerDeviceCoordinator(hass, get_mowers_service)
    await coordinator.async_config_entry_first_refresh()
    _LOGGER.info("Discovered %d mowers", len(coordinator.data))

    event_stream = _create_event_stream(
        hass, entry, session, token_manager, coordinator
    )
    if event_stream is not None:
        try:
            await event_stream.async_start()
        except api.AutomowerApiAuthError as err:
            _LOGGER.warning(
                "Authentication failed for entry %s: %s", entry.entry_id, str(err)
            )
            return False
        except api.AutomowerApiClientError as err:
            _LOGGER.error("API client error for entry %s: %s", entry.entry_id, str(err))
            return False
        except (httpx.RequestError, aiohttp.ClientError) as err:
            _LOGGER.error("Connection error for entry %s: %s", entry.entry_id, str(err))
            return False

    hass.data.setdefault(DOMAIN, {})[entry.entry_id] = {
        "session": session,
        "token_manager": token_manager,
        "coordinator": coordinator,
        "control_service": control_service,
        "event_stream": event_stream,
    }

    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)
    _LOGGER.info(
        "Successfully setup Automower Platform integration for entry %s",
        entry.entry_id,
    )
    return True


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    _LOGGER.info(
        "Unloading Automower Platform integration for entry %s", entry.entry_id
    )

    unload_ok = await hass.config_entries.async_unload_platforms(entry, PLATFORMS)
    if not unload_ok:
        _LOGGER.warning("Failed to unload some platforms for entry %s", entry.entry_id)
        return False

    entry_data = hass.data[DOMAIN].pop(entry.entry_id)
    if entry_data["event_stream"] is not None:
        await entry_data["event_stream"].async_stop()

    try:
        await entry_data["token_manager"].async_logout()
    except (api.AutomowerApiClientError, httpx.RequestError):
        _LOGGER.exception("Unable to log out for entry %s", entry.entry_id)

    _LOGGER.info(
        "Successfully unloaded Automower Platform integration for entry %s",
        entry.entry_id,
    )
    return True
