"""Coordinator for the Automower Platform integration."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import timedelta
from typing import TYPE_CHECKING, Protocol

import httpx
from homeassistant.helpers.update_coordinator import DataUpdateCoordinator, UpdateFailed
from homeassistant.util import dt as dt_util

from . import api
from .const import DEFAULT_POLL_INTERVAL, DOMAIN, TOKEN_EXPIRY_SKEW
from .events import GardenaItemType
from .models import (
    Activity,
    BatteryLevel,
    Mower,
    MowerActivities,
    MowerConnection,
)
from .services import (
    convert_automower_status,
    convert_gardena_connection,
    convert_gardena_status,
)

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from homeassistant.core import HomeAssistant

    from .events import GardenaEvent, SettingsEvent, StatusEvent
    from .models import AccessToken

_LOGGER = logging.getLogger(__name__)


class GetMowersService(Protocol):
    """Retrieves the mowers available to the account."""

    async def async_get_mowers(self) -> list[Mower]: ...


class AccessTokenManager:
    """Manages the access token used to talk to the Husqvarna APIs.

    The token is only held in memory. A new token is requested from the
    authentication API whenever none is cached, the cached one is about to
    expire, or it has been flagged as invalid by a caller.
    """

    def __init__(
        self,
        session: httpx.AsyncClient,
        api_key: str,
        username: str | None = None,
        password: str | None = None,
        application_secret: str | None = None,
        now: Callable[[], datetime] = dt_util.utcnow,
    ) -> None:
        """Initialize the token manager."""
        self._session = session
        self._api_key = api_key
        self._username = username
        self._password = password
        self._application_secret = application_secret
        self._now = now
        self._token: AccessToken | None = None

    @property
    def has_token(self) -> bool:
        """Return True if a token is currently cached."""
        return self._token is not None

    async def async_get_current_token(self) -> AccessToken:
        """Return the cached token, logging in first when required.

        Raises:
            AutomowerApiAuthError: If the credentials are rejected.
            AutomowerApiClientError: If the authentication request fails.

        """
        now = self._now()
        if self._token is None or self._token.is_expired(now, TOKEN_EXPIRY_SKEW):
            _LOGGER.debug("No valid access token cached, logging in")
            self._token = await api.async_login(
                self._session,
                self._api_key,
                now,
                username=self._username,
                password=self._password,
                application_secret=self._application_secret,
            )
        return self._token

    def flag_as_invalid(self) -> None:
        """Discard the cached token so the next request logs in again."""
        _LOGGER.debug("Access token flagged as invalid")
        self._token = None

    async def async_logout(self) -> None:
        """Release the cached token with the backend."""
        token = self._token
        if token is None:
            return

        try:
            await api.async_logout(self._session, self._api_key, token)
        finally:
            self._token = None
        _LOGGER.debug("Logged out from the Husqvarna API")


class AutomowerDeviceCoordinator(DataUpdateCoordinator[dict[str, Mower]]):
    """Coordinator that holds the state of every mower on the account.

    The mowers are polled at a long interval, while the event stream pushes
    changes in between through the ``async_handle_*`` callbacks.
    """

    def __init__(
        self,
        hass: HomeAssistant,
        get_mowers_service: GetMowersService,
    ) -> None:
        super().__init__(
            hass,
            _LOGGER,
            name=f"{DOMAIN}_mowers",
            update_interval=timedelta(seconds=DEFAULT_POLL_INTERVAL),
        )
        self._get_mowers_service = get_mowers_service
        self.data = {}

    async def _async_update_data(self) -> dict[str, Mower]:
        try:
            mowers = await self._get_mowers_service.async_get_mowers()
            _LOGGER.debug("Polled status for %d mowers", len(mowers))
        except api.AutomowerApiAuthError as err:
            error_msg = f"Authentication error while polling mowers: {err}"
            raise UpdateFailed(error_msg) from err
        except api.AutomowerApiClientError as err:
            error_msg = f"API error while polling mowers: {err}"
            raise UpdateFailed(error_msg) from err
        except httpx.RequestError as err:
            error_msg = f"Connection error while polling mowers: {err}"
            raise UpdateFailed(error_msg) from err

        return {mower.id: mower for mower in mowers}

    def _async_update_mower(self, mower: Mower) -> None:
        self.async_set_updated_data({**self.data, mower.id: mower})

    def async_handle_status_event(self, event: StatusEvent) -> None:
        """Merge an Automower status event into the cached mower."""
        mower = self.data.get(event.id)
        if mower is None:
            _LOGGER.debug("Received status event for unknown mower %s", event.id)
            return

        attributes = replace(
            mower.attributes,
            battery=BatteryLevel(
                level=event.battery.battery_percent,
                is_charging=event.mower.activity == MowerActivities.CHARGING,
            ),
            connection=MowerConnection(connected=event.metadata.connected),
            mower=convert_automower_status(event.mower),
            planner=event.planner,
            state=event.mower,
        )
        self._async_update_mower(replace(mower, attributes=attributes))

    def async_handle_settings_event(self, event: SettingsEvent) -> None:
        """Merge an Automower settings event into the cached mower."""
        mower = self.data.get(event.id)
        if mower is None:
            _LOGGER.debug("Received settings event for unknown mower %s", event.id)
            return

        if event.calendar is None:
            return

        attributes = replace(mower.attributes, calendar=event.calendar)
        self._async_update_mower(replace(mower, attributes=attributes))

    def async_handle_gardena_event(self, event: GardenaEvent) -> None:
        """Merge a Gardena MOWER or COMMON service item into the cached mower.

        The services of a device share the identifier of the mower service.
        """
        mower = self.data.get(event.id)
        if mower is None:
            _LOGGER.debug("Received Gardena event for unknown mower %s", event.id)
            return

        if event.type == GardenaItemType.MOWER:
            status = convert_gardena_status(event.attributes)
            attributes = replace(
                mower.attributes,
                mower=status,
                battery=replace(
                    mower.attributes.battery,
                    is_charging=status.activity == Activity.CHARGING,
                ),
            )
        elif event.type == GardenaItemType.COMMON:
            attributes = mower.attributes
            battery_level = event.attributes.get("batteryLevel")
            if battery_level is not None:
                attributes = replace(
                    attributes,
                    battery=replace(
                        attributes.battery, level=int(battery_level["value"])
                    ),
                )
            if "rfLinkState" in event.attributes:
                attributes = replace(
                    attributes,
                    connection=convert_gardena_connection(event.attributes),
                )
        else:
            return

        self._async_update_mower(replace(mower, attributes=attributes))
