"""
Configuration flow for the Automower Platform integration.

This module handles the setup of the integration through Home Assistant's
config flow system. The credentials are validated by logging in to the
Husqvarna authentication API before the entry is created.
"""

import logging
from typing import Any

import httpx
import voluptuous as vol
from homeassistant.config_entries import ConfigFlow, ConfigFlowResult
from homeassistant.const import CONF_PASSWORD, CONF_USERNAME
from homeassistant.util import dt as dt_util

from . import api
from .const import (
    CONF_API_KEY,
    CONF_APPLICATION_SECRET,
    CONF_DEVICE_TYPE,
    DEVICE_TYPE_AUTOMOWER,
    DEVICE_TYPES,
    DOMAIN,
    ERROR_API_ERROR,
    ERROR_CANNOT_CONNECT,
    ERROR_INVALID_AUTH,
    ERROR_TIMEOUT,
    ERROR_UNKNOWN,
)

_LOGGER = logging.getLogger(__name__)

DATA_SCHEMA = vol.Schema(
    {
        vol.Required(CONF_USERNAME): str,
        vol.Required(CONF_PASSWORD): str,
        vol.Required(CONF_API_KEY): str,
        vol.Optional(CONF_APPLICATION_SECRET): str,
        vol.Required(CONF_DEVICE_TYPE, default=DEVICE_TYPE_AUTOMOWER): vol.In(
            DEVICE_TYPES
        ),
    }
)


class AutomowerPlatformConfigFlow(ConfigFlow, domain=DOMAIN):
    """Handle configuration flow for Automower Platform integration."""

    VERSION = 1

    async def async_step_user(
        self, user_input: dict[str, Any] | None = None
    ) -> ConfigFlowResult:
        """
        Handle the initial step of the config flow.

        Args:
            user_input: User input data containing the account credentials,
                the application key and the backend to talk to.

        Returns:
            ConfigFlowResult indicating the next step or errors.

        """
        errors: dict[str, str] = {}

        if user_input is not None:
            username = user_input[CONF_USERNAME]
            device_type = user_input[CONF_DEVICE_TYPE]

            try:
                session = api.create_session_client(self.hass)
                await api.async_login(
                    session,
                    user_input[CONF_API_KEY],
                    dt_util.utcnow(),
                    username=username,
                    password=user_input[CONF_PASSWORD],
                    application_secret=user_input.get(CONF_APPLICATION_SECRET),
                )
                _LOGGER.info("Successfully authenticated with the Husqvarna API")

            except api.AutomowerApiAuthError as err:
                _LOGGER.warning(
                    "Authentication failed (%s): %s", ERROR_INVALID_AUTH, err
                )
                errors["base"] = ERROR_INVALID_AUTH
            except httpx.ConnectError:
                _LOGGER.exception("Connection error (%s)", ERROR_CANNOT_CONNECT)
                errors["base"] = ERROR_CANNOT_CONNECT
            except httpx.TimeoutException:
                _LOGGER.exception("Timeout error (%s)", ERROR_TIMEOUT)
                errors["base"] = ERROR_TIMEOUT
            except api.AutomowerApiClientError:
                _LOGGER.exception("API client error (%s)", ERROR_API_ERROR)
                errors["base"] = ERROR_API_ERROR
            except Exception:
                _LOGGER.exception(
                    "Unexpected error during authentication (%s)",
                    ERROR_UNKNOWN,
                )
                errors["base"] = ERROR_UNKNOWN

            else:
                await self.async_set_unique_id(f"{device_type}_{username.lower()}")
                self._abort_if_unique_id_configured()

                return self.async_create_entry(
                    title=f"{device_type.capitalize()} ({username})",
                    data=user_input,
                )

        return self.async_show_form(
            step_id="user",
            data_schema=DATA_SCHEMA,
            errors=errors,
        )
