"""API client for the Husqvarna Group cloud.

This module provides functions to interact with the Husqvarna authentication
API, the Automower Connect API and the Gardena smart system API, including
authentication, mower discovery and command sending.
"""

import logging
import uuid
from datetime import datetime, timedelta
from typing import Any

import httpx
from homeassistant.core import HomeAssistant
from homeassistant.helpers.httpx_client import create_async_httpx_client
from httpx_retries import Retry, RetryTransport

from .const import (
    AUTHENTICATION_API_BASE_URL,
    AUTHORIZATION_PROVIDER,
    AUTOMOWER_CONNECT_API_BASE_URL,
    GARDENA_SMART_API_BASE_URL,
    REQUEST_TIMEOUT,
)
from .models import AccessToken

_LOGGER = logging.getLogger(__name__)

# HTTP status codes
HTTP_BAD_REQUEST = 400
HTTP_UNAUTHORIZED = 401
HTTP_FORBIDDEN = 403

JSON_API_CONTENT_TYPE = "application/vnd.api+json"


class AutomowerApiClientError(Exception):
    """Base exception for Husqvarna API client errors."""


class AutomowerApiAuthError(AutomowerApiClientError):
    """Exception raised when the backend rejects the credentials or token."""


def create_headers(api_key: str, token: AccessToken | None = None) -> dict[str, str]:
    """Create HTTP headers for Husqvarna API requests.

    Args:
        api_key: Application key issued by the developer portal.
        token: Optional access token to include in headers.

    Returns:
        Dictionary containing HTTP headers for API requests.

    """
    headers = {
        "X-Api-Key": api_key,
        "Content-Type": JSON_API_CONTENT_TYPE,
        "Accept": JSON_API_CONTENT_TYPE,
    }
    if token:
        headers["Authorization"] = f"Bearer {token.value}"
        headers["Authorization-Provider"] = token.provider
    return headers


def is_http_error(status: int) -> bool:
    """Check if HTTP status code indicates an error.

    Args:
        status: HTTP status code to check.

    Returns:
        True if status code is 400 or higher, False otherwise.

    """
    return status >= HTTP_BAD_REQUEST


def is_auth_error(status: int) -> bool:
    """Check if HTTP status code indicates authentication error.

    Args:
        status: HTTP status code to check.

    Returns:
        True if status code is 401, False otherwise.

    """
    return status == HTTP_UNAUTHORIZED


def validate_response(response: httpx.Response) -> dict[str, Any]:
    """Validate HTTP response and return parsed JSON data.

    Args:
        response: HTTP response object to validate.

    Returns:
        Parsed JSON data from response.

    Raises:
        AutomowerApiAuthError: If authentication error is detected.
        AutomowerApiClientError: If the request failed or the body is not JSON.

    """
    validate_status(response)
    try:
        return response.json()
    except ValueError as err:
        error_msg = f"Invalid response body: {err}"
        raise AutomowerApiClientError(error_msg) from err


def validate_status(response: httpx.Response) -> None:
    """Validate the HTTP status of a response which carries no body.

    Raises:
        AutomowerApiAuthError: If authentication error is detected.
        AutomowerApiClientError: If the request failed.

    """
    if not is_http_error(response.status_code):
        return

    if is_auth_error(response.status_code):
        auth_error = "Authentication error"
        raise AutomowerApiAuthError(auth_error)

    client_error = f"Request failed: {response.status_code}"
    raise AutomowerApiClientError(client_error)


def extract_access_token(data: dict[str, Any], now: datetime) -> AccessToken:
    """Extract the access token from an authentication response.

    Args:
        data: API response data dictionary.
        now: Time the token was issued, used to compute its expiry.

    Returns:
        AccessToken object.

    Raises:
        AutomowerApiClientError: If the response does not contain a token.

    """
    try:
        value = data["access_token"]
    except KeyError as err:
        error_msg = "Authentication response missing access_token"
        raise AutomowerApiClientError(error_msg) from err

    expires_in = data.get("expires_in")
    return AccessToken(
        value=value,
        provider=data.get("provider", AUTHORIZATION_PROVIDER),
        expires_at=None if expires_in is None else now + timedelta(seconds=expires_in),
    )


def extract_mowers(data: dict[str, Any]) -> list[dict[str, Any]]:
    """Extract the mower items from a get mowers response."""
    return data.get("data", [])


def extract_location_ids(data: dict[str, Any]) -> list[str]:
    """Extract the location ids from a get locations response.

    Args:
        data: API response data dictionary.

    Returns:
        List of location ids in the order returned by the backend.

    """
    return [str(item["id"]) for item in data.get("data", [])]


def extract_websocket_url(data: dict[str, Any]) -> str:
    """Extract the websocket address from a create socket response.

    Raises:
        AutomowerApiClientError: If the response does not contain a url.

    """
    try:
        return data["data"]["attributes"]["url"]
    except (KeyError, TypeError) as err:
        error_msg = "Websocket response missing url"
        raise AutomowerApiClientError(error_msg) from err


def create_session_client(hass: HomeAssistant) -> httpx.AsyncClient:
    """Create HTTP client with retry logic for the Husqvarna APIs.

    Args:
        hass: Home Assistant instance.

    Returns:
        Configured httpx AsyncClient with retry transport.

    """
    base_client = create_async_httpx_client(hass, timeout=REQUEST_TIMEOUT)
    retry = Retry(total=3, backoff_factor=0.5)
    base_client._transport = RetryTransport(  # noqa: SLF001
        transport=base_client._transport,  # noqa: SLF001
        retry=retry,
    )
    return base_client


async def async_login(
    session: httpx.AsyncClient,
    api_key: str,
    now: datetime,
    username: str | None = None,
    password: str | None = None,
    application_secret: str | None = None,
) -> AccessToken:
    """Log in to the authentication API.

    The client credentials grant is used when an application secret is
    provided, otherwise the password grant with the account credentials.

    Args:
        session: HTTP client session.
        api_key: Application key.
        now: Current time, used to compute the token expiry.
        username: Account user name.
        password: Account password.
        application_secret: Optional application secret.

    Returns:
        AccessToken object.

    Raises:
        AutomowerApiAuthError: If authentication fails.
        AutomowerApiClientError: If API request fails.

    """
    url = f"{AUTHENTICATION_API_BASE_URL}/oauth2/token"
    if application_secret:
        form = {
            "grant_type": "client_credentials",
            "client_id": api_key,
            "client_secret": application_secret,
        }
    else:
        form = {
            "grant_type": "password",
            "client_id": api_key,
            "username": username or "",
            "password": password or "",
        }

    _LOGGER.debug("Authenticating with %s grant", form["grant_type"])
    response = await session.post(url, data=form)

    # The authentication API rejects bad credentials with a 400
    if response.status_code in (HTTP_BAD_REQUEST, HTTP_FORBIDDEN):
        auth_error = f"Authentication rejected: {response.status_code}"
        raise AutomowerApiAuthError(auth_error)

    data = validate_response(response)
    token = extract_access_token(data, now)
    _LOGGER.debug("Successfully authenticated with the Husqvarna API")
    return token


async def async_logout(
    session: httpx.AsyncClient,
    api_key: str,
    token: AccessToken,
) -> None:
    """Release an access token with the authentication API.

    Raises:
        AutomowerApiAuthError: If authentication fails.
        AutomowerApiClientError: If API request fails.

    """
    url = f"{AUTHENTICATION_API_BASE_URL}/token/{token.value}"
    headers = {
        "X-Api-Key": api_key,
        "Authorization-Provider": token.provider,
    }

    _LOGGER.debug("Logging out from the Husqvarna API")
    response = await session.delete(url, headers=headers)
    validate_status(response)


async def async_get_mowers(
    session: httpx.AsyncClient,
    api_key: str,
    token: AccessToken,
) -> list[dict[str, Any]]:
    """Fetch the mowers connected to the account from Automower Connect.

    Args:
        session: HTTP client session.
        api_key: Application key.
        token: Access token.

    Returns:
        List of raw mower items.

    Raises:
        AutomowerApiAuthError: If authentication fails.
        AutomowerApiClientError: If API request fails.

    """
    url = f"{AUTOMOWER_CONNECT_API_BASE_URL}/mowers"
    headers = create_headers(api_key, token)

    _LOGGER.debug("Fetching mowers from Automower Connect")
    response = await session.get(url, headers=headers)
    data = validate_response(response)
    mowers = extract_mowers(data)
    _LOGGER.debug("Retrieved %d mowers from Automower Connect", len(mowers))
    return mowers


async def async_send_action(
    session: httpx.AsyncClient,
    api_key: str,
    token: AccessToken,
    mower_id: str,
    action: dict[str, Any],
) -> None:
    """Send an action to a mower through Automower Connect.

    Args:
        session: HTTP client session.
        api_key: Application key.
        token: Access token.
        mower_id: Target mower identifier.
        action: Action payload, for example ``{"type": "Pause"}``.

    Raises:
        AutomowerApiAuthError: If authentication fails.
        AutomowerApiClientError: If API request fails.

    """
    url = f"{AUTOMOWER_CONNECT_API_BASE_URL}/mowers/{mower_id}/actions"
    headers = create_headers(api_key, token)
    payload = {"data": action}

    _LOGGER.debug("Sending action to mower %s: %s", mower_id, action)
    response = await session.post(url, headers=headers, json=payload)
    validate_status(response)


async def async_get_locations(
    session: httpx.AsyncClient,
    api_key: str,
    token: AccessToken,
) -> list[str]:
    """Fetch the location ids of the account from the Gardena smart system.

    Raises:
        AutomowerApiAuthError: If authentication fails.
        AutomowerApiClientError: If API request fails.

    """
    url = f"{GARDENA_SMART_API_BASE_URL}/locations"
    headers = create_headers(api_key, token)

    _LOGGER.debug("Fetching locations from the Gardena smart system")
    response = await session.get(url, headers=headers)
    data = validate_response(response)
    return extract_location_ids(data)


async def async_get_location(
    session: httpx.AsyncClient,
    api_key: str,
    token: AccessToken,
    location_id: str,
) -> dict[str, Any]:
    """Fetch a location along with its devices and services.

    Args:
        session: HTTP client session.
        api_key: Application key.
        token: Access token.
        location_id: Location identifier.

    Returns:
        The raw location document, with devices and services under ``included``.

    Raises:
        AutomowerApiAuthError: If authentication fails.
        AutomowerApiClientError: If API request fails.

    """
    url = f"{GARDENA_SMART_API_BASE_URL}/locations/{location_id}"
    headers = create_headers(api_key, token)

    _LOGGER.debug("Fetching location %s from the Gardena smart system", location_id)
    response = await session.get(url, headers=headers)
    return validate_response(response)


async def async_create_socket(
    session: httpx.AsyncClient,
    api_key: str,
    token: AccessToken,
    location_id: str,
) -> str:
    """Request a websocket address to receive events for a location.

    Returns:
        The websocket url to connect to.

    Raises:
        AutomowerApiAuthError: If authentication fails.
        AutomowerApiClientError: If API request fails.

    """
    url = f"{GARDENA_SMART_API_BASE_URL}/websocket"
    headers = create_headers(api_key, token)
    payload = {
        "data": {
            "id": str(uuid.uuid4()),
            "type": "WEBSOCKET",
            "attributes": {"locationId": location_id},
        }
    }

    _LOGGER.debug("Creating websocket for location %s", location_id)
    response = await session.post(url, headers=headers, json=payload)
    data = validate_response(response)
    return extract_websocket_url(data)


async def async_send_gardena_command(
    session: httpx.AsyncClient,
    api_key: str,
    token: AccessToken,
    service_id: str,
    command: str,
    seconds: int | None = None,
) -> None:
    """Send a MOWER_CONTROL command to a Gardena mower service.

    Args:
        session: HTTP client session.
        api_key: Application key.
        token: Access token.
        service_id: Target mower service identifier.
        command: Control command, for example ``PARK_UNTIL_NEXT_TASK``.
        seconds: Duration for commands which take one.

    Raises:
        AutomowerApiAuthError: If authentication fails.
        AutomowerApiClientError: If API request fails.

    """
    url = f"{GARDENA_SMART_API_BASE_URL}/command/{service_id}"
    headers = create_headers(api_key, token)
    attributes: dict[str, Any] = {"command": command}
    if seconds is not None:
        attributes["seconds"] = seconds
    payload = {
        "data": {
            "id": str(uuid.uuid4()),
            "type": "MOWER_CONTROL",
            "attributes": attributes,
        }
    }

    _LOGGER.debug("Sending command to service %s: %s", service_id, command)
    response = await session.put(url, headers=headers, json=payload)
    validate_status(response)
