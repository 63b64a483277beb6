"""WebSocket clients for the mower event streams.

This module provides the clients which hold the long-lived websocket
connection to the Automower Connect and Gardena smart system event
streams, turn the raw frames into typed events and report the lifecycle
of the connection to registered callbacks.
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
from abc import ABC, abstractmethod
from enum import StrEnum
from typing import TYPE_CHECKING, Any

import aiohttp

from . import api
from .const import AUTOMOWER_STREAM_API_BASE_URL
from .events import (
    is_connected_event,
    parse_connected_event,
    parse_event,
    parse_gardena_event,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    import httpx

    from .models import AccessToken

_LOGGER = logging.getLogger(__name__)


class ConnectionPhase(StrEnum):
    """Lifecycle phases of an event stream connection."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class EventStreamClient(ABC):
    """Base client for a websocket which streams mower events.

    At most one socket is open at a time; opening a new one closes the
    previous one first. Failures while reading the socket are logged and
    reported through the error callback, they never escape the reader task.
    """

    def __init__(self, session: aiohttp.ClientSession) -> None:
        """Initialize the client.

        Args:
            session: aiohttp session used to open the websocket.

        """
        self._session = session
        self._socket: aiohttp.ClientWebSocketResponse | None = None
        self._listener: asyncio.Task[None] | None = None
        self._phase = ConnectionPhase.DISCONNECTED

        self._on_event_callback: Callable[[Any], Awaitable[None]] | None = None
        self._on_connected_callback: Callable[[], Awaitable[None]] | None = None
        self._on_disconnected_callback: Callable[[], Awaitable[None]] | None = None
        self._on_error_callback: Callable[[], Awaitable[None]] | None = None

    @property
    def phase(self) -> ConnectionPhase:
        """Return the current phase of the connection."""
        return self._phase

    def is_connecting(self) -> bool:
        """Return True while waiting for the stream to confirm the connection."""
        return self._phase == ConnectionPhase.CONNECTING

    def is_connected(self) -> bool:
        """Return True once the stream has confirmed the connection."""
        return self._phase == ConnectionPhase.CONNECTED

    def set_on_event_callback(
        self, callback: Callable[[Any], Awaitable[None]] | None
    ) -> None:
        """Set the callback run for every event received."""
        self._on_event_callback = callback

    def set_on_connected_callback(
        self, callback: Callable[[], Awaitable[None]] | None
    ) -> None:
        """Set the callback run once the stream is connected."""
        self._on_connected_callback = callback

    def set_on_disconnected_callback(
        self, callback: Callable[[], Awaitable[None]] | None
    ) -> None:
        """Set the callback run when a connected stream is closed remotely."""
        self._on_disconnected_callback = callback

    def set_on_error_callback(
        self, callback: Callable[[], Awaitable[None]] | None
    ) -> None:
        """Set the callback run when the socket reports an error."""
        self._on_error_callback = callback

    async def async_open(self, token: AccessToken) -> None:
        """Open a new connection, closing any existing one first.

        Args:
            token: Access token used to authenticate the connection.

        Raises:
            AutomowerApiAuthError: If the backend rejects the token.

        """
        await self.async_close()

        self._phase = ConnectionPhase.CONNECTING
        try:
            socket = await self._async_create_socket(token)
        except Exception:
            self._phase = ConnectionPhase.DISCONNECTED
            raise

        self._socket = socket
        self._listener = asyncio.create_task(self._async_listen(socket))
        _LOGGER.debug("Event stream opened, waiting for the connection")

    async def async_close(self) -> None:
        """Close the connection.

        The disconnected callback is not executed when closing on request.
        """
        listener, self._listener = self._listener, None
        socket, self._socket = self._socket, None
        self._phase = ConnectionPhase.DISCONNECTED

        if (
            listener is not None
            and not listener.done()
            and listener is not asyncio.current_task()
        ):
            listener.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await listener

        if socket is not None and not socket.closed:
            await socket.close()
            _LOGGER.debug("Event stream closed")

    async def async_ping(self) -> None:
        """Send a ping frame to keep the connection alive.

        Does nothing while no socket is open.
        """
        if self._socket is None or self._socket.closed:
            return

        await self._socket.ping(b"ping")

    @abstractmethod
    async def _async_create_socket(
        self, token: AccessToken
    ) -> aiohttp.ClientWebSocketResponse:
        """Create the vendor specific socket."""

    @abstractmethod
    async def _async_on_payload_received(self, payload: dict[str, Any]) -> None:
        """Process a decoded frame."""

    async def _async_listen(self, socket: aiohttp.ClientWebSocketResponse) -> None:
        try:
            async for msg in socket:
                if msg.type in (aiohttp.WSMsgType.TEXT, aiohttp.WSMsgType.BINARY):
                    await self._async_on_message_received(msg.data)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    await self._async_on_error_received(socket.exception())
        except asyncio.CancelledError:
            raise
        except Exception as err:  # noqa: BLE001
            await self._async_on_error_received(err)

        if self._socket is socket:
            if not socket.closed:
                await socket.close()
            await self._async_on_close_received()

    async def _async_on_message_received(self, data: str | bytes) -> None:
        if not data:
            return

        try:
            payload = json.loads(data)
        except ValueError:
            _LOGGER.exception("Error processing message")
            return

        _LOGGER.debug("Received event: %s", payload)
        if not isinstance(payload, dict):
            _LOGGER.warning("Ignoring unexpected message: %s", payload)
            return

        try:
            await self._async_on_payload_received(payload)
        except Exception:
            _LOGGER.exception("Error processing message")

    async def _async_on_error_received(self, err: BaseException | None) -> None:
        _LOGGER.error("Unexpected socket error: %s", err)
        await self._async_invoke("error", self._on_error_callback)

    async def _async_on_close_received(self) -> None:
        was_connected = self.is_connected()

        self._phase = ConnectionPhase.DISCONNECTED
        self._socket = None
        self._listener = None

        if not was_connected:
            # Closed while connecting, the next keep alive tick will retry
            _LOGGER.debug("Event stream closed before it was connected")
            return

        _LOGGER.debug("Event stream disconnected")
        await self._async_invoke("disconnected", self._on_disconnected_callback)

    async def _async_on_connected(self) -> None:
        self._phase = ConnectionPhase.CONNECTED
        _LOGGER.debug("Event stream connected")
        await self._async_invoke("connected", self._on_connected_callback)

    async def _async_notify_event(self, event: Any) -> None:  # noqa: ANN401
        await self._async_invoke("event", self._on_event_callback, event)

    async def _async_invoke(
        self,
        name: str,
        callback: Callable[..., Awaitable[None]] | None,
        *args: Any,  # noqa: ANN401
    ) -> None:
        if callback is None:
            return

        try:
            await callback(*args)
        except Exception:
            _LOGGER.exception("Error in %s callback", name)


class AutomowerEventStreamClient(EventStreamClient):
    """Receives the events of all mowers connected to an Automower Connect account.

    The connection is established once the ``{connectionId, ready}`` frame
    has been received.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        url: str = AUTOMOWER_STREAM_API_BASE_URL,
    ) -> None:
        super().__init__(session)
        self._url = url
        self._connection_id: str | None = None

    @property
    def connection_id(self) -> str | None:
        """Return the identifier assigned by the server to the connection."""
        return self._connection_id

    async def _async_create_socket(
        self, token: AccessToken
    ) -> aiohttp.ClientWebSocketResponse:
        self._connection_id = None
        headers = {"Authorization": f"Bearer {token.value}"}

        _LOGGER.debug("Connecting to Automower event stream at %s", self._url)
        try:
            return await self._session.ws_connect(self._url, headers=headers)
        except aiohttp.WSServerHandshakeError as err:
            if api.is_auth_error(err.status):
                auth_error = "Event stream rejected the access token"
                raise api.AutomowerApiAuthError(auth_error) from err
            client_error = f"Event stream handshake failed: {err.status}"
            raise api.AutomowerApiClientError(client_error) from err

    async def _async_on_payload_received(self, payload: dict[str, Any]) -> None:
        if is_connected_event(payload):
            event = parse_connected_event(payload)
            self._connection_id = event.connection_id
            await self._async_on_connected()
        elif payload.get("type") is not None:
            await self._async_notify_event(parse_event(payload))


class GardenaEventStreamClient(EventStreamClient):
    """Receives the events of the devices at a Gardena location.

    The socket address is requested from the REST API for every connection,
    and the connection is established on the first message received.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        http_session: httpx.AsyncClient,
        api_key: str,
        location_id: str,
    ) -> None:
        super().__init__(session)
        self._http_session = http_session
        self._api_key = api_key
        self._location_id = location_id

    async def _async_create_socket(
        self, token: AccessToken
    ) -> aiohttp.ClientWebSocketResponse:
        url = await api.async_create_socket(
            self._http_session, self._api_key, token, self._location_id
        )

        _LOGGER.debug("Connecting to Gardena event stream for %s", self._location_id)
        try:
            return await self._session.ws_connect(url)
        except aiohttp.WSServerHandshakeError as err:
            if api.is_auth_error(err.status):
                auth_error = "Event stream rejected the access token"
                raise api.AutomowerApiAuthError(auth_error) from err
            client_error = f"Event stream handshake failed: {err.status}"
            raise api.AutomowerApiClientError(client_error) from err

    async def _async_on_payload_received(self, payload: dict[str, Any]) -> None:
        if not self.is_connected():
            await self._async_on_connected()

        await self._async_notify_event(parse_gardena_event(payload))
