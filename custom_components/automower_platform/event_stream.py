"""Service which keeps the mower event stream alive.

The service owns an event stream client and a keep alive timer. On every
tick it either pings the connection or, when the connection is down or has
gone quiet for longer than the reconnect interval, reconnects it with a
fresh access token. Events received are dispatched by type to the
registered status and settings callbacks.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from homeassistant.core import HassJob
from homeassistant.helpers.event import async_call_later
from homeassistant.util import dt as dt_util

from . import api
from .const import RECONNECT_INTERVAL
from .events import EventType, GardenaItemType

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable
    from datetime import datetime, timedelta

    from homeassistant.core import CALLBACK_TYPE, HomeAssistant

    from .coordinator import AccessTokenManager
    from .events import GardenaEvent, SettingsEvent, StatusEvent
    from .websocket import EventStreamClient

_LOGGER = logging.getLogger(__name__)


class Timer:
    """One-shot timer scheduled on the Home Assistant event loop."""

    def __init__(self, hass: HomeAssistant) -> None:
        self._hass = hass
        self._cancel: CALLBACK_TYPE | None = None

    @property
    def armed(self) -> bool:
        """Return True while a run is pending."""
        return self._cancel is not None

    def start(self, action: Callable[[], Awaitable[None]], delay: timedelta) -> None:
        """Run the action once after the delay, replacing any pending run."""
        self.stop()

        async def _async_fire(_now: datetime) -> None:
            self._cancel = None
            await action()

        self._cancel = async_call_later(
            self._hass, delay, HassJob(_async_fire, cancel_on_shutdown=True)
        )

    def stop(self) -> None:
        """Cancel the pending run, if any."""
        if self._cancel is not None:
            self._cancel()
            self._cancel = None


class KeepAliveAction(StrEnum):
    """What a keep alive tick did with the connection."""

    PING = "ping"
    RECONNECT = "reconnect"


@dataclass(frozen=True)
class KeepAliveResult:
    """Outcome of a keep alive tick."""

    action: KeepAliveAction
    error: Exception | None = None

    @property
    def succeeded(self) -> bool:
        """Return True if the tick completed without error."""
        return self.error is None


class EventStreamService:
    """Keeps the event stream connected and dispatches the events it receives."""

    def __init__(
        self,
        token_manager: AccessTokenManager,
        client: EventStreamClient,
        timer: Timer,
        reconnect_interval: timedelta = RECONNECT_INTERVAL,
        now: Callable[[], datetime] = dt_util.utcnow,
    ) -> None:
        """Initialize the service.

        Args:
            token_manager: Provides the token used to open the stream.
            client: Client holding the websocket connection.
            timer: Timer driving the keep alive ticks.
            reconnect_interval: Time without events after which the stream
                is considered stalled.
            now: Clock returning the current time.

        """
        self._token_manager = token_manager
        self._client = client
        self._timer = timer
        self._reconnect_interval = reconnect_interval
        self._now = now

        self._running = False
        self._started: datetime | None = None
        self._last_event_received_at: datetime | None = None

        self._on_status_event: Callable[[Any], None] | None = None
        self._on_settings_event: Callable[[SettingsEvent], None] | None = None

        self._dispatch: dict[EventType, Callable[[Any], None] | None] = {
            EventType.STATUS: self._notify_status_event,
            EventType.SETTINGS: self._notify_settings_event,
            EventType.POSITIONS: None,
        }

    @property
    def started(self) -> datetime | None:
        """Return when the current connection was opened."""
        return self._started

    @property
    def last_event_received_at(self) -> datetime | None:
        """Return when the last event was received on the current connection."""
        return self._last_event_received_at

    def on_status_event_received(self, callback: Callable[[Any], None]) -> None:
        """Set the callback run for every status event."""
        self._on_status_event = callback

    def on_settings_event_received(
        self, callback: Callable[[SettingsEvent], None]
    ) -> None:
        """Set the callback run for every settings event."""
        self._on_settings_event = callback

    async def async_start(self) -> None:
        """Open the stream and start the keep alive timer.

        Raises:
            AutomowerApiAuthError: If the token is rejected.
            AutomowerApiClientError: If the stream cannot be opened.

        """
        token = await self._token_manager.async_get_current_token()
        await self._client.async_open(token)
        self._client.set_on_event_callback(self._async_on_event_received)

        self._started = self._now()
        self._last_event_received_at = None
        self._running = True
        self._timer.start(self._async_keep_alive, self._reconnect_interval)
        _LOGGER.debug("Event stream service started")

    async def async_stop(self) -> None:
        """Stop the keep alive timer and close the stream.

        A tick already in flight is allowed to finish but is not rescheduled.
        """
        self._running = False
        self._timer.stop()
        await self._client.async_close()
        _LOGGER.debug("Event stream service stopped")

    async def _async_keep_alive(self) -> None:
        try:
            result = await self._async_tick()
            if not result.succeeded:
                _LOGGER.error(
                    "Unable to keep the event stream alive (%s): %s",
                    result.action,
                    result.error,
                )
        finally:
            if self._running:
                self._timer.start(self._async_keep_alive, self._reconnect_interval)

    async def _async_tick(self) -> KeepAliveResult:
        """Ping or reconnect the stream; never raises."""
        action = KeepAliveAction.RECONNECT
        try:
            if self._should_reconnect():
                await self._async_reconnect()
            else:
                action = KeepAliveAction.PING
                await self._client.async_ping()
        except Exception as err:  # noqa: BLE001
            return KeepAliveResult(action=action, error=err)

        return KeepAliveResult(action=action)

    def _should_reconnect(self) -> bool:
        if not self._client.is_connected():
            _LOGGER.debug("Event stream is not connected")
            return True

        now = self._now()
        if self._last_event_received_at is None:
            stalled = (
                self._started is not None
                and now - self._started > self._reconnect_interval
            )
            if stalled:
                _LOGGER.debug("No event received since the stream was opened")
            return stalled

        if now - self._last_event_received_at > self._reconnect_interval:
            _LOGGER.debug("No event received since %s", self._last_event_received_at)
            return True

        return False

    async def _async_reconnect(self) -> None:
        _LOGGER.debug("Reconnecting the event stream")
        try:
            token = await self._token_manager.async_get_current_token()
            await self._client.async_close()
            await self._client.async_open(token)
        except api.AutomowerApiAuthError:
            self._token_manager.flag_as_invalid()
            raise

        self._started = self._now()
        self._last_event_received_at = None

    def _categorize(self, event: Any) -> EventType | None:  # noqa: ANN401
        """Return the dispatch category of an event, or None to ignore it."""
        return event.type

    async def _async_on_event_received(self, event: Any) -> None:  # noqa: ANN401
        self._last_event_received_at = self._now()

        category = self._categorize(event)
        if category is None:
            return

        if category not in self._dispatch:
            _LOGGER.warning("Received unknown event: %s", event)
            return

        handler = self._dispatch[category]
        if handler is None:
            return

        try:
            handler(event)
        except Exception:
            _LOGGER.exception("Error in %s callback", category)

    def _notify_status_event(self, event: StatusEvent | GardenaEvent) -> None:
        if self._on_status_event is not None:
            self._on_status_event(event)

    def _notify_settings_event(self, event: SettingsEvent) -> None:
        if self._on_settings_event is not None:
            self._on_settings_event(event)


class GardenaEventStreamService(EventStreamService):
    """Event stream service for a Gardena location.

    MOWER and COMMON items describe the mower and are dispatched as status
    events; every other item is ignored.
    """

    def _categorize(self, event: GardenaEvent) -> EventType | None:
        if event.type in (GardenaItemType.MOWER, GardenaItemType.COMMON):
            return EventType.STATUS

        _LOGGER.debug("Ignoring Gardena %s item %s", event.type, event.id)
        return None
