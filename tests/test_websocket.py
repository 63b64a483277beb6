"""Tests for the event stream websocket clients."""

import asyncio
import json
from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock, Mock, patch

import aiohttp
import pytest

from custom_components.automower_platform import api
from custom_components.automower_platform.const import AUTOMOWER_STREAM_API_BASE_URL
from custom_components.automower_platform.events import (
    GardenaEvent,
    StatusEvent,
    UnknownEvent,
)
from custom_components.automower_platform.models import AccessToken
from custom_components.automower_platform.websocket import (
    AutomowerEventStreamClient,
    ConnectionPhase,
    GardenaEventStreamClient,
)

from .conftest import TEST_API_KEY, TEST_LOCATION_ID, TEST_MOWER_ID

CONNECTED_FRAME = json.dumps({"connectionId": "conn-1", "ready": True})


class FakeSocket:
    """In-memory stand-in for an aiohttp client websocket."""

    def __init__(self) -> None:
        self._queue: asyncio.Queue[Any] = asyncio.Queue()
        self.closed = False
        self.error: BaseException | None = None
        self.ping = AsyncMock()

    def feed(self, data: str) -> None:
        self._queue.put_nowait(SimpleNamespace(type=aiohttp.WSMsgType.TEXT, data=data))

    def feed_error(self, error: BaseException) -> None:
        self.error = error
        self._queue.put_nowait(SimpleNamespace(type=aiohttp.WSMsgType.ERROR, data=None))

    def fail(self, error: BaseException) -> None:
        self._queue.put_nowait(error)

    def end(self) -> None:
        self._queue.put_nowait(None)

    def exception(self) -> BaseException | None:
        return self.error

    async def close(self) -> None:
        self.closed = True
        self.end()

    def __aiter__(self) -> "FakeSocket":
        return self

    async def __anext__(self) -> Any:
        msg = await self._queue.get()
        if msg is None:
            raise StopAsyncIteration
        if isinstance(msg, BaseException):
            raise msg
        return msg


async def _drain() -> None:
    for _ in range(10):
        await asyncio.sleep(0)


def _handshake_error(status: int) -> aiohttp.WSServerHandshakeError:
    return aiohttp.WSServerHandshakeError(Mock(), (), status=status, message="nope")


@pytest.fixture
def fake_socket() -> FakeSocket:
    """Create a fake websocket."""
    return FakeSocket()


@pytest.fixture
def mock_ws_session(fake_socket: FakeSocket) -> Mock:
    """Create a mock aiohttp session which returns the fake websocket."""
    session = Mock()
    session.ws_connect = AsyncMock(return_value=fake_socket)
    return session


@pytest.fixture
def callbacks() -> SimpleNamespace:
    """Create async callbacks for every client notification."""
    return SimpleNamespace(
        event=AsyncMock(),
        connected=AsyncMock(),
        disconnected=AsyncMock(),
        error=AsyncMock(),
    )


@pytest.fixture
def client(
    mock_ws_session: Mock, callbacks: SimpleNamespace
) -> AutomowerEventStreamClient:
    """Create an Automower client with every callback registered."""
    stream_client = AutomowerEventStreamClient(mock_ws_session)
    stream_client.set_on_event_callback(callbacks.event)
    stream_client.set_on_connected_callback(callbacks.connected)
    stream_client.set_on_disconnected_callback(callbacks.disconnected)
    stream_client.set_on_error_callback(callbacks.error)
    return stream_client


async def _open_connected(
    client: AutomowerEventStreamClient,
    fake_socket: FakeSocket,
    token: AccessToken,
) -> None:
    await client.async_open(token)
    fake_socket.feed(CONNECTED_FRAME)
    await _drain()


class TestAutomowerEventStreamClientOpen:
    """Tests for opening the Automower event stream."""

    @pytest.mark.asyncio
    async def test_open_connects_with_bearer_token(
        self,
        client: AutomowerEventStreamClient,
        mock_ws_session: Mock,
        sample_token: AccessToken,
    ) -> None:
        """Test that the socket is opened with the access token."""
        await client.async_open(sample_token)

        mock_ws_session.ws_connect.assert_awaited_once_with(
            AUTOMOWER_STREAM_API_BASE_URL,
            headers={"Authorization": "Bearer test_access_token"},
        )
        assert client.phase == ConnectionPhase.CONNECTING
        assert client.is_connecting() is True
        await client.async_close()

    @pytest.mark.asyncio
    async def test_connection_frame_marks_connected(
        self,
        client: AutomowerEventStreamClient,
        fake_socket: FakeSocket,
        callbacks: SimpleNamespace,
        sample_token: AccessToken,
    ) -> None:
        """Test that the handshake frame marks the client as connected."""
        await _open_connected(client, fake_socket, sample_token)

        assert client.is_connected() is True
        assert client.connection_id == "conn-1"
        callbacks.connected.assert_awaited_once()
        callbacks.event.assert_not_awaited()
        await client.async_close()

    @pytest.mark.asyncio
    async def test_handshake_401_raises_auth_error(
        self,
        client: AutomowerEventStreamClient,
        mock_ws_session: Mock,
        sample_token: AccessToken,
    ) -> None:
        """Test that a rejected token raises auth error."""
        mock_ws_session.ws_connect.side_effect = _handshake_error(401)

        with pytest.raises(api.AutomowerApiAuthError):
            await client.async_open(sample_token)

        assert client.phase == ConnectionPhase.DISCONNECTED

    @pytest.mark.asyncio
    async def test_handshake_failure_raises_client_error(
        self,
        client: AutomowerEventStreamClient,
        mock_ws_session: Mock,
        sample_token: AccessToken,
    ) -> None:
        """Test that other handshake failures raise client error."""
        mock_ws_session.ws_connect.side_effect = _handshake_error(503)

        with pytest.raises(api.AutomowerApiClientError) as err:
            await client.async_open(sample_token)

        assert not isinstance(err.value, api.AutomowerApiAuthError)
        assert client.phase == ConnectionPhase.DISCONNECTED

    @pytest.mark.asyncio
    async def test_open_closes_previous_socket(
        self,
        client: AutomowerEventStreamClient,
        mock_ws_session: Mock,
        fake_socket: FakeSocket,
        callbacks: SimpleNamespace,
        sample_token: AccessToken,
    ) -> None:
        """Test that opening again closes the previous socket silently."""
        second_socket = FakeSocket()
        mock_ws_session.ws_connect.side_effect = [fake_socket, second_socket]
        await _open_connected(client, fake_socket, sample_token)

        await client.async_open(sample_token)
        await _drain()

        assert fake_socket.closed is True
        assert second_socket.closed is False
        callbacks.disconnected.assert_not_awaited()
        await client.async_close()


class TestAutomowerEventStreamClientMessages:
    """Tests for the frames received on the Automower event stream."""

    @pytest.mark.asyncio
    async def test_event_frame_is_parsed(
        self,
        client: AutomowerEventStreamClient,
        fake_socket: FakeSocket,
        callbacks: SimpleNamespace,
        sample_token: AccessToken,
        sample_status_attributes: dict[str, Any],
    ) -> None:
        """Test that an event frame is delivered as a typed event."""
        await _open_connected(client, fake_socket, sample_token)

        fake_socket.feed(
            json.dumps(
                {
                    "id": TEST_MOWER_ID,
                    "type": "status-event",
                    "attributes": sample_status_attributes,
                }
            )
        )
        await _drain()

        callbacks.event.assert_awaited_once()
        event = callbacks.event.await_args.args[0]
        assert isinstance(event, StatusEvent)
        assert event.id == TEST_MOWER_ID
        await client.async_close()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "data",
        [
            "{not json",
            "[1, 2, 3]",
            "",
            json.dumps({"id": TEST_MOWER_ID, "type": "status-event"}),
            json.dumps({"hello": "world"}),
            json.dumps(
                {
                    "id": TEST_MOWER_ID,
                    "type": "settings-event",
                    "attributes": {"headlight": "ON"},
                }
            ),
            json.dumps(
                {
                    "id": TEST_MOWER_ID,
                    "type": "settings-event",
                    "attributes": ["not", "a", "dict"],
                }
            ),
        ],
    )
    async def test_malformed_frames_are_dropped(
        self,
        client: AutomowerEventStreamClient,
        fake_socket: FakeSocket,
        callbacks: SimpleNamespace,
        sample_token: AccessToken,
        data: str,
    ) -> None:
        """Test that malformed frames are dropped and later frames still arrive."""
        await _open_connected(client, fake_socket, sample_token)

        fake_socket.feed(data)
        fake_socket.feed(json.dumps({"id": TEST_MOWER_ID, "type": "other-event"}))
        await _drain()

        callbacks.event.assert_awaited_once()
        assert isinstance(callbacks.event.await_args.args[0], UnknownEvent)
        callbacks.error.assert_not_awaited()
        callbacks.disconnected.assert_not_awaited()
        assert client.is_connected() is True
        assert fake_socket.closed is False
        await client.async_close()

    @pytest.mark.asyncio
    async def test_callback_failure_does_not_break_the_stream(
        self,
        client: AutomowerEventStreamClient,
        fake_socket: FakeSocket,
        callbacks: SimpleNamespace,
        sample_token: AccessToken,
    ) -> None:
        """Test that a failing callback is logged and the reader keeps going."""
        callbacks.event.side_effect = RuntimeError("boom")
        await _open_connected(client, fake_socket, sample_token)

        frame = json.dumps({"id": TEST_MOWER_ID, "type": "other-event"})
        fake_socket.feed(frame)
        fake_socket.feed(frame)
        await _drain()

        assert callbacks.event.await_count == 2
        assert client.is_connected() is True
        await client.async_close()

    @pytest.mark.asyncio
    async def test_error_frame_notifies_error_callback(
        self,
        client: AutomowerEventStreamClient,
        fake_socket: FakeSocket,
        callbacks: SimpleNamespace,
        sample_token: AccessToken,
    ) -> None:
        """Test that a socket error is reported to the error callback."""
        await _open_connected(client, fake_socket, sample_token)

        fake_socket.feed_error(ConnectionResetError("reset"))
        await _drain()

        callbacks.error.assert_awaited_once()
        await client.async_close()


class TestAutomowerEventStreamClientClose:
    """Tests for closing the Automower event stream."""

    @pytest.mark.asyncio
    async def test_remote_close_while_connected_notifies_disconnected(
        self,
        client: AutomowerEventStreamClient,
        fake_socket: FakeSocket,
        callbacks: SimpleNamespace,
        sample_token: AccessToken,
    ) -> None:
        """Test that a remote close after connecting reports the disconnect."""
        await _open_connected(client, fake_socket, sample_token)
        listener = client._listener

        fake_socket.end()
        await listener

        callbacks.disconnected.assert_awaited_once()
        assert client.phase == ConnectionPhase.DISCONNECTED

    @pytest.mark.asyncio
    async def test_remote_close_while_connecting_is_silent(
        self,
        client: AutomowerEventStreamClient,
        fake_socket: FakeSocket,
        callbacks: SimpleNamespace,
        sample_token: AccessToken,
    ) -> None:
        """Test that a close before the handshake does not report a disconnect."""
        await client.async_open(sample_token)
        listener = client._listener

        fake_socket.end()
        await listener

        callbacks.disconnected.assert_not_awaited()
        assert client.phase == ConnectionPhase.DISCONNECTED

    @pytest.mark.asyncio
    async def test_reader_failure_closes_the_socket(
        self,
        client: AutomowerEventStreamClient,
        fake_socket: FakeSocket,
        callbacks: SimpleNamespace,
        sample_token: AccessToken,
    ) -> None:
        """Test that a reader which stops on an error releases the socket."""
        await _open_connected(client, fake_socket, sample_token)
        listener = client._listener

        fake_socket.fail(aiohttp.ClientPayloadError("broken frame"))
        await listener

        callbacks.error.assert_awaited_once()
        callbacks.disconnected.assert_awaited_once()
        assert fake_socket.closed is True
        assert client.phase == ConnectionPhase.DISCONNECTED

    @pytest.mark.asyncio
    async def test_close_on_request_is_silent_and_idempotent(
        self,
        client: AutomowerEventStreamClient,
        fake_socket: FakeSocket,
        callbacks: SimpleNamespace,
        sample_token: AccessToken,
    ) -> None:
        """Test that closing on request does not report a disconnect."""
        await _open_connected(client, fake_socket, sample_token)

        await client.async_close()
        await client.async_close()

        assert fake_socket.closed is True
        assert client.phase == ConnectionPhase.DISCONNECTED
        callbacks.disconnected.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_close_without_socket(
        self, client: AutomowerEventStreamClient
    ) -> None:
        """Test that closing a client which was never opened does nothing."""
        await client.async_close()
        assert client.phase == ConnectionPhase.DISCONNECTED


class TestAutomowerEventStreamClientPing:
    """Tests for pinging the Automower event stream."""

    @pytest.mark.asyncio
    async def test_ping_when_connected(
        self,
        client: AutomowerEventStreamClient,
        fake_socket: FakeSocket,
        sample_token: AccessToken,
    ) -> None:
        """Test that a ping frame is sent while connected."""
        await _open_connected(client, fake_socket, sample_token)

        await client.async_ping()

        fake_socket.ping.assert_awaited_once_with(b"ping")
        await client.async_close()

    @pytest.mark.asyncio
    async def test_ping_while_connecting(
        self,
        client: AutomowerEventStreamClient,
        fake_socket: FakeSocket,
        sample_token: AccessToken,
    ) -> None:
        """Test that a ping frame is sent as soon as the socket is open."""
        await client.async_open(sample_token)

        await client.async_ping()

        fake_socket.ping.assert_awaited_once_with(b"ping")
        await client.async_close()

    @pytest.mark.asyncio
    async def test_ping_is_noop_after_close(
        self,
        client: AutomowerEventStreamClient,
        fake_socket: FakeSocket,
        sample_token: AccessToken,
    ) -> None:
        """Test that no ping is sent once the client is closed."""
        await _open_connected(client, fake_socket, sample_token)
        await client.async_close()

        await client.async_ping()

        fake_socket.ping.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_ping_is_noop_without_socket(
        self, client: AutomowerEventStreamClient
    ) -> None:
        """Test that pinging a closed client does nothing."""
        await client.async_ping()


class TestGardenaEventStreamClient:
    """Tests for GardenaEventStreamClient."""

    @pytest.mark.asyncio
    async def test_open_requests_socket_url(
        self,
        mock_ws_session: Mock,
        fake_socket: FakeSocket,
        sample_token: AccessToken,
    ) -> None:
        """Test that the socket url is requested from the REST API."""
        http_session = Mock()
        client = GardenaEventStreamClient(
            mock_ws_session, http_session, TEST_API_KEY, TEST_LOCATION_ID
        )
        with patch(
            "custom_components.automower_platform.websocket.api.async_create_socket",
            new=AsyncMock(return_value="wss://example/ws"),
        ) as mock_create:
            await client.async_open(sample_token)

        mock_create.assert_awaited_once_with(
            http_session, TEST_API_KEY, sample_token, TEST_LOCATION_ID
        )
        mock_ws_session.ws_connect.assert_awaited_once_with("wss://example/ws")
        await client.async_close()

    @pytest.mark.asyncio
    async def test_first_message_marks_connected(
        self,
        mock_ws_session: Mock,
        fake_socket: FakeSocket,
        callbacks: SimpleNamespace,
        sample_token: AccessToken,
    ) -> None:
        """Test that the first item marks the client connected and is delivered."""
        client = GardenaEventStreamClient(
            mock_ws_session, Mock(), TEST_API_KEY, TEST_LOCATION_ID
        )
        client.set_on_event_callback(callbacks.event)
        client.set_on_connected_callback(callbacks.connected)
        with patch(
            "custom_components.automower_platform.websocket.api.async_create_socket",
            new=AsyncMock(return_value="wss://example/ws"),
        ):
            await client.async_open(sample_token)

        fake_socket.feed(
            json.dumps(
                {
                    "id": "device-1",
                    "type": "MOWER",
                    "attributes": {"activity": {"value": "OK_CUTTING"}},
                }
            )
        )
        fake_socket.feed(json.dumps({"id": "device-1", "type": "COMMON"}))
        await _drain()

        assert client.is_connected() is True
        callbacks.connected.assert_awaited_once()
        assert callbacks.event.await_count == 2
        event = callbacks.event.await_args_list[0].args[0]
        assert event == GardenaEvent(
            id="device-1",
            type="MOWER",
            attributes={"activity": {"value": "OK_CUTTING"}},
        )
        await client.async_close()
