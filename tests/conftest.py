"""Pytest configuration and fixtures for Automower Platform tests."""

from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from custom_components.automower_platform.models import (
    AccessToken,
    Activity,
    BatteryLevel,
    Mower,
    MowerAttributes,
    MowerConnection,
    MowerMetadata,
    MowerStatus,
    State,
)

TEST_API_KEY = "test_api_key"
TEST_MOWER_ID = "c7233734-b219-4287-a173-08e3643f89f0"
TEST_LOCATION_ID = "f0e5f9d1-0b7c-4b0e-a1a6-7a0a3a5b9c44"


@pytest.fixture
def sample_token() -> AccessToken:
    """Fixture providing an access token valid for one day."""
    return AccessToken(
        value="test_access_token",
        provider="husqvarna",
        expires_at=datetime.now(UTC) + timedelta(days=1),
    )


@pytest.fixture
def sample_login_response() -> dict[str, Any]:
    """Fixture providing a sample authentication API response."""
    return {
        "access_token": "test_access_token",
        "scope": "iam:read amc:api",
        "expires_in": 86399,
        "provider": "husqvarna",
        "user_id": "user-id",
        "token_type": "Bearer",
    }


@pytest.fixture
def sample_status_attributes() -> dict[str, Any]:
    """Fixture providing the attributes of a status event."""
    return {
        "battery": {"batteryPercent": 87},
        "mower": {
            "mode": "MAIN_AREA",
            "activity": "PARKED_IN_CS",
            "state": "RESTRICTED",
            "errorCode": 0,
            "errorCodeTimestamp": 0,
        },
        "planner": {
            "nextStartTimestamp": 1700000000000,
            "override": {"action": "NOT_ACTIVE"},
            "restrictedReason": "WEEK_SCHEDULE",
        },
        "metadata": {"connected": True, "statusTimestamp": 1699990000000},
    }


@pytest.fixture
def sample_automower_item(sample_status_attributes: dict[str, Any]) -> dict[str, Any]:
    """Fixture providing a mower item as returned by Automower Connect.

    Returns:
        A dictionary representing a single entry of the get mowers response.

    """
    return {
        "type": "mower",
        "id": TEST_MOWER_ID,
        "attributes": {
            "system": {
                "name": "Lawn Ranger",
                "model": "HUSQVARNA AUTOMOWER® 430XH",
                "serialNumber": 192401234,
            },
            "calendar": {
                "tasks": [
                    {
                        "start": 480,
                        "duration": 600,
                        "monday": True,
                        "tuesday": True,
                        "wednesday": True,
                        "thursday": True,
                        "friday": True,
                        "saturday": False,
                        "sunday": False,
                    }
                ]
            },
            "positions": [{"latitude": 57.70, "longitude": 14.16}],
            **sample_status_attributes,
        },
    }


@pytest.fixture
def sample_mowers_response(sample_automower_item: dict[str, Any]) -> dict[str, Any]:
    """Fixture providing a sample get mowers API response."""
    return {"data": [sample_automower_item]}


@pytest.fixture
def sample_gardena_location() -> dict[str, Any]:
    """Fixture providing a Gardena location with a single mower device.

    Returns:
        A dictionary representing a get location API response.

    """
    return {
        "data": {
            "id": TEST_LOCATION_ID,
            "type": "LOCATION",
            "relationships": {
                "devices": {"data": [{"id": "device-1", "type": "DEVICE"}]}
            },
            "attributes": {"name": "My Garden"},
        },
        "included": [
            {
                "id": "device-1",
                "type": "DEVICE",
                "relationships": {
                    "services": {
                        "data": [
                            {"id": "device-1", "type": "MOWER"},
                            {"id": "device-1", "type": "COMMON"},
                        ]
                    }
                },
            },
            {
                "id": "device-1",
                "type": "MOWER",
                "attributes": {
                    "state": {"value": "OK"},
                    "activity": {"value": "OK_CUTTING"},
                    "lastErrorCode": {"value": "NO_MESSAGE"},
                },
            },
            {
                "id": "device-1",
                "type": "COMMON",
                "attributes": {
                    "name": {"value": "Sileno"},
                    "batteryLevel": {"value": 64},
                    "rfLinkState": {"value": "ONLINE"},
                    "serial": {"value": "00012345"},
                    "modelType": {"value": "GARDENA smart Mower"},
                },
            },
        ],
    }


@pytest.fixture
def sample_mower() -> Mower:
    """Fixture providing a normalized mower without calendar or planner."""
    return Mower(
        id=TEST_MOWER_ID,
        attributes=MowerAttributes(
            battery=BatteryLevel(level=87),
            connection=MowerConnection(connected=True),
            metadata=MowerMetadata(
                manufacturer="HUSQVARNA",
                model="AUTOMOWER® 430XH",
                name="Lawn Ranger",
                serial_number="192401234",
            ),
            mower=MowerStatus(activity=Activity.PARKED, state=State.READY),
        ),
    )
