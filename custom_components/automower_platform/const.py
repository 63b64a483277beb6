"""Constants for the Automower Platform integration.

This module contains all the constants used throughout the integration,
including API endpoints, configuration keys and timing defaults.
"""

from datetime import timedelta

DOMAIN = "automower_platform"

AUTHENTICATION_API_BASE_URL = "https://api.authentication.husqvarnagroup.dev/v1"
AUTOMOWER_CONNECT_API_BASE_URL = "https://api.amc.husqvarna.dev/v1"
AUTOMOWER_STREAM_API_BASE_URL = "wss://ws.openapi.husqvarna.dev/v1"
GARDENA_SMART_API_BASE_URL = "https://api.smart.gardena.dev/v1"

AUTHORIZATION_PROVIDER = "husqvarna"

DEFAULT_POLL_INTERVAL = 600  # Long interval since the event stream pushes changes
RECONNECT_INTERVAL = timedelta(hours=1)
TOKEN_EXPIRY_SKEW = timedelta(seconds=60)
REQUEST_TIMEOUT = 10.0

# Minutes the mower runs when started outside of its schedule
DEFAULT_START_DURATION = 180

LOW_BATTERY_LEVEL = 20

CONF_API_KEY = "api_key"
CONF_APPLICATION_SECRET = "application_secret"
CONF_DEVICE_TYPE = "device_type"

DEVICE_TYPE_AUTOMOWER = "automower"
DEVICE_TYPE_GARDENA = "gardena"
DEVICE_TYPES = [DEVICE_TYPE_AUTOMOWER, DEVICE_TYPE_GARDENA]

ERROR_INVALID_AUTH = "invalid_auth"
ERROR_CANNOT_CONNECT = "cannot_connect"
ERROR_TIMEOUT = "timeout_error"
ERROR_API_ERROR = "api_error"
ERROR_UNKNOWN = "unknown_error"
