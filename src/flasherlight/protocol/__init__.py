"""BLE protocol implementation."""

from .classifier import (
    Classification,
    FailureReason,
    Outcome,
    classify,
    classify_discovery,
)
from .commands import (
    MESSAGENET_CODES,
    DatagramCommand,
    LightCommand,
    build_color,
    build_flashing,
    build_power_off,
    build_power_on,
    build_rgb_white_min,
    build_white,
    resolve_command,
    translate_command,
)
from .constants import (
    CCCD_UUID,
    DEFAULT_CONSTANTS,
    HANDSHAKE_PAYLOAD,
    MAX_RETRIES_SERVICE_DISCOVERY,
    PASSWORD_PAYLOAD_000000,
    RETRY_INTERVAL_MS,
    SERVICE_UUID,
    GattStatus,
    ProtocolConstants,
)

__all__ = [
    "CCCD_UUID",
    "DEFAULT_CONSTANTS",
    "HANDSHAKE_PAYLOAD",
    "MAX_RETRIES_SERVICE_DISCOVERY",
    "PASSWORD_PAYLOAD_000000",
    "RETRY_INTERVAL_MS",
    "SERVICE_UUID",
    "GattStatus",
    "ProtocolConstants",
    "Classification",
    "FailureReason",
    "Outcome",
    "classify",
    "classify_discovery",
    "MESSAGENET_CODES",
    "DatagramCommand",
    "LightCommand",
    "build_color",
    "build_flashing",
    "build_power_off",
    "build_power_on",
    "build_rgb_white_min",
    "build_white",
    "resolve_command",
    "translate_command",
]
