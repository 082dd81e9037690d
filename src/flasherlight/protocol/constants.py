"""GATT identifiers, payloads and status codes for the flasher light controller."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Final

BLUETOOTH_BASE_UUID_SUFFIX: Final = "-0000-1000-8000-00805f9b34fb"


def uuid16(short: int) -> str:
    """Expand a 16-bit UUID onto the Bluetooth base UUID."""
    return f"{short:08x}{BLUETOOTH_BASE_UUID_SUFFIX}"


# Client Characteristic Configuration Descriptor
CCCD_UUID: Final = uuid16(0x2902)

# Controller service and characteristics
SERVICE_UUID: Final = uuid16(0x1000)
COMMAND_CHAR_UUID: Final = uuid16(0x1001)   # light controls (color, brightness, flash)
NOTIFY_CHAR_UUID: Final = uuid16(0x1002)
OVERHEAD_CHAR_UUID: Final = uuid16(0x1003)  # admin controls (handshake, password)

# Overhead characteristic values
HANDSHAKE_PAYLOAD: Final = bytes([0xB8, 0x04, 0x04, 0xE3, 0x24, 0xA8, 0x69])
PASSWORD_PAYLOAD_000000: Final = bytes([0xB8, 0x03, 0x05, 0x04, 0x00, 0x00, 0x00, 0x00])

# Service discovery retry policy
MAX_RETRIES_SERVICE_DISCOVERY: Final = 3
RETRY_INTERVAL_MS: Final = 100

# Firmware time budgets (seconds)
HANDSHAKE_DEADLINE_S: Final = 5.0   # after connecting
PASSWORD_DEADLINE_S: Final = 25.0   # after the handshake is accepted


class GattStatus(IntEnum):
    """Transport status codes reported with connection and write outcomes."""

    SUCCESS = 0
    CONN_TIMEOUT = 8              # link supervision timeout
    CONN_TERMINATE_PEER_USER = 19  # peer closed the link on purpose
    GATT_ERROR = 133              # generic low-level failure
    GATT_FAILURE = 257            # write rejected while the link is still up


@dataclass(frozen=True)
class ProtocolConstants:
    """Identifiers and payloads used by one session.

    Attributes:
        service_uuid: Controller service
        command_char_uuid: Characteristic receiving light command frames
        notify_char_uuid: Characteristic whose notifications get enabled
        overhead_char_uuid: Characteristic receiving handshake and password
        handshake: Handshake payload, written first
        password: Password payload, written after the handshake is accepted
    """

    service_uuid: str = SERVICE_UUID
    command_char_uuid: str = COMMAND_CHAR_UUID
    notify_char_uuid: str = NOTIFY_CHAR_UUID
    overhead_char_uuid: str = OVERHEAD_CHAR_UUID
    handshake: bytes = HANDSHAKE_PAYLOAD
    password: bytes = PASSWORD_PAYLOAD_000000

    def __post_init__(self) -> None:
        if not self.handshake:
            raise ValueError("handshake payload must not be empty")
        if not self.password:
            raise ValueError("password payload must not be empty")
        if self.handshake == self.password:
            raise ValueError("handshake and password payloads must differ")


DEFAULT_CONSTANTS: Final = ProtocolConstants()
