"""Controller configuration and its JSON form.

JSON layout:
    {
      "version": 1,
      "mac_address": "AA:BB:CC:DD:EE:FF",
      "uuids": {"service": "...", "command": "...", "notify": "...", "overhead": "..."},
      "payloads": {"handshake": "b8 04 04 e3 24 a8 69", "password": "b8 03 05 04 00 00 00 00"},
      "connection": {"timeout": "10", "max_attempts": "4", "use_services_cache": true,
                     "ready_timeout": "30"},
      "health": {"heartbeat_stale_after": "30", "heartbeat_check_interval": "1"}
    }

Integer fields accept decimal or "0x" prefixed hex strings. Boolean fields
accept JSON booleans or "true"/"false" strings.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path

from ..protocol.constants import DEFAULT_CONSTANTS, ProtocolConstants

CONFIG_VERSION = 1


@dataclass
class FlasherLightConfig:
    """Everything needed to open and run one controller session.

    Attributes:
        mac_address: Peripheral MAC address
        constants: UUIDs and handshake/password payloads
        timeout: Connection timeout in seconds
        max_attempts: Connection attempts for bleak-retry-connector
        use_services_cache: Enable GATT service caching
        ready_timeout: Seconds connect() waits for the session to become Ready
        heartbeat_stale_after: Seconds without a heartbeat before falling back to standby
        heartbeat_check_interval: Seconds between heartbeat checks
    """

    mac_address: str
    constants: ProtocolConstants = field(default_factory=lambda: DEFAULT_CONSTANTS)
    timeout: float = 10.0
    max_attempts: int = 4
    use_services_cache: bool = True
    ready_timeout: float = 30.0
    heartbeat_stale_after: float = 30.0
    heartbeat_check_interval: float = 1.0


def _parse_int(value: str | int) -> int:
    """Parse integer from string (handles "0x" hex or decimal)."""
    if isinstance(value, int):
        return value
    value = str(value).strip()
    if value.startswith("0x") or value.startswith("0X"):
        return int(value, 16)
    return int(value)


def _parse_float(value: str | int | float) -> float:
    if isinstance(value, (int, float)):
        return float(value)
    return float(str(value).strip())


def _parse_bool(value: str | int | bool) -> bool:
    """Parse boolean from JSON bool, 0/1, or "true"/"false" style strings."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    text = str(value).strip().lower()
    if text in ("true", "yes", "on", "1"):
        return True
    if text in ("false", "no", "off", "0"):
        return False
    raise ValueError(f"Invalid boolean {value!r}")


def _parse_payload(value: str) -> bytes:
    """Parse a payload written as hex bytes ("b8 04 04" or "b80404")."""
    try:
        return bytes.fromhex(str(value).replace(":", " "))
    except ValueError as e:
        raise ValueError(f"Invalid payload hex {value!r}") from e


def config_to_json(config: FlasherLightConfig) -> dict:
    """Export FlasherLightConfig to a JSON-serializable dict.

    Args:
        config: Configuration to export

    Returns:
        Dict in the layout described in the module docstring
    """
    constants = config.constants
    return {
        "version": CONFIG_VERSION,
        "mac_address": config.mac_address,
        "uuids": {
            "service": constants.service_uuid,
            "command": constants.command_char_uuid,
            "notify": constants.notify_char_uuid,
            "overhead": constants.overhead_char_uuid,
        },
        "payloads": {
            "handshake": constants.handshake.hex(" "),
            "password": constants.password.hex(" "),
        },
        "connection": {
            "timeout": str(config.timeout),
            "max_attempts": str(config.max_attempts),
            "use_services_cache": config.use_services_cache,
            "ready_timeout": str(config.ready_timeout),
        },
        "health": {
            "heartbeat_stale_after": str(config.heartbeat_stale_after),
            "heartbeat_check_interval": str(config.heartbeat_check_interval),
        },
    }


def config_from_json(data: dict) -> FlasherLightConfig:
    """Import FlasherLightConfig from a JSON dict.

    Missing sections and fields fall back to the built-in defaults.

    Args:
        data: JSON data as produced by config_to_json

    Returns:
        FlasherLightConfig instance

    Raises:
        ValueError: If the MAC address is missing, the version is unsupported,
            or a field cannot be parsed
    """
    version = _parse_int(data.get("version", CONFIG_VERSION))
    if version != CONFIG_VERSION:
        raise ValueError(f"Unsupported config version {version}")

    mac_address = data.get("mac_address")
    if not mac_address:
        raise ValueError("Config is missing mac_address")

    uuids = data.get("uuids", {})
    payloads = data.get("payloads", {})
    defaults = DEFAULT_CONSTANTS
    constants = ProtocolConstants(
        service_uuid=str(uuids.get("service", defaults.service_uuid)).lower(),
        command_char_uuid=str(uuids.get("command", defaults.command_char_uuid)).lower(),
        notify_char_uuid=str(uuids.get("notify", defaults.notify_char_uuid)).lower(),
        overhead_char_uuid=str(uuids.get("overhead", defaults.overhead_char_uuid)).lower(),
        handshake=(
            _parse_payload(payloads["handshake"]) if "handshake" in payloads else defaults.handshake
        ),
        password=(
            _parse_payload(payloads["password"]) if "password" in payloads else defaults.password
        ),
    )

    connection = data.get("connection", {})
    health = data.get("health", {})
    return FlasherLightConfig(
        mac_address=str(mac_address),
        constants=constants,
        timeout=_parse_float(connection.get("timeout", "10")),
        max_attempts=_parse_int(connection.get("max_attempts", "4")),
        use_services_cache=_parse_bool(connection.get("use_services_cache", True)),
        ready_timeout=_parse_float(connection.get("ready_timeout", "30")),
        heartbeat_stale_after=_parse_float(health.get("heartbeat_stale_after", "30")),
        heartbeat_check_interval=_parse_float(health.get("heartbeat_check_interval", "1")),
    )


def load_config(path: str | Path) -> FlasherLightConfig:
    """Read a FlasherLightConfig from a JSON file."""
    with open(path, encoding="utf-8") as f:
        return config_from_json(json.load(f))
