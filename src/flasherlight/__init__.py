"""Flasher light BLE controller package.

  Python package for driving BLE light controllers through their
  handshake-gated command protocol.
  """

from .device import FlasherLightDevice
from .exceptions import (
    BLEConnectionError,
    BLETimeoutError,
    FlasherLightError,
    ProtocolError,
    SessionError,
)
from .health import HeartbeatWatchdog, ProblemCounters
from .models.config import FlasherLightConfig, config_from_json, config_to_json, load_config
from .models.enums import ProblemKind, SessionState
from .models.frame import CommandFrame
from .protocol import (
    DEFAULT_CONSTANTS,
    MESSAGENET_CODES,
    SERVICE_UUID,
    LightCommand,
    ProtocolConstants,
    translate_command,
)
from .session import SessionFailure

__version__ = "0.1.0"

__all__ = [
    # Main API
    "FlasherLightDevice",
    "translate_command",
    # Exceptions
    "FlasherLightError",
    "BLEConnectionError",
    "BLETimeoutError",
    "ProtocolError",
    "SessionError",
    # Models
    "FlasherLightConfig",
    "CommandFrame",
    "ProtocolConstants",
    "SessionFailure",
    "config_from_json",
    "config_to_json",
    "load_config",
    # Enums
    "LightCommand",
    "ProblemKind",
    "SessionState",
    # Health
    "HeartbeatWatchdog",
    "ProblemCounters",
    # Constants
    "DEFAULT_CONSTANTS",
    "MESSAGENET_CODES",
    "SERVICE_UUID",
]
