"""Exceptions raised by the flasherlight package."""

from __future__ import annotations


class FlasherLightError(Exception):
    """Base exception for all flasherlight errors."""


class BLEConnectionError(FlasherLightError):
    """Connection to the light controller failed or was lost."""


class BLETimeoutError(FlasherLightError):
    """A BLE operation did not complete in time."""


class ProtocolError(FlasherLightError):
    """The controller did not follow the expected handshake sequence."""


class SessionError(FlasherLightError):
    """No usable session exists for the requested operation."""
