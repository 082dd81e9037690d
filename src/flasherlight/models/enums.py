"""Enumerations describing session progress."""

from __future__ import annotations

from enum import Enum


class SessionState(Enum):
    """Phase of one connection attempt.

    The happy path is linear; FAILED is reachable from every non-terminal
    state.
    """

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    SERVICES_DISCOVERING = "services_discovering"
    NOTIFY_ENABLING = "notify_enabling"
    HANDSHAKE_SENDING = "handshake_sending"
    PASSWORD_SENDING = "password_sending"
    READY = "ready"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """True once the session can no longer make progress."""
        return self in (SessionState.DISCONNECTED, SessionState.FAILED)


class WriteTag(Enum):
    """Which logical step the in-flight transport operation belongs to."""

    NOTIFY = "notify"
    HANDSHAKE = "handshake"
    PASSWORD = "password"
    COMMAND = "command"


class ProblemKind(Enum):
    """Recurring problems reported to health monitoring."""

    STATUS_133 = "status_133"
    SERVICE_DISCOVERY = "service_discovery"
    COMMAND_WRITE = "command_write"
