"""Per-connection session record."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field

from .enums import SessionState, WriteTag
from .frame import CommandFrame


@dataclass
class Session:
    """Mutable state of one connection attempt.

    Owned by exactly one HandshakeStateMachine; the dispatcher mutates the
    queue only from the same event-delivery path.
    """

    address: str
    state: SessionState = SessionState.DISCONNECTED
    retry_count: int = 0
    pending_write_tag: WriteTag | None = None
    command_queue: deque[CommandFrame] = field(default_factory=deque)
    in_flight: CommandFrame | None = None
    closed: bool = False
    transport_released: bool = False

    @property
    def write_in_flight(self) -> bool:
        """True while a transport operation awaits its completion event."""
        return self.pending_write_tag is not None
