"""Outbound command frame model."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class CommandFrame:
    """One characteristic write produced from a logical light command.

    A single logical command may translate into several frames (e.g. set
    color, then enable flashing); each frame is written exactly once.
    """

    command: int
    payload: bytes

    def __post_init__(self) -> None:
        if not self.payload:
            raise ValueError("command frame payload must not be empty")

    def hex(self, sep: str = " ") -> str:
        """Render the payload as hex for logging."""
        return self.payload.hex(sep)
