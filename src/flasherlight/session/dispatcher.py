"""Serialized delivery of light command frames."""

from __future__ import annotations

import logging
from collections.abc import Callable

from ..models.enums import ProblemKind, SessionState, WriteTag
from ..models.frame import CommandFrame
from ..models.session import Session
from ..protocol.classifier import Classification, classify
from .events import GattTransport

_LOGGER = logging.getLogger(__name__)


class CommandDispatcher:
    """Releases queued frames onto the transport once the session is Ready.

    At most one write is outstanding; frames leave in enqueue order. A
    frame whose write fails is dropped, never replayed.
    """

    def __init__(
            self,
            session: Session,
            transport: GattTransport,
            command_char_uuid: str,
            on_problem: Callable[[ProblemKind], None] | None = None,
    ):
        self._session = session
        self._transport = transport
        self._command_char_uuid = command_char_uuid
        self._on_problem = on_problem

    @property
    def pending(self) -> int:
        """Number of frames waiting to be written."""
        return len(self._session.command_queue)

    def enqueue(self, frame: CommandFrame) -> None:
        """Queue a frame; accepted in any state, sent once Ready."""
        session = self._session
        if session.closed:
            _LOGGER.warning("Session closed, dropping frame %s", frame.hex())
            return
        session.command_queue.append(frame)
        _LOGGER.debug(
            "Queued frame %s (state=%s, queued=%d)",
            frame.hex(),
            session.state.value,
            len(session.command_queue),
        )
        self.try_dispatch_next()

    def on_ready(self) -> None:
        self.try_dispatch_next()

    def on_write_complete(self, status: int) -> Classification:
        """Handle completion of the in-flight command write.

        Returns:
            Classification of the write status. Link-loss failures are
            left to the caller to escalate; dispatch stops for them.
        """
        session = self._session
        frame = session.in_flight
        session.in_flight = None
        session.pending_write_tag = None

        result = classify(status)
        if result.is_success:
            _LOGGER.debug("Frame %s written", frame.hex() if frame else "?")
        elif result.is_link_loss:
            return result
        else:
            _LOGGER.warning(
                "Dropping frame %s after failed write: %s",
                frame.hex() if frame else "?",
                result.describe(),
            )
            self._report(ProblemKind.COMMAND_WRITE)

        self.try_dispatch_next()
        return result

    def try_dispatch_next(self) -> bool:
        """Write the next queued frame if the session allows it.

        Returns:
            True if a write was issued
        """
        session = self._session
        if session.closed or session.state is not SessionState.READY:
            return False
        if session.write_in_flight or not session.command_queue:
            return False

        frame = session.command_queue.popleft()
        session.in_flight = frame
        session.pending_write_tag = WriteTag.COMMAND
        _LOGGER.debug("Writing frame %s to %s", frame.hex(), self._command_char_uuid)
        self._transport.write_characteristic(self._command_char_uuid, frame.payload)
        return True

    def discard_pending(self) -> int:
        """Drop every queued frame; returns how many were dropped."""
        dropped = len(self._session.command_queue)
        self._session.command_queue.clear()
        if dropped:
            _LOGGER.info("Discarded %d queued frame(s)", dropped)
        return dropped

    def _report(self, kind: ProblemKind) -> None:
        if self._on_problem is None:
            return
        try:
            self._on_problem(kind)
        except Exception:
            _LOGGER.exception("Problem listener failed for %s", kind.value)
