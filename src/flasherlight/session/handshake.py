"""Event-driven handshake gate between connecting and Ready."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from ..exceptions import SessionError
from ..models.enums import ProblemKind, SessionState, WriteTag
from ..models.frame import CommandFrame
from ..models.session import Session
from ..protocol.classifier import (
    Classification,
    FailureReason,
    Outcome,
    classify,
    classify_discovery,
)
from ..protocol.constants import (
    DEFAULT_CONSTANTS,
    MAX_RETRIES_SERVICE_DISCOVERY,
    RETRY_INTERVAL_MS,
    GattStatus,
    ProtocolConstants,
)
from .dispatcher import CommandDispatcher
from .events import Cancellable, EventType, GattTransport, TransportEvent

_LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionFailure:
    """Why a session ended in FAILED.

    Attributes:
        address: Peripheral address of the session
        state: State the session was in when it failed
        message: Human readable description
        classification: Status classification, if a transport status caused it
    """

    address: str
    state: SessionState
    message: str
    classification: Classification | None = None

    @property
    def status(self) -> int | None:
        return self.classification.status if self.classification else None


StateListener = Callable[[SessionState, SessionState], None]
FailureListener = Callable[[SessionFailure], None]
ProblemListener = Callable[[ProblemKind], None]


class HandshakeStateMachine:
    """Drives one session from connect to Ready.

    Each state entry issues exactly one transport call, and the state only
    advances when the matching completion event arrives. Any fatal status
    fails the session with a single disconnect call.

    Args:
        session: Session record owned by this machine
        transport: Transport that executes calls and reports events
        constants: UUIDs and payloads for this session
        on_state_change: Called with (old, new) on every transition
        on_session_failed: Called once when the session reaches FAILED
        on_problem: Called for recurring problems worth counting
        max_discovery_retries: Service re-enumerations before giving up
        retry_interval: Delay before each re-enumeration in seconds
    """

    def __init__(
            self,
            session: Session,
            transport: GattTransport,
            constants: ProtocolConstants = DEFAULT_CONSTANTS,
            on_state_change: StateListener | None = None,
            on_session_failed: FailureListener | None = None,
            on_problem: ProblemListener | None = None,
            max_discovery_retries: int = MAX_RETRIES_SERVICE_DISCOVERY,
            retry_interval: float = RETRY_INTERVAL_MS / 1000,
    ):
        self._session = session
        self._transport = transport
        self._constants = constants
        self._on_state_change = on_state_change
        self._on_session_failed = on_session_failed
        self._on_problem = on_problem
        self._max_discovery_retries = max_discovery_retries
        self._retry_interval = retry_interval
        self._retry_handle: Cancellable | None = None

        self.dispatcher = CommandDispatcher(
            session,
            transport,
            constants.command_char_uuid,
            on_problem=self._report_problem,
        )

        self._handlers: dict[EventType, Callable[[TransportEvent], None]] = {
            EventType.CONNECTED: self._on_connected,
            EventType.SERVICES_DISCOVERED: self._on_services_discovered,
            EventType.DESCRIPTOR_WRITTEN: self._on_descriptor_written,
            EventType.CHARACTERISTIC_WRITTEN: self._on_characteristic_written,
        }

    @property
    def session(self) -> Session:
        return self._session

    @property
    def state(self) -> SessionState:
        return self._session.state

    def start(self) -> None:
        """Begin connecting.

        Raises:
            SessionError: If the session was already started or torn down
        """
        session = self._session
        if session.closed or session.state is not SessionState.DISCONNECTED:
            raise SessionError(
                f"Session for {session.address} cannot start from {session.state.value}"
            )
        self._set_state(SessionState.CONNECTING)
        _LOGGER.debug("Connecting to %s", session.address)
        self._transport.connect()

    def enqueue(self, frame: CommandFrame) -> None:
        self.dispatcher.enqueue(frame)

    def handle_event(self, event: TransportEvent) -> None:
        """Advance the session on one transport event."""
        session = self._session
        if session.closed:
            _LOGGER.debug("Discarding %s after teardown", event.type.value)
            return
        if session.state.is_terminal:
            _LOGGER.debug("Ignoring %s in state %s", event.type.value, session.state.value)
            return

        _LOGGER.debug(
            "Event %s (status=%d) in state %s",
            event.type.value,
            event.status,
            session.state.value,
        )

        if event.type is EventType.DISCONNECTED:
            self._on_disconnected(event)
            return
        if (
                event.type is EventType.CHARACTERISTIC_WRITTEN
                and session.pending_write_tag is WriteTag.COMMAND
        ):
            self._on_command_written(event)
            return

        result = classify(event.status)
        if not result.is_success:
            self._fail(f"{event.type.value} failed: {result.describe()}", result)
            return

        self._handlers[event.type](event)

    def teardown(self) -> None:
        """Close the session; safe to call any number of times."""
        session = self._session
        if session.closed:
            return
        session.closed = True
        _LOGGER.debug("Tearing down session for %s", session.address)
        if session.state is SessionState.DISCONNECTED:
            # never started, or the peer already closed the link
            session.transport_released = True
        self._cancel_retry()
        self._clear_pending()
        self._release_transport()
        self._set_state(SessionState.DISCONNECTED)

    def _on_connected(self, event: TransportEvent) -> None:
        if not self._expect(event, SessionState.CONNECTING):
            return
        _LOGGER.info("Connected to %s", self._session.address)
        self._set_state(SessionState.SERVICES_DISCOVERING)
        self._request_discovery()

    def _on_services_discovered(self, event: TransportEvent) -> None:
        if not self._expect(event, SessionState.SERVICES_DISCOVERING):
            return
        session = self._session
        result = classify_discovery(
            event.status,
            event.service_present,
            session.retry_count,
            self._max_discovery_retries,
        )

        if result.is_success:
            self._set_state(SessionState.NOTIFY_ENABLING)
            session.pending_write_tag = WriteTag.NOTIFY
            _LOGGER.debug("Enabling notifications on %s", self._constants.notify_char_uuid)
            self._transport.enable_notify(self._constants.notify_char_uuid)
            return

        if not result.is_fatal:
            session.retry_count += 1
            _LOGGER.warning(
                "Service %s not found on %s, retry %d/%d",
                self._constants.service_uuid,
                session.address,
                session.retry_count,
                self._max_discovery_retries,
            )
            self._retry_handle = self._transport.call_later(
                self._retry_interval, self._retry_discovery
            )
            return

        self._report_problem(ProblemKind.SERVICE_DISCOVERY)
        self._fail(
            f"service {self._constants.service_uuid} not found after "
            f"{session.retry_count} retries",
            result,
        )

    def _on_descriptor_written(self, event: TransportEvent) -> None:
        if not self._expect(event, SessionState.NOTIFY_ENABLING):
            return
        self._set_state(SessionState.HANDSHAKE_SENDING)
        self._write_overhead(WriteTag.HANDSHAKE, self._constants.handshake)

    def _on_characteristic_written(self, event: TransportEvent) -> None:
        session = self._session
        state = session.state

        if state is SessionState.HANDSHAKE_SENDING:
            if self._check_overhead_echo(event, self._constants.handshake, "handshake"):
                self._set_state(SessionState.PASSWORD_SENDING)
                self._write_overhead(WriteTag.PASSWORD, self._constants.password)
        elif state is SessionState.PASSWORD_SENDING:
            if self._check_overhead_echo(event, self._constants.password, "password"):
                session.pending_write_tag = None
                self._set_state(SessionState.READY)
                _LOGGER.info("Session for %s is ready", session.address)
                self.dispatcher.on_ready()
        else:
            _LOGGER.warning(
                "Unexpected characteristic write on %s in state %s",
                event.uuid,
                state.value,
            )

    def _on_command_written(self, event: TransportEvent) -> None:
        result = self.dispatcher.on_write_complete(event.status)
        if result.is_link_loss:
            self._fail(f"command write failed: {result.describe()}", result)

    def _on_disconnected(self, event: TransportEvent) -> None:
        session = self._session
        if event.status != GattStatus.SUCCESS:
            result = classify(event.status)
            self._fail(f"link lost: {result.describe()}", result)
            return
        if session.state is not SessionState.READY:
            self._fail(
                f"peer closed the link in {session.state.value}",
                Classification(Outcome.FATAL, event.status, FailureReason.PEER_TERMINATED),
            )
            return

        _LOGGER.info("Peripheral %s disconnected in state %s", session.address, session.state.value)
        # the link is already gone; nothing left to release
        session.transport_released = True
        self._cancel_retry()
        self._clear_pending()
        self._set_state(SessionState.DISCONNECTED)

    def _check_overhead_echo(self, event: TransportEvent, expected: bytes, step: str) -> bool:
        if event.uuid is not None and event.uuid != self._constants.overhead_char_uuid:
            self._fail(f"{step} written to unexpected characteristic {event.uuid}")
            return False
        if event.value != expected:
            self._fail(
                f"{step} write echoed {event.value.hex(' ')}, expected {expected.hex(' ')}"
            )
            return False
        self._session.pending_write_tag = None
        return True

    def _write_overhead(self, tag: WriteTag, payload: bytes) -> None:
        self._session.pending_write_tag = tag
        _LOGGER.debug("Writing %s %s", tag.value, payload.hex(" "))
        self._transport.write_characteristic(self._constants.overhead_char_uuid, payload)

    def _request_discovery(self) -> None:
        _LOGGER.debug("Discovering services on %s", self._session.address)
        self._transport.discover_services(self._constants.service_uuid)

    def _retry_discovery(self) -> None:
        self._retry_handle = None
        session = self._session
        if session.closed or session.state is not SessionState.SERVICES_DISCOVERING:
            return
        self._request_discovery()

    def _expect(self, event: TransportEvent, state: SessionState) -> bool:
        if self._session.state is state:
            return True
        _LOGGER.warning(
            "Ignoring %s in state %s (expected %s)",
            event.type.value,
            self._session.state.value,
            state.value,
        )
        return False

    def _fail(self, message: str, result: Classification | None = None) -> None:
        session = self._session
        previous = session.state
        _LOGGER.error("Session for %s failed in %s: %s", session.address, previous.value, message)

        if result is not None and result.status == GattStatus.GATT_ERROR:
            self._report_problem(ProblemKind.STATUS_133)

        self._cancel_retry()
        self._clear_pending()
        self._release_transport()
        self._set_state(SessionState.FAILED)

        if self._on_session_failed is not None:
            failure = SessionFailure(session.address, previous, message, result)
            try:
                self._on_session_failed(failure)
            except Exception:
                _LOGGER.exception("Session failure listener raised")

    def _clear_pending(self) -> None:
        self._session.pending_write_tag = None
        self._session.in_flight = None
        self.dispatcher.discard_pending()

    def _release_transport(self) -> None:
        session = self._session
        if session.transport_released:
            return
        session.transport_released = True
        _LOGGER.debug("Disconnecting from %s", session.address)
        try:
            self._transport.disconnect()
        except Exception:
            _LOGGER.exception("Disconnect from %s failed", session.address)

    def _cancel_retry(self) -> None:
        if self._retry_handle is not None:
            self._retry_handle.cancel()
            self._retry_handle = None

    def _set_state(self, new: SessionState) -> None:
        old = self._session.state
        if old is new:
            return
        self._session.state = new
        _LOGGER.debug("State %s -> %s", old.value, new.value)
        if self._on_state_change is None:
            return
        try:
            self._on_state_change(old, new)
        except Exception:
            _LOGGER.exception("State listener raised on %s -> %s", old.value, new.value)

    def _report_problem(self, kind: ProblemKind) -> None:
        _LOGGER.debug("Problem signal %s", kind.value)
        if self._on_problem is None:
            return
        try:
            self._on_problem(kind)
        except Exception:
            _LOGGER.exception("Problem listener raised for %s", kind.value)
