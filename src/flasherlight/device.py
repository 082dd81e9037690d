"""Main flasher light BLE device class."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from .exceptions import BLEConnectionError, BLETimeoutError, ProtocolError, SessionError
from .models.config import FlasherLightConfig
from .models.enums import ProblemKind, SessionState
from .models.frame import CommandFrame
from .models.session import Session
from .protocol import GattStatus, LightCommand, translate_command
from .session import HandshakeStateMachine, SessionFailure
from .transport import BLEConnection

if TYPE_CHECKING:
    from bleak.backends.device import BLEDevice

_LOGGER = logging.getLogger(__name__)

FailureListener = Callable[[SessionFailure], None]
ProblemListener = Callable[[ProblemKind], None]


class FlasherLightDevice:
    """Flasher light controller.

    Main API for driving a light over BLE. Every connect() opens a fresh
    session that must pass the handshake before commands are written;
    commands submitted earlier wait in the queue.

    Usage:
        async with FlasherLightDevice("AA:BB:CC:DD:EE:FF") as light:
            light.submit_command(LightCommand.RED_BRI)

        # Custom UUIDs or payloads
        config = load_config("light.json")
        async with FlasherLightDevice(config.mac_address, config=config) as light:
            light.submit_command("4")
    """

    def __init__(
            self,
            mac_address: str,
            ble_device: BLEDevice | None = None,
            config: FlasherLightConfig | None = None,
            timeout: float = 10.0,
            on_session_failed: FailureListener | None = None,
            on_problem: ProblemListener | None = None,
    ):
        """Initialize flasher light device.

        Args:
            mac_address: Device MAC address
            ble_device: Optional BLEDevice from HA bluetooth integration
            config: Optional configuration (UUIDs, payloads, timeouts)
            timeout: BLE connection timeout in seconds when no config is given (default: 10)
            on_session_failed: Called when a session ends in FAILED
            on_problem: Called for each recurring problem signal
        """
        self.mac_address = mac_address
        self._config = config or FlasherLightConfig(mac_address, timeout=timeout)
        self._connection = BLEConnection(
            mac_address,
            ble_device,
            self._config.timeout,
            self._config.max_attempts,
            self._config.use_services_cache,
        )

        self._failure_listeners: list[FailureListener] = []
        self._problem_listeners: list[ProblemListener] = []
        if on_session_failed is not None:
            self._failure_listeners.append(on_session_failed)
        if on_problem is not None:
            self._problem_listeners.append(on_problem)

        self._machine: HandshakeStateMachine | None = None
        self._settled: asyncio.Event | None = None
        self._last_failure: SessionFailure | None = None

    async def __aenter__(self) -> FlasherLightDevice:
        """Connect and wait until the session is Ready."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        """Tear down the session."""
        await self.disconnect()

    @property
    def config(self) -> FlasherLightConfig:
        return self._config

    @property
    def session_state(self) -> SessionState:
        """Current session state (DISCONNECTED when no session exists)."""
        if self._machine is None:
            return SessionState.DISCONNECTED
        return self._machine.state

    @property
    def last_failure(self) -> SessionFailure | None:
        """Failure of the most recent session, if it failed."""
        return self._last_failure

    @property
    def is_ready(self) -> bool:
        return self.session_state is SessionState.READY

    def add_failure_listener(self, listener: FailureListener) -> Callable[[], None]:
        """Subscribe to session failures; returns an unsubscribe callable."""
        self._failure_listeners.append(listener)
        return lambda: self._failure_listeners.remove(listener)

    def add_problem_listener(self, listener: ProblemListener) -> Callable[[], None]:
        """Subscribe to problem signals; returns an unsubscribe callable."""
        self._problem_listeners.append(listener)
        return lambda: self._problem_listeners.remove(listener)

    async def connect(self) -> None:
        """Open a new session and wait for it to become Ready.

        Does nothing if a session is already connecting or ready.

        Raises:
            BLETimeoutError: If the link timed out or Ready was not reached in time
            ProtocolError: If the controller did not accept the handshake sequence
            BLEConnectionError: For every other connection failure
        """
        if self._machine is not None and not self._machine.state.is_terminal:
            return  # Already connected or connecting
        if self._machine is not None:
            self._machine.teardown()

        session = Session(self.mac_address)
        machine = HandshakeStateMachine(
            session,
            self._connection,
            self._config.constants,
            on_state_change=self._on_state_change,
            on_session_failed=self._on_session_failed,
            on_problem=self._on_problem,
        )
        self._machine = machine
        self._last_failure = None
        self._settled = settled = asyncio.Event()
        self._connection.bind(machine.handle_event)

        _LOGGER.debug("Opening session for %s", self.mac_address)
        machine.start()

        try:
            await asyncio.wait_for(settled.wait(), timeout=self._config.ready_timeout)
        except asyncio.TimeoutError as e:
            machine.teardown()
            raise BLETimeoutError(
                f"Session not ready after {self._config.ready_timeout}s"
            ) from e

        if machine.state is SessionState.READY:
            return
        raise self._error_for(self._last_failure)

    def submit_command(self, code: int | str | LightCommand) -> list[CommandFrame]:
        """Translate a logical light command and queue its frames.

        Args:
            code: LightCommand, its integer value, or a one-character platform code

        Returns:
            Frames queued for writing, in order

        Raises:
            SessionError: If no session is connecting or ready
        """
        machine = self._machine
        if machine is None or machine.session.closed or machine.state.is_terminal:
            raise SessionError(f"No live session for {self.mac_address}")

        frames = translate_command(code)
        for frame in frames:
            machine.enqueue(frame)
        return frames

    def teardown(self) -> None:
        """Close the current session; safe to call repeatedly."""
        if self._machine is not None:
            self._machine.teardown()

    async def disconnect(self) -> None:
        """Tear down and wait for outstanding transport calls to finish."""
        self.teardown()
        await self._connection.drain()

    def _error_for(self, failure: SessionFailure | None) -> Exception:
        if failure is None:
            return BLEConnectionError(f"{self.mac_address} disconnected before ready")
        if failure.classification is None:
            return ProtocolError(failure.message)
        if failure.status == GattStatus.CONN_TIMEOUT:
            return BLETimeoutError(failure.message)
        return BLEConnectionError(failure.message)

    def _on_state_change(self, old: SessionState, new: SessionState) -> None:
        if (new is SessionState.READY or new.is_terminal) and self._settled is not None:
            self._settled.set()

    def _on_session_failed(self, failure: SessionFailure) -> None:
        self._last_failure = failure
        for listener in list(self._failure_listeners):
            try:
                listener(failure)
            except Exception:
                _LOGGER.exception("Failure listener raised")

    def _on_problem(self, kind: ProblemKind) -> None:
        for listener in list(self._problem_listeners):
            try:
                listener(kind)
            except Exception:
                _LOGGER.exception("Problem listener raised for %s", kind.value)
