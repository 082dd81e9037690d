"""Shared fakes for session and device tests."""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass, field

import pytest

from flasherlight.models.enums import ProblemKind, SessionState
from flasherlight.models.session import Session
from flasherlight.protocol.constants import CCCD_UUID, DEFAULT_CONSTANTS, GattStatus
from flasherlight.session import HandshakeStateMachine, SessionFailure, TransportEvent

ADDRESS = "AA:BB:CC:DD:EE:FF"


class FakeTimer:
    def __init__(self, delay: float, callback: Callable[[], None]):
        self.delay = delay
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeTransport:
    """Records transport calls.

    By default tests deliver completion events by hand. With auto=True the
    fake answers each call on the running loop the way a healthy
    controller would, shaped by connect_status, service_present,
    write_statuses and echo.
    """

    def __init__(self, auto: bool = False):
        self.calls: list[tuple] = []
        self.timers: list[FakeTimer] = []
        self.auto = auto
        self.connect_status = GattStatus.SUCCESS
        self.service_present = True
        self.write_statuses: list[int] = []
        self.echo: dict[bytes, bytes] = {}
        self.handler: Callable[[TransportEvent], None] | None = None
        self.drained = False

    def bind(self, handler: Callable[[TransportEvent], None] | None) -> None:
        self.handler = handler

    async def drain(self) -> None:
        self.drained = True

    def connect(self) -> None:
        self.calls.append(("connect",))
        if self.connect_status:
            self._reply(TransportEvent.disconnected(self.connect_status))
        else:
            self._reply(TransportEvent.connected())

    def discover_services(self, service_uuid: str) -> None:
        self.calls.append(("discover_services", service_uuid))
        self._reply(TransportEvent.services_discovered(self.service_present))

    def enable_notify(self, characteristic_uuid: str) -> None:
        self.calls.append(("enable_notify", characteristic_uuid))
        self._reply(TransportEvent.descriptor_written(CCCD_UUID))

    def write_characteristic(self, characteristic_uuid: str, value: bytes) -> None:
        self.calls.append(("write", characteristic_uuid, bytes(value)))
        status = self.write_statuses.pop(0) if self.write_statuses else GattStatus.SUCCESS
        echoed = self.echo.get(bytes(value), bytes(value))
        self._reply(TransportEvent.characteristic_written(characteristic_uuid, echoed, status))

    def disconnect(self) -> None:
        self.calls.append(("disconnect",))

    def call_later(self, delay: float, callback: Callable[[], None]) -> FakeTimer:
        timer = FakeTimer(delay, callback)
        self.timers.append(timer)
        if self.auto:
            asyncio.get_running_loop().call_soon(self._fire, timer)
        return timer

    def count(self, name: str) -> int:
        return sum(1 for call in self.calls if call[0] == name)

    @property
    def writes(self) -> list[tuple]:
        return [call for call in self.calls if call[0] == "write"]

    @property
    def last_call(self) -> tuple | None:
        return self.calls[-1] if self.calls else None

    def fire_timers(self) -> int:
        """Run every pending timer once; returns how many ran."""
        due = [t for t in self.timers if not t.cancelled and not t.fired]
        for timer in due:
            self._fire(timer)
        return len(due)

    def _fire(self, timer: FakeTimer) -> None:
        if timer.cancelled or timer.fired:
            return
        timer.fired = True
        timer.callback()

    def _reply(self, event: TransportEvent) -> None:
        if self.auto and self.handler is not None:
            asyncio.get_running_loop().call_soon(self.handler, event)


@dataclass
class Recorder:
    """Collects listener callbacks from a state machine."""

    transitions: list[tuple[SessionState, SessionState]] = field(default_factory=list)
    failures: list[SessionFailure] = field(default_factory=list)
    problems: list[ProblemKind] = field(default_factory=list)

    def on_state_change(self, old: SessionState, new: SessionState) -> None:
        self.transitions.append((old, new))


def drive_to_ready(machine: HandshakeStateMachine) -> None:
    """Feed a successful handshake sequence into a started machine."""
    constants = DEFAULT_CONSTANTS
    machine.handle_event(TransportEvent.connected())
    machine.handle_event(TransportEvent.services_discovered(True))
    machine.handle_event(TransportEvent.descriptor_written(CCCD_UUID))
    machine.handle_event(
        TransportEvent.characteristic_written(constants.overhead_char_uuid, constants.handshake)
    )
    machine.handle_event(
        TransportEvent.characteristic_written(constants.overhead_char_uuid, constants.password)
    )


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def machine(transport: FakeTransport, recorder: Recorder) -> HandshakeStateMachine:
    return HandshakeStateMachine(
        Session(ADDRESS),
        transport,
        DEFAULT_CONSTANTS,
        on_state_change=recorder.on_state_change,
        on_session_failed=recorder.failures.append,
        on_problem=recorder.problems.append,
    )


@pytest.fixture
def ready_machine(machine: HandshakeStateMachine, transport: FakeTransport) -> HandshakeStateMachine:
    """Machine already in READY with the call log cleared."""
    machine.start()
    drive_to_ready(machine)
    assert machine.state is SessionState.READY
    transport.calls.clear()
    return machine


@pytest.fixture
def auto_transport() -> FakeTransport:
    """Transport that answers every call like a healthy controller."""
    return FakeTransport(auto=True)


@pytest.fixture
def complete_handshake() -> Callable[[HandshakeStateMachine], None]:
    return drive_to_ready
