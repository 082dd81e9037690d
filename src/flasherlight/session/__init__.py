"""Session state machine and command dispatch."""

from .dispatcher import CommandDispatcher
from .events import Cancellable, EventType, GattTransport, TransportEvent
from .handshake import HandshakeStateMachine, SessionFailure

__all__ = [
    "Cancellable",
    "CommandDispatcher",
    "EventType",
    "GattTransport",
    "HandshakeStateMachine",
    "SessionFailure",
    "TransportEvent",
]
