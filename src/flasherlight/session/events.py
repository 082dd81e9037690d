"""Transport events and the transport calls the session issues."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from ..protocol.constants import GattStatus


class EventType(Enum):
    """Kinds of asynchronous transport outcomes."""

    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    SERVICES_DISCOVERED = "services_discovered"
    DESCRIPTOR_WRITTEN = "descriptor_written"
    CHARACTERISTIC_WRITTEN = "characteristic_written"


@dataclass(frozen=True)
class TransportEvent:
    """One completion event delivered by the transport adapter.

    Attributes:
        type: Event kind
        status: Transport status code (0 on success)
        service_present: Discovery result (SERVICES_DISCOVERED only)
        uuid: Characteristic or descriptor the event refers to
        value: Value that was written (CHARACTERISTIC_WRITTEN only)
    """

    type: EventType
    status: int = GattStatus.SUCCESS
    service_present: bool = False
    uuid: str | None = None
    value: bytes = b""

    @classmethod
    def connected(cls, status: int = GattStatus.SUCCESS) -> TransportEvent:
        return cls(EventType.CONNECTED, status=status)

    @classmethod
    def disconnected(cls, status: int = GattStatus.SUCCESS) -> TransportEvent:
        return cls(EventType.DISCONNECTED, status=status)

    @classmethod
    def services_discovered(
            cls,
            service_present: bool,
            status: int = GattStatus.SUCCESS,
    ) -> TransportEvent:
        return cls(EventType.SERVICES_DISCOVERED, status=status, service_present=service_present)

    @classmethod
    def descriptor_written(
            cls,
            uuid: str | None = None,
            status: int = GattStatus.SUCCESS,
    ) -> TransportEvent:
        return cls(EventType.DESCRIPTOR_WRITTEN, status=status, uuid=uuid)

    @classmethod
    def characteristic_written(
            cls,
            uuid: str,
            value: bytes,
            status: int = GattStatus.SUCCESS,
    ) -> TransportEvent:
        return cls(EventType.CHARACTERISTIC_WRITTEN, status=status, uuid=uuid, value=bytes(value))


class Cancellable(Protocol):
    def cancel(self) -> None: ...


class GattTransport(Protocol):
    """Fire-and-forget transport calls issued by the session.

    Every call returns immediately; its outcome arrives later as a
    TransportEvent. Implementations deliver events one at a time on the
    same loop the session runs on.
    """

    def connect(self) -> None:
        """Open the link; reports CONNECTED or DISCONNECTED."""

    def discover_services(self, service_uuid: str) -> None:
        """Enumerate services; reports SERVICES_DISCOVERED."""

    def enable_notify(self, characteristic_uuid: str) -> None:
        """Write the CCCD of a characteristic; reports DESCRIPTOR_WRITTEN."""

    def write_characteristic(self, characteristic_uuid: str, value: bytes) -> None:
        """Write a value; reports CHARACTERISTIC_WRITTEN."""

    def disconnect(self) -> None:
        """Close the link and release the handle. Reports nothing."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> Cancellable:
        """Run callback once after delay seconds without blocking."""
