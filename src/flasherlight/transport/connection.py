"""BLE connection management."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import TYPE_CHECKING, Any

from bleak import BleakClient, BleakScanner
from bleak_retry_connector import BleakClientWithServiceCache, establish_connection

from ..protocol.constants import CCCD_UUID, GattStatus
from ..session.events import TransportEvent

if TYPE_CHECKING:
    from bleak.backends.device import BLEDevice

_LOGGER = logging.getLogger(__name__)

EventHandler = Callable[[TransportEvent], None]


class BLEConnection:
    """Thin bleak adapter that turns GATT calls into transport events.

    Features:
    - Automatic retry logic with bleak-retry-connector
    - Service caching for faster reconnections
    - Fire-and-forget calls; every outcome is reported to the bound handler
    - Exceptions mapped to transport status codes, never raised to the caller

    Every call is stamped with the generation current when it was issued.
    bind() and disconnect() start a new generation, so results of calls made
    for an earlier session are dropped and a link that finishes opening
    after its session was released is closed again.
    """

    def __init__(
            self,
            mac_address: str,
            ble_device: BLEDevice | None = None,
            timeout: float = 10.0,
            max_attempts: int = 4,
            use_services_cache: bool = True,
    ):
        """Initialize BLE connection adapter.

        Args:
            mac_address: Device MAC address
            ble_device: Optional BLEDevice from Home Assistant bluetooth integration
            timeout: Connection timeout in seconds (default: 10)
            max_attempts: Maximum connection attempts for bleak-retry-connector (default: 4)
            use_services_cache: Enable GATT service caching for faster reconnections (default: True)
        """
        self.mac_address = mac_address
        self.ble_device = ble_device
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.use_services_cache = use_services_cache

        self._client: BleakClient | None = None
        self._handler: EventHandler | None = None
        self._tasks: set[asyncio.Task[None]] = set()
        self._generation = 0

    def bind(self, handler: EventHandler | None) -> None:
        """Route transport events to handler (None detaches).

        Results of calls issued before binding are no longer delivered.
        """
        self._generation += 1
        self._handler = handler

    @property
    def is_connected(self) -> bool:
        """Check if currently connected to device."""
        return self._client is not None and self._client.is_connected

    def connect(self) -> None:
        self._spawn(self._connect(self._generation))

    def discover_services(self, service_uuid: str) -> None:
        self._spawn(self._discover_services(self._generation, service_uuid))

    def enable_notify(self, characteristic_uuid: str) -> None:
        self._spawn(self._enable_notify(self._generation, characteristic_uuid))

    def write_characteristic(self, characteristic_uuid: str, value: bytes) -> None:
        self._spawn(self._write(self._generation, characteristic_uuid, bytes(value)))

    def disconnect(self) -> None:
        """Release the client; the resulting bleak callback is not reported.

        A connect still in progress is closed as soon as it completes.
        """
        self._generation += 1
        client = self._client
        self._client = None
        if client is None:
            return
        self._spawn(self._disconnect(client))

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return asyncio.get_running_loop().call_later(delay, callback)

    async def drain(self) -> None:
        """Wait until every outstanding transport call has completed."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _connect(self, generation: int) -> None:
        try:
            _LOGGER.debug(
                "Connecting to %s with bleak-retry-connector (max_attempts=%d)",
                self.mac_address,
                self.max_attempts
            )

            # Resolve MAC to BLEDevice if not provided
            if self.ble_device:
                device = self.ble_device
            else:
                device = await BleakScanner.find_device_by_address(
                    self.mac_address,
                    timeout=self.timeout
                )
                if device is None:
                    _LOGGER.warning("Device %s not found during scan", self.mac_address)
                    self._emit(generation, TransportEvent.disconnected(GattStatus.CONN_TIMEOUT))
                    return

            client = await establish_connection(
                client_class=BleakClientWithServiceCache,
                device=device,
                name=device.name or self.mac_address,
                disconnected_callback=self._on_bleak_disconnect,
                max_attempts=self.max_attempts,
                use_services_cache=self.use_services_cache,
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            _LOGGER.warning("Connection to %s timed out after %ss", self.mac_address, self.timeout)
            self._emit(generation, TransportEvent.disconnected(GattStatus.CONN_TIMEOUT))
            return
        except Exception as e:
            _LOGGER.warning("Failed to connect to %s: %s", self.mac_address, e)
            self._emit(generation, TransportEvent.disconnected(GattStatus.GATT_ERROR))
            return

        if generation != self._generation:
            _LOGGER.debug("Connection to %s was released while opening, closing it", self.mac_address)
            await self._disconnect(client)
            return

        self._client = client
        _LOGGER.debug("Connected to %s", self.mac_address)
        self._emit(generation, TransportEvent.connected())

    def _client_for(self, generation: int) -> BleakClient | None:
        """Connected client, if generation is still the current one."""
        client = self._client
        if generation != self._generation or client is None or not client.is_connected:
            return None
        return client

    async def _discover_services(self, generation: int, service_uuid: str) -> None:
        client = self._client_for(generation)
        if client is None:
            self._emit(generation, TransportEvent.services_discovered(False, GattStatus.GATT_ERROR))
            return

        service = client.services.get_service(service_uuid)
        if service is None:
            _LOGGER.debug("Service %s missing from %s", service_uuid, self.mac_address)
            if self.use_services_cache:
                # stale cache must not survive into the next connection
                try:
                    await client.clear_cache()
                except Exception as e:
                    _LOGGER.debug("Could not clear service cache: %s", e)
        self._emit(generation, TransportEvent.services_discovered(service is not None))

    async def _enable_notify(self, generation: int, characteristic_uuid: str) -> None:
        status = GattStatus.SUCCESS
        client = self._client_for(generation)
        if client is None:
            status = GattStatus.GATT_ERROR
        else:
            try:
                await client.start_notify(characteristic_uuid, self._notification_callback)
                _LOGGER.debug("Notifications started on %s", characteristic_uuid)
            except Exception as e:
                status = self._status_for_error(e)
                _LOGGER.debug("start_notify on %s failed: %s", characteristic_uuid, e)
        self._emit(generation, TransportEvent.descriptor_written(CCCD_UUID, status))

    async def _write(self, generation: int, characteristic_uuid: str, value: bytes) -> None:
        status = GattStatus.SUCCESS
        client = self._client_for(generation)
        if client is None:
            status = GattStatus.GATT_ERROR
        else:
            try:
                await client.write_gatt_char(
                    characteristic_uuid,
                    value,
                    response=True,  # Wait for write confirmation
                )
            except Exception as e:
                status = self._status_for_error(e)
                _LOGGER.debug("Write of %s to %s failed: %s", value.hex(" "), characteristic_uuid, e)
        self._emit(
            generation, TransportEvent.characteristic_written(characteristic_uuid, value, status)
        )

    async def _disconnect(self, client: BleakClient) -> None:
        try:
            _LOGGER.debug("Disconnecting from %s", self.mac_address)
            await client.disconnect()
        except Exception as e:
            _LOGGER.warning("Error during disconnect: %s", e)

    def _status_for_error(self, error: Exception) -> int:
        if isinstance(error, asyncio.TimeoutError):
            return GattStatus.CONN_TIMEOUT
        if not self.is_connected:
            return GattStatus.GATT_ERROR
        return GattStatus.GATT_FAILURE

    def _on_bleak_disconnect(self, client: BleakClient) -> None:
        if self._client is None or client is not self._client:
            _LOGGER.debug("Ignoring disconnect callback for released client")
            return
        _LOGGER.debug("Peripheral %s dropped the link", self.mac_address)
        self._client = None
        self._emit(self._generation, TransportEvent.disconnected())

    def _notification_callback(self, sender, data: bytearray) -> None:
        """Log incoming BLE notifications.

        Args:
            sender: Characteristic that sent notification
            data: Notification data
        """
        _LOGGER.debug("Notification from %s: %s", sender, bytes(data).hex(" "))

    def _emit(self, generation: int, event: TransportEvent) -> None:
        if generation != self._generation:
            _LOGGER.debug("Dropping %s from a released session", event.type.value)
            return
        if self._handler is None:
            _LOGGER.debug("No handler bound, dropping %s", event.type.value)
            return
        try:
            self._handler(event)
        except Exception:
            _LOGGER.exception("Event handler raised on %s", event.type.value)

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
