"""Test the bleak adapter with a fake client."""

from __future__ import annotations

import asyncio
from types import SimpleNamespace

import pytest
from bleak.exc import BleakError
from bleak_retry_connector import BleakClientWithServiceCache

from flasherlight import FlasherLightConfig, FlasherLightDevice
from flasherlight.exceptions import BLETimeoutError
from flasherlight.models.enums import SessionState
from flasherlight.protocol.constants import (
    CCCD_UUID,
    COMMAND_CHAR_UUID,
    NOTIFY_CHAR_UUID,
    SERVICE_UUID,
)
from flasherlight.session import EventType
from flasherlight.transport import BLEConnection
from flasherlight.transport import connection as connection_module

MAC = "AA:BB:CC:DD:EE:FF"


class _FakeServices:
    def __init__(self, uuids):
        self._uuids = set(uuids)

    def get_service(self, uuid):
        return SimpleNamespace(uuid=uuid) if uuid in self._uuids else None


class _FakeClient:
    def __init__(self, uuids=(SERVICE_UUID,)):
        self.is_connected = True
        self.services = _FakeServices(uuids)
        self.written: list[tuple[str, bytes, bool]] = []
        self.notifying: list[str] = []
        self.write_error: Exception | None = None
        self.drop_on_write = False
        self.cache_cleared = False
        self.disconnected = False

    async def write_gatt_char(self, uuid, data, response=False):
        if self.drop_on_write:
            self.is_connected = False
            raise BleakError("Not connected")
        if self.write_error is not None:
            raise self.write_error
        self.written.append((uuid, bytes(data), response))

    async def start_notify(self, uuid, callback):
        if self.write_error is not None:
            raise self.write_error
        self.notifying.append(uuid)
        callback(uuid, bytearray(b"\x01\x02"))

    async def clear_cache(self):
        self.cache_cleared = True
        return True

    async def disconnect(self):
        self.is_connected = False
        self.disconnected = True


@pytest.fixture
def client() -> _FakeClient:
    return _FakeClient()


@pytest.fixture
def establish(monkeypatch, client):
    calls = []

    async def fake_establish_connection(**kwargs):
        calls.append(kwargs)
        return client

    monkeypatch.setattr(connection_module, "establish_connection", fake_establish_connection)
    return calls


def _adapter(events: list) -> BLEConnection:
    conn = BLEConnection(MAC, ble_device=SimpleNamespace(name="Flasher", address=MAC))
    conn.bind(events.append)
    return conn


async def _connected(events: list) -> BLEConnection:
    conn = _adapter(events)
    conn.connect()
    await conn.drain()
    events.clear()
    return conn


@pytest.mark.asyncio
async def test_connect_uses_retry_connector(establish) -> None:
    events = []
    conn = _adapter(events)

    conn.connect()
    await conn.drain()

    assert [e.type for e in events] == [EventType.CONNECTED]
    assert conn.is_connected
    kwargs = establish[0]
    assert kwargs["client_class"] is BleakClientWithServiceCache
    assert kwargs["name"] == "Flasher"
    assert kwargs["max_attempts"] == 4
    assert kwargs["use_services_cache"] is True


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("error", "status"),
    [(asyncio.TimeoutError(), 8), (BleakError("boom"), 133)],
)
async def test_connect_errors_become_disconnect_events(monkeypatch, error, status) -> None:
    async def failing_establish_connection(**kwargs):
        raise error

    monkeypatch.setattr(connection_module, "establish_connection", failing_establish_connection)
    events = []
    conn = _adapter(events)

    conn.connect()
    await conn.drain()

    assert [(e.type, e.status) for e in events] == [(EventType.DISCONNECTED, status)]
    assert not conn.is_connected


@pytest.mark.asyncio
async def test_device_not_found_during_scan(monkeypatch) -> None:
    class _Scanner:
        @staticmethod
        async def find_device_by_address(address, timeout):
            return None

    monkeypatch.setattr(connection_module, "BleakScanner", _Scanner)
    events = []
    conn = BLEConnection(MAC)
    conn.bind(events.append)

    conn.connect()
    await conn.drain()

    assert [(e.type, e.status) for e in events] == [(EventType.DISCONNECTED, 8)]


@pytest.mark.asyncio
async def test_discover_reports_presence(establish, client) -> None:
    events = []
    conn = await _connected(events)

    conn.discover_services(SERVICE_UUID)
    await conn.drain()

    assert events[0].type is EventType.SERVICES_DISCOVERED
    assert events[0].service_present
    assert not client.cache_cleared


@pytest.mark.asyncio
async def test_discover_missing_service_clears_cache(establish, client) -> None:
    events = []
    conn = await _connected(events)

    conn.discover_services("0000ffe0-0000-1000-8000-00805f9b34fb")
    await conn.drain()

    assert events[0].service_present is False
    assert events[0].status == 0
    assert client.cache_cleared


@pytest.mark.asyncio
async def test_enable_notify(establish, client, caplog) -> None:
    events = []
    conn = await _connected(events)

    with caplog.at_level("DEBUG", logger="flasherlight.transport.connection"):
        conn.enable_notify(NOTIFY_CHAR_UUID)
        await conn.drain()

    assert client.notifying == [NOTIFY_CHAR_UUID]
    assert (events[0].type, events[0].uuid, events[0].status) == (
        EventType.DESCRIPTOR_WRITTEN,
        CCCD_UUID,
        0,
    )
    assert "01 02" in caplog.text


@pytest.mark.asyncio
async def test_write_reports_value(establish, client) -> None:
    events = []
    conn = await _connected(events)

    conn.write_characteristic(COMMAND_CHAR_UUID, b"\xb8\x03\x00\x02")
    await conn.drain()

    assert client.written == [(COMMAND_CHAR_UUID, b"\xb8\x03\x00\x02", True)]
    event = events[0]
    assert event.type is EventType.CHARACTERISTIC_WRITTEN
    assert (event.uuid, event.value, event.status) == (COMMAND_CHAR_UUID, b"\xb8\x03\x00\x02", 0)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("error", "status"),
    [(BleakError("rejected"), 257), (asyncio.TimeoutError(), 8)],
)
async def test_write_errors_map_to_status(establish, client, error, status) -> None:
    events = []
    conn = await _connected(events)
    client.write_error = error

    conn.write_characteristic(COMMAND_CHAR_UUID, b"\xb8\x04\x01")
    await conn.drain()

    assert events[0].status == status


@pytest.mark.asyncio
async def test_write_error_after_link_loss_is_133(establish, client) -> None:
    events = []
    conn = await _connected(events)
    client.drop_on_write = True

    conn.write_characteristic(COMMAND_CHAR_UUID, b"\xb8\x04\x01")
    await conn.drain()

    assert events[0].status == 133


@pytest.mark.asyncio
async def test_calls_without_client_report_133(establish) -> None:
    events = []
    conn = _adapter(events)

    conn.write_characteristic(COMMAND_CHAR_UUID, b"\xb8\x04\x01")
    conn.enable_notify(NOTIFY_CHAR_UUID)
    conn.discover_services(SERVICE_UUID)
    await conn.drain()

    assert sorted(e.status for e in events) == [133, 133, 133]


@pytest.mark.asyncio
async def test_peer_disconnect_is_reported(establish, client) -> None:
    events = []
    conn = await _connected(events)

    conn._on_bleak_disconnect(client)

    assert [(e.type, e.status) for e in events] == [(EventType.DISCONNECTED, 0)]
    assert not conn.is_connected


@pytest.mark.asyncio
async def test_own_disconnect_is_not_reported(establish, client) -> None:
    events = []
    conn = await _connected(events)

    conn.disconnect()
    conn._on_bleak_disconnect(client)
    await conn.drain()

    assert events == []
    assert client.disconnected
    conn.disconnect()  # second call has nothing to release


@pytest.mark.asyncio
async def test_connect_finishing_after_release_closes_link(monkeypatch, client) -> None:
    opened = asyncio.Event()

    async def slow_establish_connection(**kwargs):
        await opened.wait()
        return client

    monkeypatch.setattr(connection_module, "establish_connection", slow_establish_connection)
    events = []
    conn = _adapter(events)

    conn.connect()
    await asyncio.sleep(0)
    conn.disconnect()  # session released while the link is still opening
    opened.set()
    await conn.drain()

    assert events == []
    assert client.disconnected
    assert not conn.is_connected


@pytest.mark.asyncio
async def test_rebind_drops_results_of_previous_session(monkeypatch) -> None:
    old_client = _FakeClient()
    new_client = _FakeClient()
    old_opened = asyncio.Event()
    pending = [(old_opened, old_client), (None, new_client)]

    async def fake_establish_connection(**kwargs):
        gate, result = pending.pop(0)
        if gate is not None:
            await gate.wait()
        return result

    monkeypatch.setattr(connection_module, "establish_connection", fake_establish_connection)
    old_events = []
    new_events = []
    conn = _adapter(old_events)

    conn.connect()
    await asyncio.sleep(0)
    conn.bind(new_events.append)
    conn.connect()
    old_opened.set()
    await conn.drain()

    assert old_events == []
    assert [e.type for e in new_events] == [EventType.CONNECTED]
    assert old_client.disconnected
    assert not new_client.disconnected

    conn.write_characteristic(COMMAND_CHAR_UUID, b"\xb8\x04\x01")
    await conn.drain()

    assert old_client.written == []
    assert new_client.written == [(COMMAND_CHAR_UUID, b"\xb8\x04\x01", True)]


@pytest.mark.asyncio
async def test_write_issued_before_rebind_is_dropped(establish, client) -> None:
    events = []
    conn = await _connected(events)

    conn.write_characteristic(COMMAND_CHAR_UUID, b"\xb8\x04\x01")
    conn.bind(events.append)
    await conn.drain()

    assert events == []
    assert client.written == []


@pytest.mark.asyncio
async def test_device_ready_timeout_closes_late_link(monkeypatch, client) -> None:
    """A link that opens after connect() gave up is closed, not leaked."""

    async def slow_establish_connection(**kwargs):
        await asyncio.sleep(0.05)
        return client

    monkeypatch.setattr(connection_module, "establish_connection", slow_establish_connection)
    device = FlasherLightDevice(
        MAC,
        ble_device=SimpleNamespace(name="Flasher", address=MAC),
        config=FlasherLightConfig(MAC, ready_timeout=0.01),
    )

    with pytest.raises(BLETimeoutError):
        await device.connect()
    await device.disconnect()

    assert device.session_state is SessionState.DISCONNECTED
    assert client.disconnected
    assert not client.is_connected
    assert client.written == []


@pytest.mark.asyncio
async def test_handler_errors_are_logged(establish, caplog) -> None:
    def boom(_event):
        raise RuntimeError("handler broke")

    conn = BLEConnection(MAC, ble_device=SimpleNamespace(name=None, address=MAC))
    conn.bind(boom)

    conn.connect()
    await conn.drain()

    assert "Event handler raised on connected" in caplog.text
    assert establish[0]["name"] == MAC


@pytest.mark.asyncio
async def test_call_later_runs_on_loop() -> None:
    fired = asyncio.Event()
    conn = BLEConnection(MAC)

    handle = conn.call_later(0.01, fired.set)
    await asyncio.wait_for(fired.wait(), timeout=1.0)

    assert isinstance(handle, asyncio.TimerHandle)
