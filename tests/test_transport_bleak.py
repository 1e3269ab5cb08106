import asyncio
from types import SimpleNamespace

import pytest
from bleak.exc import BleakError

from custom_components.satellite_fan import transport as transport_mod
from custom_components.satellite_fan.transport import BleakFanTransport, discover_candidates

SERVICE = "539c6813-61a0-2137-4f79-bf1a11984790"
WRITE = "539c6813-61a1-2137-4f79-bf1a11984790"
NOTIFY = "539c6813-61a2-2137-4f79-bf1a11984790"


class DummyClient:
    instances = []

    def __init__(self, device, disconnected_callback=None, timeout=10.0):
        self.device = device
        self.disconnected_callback = disconnected_callback
        self.timeout = timeout
        self.is_connected = False
        self.writes = []
        self.notifies = {}
        self.services = [
            SimpleNamespace(uuid="00001800-0000-1000-8000-00805f9b34fb", characteristics=[SimpleNamespace(uuid=WRITE)]),
            SimpleNamespace(
                uuid=SERVICE.upper(),
                characteristics=[
                    SimpleNamespace(uuid=WRITE),
                    SimpleNamespace(uuid=NOTIFY),
                    SimpleNamespace(uuid="539c6813-61a3-2137-4f79-bf1a11984790"),
                ],
            ),
        ]
        DummyClient.instances.append(self)

    async def connect(self):
        self.is_connected = True

    async def start_notify(self, char, cb):
        self.notifies[char.uuid] = cb

    async def write_gatt_char(self, char, payload, response=True):
        self.writes.append((char.uuid, bytes(payload), response))

    async def disconnect(self):
        self.is_connected = False
        if self.disconnected_callback:
            self.disconnected_callback(self)


@pytest.fixture
def dummy_client(monkeypatch):
    DummyClient.instances = []
    monkeypatch.setattr(transport_mod, "BleakClient", DummyClient)
    return DummyClient


@pytest.mark.asyncio
async def test_connect_discover_subscribe_and_write(dummy_client):
    t = BleakFanTransport(connect_timeout=3.0)
    dev = SimpleNamespace(address="AA:BB:CC:DD:EE:FF")
    lost = []

    await t.connect(dev, lost.append)
    client = dummy_client.instances[-1]
    assert client.timeout == 3.0

    chars = await t.discover(dev, "539c681361a021374f79bf1a11984790", [WRITE.upper(), NOTIFY])
    assert [c.uuid for c in chars] == [WRITE, NOTIFY]

    received = []
    await t.subscribe(dev, chars[1], received.append)
    client.notifies[NOTIFY](None, bytearray(b"\xb0\x00"))
    assert received == [b"\xb0\x00"]

    await t.write(dev, chars[0], b"\xa0")
    assert client.writes == [(WRITE, b"\xa0", True)]

    client.disconnected_callback(client)
    assert lost == [dev]


@pytest.mark.asyncio
async def test_removed_listeners_are_not_called_on_disconnect(dummy_client):
    t = BleakFanTransport()
    dev = SimpleNamespace(address="AA:BB")
    lost = []
    await t.connect(dev, lost.append)

    t.remove_listeners(dev)
    await t.disconnect(dev)
    assert lost == []

    with pytest.raises(BleakError):
        await t.write(dev, SimpleNamespace(uuid=WRITE), b"\x00")


@pytest.mark.asyncio
async def test_watch_adapter_reports_powered_on():
    t = BleakFanTransport()
    seen = []
    t.watch_adapter(seen.append)
    await asyncio.sleep(0)
    assert seen == [True]


@pytest.mark.asyncio
async def test_discover_candidates_filters_by_name_hint(monkeypatch):
    # Prepare fake devices
    class Dev:
        def __init__(self, address, name):
            self.address = address
            self.name = name

    async def fake_discover(timeout=8.0):
        return [
            Dev("AA", "Satellite-123"),
            Dev("BB", "OtherDevice"),
            Dev("CC", None),
        ]

    monkeypatch.setattr(transport_mod.BleakScanner, "discover", fake_discover)

    # No hint -> every device, named or not
    res_all = await discover_candidates(timeout=0.01)
    assert ("AA", "Satellite-123") in res_all
    assert ("CC", None) in res_all

    # Hint filters case-insensitively
    res_hint = await discover_candidates(timeout=0.01, name_hint="satellite")
    assert res_hint == [("AA", "Satellite-123")]
