from __future__ import annotations

import asyncio

import pytest

from custom_components.satellite_fan.models import FanConfig
from custom_components.satellite_fan.session import FanSession

ADDRESS = "AA:BB:CC:DD:EE:FF"
SERVICE = "539c6813-61a0-2137-4f79-bf1a11984790"
WRITE = "539C6813-61A1-2137-4F79-BF1A11984790"
NOTIFY = "539c681361a221374f79bf1a11984790"


class Peripheral:
    def __init__(self, address):
        self.address = address

    def __repr__(self):
        return f"Peripheral({self.address!r})"


class Char:
    def __init__(self, uuid):
        self.uuid = uuid


class FakeTransport:
    """In-memory BLE central; tests fire adapter/scan/link events by hand."""

    def __init__(self):
        self.adapter_listener = None
        self.on_discover = None
        self.on_disconnect = None
        self.on_data = None
        self.peripheral = None
        self.scans = 0
        self.scan_stops = 0
        self.connects = []
        self.discovered = []
        self.disconnects = []
        self.removed = []
        self.writes = []
        self.characteristics = [Char(WRITE), Char(NOTIFY)]
        self.connect_error = None
        self.discover_error = None
        self.subscribe_error = None
        self.write_error = None

    def watch_adapter(self, listener):
        self.adapter_listener = listener

    async def start_scan(self, on_discover):
        self.scans += 1
        self.on_discover = on_discover

    async def stop_scan(self):
        self.scan_stops += 1

    async def connect(self, peripheral, on_disconnect):
        self.connects.append(peripheral)
        if self.connect_error is not None:
            raise self.connect_error
        self.peripheral = peripheral
        self.on_disconnect = on_disconnect

    async def discover(self, peripheral, service_uuid, characteristic_uuids):
        self.discovered.append((service_uuid, list(characteristic_uuids)))
        if self.discover_error is not None:
            raise self.discover_error
        return list(self.characteristics)

    async def subscribe(self, peripheral, characteristic, on_data):
        if self.subscribe_error is not None:
            raise self.subscribe_error
        self.on_data = on_data

    async def write(self, peripheral, characteristic, data):
        if self.write_error is not None:
            raise self.write_error
        self.writes.append(bytes(data))

    async def disconnect(self, peripheral):
        self.disconnects.append(peripheral)

    def remove_listeners(self, peripheral):
        self.removed.append(peripheral)

    # Event helpers

    def power(self, on=True):
        self.adapter_listener(on)

    def advertise(self, address):
        self.on_discover(Peripheral(address))

    def drop_link(self):
        self.on_disconnect(self.peripheral)

    def notify(self, data):
        self.on_data(bytes(data))


async def _settle(rounds: int = 30):
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def settle():
    return _settle


@pytest.fixture
def config():
    return FanConfig(
        address=ADDRESS,
        service_uuid=SERVICE,
        write_uuid=WRITE,
        notify_uuid=NOTIFY,
    )


@pytest.fixture
def make_session(transport, config):
    def _make(**kwargs):
        cfg = kwargs.pop("config", config)
        kwargs.setdefault("poll_interval", 60)
        kwargs.setdefault("blink_interval", 0)
        kwargs.setdefault("scan_timeout", 0.02)
        kwargs.setdefault("scan_cooldown", 0.01)
        return FanSession(transport, cfg, **kwargs)

    return _make


@pytest.fixture
def bring_up(transport):
    async def _bring_up(session, address="aa-bb-cc-dd-ee-ff"):
        await session.start()
        transport.power(True)
        await _settle()
        transport.advertise(address)
        await _settle()
        return session

    return _bring_up
