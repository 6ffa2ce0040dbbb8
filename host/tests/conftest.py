import random

import pytest

from sole_ble import scanner, transport
from sole_ble.uuids import PRESSURE_CHAR, PRESSURE_SERVICE


class FakeChar:
    def __init__(self, uuid):
        self.uuid = uuid


class FakeService:
    def __init__(self, uuid, rig):
        self.uuid = uuid
        self.rig = rig

    def get_characteristic(self, uuid):
        if self.rig.char_present and uuid == PRESSURE_CHAR:
            return FakeChar(uuid)
        return None


class FakeServices:
    def __init__(self, rig):
        self.rig = rig

    def get_service(self, uuid):
        if self.rig.service_present and uuid == PRESSURE_SERVICE:
            return FakeService(uuid, self.rig)
        return None


class FakeClient:
    def __init__(self, rig, address, disconnected_callback=None):
        self.rig = rig
        self.address = address
        self.disconnected_callback = disconnected_callback
        self.is_connected = False
        self.services = FakeServices(rig)
        self.notify = None
        self.writes = []
        self.disconnects = 0
        rig.clients.append(self)

    async def connect(self):
        if self.rig.connect_error is not None:
            raise self.rig.connect_error
        self.is_connected = True

    async def start_notify(self, char, callback):
        self.notify = callback

    async def stop_notify(self, char):
        self.notify = None

    async def write_gatt_char(self, char, data):
        if self.rig.write_error is not None:
            raise self.rig.write_error
        gate = self.rig.write_gate
        if gate is not None:
            await gate.wait()
        self.writes.append(bytes(data))

    async def disconnect(self):
        self.disconnects += 1
        self.is_connected = False

    # test helpers
    def push(self, data: bytes):
        self.notify(None, bytearray(data))

    def drop(self):
        self.is_connected = False
        self.disconnected_callback(self)


class FakeBle:
    def __init__(self):
        self.clients = []
        self.connect_error = None
        self.write_error = None
        self.write_gate = None  # asyncio.Event that holds writes until set
        self.service_present = True
        self.char_present = True

    @property
    def client(self) -> FakeClient:
        return self.clients[-1]


@pytest.fixture
def fake_ble(monkeypatch):
    rig = FakeBle()
    monkeypatch.setattr(
        transport, "BleakClient",
        lambda address, disconnected_callback=None: FakeClient(rig, address, disconnected_callback),
    )
    return rig


class FakeDevice:
    def __init__(self, address, name):
        self.address = address
        self.name = name


class FakeAdv:
    def __init__(self, local_name=None, service_uuids=()):
        self.local_name = local_name
        self.service_uuids = list(service_uuids)


class FakeScanner:
    """
    `filtered`/`unfiltered` are a list of results or an exception to raise.
    filtered entries: (FakeDevice, FakeAdv); unfiltered entries: FakeDevice.
    """

    def __init__(self):
        self.filtered = []
        self.unfiltered = []
        self.calls = []
        self.timeouts = []

    async def discover(self, timeout=5.0, return_adv=False, **kwargs):
        self.calls.append("filtered" if return_adv else "unfiltered")
        self.timeouts.append(timeout)
        result = self.filtered if return_adv else self.unfiltered
        if isinstance(result, BaseException):
            raise result
        if return_adv:
            return {dev.address: (dev, adv) for dev, adv in result}
        return list(result)


@pytest.fixture
def fake_scanner(monkeypatch):
    fs = FakeScanner()
    monkeypatch.setattr(scanner, "BleakScanner", fs)
    return fs


@pytest.fixture
def rng():
    return random.Random(1234)
