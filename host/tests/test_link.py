import asyncio
import random

from bleak.exc import BleakError

from sole_ble.errors import ConnectErrorKind
from sole_ble.link import SensorLink
from sole_ble.models import Connected, Demo, DeviceHandle, Disconnected
from sole_ble.simulator import Simulator

REAL = DeviceHandle("AA:BB:CC:DD:EE:FF", "FootPressure-R")
DEMO = DeviceHandle("demo-esp32-right", "ESP32-FootSensor-R", simulated=True)


def _link():
    return SensorLink(simulator=Simulator(interval=None, rng=random.Random(7)))


def test_connect_real_device(fake_ble):
    async def go():
        link = _link()
        statuses = []
        link.status_changed.subscribe(statuses.append)
        err = await link.connect(REAL)
        return link, statuses, err

    link, statuses, err = asyncio.run(go())
    assert err is None
    assert isinstance(link.status, Connected)
    assert link.is_connected() and not link.is_demo
    assert [type(s).__name__ for s in statuses] == ["Connecting", "Connected"]
    assert link.device_info() == {"name": "FootPressure-R", "id": REAL.id, "connected": True, "simulated": False}


def test_connect_demo_device(fake_ble):
    link = _link()
    err = asyncio.run(link.connect(DEMO))
    assert err is None
    assert link.status == Demo(DEMO)
    assert link.is_connected()
    assert fake_ble.clients == []


def test_connect_failure_falls_back_to_demo(fake_ble):
    fake_ble.service_present = False
    link = _link()
    messages = []
    link.messages.subscribe(messages.append)
    err = asyncio.run(link.connect(REAL))
    assert err is not None and err.kind is ConnectErrorKind.SERVICE_NOT_FOUND
    assert link.last_error is err
    assert isinstance(link.status, Demo)
    assert link.status.handle.id == "demo-device"
    assert link.is_connected()
    assert any("[DEMO]" in m for m in messages)


def test_connect_other_error_also_falls_back(fake_ble):
    fake_ble.connect_error = BleakError("Device with address AA was not found")
    link = _link()
    err = asyncio.run(link.connect(REAL))
    assert err.kind is ConnectErrorKind.OTHER
    assert isinstance(link.status, Demo)


def test_frames_are_parsed_and_published(fake_ble):
    async def go():
        link = _link()
        samples, raw, messages = [], [], []
        link.samples.subscribe(samples.append)
        link.raw.subscribe(raw.append)
        link.messages.subscribe(messages.append)
        await link.connect(REAL)
        fake_ble.client.push(b"PRESSURE_RIGHT:9,8,7,6,5,4,3,2")
        fake_ble.client.push(b"garbage")
        return link, samples, raw, messages

    link, samples, raw, messages = asyncio.run(go())
    assert [s.values for s in samples] == [(9, 8, 7, 6, 5, 4, 3, 2)]
    assert raw == ["PRESSURE_RIGHT:9,8,7,6,5,4,3,2", "garbage"]
    assert link.parse_failures == 1
    assert any("Unrecognized data format: garbage" in m for m in messages)


def test_streaming_on_real_link_writes_commands(fake_ble):
    async def go():
        link = _link()
        await link.connect(REAL)
        await link.begin_streaming()
        await link.end_streaming()
        return link

    link = asyncio.run(go())
    assert fake_ble.client.writes == [b"START", b"STOP"]
    assert not link.simulator.armed


def test_write_failure_is_reported_not_raised(fake_ble):
    async def go():
        link = _link()
        messages = []
        link.messages.subscribe(messages.append)
        await link.connect(REAL)
        fake_ble.write_error = BleakError("write failed")
        await link.begin_streaming()
        return messages

    messages = asyncio.run(go())
    assert any("Error sending START" in m for m in messages)


def test_streaming_in_demo_uses_simulator(fake_ble):
    async def go():
        link = _link()
        samples = []
        link.samples.subscribe(samples.append)
        await link.connect(DEMO)
        await link.begin_streaming()
        link.simulator.tick()
        link.simulator.tick()
        await link.end_streaming()
        link.simulator.tick()
        return link, samples

    link, samples = asyncio.run(go())
    assert len(samples) == 2
    assert all(s.side == "left" for s in samples)
    assert not link.simulator.armed


def test_simulator_frames_ignored_on_real_link(fake_ble):
    async def go():
        link = _link()
        samples = []
        link.samples.subscribe(samples.append)
        await link.connect(REAL)
        link.simulator.arm()
        link.simulator.tick()
        return samples

    assert asyncio.run(go()) == []


def test_unsolicited_disconnect(fake_ble):
    async def go():
        link = _link()
        await link.connect(REAL)
        fake_ble.client.drop()
        return link

    link = asyncio.run(go())
    assert link.status == Disconnected()
    assert not link.is_connected()
    assert link.device_info() is None


def test_disconnect_is_idempotent(fake_ble):
    async def go():
        link = _link()
        statuses = []
        link.status_changed.subscribe(statuses.append)
        await link.disconnect()
        await link.connect(DEMO)
        await link.disconnect()
        await link.disconnect()
        return link, statuses

    link, statuses = asyncio.run(go())
    assert link.status == Disconnected()
    assert statuses[-1] == Disconnected()
    assert sum(1 for s in statuses if s == Disconnected()) == 1


def test_reconnect_releases_previous_device(fake_ble):
    async def go():
        link = _link()
        await link.connect(REAL)
        first = fake_ble.client
        await link.connect(DEMO)
        return link, first

    link, first = asyncio.run(go())
    assert first.disconnects == 1
    assert link.status == Demo(DEMO)
