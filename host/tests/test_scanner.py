import asyncio

from bleak.exc import BleakError

from conftest import FakeAdv, FakeDevice
from sole_ble.models import DiscoveryFilter
from sole_ble.scanner import discover
from sole_ble.uuids import PRESSURE_SERVICE


def test_filtered_scan_matches_prefix_and_service(fake_scanner):
    fake_scanner.filtered = [
        (FakeDevice("AA", "ESP32-FootSensor-R"), FakeAdv()),
        (FakeDevice("BB", "Headphones"), FakeAdv()),
        (FakeDevice("CC", None), FakeAdv(service_uuids=[PRESSURE_SERVICE.upper()])),
    ]
    devs = asyncio.run(discover(timeout=0.1))
    assert [d.id for d in devs] == ["AA", "CC"]
    assert not any(d.simulated for d in devs)
    assert fake_scanner.calls == ["filtered"]


def test_no_match_falls_back_to_accept_any(fake_scanner):
    fake_scanner.filtered = [(FakeDevice("BB", "Headphones"), FakeAdv())]
    fake_scanner.unfiltered = [FakeDevice("BB", "Headphones")]
    devs = asyncio.run(discover(timeout=0.1))
    assert [d.id for d in devs] == ["BB"]
    assert fake_scanner.calls == ["filtered", "unfiltered"]


def test_failed_filtered_scan_falls_back_to_accept_any(fake_scanner):
    fake_scanner.filtered = BleakError("scan failed")
    fake_scanner.unfiltered = [FakeDevice("DD", "Foot-2")]
    messages = []
    devs = asyncio.run(discover(timeout=0.1, notify=messages.append))
    assert [d.id for d in devs] == ["DD"]
    assert any("Filtered scan failed" in m for m in messages)


def test_total_failure_returns_demo_devices(fake_scanner):
    fake_scanner.filtered = BleakError("scan failed")
    fake_scanner.unfiltered = PermissionError("denied")
    messages = []
    devs = asyncio.run(discover(timeout=0.1, notify=messages.append))
    assert [d.id for d in devs] == ["demo-esp32-left", "demo-esp32-right"]
    assert all(d.simulated for d in devs)
    assert any("[DEMO]" in m for m in messages)


def test_missing_adapter_goes_straight_to_demo(fake_scanner):
    fake_scanner.filtered = BleakError("No Bluetooth adapters found.")
    devs = asyncio.run(discover(timeout=0.1))
    assert all(d.simulated for d in devs)
    assert fake_scanner.calls == ["filtered"]


def test_custom_prefix_filter(fake_scanner):
    fake_scanner.filtered = [
        (FakeDevice("AA", "ESP32-X"), FakeAdv()),
        (FakeDevice("BB", "Sole-1"), FakeAdv()),
    ]
    flt = DiscoveryFilter(name_prefixes=("Sole",), service_uuids=())
    devs = asyncio.run(discover(flt, timeout=0.1))
    assert [d.name for d in devs] == ["Sole-1"]
