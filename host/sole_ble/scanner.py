# scanner.py
import asyncio
import logging
from typing import Callable, List, Optional

from bleak import BleakScanner

from .config import DEMO_DEVICES, SCAN_TIMEOUT_S
from .errors import ConnectErrorKind, DiscoveryFailed, TransportUnsupported, classify_error
from .models import DeviceHandle, DiscoveryFilter

logger = logging.getLogger(__name__)


def demo_devices() -> List[DeviceHandle]:
    return [DeviceHandle(dev_id, name, simulated=True) for dev_id, name in DEMO_DEVICES]


def _handle(dev) -> DeviceHandle:
    return DeviceHandle(dev.address, dev.name, simulated=False, device=dev)


async def _filtered_scan(flt: DiscoveryFilter, timeout: float) -> List[DeviceHandle]:
    found = await BleakScanner.discover(timeout=timeout, return_adv=True)
    out = []
    for dev, adv in found.values():
        name = dev.name or getattr(adv, "local_name", None)
        if flt.matches(name, getattr(adv, "service_uuids", None)):
            out.append(_handle(dev))
    return out


async def _accept_any_scan(timeout: float) -> List[DeviceHandle]:
    devs = await BleakScanner.discover(timeout=timeout)
    return [_handle(d) for d in devs]


async def _attempt(scan) -> List[DeviceHandle]:
    try:
        return await scan
    except asyncio.CancelledError:
        raise
    except Exception as e:
        kind = classify_error(e)
        if kind is ConnectErrorKind.UNSUPPORTED:
            raise TransportUnsupported(str(e)) from e
        raise DiscoveryFailed(f"{kind.value}: {e}") from e


async def discover(flt: Optional[DiscoveryFilter] = None,
                   timeout: float = SCAN_TIMEOUT_S,
                   notify: Optional[Callable[[str], None]] = None) -> List[DeviceHandle]:
    """
    Filtered scan -> unfiltered "accept any" scan -> sentinel demo devices.
    Never raises (apart from task cancellation); the caller always gets a list.
    """
    flt = flt or DiscoveryFilter()

    def say(level, text):
        logger.log(level, text)
        if notify:
            notify(text)

    say(logging.INFO, f"[SCAN] Looking for {', '.join(flt.name_prefixes)} sensors ({timeout:.0f}s)...")
    devices: List[DeviceHandle] = []
    try:
        devices = await _attempt(_filtered_scan(flt, timeout))
    except TransportUnsupported as e:
        say(logging.WARNING, f"[SCAN] Bluetooth is not available on this host ({e})")
        say(logging.WARNING, "[DEMO] Falling back to demo devices")
        return demo_devices()
    except DiscoveryFailed as e:
        say(logging.WARNING, f"[SCAN] Filtered scan failed ({e}); trying accept-any scan...")
    else:
        if devices:
            return devices
        say(logging.INFO, "[SCAN] No matching sensor; trying accept-any scan...")

    try:
        devices = await _attempt(_accept_any_scan(timeout))
    except (TransportUnsupported, DiscoveryFailed) as e:
        say(logging.WARNING, f"[SCAN] Accept-any scan failed ({e})")
    if devices:
        return devices

    say(logging.WARNING, "[DEMO] No sensor available, falling back to demo devices")
    return demo_devices()


async def main():
    devs = await discover(DiscoveryFilter(name_prefixes=("",)), timeout=10.0, notify=print)
    for d in devs:
        flag = "  [demo]" if d.simulated else ""
        print(f"{d.display_name}\t{d.id}{flag}")


if __name__ == "__main__":
    asyncio.run(main())
