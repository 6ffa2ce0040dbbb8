# models.py
import time
from dataclasses import dataclass, field
from typing import Any, Optional, Tuple, Union

from .config import CHANNELS, NAME_PREFIXES
from .uuids import PRESSURE_SERVICE

# =========================== Samples ===========================

@dataclass(frozen=True)
class PressureSample:
    """One decoded frame: exactly CHANNELS readings in [0, 255]."""
    values: Tuple[int, ...]
    timestamp: float = field(default_factory=time.time)
    side: Optional[str] = None  # "left"/"right" when the frame was tagged

    def __post_init__(self):
        if len(self.values) != CHANNELS:
            raise ValueError(f"PressureSample needs {CHANNELS} values, got {len(self.values)}")
        object.__setattr__(self, "values", tuple(int(v) for v in self.values))


# =========================== Devices ===========================

@dataclass(frozen=True)
class DeviceHandle:
    id: str
    name: Optional[str] = None
    simulated: bool = False
    # bleak BLEDevice for real peripherals; not part of identity
    device: Any = field(default=None, compare=False, repr=False)

    @property
    def display_name(self) -> str:
        return self.name or "Unknown Device"


@dataclass(frozen=True)
class DiscoveryFilter:
    name_prefixes: Tuple[str, ...] = NAME_PREFIXES
    service_uuids: Tuple[str, ...] = (PRESSURE_SERVICE,)

    def matches(self, name: Optional[str], service_uuids) -> bool:
        if name and any(name.startswith(p) for p in self.name_prefixes):
            return True
        wanted = {u.lower() for u in self.service_uuids}
        return any(u.lower() in wanted for u in (service_uuids or ()))

# =========================== Link status ===========================

@dataclass(frozen=True)
class Disconnected:
    pass


@dataclass(frozen=True)
class Connecting:
    handle: DeviceHandle


@dataclass(frozen=True)
class Connected:
    handle: DeviceHandle


@dataclass(frozen=True)
class Demo:
    handle: DeviceHandle


LinkStatus = Union[Disconnected, Connecting, Connected, Demo]


def describe_status(status: LinkStatus) -> str:
    if isinstance(status, Connected):
        return f"connected to {status.handle.display_name} ({status.handle.id})"
    if isinstance(status, Demo):
        return f"demo mode on {status.handle.display_name} ({status.handle.id})"
    if isinstance(status, Connecting):
        return f"connecting to {status.handle.display_name}"
    return "disconnected"


@dataclass(frozen=True)
class ConnectionChange:
    """Raised by the transport; `unsolicited` marks a drop the host did not ask for."""
    connected: bool
    handle: Optional[DeviceHandle] = None
    unsolicited: bool = False
