# errors.py
import enum
from typing import Optional

from bleak.exc import BleakError


class ConnectErrorKind(enum.Enum):
    UNSUPPORTED = "unsupported"
    USER_CANCELLED = "user_cancelled"
    SERVICE_NOT_FOUND = "service_not_found"
    CHARACTERISTIC_NOT_FOUND = "characteristic_not_found"
    PERMISSION_DENIED = "permission_denied"
    OTHER = "other"


class SensorLinkError(Exception):
    """Base class for every failure raised by the sensor link and session code."""


class TransportUnsupported(SensorLinkError):
    pass


class DiscoveryFailed(SensorLinkError):
    pass


class ConnectFailed(SensorLinkError):
    def __init__(self, kind: ConnectErrorKind, detail: str = ""):
        self.kind = kind
        self.detail = detail
        super().__init__(f"{kind.value}: {detail}" if detail else kind.value)


class WriteFailed(SensorLinkError):
    pass


class ParseFailure(SensorLinkError):
    """Payload matched none of the accepted encodings. `raw` keeps the text for diagnostics."""

    def __init__(self, raw: str):
        self.raw = raw
        super().__init__(f"Unrecognized data format: {raw!r}")


class EmptySession(SensorLinkError):
    pass


class NotLinked(SensorLinkError):
    pass


# =========================== Classification ===========================

_UNSUPPORTED_HINTS = (
    "no bluetooth adapters",
    "bluetooth device is turned off",
    "bluetooth is not available",
    "not supported",
    "powered off",
    "org.bluez",
    "dbus",
)


def classify_error(exc: BaseException) -> ConnectErrorKind:
    """Map a bleak/OS exception onto the connect error taxonomy."""
    if isinstance(exc, ConnectFailed):
        return exc.kind
    if isinstance(exc, TransportUnsupported):
        return ConnectErrorKind.UNSUPPORTED
    if isinstance(exc, PermissionError):
        return ConnectErrorKind.PERMISSION_DENIED
    text = str(exc).lower()
    if "cancel" in text:
        return ConnectErrorKind.USER_CANCELLED
    if "not permitted" in text or "permission" in text or "access denied" in text:
        return ConnectErrorKind.PERMISSION_DENIED
    if isinstance(exc, (BleakError, OSError)) and any(h in text for h in _UNSUPPORTED_HINTS):
        return ConnectErrorKind.UNSUPPORTED
    if isinstance(exc, FileNotFoundError):
        # no BlueZ / CoreBluetooth backend on this host
        return ConnectErrorKind.UNSUPPORTED
    return ConnectErrorKind.OTHER


def as_connect_failed(exc: BaseException, detail: Optional[str] = None) -> ConnectFailed:
    if isinstance(exc, ConnectFailed):
        return exc
    return ConnectFailed(classify_error(exc), detail or str(exc) or type(exc).__name__)
