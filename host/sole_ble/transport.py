# transport.py
import asyncio
import logging
from typing import Optional

from bleak import BleakClient

from .config import SCAN_TIMEOUT_S
from .errors import ConnectErrorKind, ConnectFailed, WriteFailed, as_connect_failed
from .events import EventChannel
from .models import ConnectionChange, DeviceHandle, DiscoveryFilter
from .scanner import discover
from .uuids import PRESSURE_CHAR, PRESSURE_SERVICE

logger = logging.getLogger(__name__)


class GattTransport:
    """
    Thin wrapper over one bleak connection: one service, one characteristic used for
    both notifications (device -> host) and START/STOP writes (host -> device).

    Demo handles never touch the radio: connect/write succeed immediately.

    Channels:
      frames      raw notification payloads (bytes)
      connection  ConnectionChange events
    """

    def __init__(self, service_uuid: str = PRESSURE_SERVICE, char_uuid: str = PRESSURE_CHAR,
                 scan_timeout: float = SCAN_TIMEOUT_S):
        self.service_uuid = service_uuid
        self.char_uuid = char_uuid
        self.scan_timeout = scan_timeout
        self.frames: EventChannel[bytes] = EventChannel("frames")
        self.connection: EventChannel[ConnectionChange] = EventChannel("connection")
        self._client: Optional[BleakClient] = None
        self._char = None
        self._handle: Optional[DeviceHandle] = None

    @property
    def handle(self) -> Optional[DeviceHandle]:
        return self._handle

    @property
    def is_connected(self) -> bool:
        if self._handle is None:
            return False
        if self._handle.simulated:
            return True
        return bool(self._client and self._client.is_connected)

    async def discover(self, flt: Optional[DiscoveryFilter] = None, notify=None):
        return await discover(flt, self.scan_timeout, notify)

    # =========================== Connect ===========================

    async def connect(self, handle: DeviceHandle) -> None:
        """Raises ConnectFailed; on failure nothing stays open."""
        if self._handle is not None:
            await self.disconnect()

        if handle.simulated:
            logger.info("[BLE] Demo handle %s, no radio connection", handle.id)
            self._handle = handle
            self.connection.emit(ConnectionChange(True, handle))
            return

        logger.info("[BLE] Connecting to %s (%s)...", handle.display_name, handle.id)
        client = BleakClient(handle.device or handle.id, disconnected_callback=self._on_disconnected)
        try:
            await client.connect()

            service = client.services.get_service(self.service_uuid)
            if service is None:
                raise ConnectFailed(ConnectErrorKind.SERVICE_NOT_FOUND,
                                    f"service {self.service_uuid} not found; check the sensor firmware")
            char = service.get_characteristic(self.char_uuid)
            if char is None:
                raise ConnectFailed(ConnectErrorKind.CHARACTERISTIC_NOT_FOUND,
                                    f"characteristic {self.char_uuid} not found")

            await client.start_notify(char, self._on_notify)
        except asyncio.CancelledError:
            await self._close_quietly(client)
            raise
        except Exception as e:
            await self._close_quietly(client)
            raise as_connect_failed(e) from e

        self._client, self._char, self._handle = client, char, handle
        logger.info("[BLE] Notifications enabled for %s", handle.display_name)
        self.connection.emit(ConnectionChange(True, handle))

    async def _close_quietly(self, client: BleakClient):
        try:
            await client.disconnect()
        except Exception as e:
            logger.debug("[BLE] Ignoring disconnect error after failed connect: %s", e)

    # =========================== Data path ===========================

    def _on_notify(self, _sender, data: bytearray):
        self.frames.emit(bytes(data))

    def _on_disconnected(self, client: BleakClient):
        # Late callbacks from a client we already released are ignored
        if client is not self._client:
            return
        handle = self._handle
        self._client, self._char, self._handle = None, None, None
        logger.warning("[BLE] %s disconnected", handle.display_name if handle else "device")
        self.connection.emit(ConnectionChange(False, handle, unsolicited=True))

    async def write(self, command: bytes) -> None:
        """Raises WriteFailed. No-op for demo handles."""
        if self._handle is None:
            raise WriteFailed("not connected")
        if self._handle.simulated:
            return
        if self._client is None or self._char is None:
            raise WriteFailed("characteristic not resolved")
        try:
            await self._client.write_gatt_char(self._char, command)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise WriteFailed(f"{command!r}: {e}") from e

    # =========================== Teardown ===========================

    async def disconnect(self) -> None:
        """Idempotent: a no-op when nothing is connected."""
        handle, client, char = self._handle, self._client, self._char
        if handle is None:
            return
        # Release first so the bleak disconnect callback sees a foreign client
        self._client, self._char, self._handle = None, None, None

        if client is not None:
            try:
                if client.is_connected:
                    await client.stop_notify(char)
            except Exception as e:
                logger.debug("[BLE] stop_notify failed: %s", e)
            finally:
                await self._close_quietly(client)
        logger.info("[BLE] Released %s", handle.display_name)
        self.connection.emit(ConnectionChange(False, handle))
