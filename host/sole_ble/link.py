# link.py
"""
Link state machine.

    Disconnected -> Connecting -> Connected(handle)    real sensor
                               -> Demo(handle)         demo handle, or any connect failure

Connected/Demo fall back to Disconnected on disconnect(); Connected also on an
unsolicited drop reported by the transport. SensorLink is the only owner of the
transport and the simulator and the only writer of `status`.
"""
import logging
from typing import Optional

from .config import CMD_START, CMD_STOP, DEMO_FALLBACK
from .errors import ConnectFailed, NotLinked, ParseFailure, WriteFailed
from .events import EventChannel
from .models import (
    ConnectionChange, Connected, Connecting, Demo, DeviceHandle, Disconnected,
    DiscoveryFilter, LinkStatus, PressureSample, describe_status,
)
from .parser import parse_frame
from .simulator import Simulator
from .transport import GattTransport

logger = logging.getLogger(__name__)


class SensorLink:
    def __init__(self, transport: Optional[GattTransport] = None,
                 simulator: Optional[Simulator] = None,
                 messages: Optional[EventChannel[str]] = None):
        self.transport = transport or GattTransport()
        self.simulator = simulator or Simulator()
        self.messages: EventChannel[str] = messages or EventChannel("messages")
        self.status_changed: EventChannel[LinkStatus] = EventChannel("status")
        self.samples: EventChannel[PressureSample] = EventChannel("samples")
        self.raw: EventChannel[str] = EventChannel("raw")
        self.last_error: Optional[ConnectFailed] = None
        self.parse_failures = 0
        self._status: LinkStatus = Disconnected()

        self.transport.frames.subscribe(self._on_transport_frame)
        self.transport.connection.subscribe(self._on_connection)
        self.simulator.frames.subscribe(self._on_simulator_frame)

    # =========================== Status ===========================

    @property
    def status(self) -> LinkStatus:
        return self._status

    def is_connected(self) -> bool:
        return isinstance(self._status, (Connected, Demo))

    @property
    def is_demo(self) -> bool:
        return isinstance(self._status, Demo)

    def device_info(self) -> Optional[dict]:
        if isinstance(self._status, Disconnected):
            return None
        handle = self._status.handle
        return {
            "name": handle.display_name,
            "id": handle.id,
            "connected": self.is_connected(),
            "simulated": handle.simulated,
        }

    def _set_status(self, status: LinkStatus):
        if status == self._status:
            return
        self._status = status
        logger.info("[LINK] %s", describe_status(status))
        self.status_changed.emit(status)

    def _note(self, level: int, text: str):
        logger.log(level, text)
        self.messages.emit(text)

    # =========================== Lifecycle ===========================

    async def discover(self, flt: Optional[DiscoveryFilter] = None):
        devices = await self.transport.discover(flt, notify=self.messages.emit)
        self._note(logging.INFO, f"[SCAN] Found {len(devices)} device(s)")
        for d in devices:
            self._note(logging.INFO, f"[SCAN] - {d.display_name} ({d.id}){' [demo]' if d.simulated else ''}")
        return devices

    async def connect(self, handle: DeviceHandle) -> Optional[ConnectFailed]:
        """
        Never leaves the link without a path forward: a failed connect ends in Demo.
        Returns the connect error (for display) or None on success.
        """
        if not isinstance(self._status, Disconnected):
            await self.disconnect()

        self.last_error = None
        self._set_status(Connecting(handle))
        self._note(logging.INFO, f"[BLE] Attempting to connect to {handle.display_name}...")
        try:
            await self.transport.connect(handle)
        except ConnectFailed as e:
            self.last_error = e
            self._note(logging.ERROR, f"[BLE] Connection failed: {e}")
            fallback = DeviceHandle(*DEMO_FALLBACK, simulated=True)
            await self.transport.connect(fallback)
            self._set_status(Demo(fallback))
            self._note(logging.WARNING, "[DEMO] Using demo mode - sensor connection failed")
            return e

        if handle.simulated:
            self._set_status(Demo(handle))
            self._note(logging.INFO, "[DEMO] Demo mode activated - simulated sensor data")
        else:
            self._set_status(Connected(handle))
            self._note(logging.INFO, f"[BLE] Connected to {handle.display_name} ({handle.id})")
        return None

    async def disconnect(self) -> None:
        if isinstance(self._status, Disconnected):
            return
        self.simulator.disarm()
        await self.transport.disconnect()
        self._set_status(Disconnected())
        self._note(logging.INFO, "[BLE] Disconnected")

    def _on_connection(self, change: ConnectionChange):
        if change.connected or not change.unsolicited:
            return
        if isinstance(self._status, Connected):
            self._set_status(Disconnected())
            self._note(logging.WARNING, "[BLE] Sensor disconnected")

    # =========================== Streaming ===========================

    async def begin_streaming(self) -> None:
        if isinstance(self._status, Connected):
            await self._send(CMD_START)
        elif isinstance(self._status, Demo):
            self.simulator.arm()
            self._note(logging.INFO, "[DEMO] Simulating sensor pressure data...")
        else:
            raise NotLinked(f"cannot stream while {describe_status(self._status)}")

    async def end_streaming(self) -> None:
        if isinstance(self._status, Demo):
            self.simulator.disarm()
        elif isinstance(self._status, Connected):
            await self._send(CMD_STOP)

    async def _send(self, command: bytes):
        try:
            await self.transport.write(command)
        except WriteFailed as e:
            self._note(logging.ERROR, f"[BLE] Error sending {command.decode()} command: {e}")
            return
        self._note(logging.INFO, f"[BLE] Sent {command.decode()} command")

    # =========================== Frames ===========================

    def _on_transport_frame(self, raw: bytes):
        if isinstance(self._status, Connected):
            self._ingest(raw)

    def _on_simulator_frame(self, raw: bytes):
        if isinstance(self._status, Demo):
            self._ingest(raw)

    def _ingest(self, raw: bytes):
        text = raw.decode("utf-8", "replace")
        logger.debug("[RX] %s", text)
        self.raw.emit(text)
        try:
            sample = parse_frame(raw)
        except ParseFailure as e:
            self.parse_failures += 1
            self._note(logging.WARNING, f"[PARSE] Unrecognized data format: {e.raw}")
            return
        self.samples.emit(sample)
