# simulator.py
import asyncio
import logging
import random
from typing import Optional, Sequence

from .config import SIM_BASELINE, SIM_INTERVAL_S, SIM_NOISE
from .events import EventChannel
from .parser import clamp, encode_frame

logger = logging.getLogger(__name__)


class Simulator:
    """
    Stand-in for a real sole: while armed, emits one tagged-text frame per interval on
    `frames`, in the same wire format the parser accepts.

    interval=None leaves ticking to the caller (tick()), which is what tests use.
    """

    def __init__(self, side: str = "left", baseline: Sequence[int] = SIM_BASELINE,
                 noise: int = SIM_NOISE, interval: Optional[float] = SIM_INTERVAL_S,
                 rng: Optional[random.Random] = None):
        self.side = side
        self.baseline = tuple(baseline)
        self.noise = noise
        self.interval = interval
        self.rng = rng or random.Random()
        self.frames: EventChannel[bytes] = EventChannel("sim-frames")
        self._armed = False
        self._task: Optional[asyncio.Task] = None

    @property
    def armed(self) -> bool:
        return self._armed

    def next_values(self):
        if self.noise <= 0:
            return [clamp(b) for b in self.baseline]
        return [clamp(b + self.rng.randint(-self.noise, self.noise - 1)) for b in self.baseline]

    def tick(self) -> Optional[bytes]:
        """Emit one frame if armed; returns the payload (None when disarmed)."""
        if not self._armed:
            return None
        payload = encode_frame(self.next_values(), self.side)
        self.frames.emit(payload)
        return payload

    def arm(self) -> None:
        if self._armed:
            return
        self._armed = True
        logger.info("[DEMO] Simulator armed (%s side)", self.side)
        if self.interval is not None:
            self._task = asyncio.get_running_loop().create_task(self._run())

    def disarm(self) -> None:
        if not self._armed:
            return
        self._armed = False
        if self._task is not None:
            self._task.cancel()
            self._task = None
        logger.info("[DEMO] Simulator disarmed")

    async def _run(self):
        while self._armed:
            await asyncio.sleep(self.interval)
            self.tick()
