# session.py
"""
Timed measurement session.

    Idle -> Recording -> Completed
            Recording -> Idle          (ended with zero samples)
    Completed/Idle -> Recording        (start() again; implicit reset)

Every mutation (sample arrival, tick, stop, link loss) runs on the event loop and
completion never awaits before the state leaves Recording, so a frame is either
fully counted or ignored.
"""
import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional, Tuple, Union

from sole_ble.config import CHANNELS, DEFAULT_DURATION, TICK_INTERVAL_S
from sole_ble.errors import EmptySession, NotLinked
from sole_ble.events import EventChannel
from sole_ble.link import SensorLink
from sole_ble.models import Disconnected, LinkStatus, PressureSample

from .stats import Averages, compute_averages

logger = logging.getLogger(__name__)

ZEROS = (0,) * CHANNELS

# =========================== State ===========================

@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class Recording:
    elapsed: int
    deadline: int

    @property
    def remaining(self) -> int:
        return max(0, self.deadline - self.elapsed)


@dataclass(frozen=True)
class Completed:
    samples: Tuple[PressureSample, ...]
    averages: Averages


SessionState = Union[Idle, Recording, Completed]


@dataclass(frozen=True)
class DisplayFrame:
    """What the heatmap shows: live values, averages once completed, zeros otherwise."""
    values: Tuple[int, ...]
    recording: bool
    remaining: int = 0


@dataclass(frozen=True)
class SessionReport:
    side: str
    duration: int
    samples: Tuple[PressureSample, ...]
    averages: Averages
    notes: str = ""
    created: float = field(default_factory=time.time)

    def to_json(self) -> dict:
        return {
            "side": self.side,
            "duration": self.duration,
            "notes": self.notes or "No notes provided",
            "created": self.created,
            "averages": self.averages.to_json(),
        }

# =========================== Controller ===========================

class SessionController:
    def __init__(self, link: SensorLink, side: str = "left",
                 duration: int = DEFAULT_DURATION,
                 tick_interval: Optional[float] = TICK_INTERVAL_S,
                 messages: Optional[EventChannel[str]] = None):
        self.link = link
        self.side = side
        self.duration = duration
        self.tick_interval = tick_interval
        self.messages = messages or link.messages
        self.display: EventChannel[DisplayFrame] = EventChannel("display")
        self.finished: EventChannel[Optional[Averages]] = EventChannel("finished")

        self._state: SessionState = Idle()
        self._samples: List[PressureSample] = []
        self._live: Tuple[int, ...] = ZEROS
        self._session_duration = duration
        self._clock: Optional[asyncio.Task] = None
        # bumped by start(); an outcome is announced only for the run it belongs to
        self._run_id = 0

        link.samples.subscribe(self._on_sample)
        link.status_changed.subscribe(self._on_status)

    # ---------------- observers ----------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_recording(self) -> bool:
        return isinstance(self._state, Recording)

    @property
    def samples(self) -> Tuple[PressureSample, ...]:
        return tuple(self._samples)

    @property
    def averages(self) -> Optional[Averages]:
        return self._state.averages if isinstance(self._state, Completed) else None

    @property
    def remaining(self) -> int:
        return self._state.remaining if isinstance(self._state, Recording) else 0

    def display_frame(self) -> DisplayFrame:
        if isinstance(self._state, Recording):
            return DisplayFrame(self._live, True, self._state.remaining)
        if isinstance(self._state, Completed):
            return DisplayFrame(self._state.averages.channels, False)
        return DisplayFrame(ZEROS, False)

    def _publish(self):
        self.display.emit(self.display_frame())

    def _note(self, level: int, text: str):
        logger.log(level, text)
        self.messages.emit(text)

    # ---------------- transitions ----------------

    async def start(self, duration: Optional[int] = None) -> None:
        if not self.link.is_connected():
            raise NotLinked("Please connect to a sensor first")
        duration = self.duration if duration is None else duration
        if duration <= 0:
            raise ValueError(f"duration must be positive, got {duration}")

        self._stop_clock()
        self._run_id += 1
        self._samples = []
        self._live = ZEROS
        self._session_duration = duration
        self._state = Recording(0, duration)
        self._note(logging.INFO, f"[SESSION] Starting {duration}-second measurement...")
        self._note(logging.INFO, "[SESSION] Please stand still on the pressure sensors")
        self._publish()

        await self.link.begin_streaming()
        if self.tick_interval is not None and self.is_recording:
            self._clock = asyncio.get_running_loop().create_task(self._run_clock())

    async def on_tick(self, elapsed: int = 1) -> Optional[Averages]:
        """Advance the countdown; completes the session when it reaches zero."""
        if not isinstance(self._state, Recording):
            return None
        state = Recording(self._state.elapsed + elapsed, self._state.deadline)
        if state.remaining > 0:
            self._state = state
            self._publish()
            return None
        self._note(logging.INFO, "[SESSION] Measurement time elapsed")
        return await self._release(self._close_window())

    async def stop_early(self) -> Optional[Averages]:
        if not isinstance(self._state, Recording):
            return None
        self._note(logging.INFO, "[SESSION] Measurement stopped early")
        return await self._release(self._close_window())

    async def _release(self, outcome: Optional[Averages]) -> Optional[Averages]:
        run_id = self._run_id
        await self.link.end_streaming()
        if run_id == self._run_id:
            self.finished.emit(outcome)
        else:
            logger.debug("[SESSION] Run restarted during stop; outcome not announced")
        return outcome

    def complete(self) -> Optional[Averages]:
        """
        Close the recording window. Zero samples -> back to Idle with a warning and no
        averages; otherwise compute averages and move to Completed.
        Does not touch the stream; on_tick/stop_early release it before announcing.
        """
        if not isinstance(self._state, Recording):
            return self.averages
        outcome = self._close_window()
        self.finished.emit(outcome)
        return outcome

    def _close_window(self) -> Optional[Averages]:
        self._stop_clock()
        samples = tuple(self._samples)
        try:
            averages = compute_averages(samples)
        except EmptySession:
            self._state = Idle()
            self._live = ZEROS
            self._note(logging.WARNING, "[WARNING] No data collected during measurement")
            self._publish()
            return None

        self._state = Completed(samples, averages)
        self._note(logging.INFO, "[SESSION] Measurement completed. Calculating averages...")
        self._note(logging.INFO, f"[SESSION] Processed {averages.sample_count} data points")
        self._note(logging.INFO, f"[SESSION] Average pressure: {averages.overall_mean}")
        self._note(logging.INFO, f"[SESSION] Max pressure: {averages.max_label} = {averages.max_value}")
        self._note(logging.INFO, f"[SESSION] Averaged pressure values: {', '.join(map(str, averages.channels))}")
        self._publish()
        return averages

    def report(self, notes: str = "", side: Optional[str] = None) -> SessionReport:
        """Hand-off for export: full sample list + averages of the completed session."""
        if not isinstance(self._state, Completed):
            raise EmptySession("no completed measurement to export")
        return SessionReport(
            side=side or self.side,
            duration=self._session_duration,
            samples=self._state.samples,
            averages=self._state.averages,
            notes=notes,
        )

    # ---------------- event sources ----------------

    def _on_sample(self, sample: PressureSample):
        if not isinstance(self._state, Recording):
            return
        self._samples.append(sample)
        self._live = sample.values
        logger.debug("[SESSION] PRESSURE_%s: %s", self.side.upper(), ",".join(map(str, sample.values)))
        self._publish()

    def _on_status(self, status: LinkStatus):
        if isinstance(status, Disconnected) and self.is_recording:
            self._note(logging.WARNING, "[SESSION] Link lost, stopping measurement with data collected so far")
            self.complete()

    async def _run_clock(self):
        while self.is_recording:
            await asyncio.sleep(self.tick_interval)
            await self.on_tick(1)

    def _stop_clock(self):
        clock, self._clock = self._clock, None
        # The clock task itself ends via its loop condition
        if clock is not None and clock is not asyncio.current_task():
            clock.cancel()
