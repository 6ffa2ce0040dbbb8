import asyncio, logging, signal, threading
from typing import Iterable, List, Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from sole_ble.config import (
    DEFAULT_DURATION, HIGH_PRESSURE_WARN, NAME_PREFIXES, SCAN_TIMEOUT_S, TICK_INTERVAL_S,
)
from sole_ble.events import EventChannel
from sole_ble.link import SensorLink
from sole_ble.models import DeviceHandle, DiscoveryFilter
from sole_ble.scanner import demo_devices
from sole_ble.simulator import Simulator
from sole_ble.transport import GattTransport

from .json_writer import JSONLinesWriter, write_report
from .session import SessionController
from .stats import Averages

logger = logging.getLogger(__name__)
console = Console()


class SensorContext:
    """
    Owns one side's transport, simulator, link and session for the length of a
    workflow. Leaving the context stops a running session and drops the link.
    """

    def __init__(self, side: str = "left", duration: int = DEFAULT_DURATION,
                 tick_interval: Optional[float] = TICK_INTERVAL_S,
                 transport: Optional[GattTransport] = None,
                 simulator: Optional[Simulator] = None,
                 scan_timeout: float = SCAN_TIMEOUT_S):
        self.side = side
        self.messages: EventChannel[str] = EventChannel("messages")
        self.transport = transport or GattTransport(scan_timeout=scan_timeout)
        self.simulator = simulator or Simulator(side=side)
        self.link = SensorLink(self.transport, self.simulator, self.messages)
        self.session = SessionController(self.link, side, duration, tick_interval, self.messages)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        await self.close()

    async def close(self):
        if self.session.is_recording:
            await self.session.stop_early()
        await self.link.disconnect()


def pick_device(devices: List[DeviceHandle], side: str, address: Optional[str] = None) -> DeviceHandle:
    if address:
        for d in devices:
            if d.id.lower() == address.lower():
                return d
        logger.warning("[SCAN] %s not among discovered devices; using %s", address, devices[0].id)
    suffix = "-L" if side == "left" else "-R"
    for d in devices:
        if d.simulated and d.display_name.endswith(suffix):
            return d
    return devices[0]


def print_summary(averages: Averages, side: str):
    table = Table(title=f"{side.upper()} sole - channel averages ({averages.sample_count} samples)")
    table.add_column("Point")
    table.add_column("Average", justify="right")
    for i, v in enumerate(averages.channels):
        style = "bold red" if i == averages.max_index else None
        table.add_row(f"P{i + 1}", str(v), style=style)
    console.print(table)
    console.print(f"Overall mean: [bold]{averages.overall_mean}[/bold]   "
                  f"Max: [bold]P{averages.max_index + 1} = {averages.max_value}[/bold]   "
                  f"Min: {averages.min_value}")
    if averages.max_value > HIGH_PRESSURE_WARN:
        console.print(f"[bold yellow]High pressure at P{averages.max_index + 1} "
                      f"({averages.max_value} > {HIGH_PRESSURE_WARN}); consider medical evaluation[/bold yellow]")


def watch_enter(loop: asyncio.AbstractEventLoop, stop_event: asyncio.Event) -> threading.Thread:
    """Daemon thread: ENTER on stdin sets stop_event on the loop."""
    def run():
        try:
            input()
        except EOFError:
            return
        loop.call_soon_threadsafe(stop_event.set)
    t = threading.Thread(target=run, daemon=True)
    t.start()
    return t


def stop_on_interrupt(loop: asyncio.AbstractEventLoop, stop_event: asyncio.Event) -> bool:
    """Route Ctrl+C to stop_event so the summary still prints. False where the loop has no signal support."""
    try:
        loop.add_signal_handler(signal.SIGINT, stop_event.set)
    except NotImplementedError:
        # Windows event loops: Ctrl+C still aborts the run
        return False
    return True


async def run(side: str = "left", duration: int = DEFAULT_DURATION,
              prefixes: Iterable[str] = NAME_PREFIXES, address: Optional[str] = None,
              demo: bool = False, notes: str = "", save: Optional[str] = None,
              stop_event: Optional[asyncio.Event] = None,
              tick_interval: Optional[float] = TICK_INTERVAL_S,
              scan_timeout: float = SCAN_TIMEOUT_S,
              context: Optional[SensorContext] = None) -> Optional[Averages]:
    """
    Discover -> connect (demo fallback) -> one timed session -> summary (+ JSONL report).
    Setting stop_event ends the session early.
    """
    ctx = context or SensorContext(side, duration, tick_interval, scan_timeout=scan_timeout)
    async with ctx:
        if demo:
            devices = demo_devices()
        else:
            devices = await ctx.link.discover(DiscoveryFilter(name_prefixes=tuple(prefixes)))
        handle = pick_device(devices, side, address)

        err = await ctx.link.connect(handle)
        if err is not None:
            console.print(f"[yellow]Sensor connection failed ({escape(str(err))}); continuing on simulated data[/yellow]")

        done = asyncio.Event()
        unsubscribe = ctx.session.finished.subscribe(lambda _outcome: done.set())
        try:
            await ctx.session.start(duration)
            waiters = {asyncio.ensure_future(done.wait())}
            if stop_event is not None:
                waiters.add(asyncio.ensure_future(stop_event.wait()))
            try:
                await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
            finally:
                for w in waiters:
                    w.cancel()
            if not done.is_set():
                await ctx.session.stop_early()
        finally:
            unsubscribe()

        averages = ctx.session.averages
        if averages is None:
            console.print("[yellow]No data collected during measurement[/yellow]")
            return None

        print_summary(averages, side)
        if save:
            n = write_report(JSONLinesWriter(save), ctx.session.report(notes))
            console.print(f"Saved {n} JSONL lines to {escape(save)}")
        return averages


def measure(**kwargs) -> Optional[Averages]:
    async def main():
        loop = asyncio.get_running_loop()
        stop_event = asyncio.Event()
        watch_enter(loop, stop_event)
        stop_on_interrupt(loop, stop_event)
        console.print("Recording... press ENTER or Ctrl+C to stop early")
        return await run(stop_event=stop_event, **kwargs)
    return asyncio.run(main())
