import argparse
import logging

from rich.logging import RichHandler

from sole_ble.config import DEFAULT_DURATION, NAME_PREFIXES, SCAN_TIMEOUT_S, SIDES

from .client import console, measure


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="sole-session",
                                description="Record one timed foot-pressure session over BLE")
    p.add_argument("--side", choices=SIDES, default="left", help="Sole being measured")
    p.add_argument("--duration", type=int, default=DEFAULT_DURATION, help="Session length in seconds")
    p.add_argument("--name-prefix", action="append", dest="prefixes",
                   help=f"BLE name prefix to look for (repeatable, default {', '.join(NAME_PREFIXES)})")
    p.add_argument("--address", help="BLE MAC/address to connect to")
    p.add_argument("--scan-timeout", type=float, default=SCAN_TIMEOUT_S,
                   help="Seconds to spend on each discovery scan")
    p.add_argument("--demo", action="store_true", help="Skip scanning and use simulated data")
    p.add_argument("--notes", default="", help="Clinical notes stored with the report")
    p.add_argument("--save", help="JSONL output file")
    p.add_argument("--verbose", action="store_true", help="Log every raw frame")
    return p


def setup_logging(verbose: bool = False):
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=verbose, markup=False)],
    )
    # bleak is chatty at DEBUG
    logging.getLogger("bleak").setLevel(logging.INFO if verbose else logging.WARNING)


def main(argv=None):
    args = build_parser().parse_args(argv)
    if args.duration <= 0:
        build_parser().error("--duration must be positive")
    if args.scan_timeout <= 0:
        build_parser().error("--scan-timeout must be positive")
    setup_logging(args.verbose)
    averages = measure(
        side=args.side,
        duration=args.duration,
        prefixes=args.prefixes or NAME_PREFIXES,
        address=args.address,
        scan_timeout=args.scan_timeout,
        demo=args.demo,
        notes=args.notes,
        save=args.save,
    )
    return 0 if averages is not None else 1
