#!/usr/bin/env python3
"""Watch live engine data from a paired ELM327 adapter.

Usage
-----
List paired serial adapters (and, with ``--scan``, nearby BLE ones)::

    python scripts/obd_monitor.py --list
    python scripts/obd_monitor.py --list --scan

Connect and print readings until interrupted::

    python scripts/obd_monitor.py --device /dev/rfcomm0
    python scripts/obd_monitor.py --device /dev/rfcomm0 --gauge

Without ``--device`` the last connected adapter is used when
auto-connect is switched on in the preference record.

Options::

    --device ID          Adapter to connect to (port path or address)
    --gauge              Poll speed only, at the gauge cadence
    --count N            Stop after N readings
    --json               Print one JSON object per reading
    --raw PID            Send a single mode 01 PID and print its payload
    --verbose, -v        Enable debug logging
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from dashpilot import (  # noqa: E402
    PID_TABLE,
    DashPilotConfig,
    DashPilotContext,
    DashPilotError,
    TelemetryField,
    TelemetryReading,
)


def _format_reading(reading: TelemetryReading) -> str:
    parts: list[str] = []
    for field in TelemetryField:
        value = reading.get(field)
        shown = "--" if value is None else f"{value:.1f}"
        parts.append(f"{field.value}={shown}{PID_TABLE[field].unit}")
    return "  ".join(parts)


async def _list_devices(ctx: DashPilotContext, scan: bool) -> None:
    print("Paired adapters:")
    for device in ctx.session.paired_devices:
        print(f"  {device.id:<20} {device.label}")
    if not scan:
        return
    print("Nearby (unpaired):")
    for device in await ctx.session.discover_devices():
        print(f"  {device.id:<20} {device.label}")


async def _monitor(ctx: DashPilotContext, args: argparse.Namespace) -> None:
    if args.device:
        await ctx.session.connect(args.device)
    if not ctx.session.is_connected:
        print("No adapter connected; pass --device or enable auto-connect.", file=sys.stderr)
        return

    if args.raw:
        print(await ctx.dispatcher.query_raw(args.raw))
        return

    poller = ctx.gauge_poller([TelemetryField.SPEED]) if args.gauge else ctx.data_poller()
    done = asyncio.Event()
    seen = 0

    def on_reading(reading: TelemetryReading) -> None:
        nonlocal seen
        if reading.is_unknown:
            return
        seen += 1
        if args.json_mode:
            print(reading.model_dump_json(exclude_none=True))
        else:
            print(_format_reading(reading))
        if args.count and seen >= args.count:
            done.set()

    def on_error(exc: DashPilotError) -> None:
        print(f"cycle failed: {exc}", file=sys.stderr)

    poller.on_reading(on_reading)
    poller.on_error(on_error)
    async with poller:
        await done.wait()


async def main() -> None:
    parser = argparse.ArgumentParser(description="Print live OBD-II data from an ELM327 adapter.")
    parser.add_argument("--device", help="Adapter to connect to (port path or address)")
    parser.add_argument("--list", action="store_true", dest="list_mode", help="List adapters and exit")
    parser.add_argument("--scan", action="store_true", help="With --list, also scan for unpaired BLE adapters")
    parser.add_argument("--gauge", action="store_true", help="Poll speed only, at the gauge cadence")
    parser.add_argument("--count", type=int, default=0, help="Stop after N readings")
    parser.add_argument("--json", action="store_true", dest="json_mode", help="Print one JSON object per reading")
    parser.add_argument("--raw", metavar="PID", help="Send one mode 01 PID (e.g. 010C) and print its payload")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.WARNING)

    try:
        config = DashPilotConfig.from_env()
    except DashPilotError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        raise SystemExit(2) from exc

    async with DashPilotContext(config) as ctx:
        if ctx.session.connection_error:
            print(f"Bluetooth: {ctx.session.connection_error}", file=sys.stderr)
        try:
            if args.list_mode:
                await _list_devices(ctx, args.scan)
            else:
                await _monitor(ctx, args)
        except DashPilotError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            raise SystemExit(1) from exc


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
