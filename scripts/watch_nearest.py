#!/usr/bin/env python3
"""Watch live feeds and print the nearest station for a position.

Feed URLs come from ``RAILWATCH_TRACK_URL`` / ``RAILWATCH_VEHICLES_URL`` or
the command line. The position is fixed (``--lat``/``--lon``) and re-sent
every ``--position-interval`` seconds to mimic a geolocation stream.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from railwatch import (  # noqa: E402
    GeoPosition,
    MapWindow,
    NearestStation,
    QueueGeolocation,
    RailwatchConfig,
    TransitTracker,
)
from railwatch.sources import BaseSource  # noqa: E402


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--lat", type=float, required=True, help="Latitude of the observer")
    parser.add_argument("--lon", type=float, required=True, help="Longitude of the observer")
    parser.add_argument("--track-url", help="Track-layout XML feed URL")
    parser.add_argument("--vehicles-url", help="Vehicle-position JSON feed URL")
    parser.add_argument("--vehicle-interval", type=float, help="Seconds between vehicle fetches")
    parser.add_argument("--position-interval", type=float, default=15.0, help="Seconds between position updates")
    parser.add_argument("--duration", type=float, default=0.0, help="Stop after this many seconds (0 = forever)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


async def _feed_position(provider: QueueGeolocation, position: GeoPosition, interval: float) -> None:
    while True:
        provider.push(position)
        await asyncio.sleep(interval)


async def _run(args: argparse.Namespace) -> int:
    overrides: dict[str, object] = {}
    if args.track_url:
        overrides["track_url"] = args.track_url
    if args.vehicles_url:
        overrides["vehicles_url"] = args.vehicles_url
    if args.vehicle_interval:
        overrides["vehicle_interval"] = args.vehicle_interval
    config = RailwatchConfig.from_env(**overrides)

    provider = QueueGeolocation()
    position = GeoPosition(latitude=args.lat, longitude=args.lon)

    def on_nearest(nearest: NearestStation, window: MapWindow) -> None:
        print(
            f"nearest: {nearest.station.name} ({nearest.station.id}) "
            f"{nearest.distance_m:.0f} m, centre {window.midpoint.latitude:.5f},{window.midpoint.longitude:.5f}"
        )

    def on_change(name: str, source: BaseSource) -> None:
        print(f"source {name}: {source.status}")

    async with TransitTracker(config, geolocation=provider) as tracker:
        tracker.on("nearest", on_nearest)
        tracker.on("change", on_change)
        tracker.start()
        feeder = asyncio.create_task(_feed_position(provider, position, args.position_interval))
        try:
            if args.duration > 0:
                await asyncio.sleep(args.duration)
            else:
                await asyncio.Event().wait()
        finally:
            feeder.cancel()
            provider.close()
    return 0


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return asyncio.run(_run(args))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
