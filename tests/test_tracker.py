from __future__ import annotations

import asyncio
import dataclasses
import json
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

import pytest

from railwatch._transport import RequestDescriptor, ResponseEnvelope, parse_body
from railwatch.config import RailwatchConfig
from railwatch.exceptions import ConfigError, HttpStatusError, InsufficientDataError, NotFoundError, RailwatchError
from railwatch.geo import MapWindow
from railwatch.geolocation import QueueGeolocation
from railwatch.models.geo import GeoPosition
from railwatch.models.station import Station, Vehicle
from railwatch.models.track import Coordinate
from railwatch.sources import SourceStatus
from railwatch.tracker import TransitTracker

TRACK_URL = "https://feeds.example.com/track.xml"
VEHICLES_URL = "https://feeds.example.com/vehicles.json"

TRACK_XML = """<layout>
  <segment><point lat="39.28" lon="-76.62"/><point lat="39.30" lon="-76.61"/></segment>
  <station id="A" name="Camden Yards" lat="39.30" lon="-76.61"/>
  <station id="B" name="Timonium" lat="39.40" lon="-76.50"/>
</layout>"""

USER = GeoPosition(latitude=39.31, longitude=-76.60)


@dataclass
class FakeFeedBackend:
    vehicles: list[dict[str, Any]] = field(default_factory=lambda: [{"id": "T1", "lat": 39.29, "lon": -76.615}])
    track_status: int = 200
    calls: dict[str, int] = field(default_factory=dict)

    async def fetch(self, request: RequestDescriptor) -> ResponseEnvelope:
        self.calls[request.url] = self.calls.get(request.url, 0) + 1
        await asyncio.sleep(0)
        if request.url == TRACK_URL:
            status, raw = self.track_status, TRACK_XML
        elif request.url == VEHICLES_URL:
            status, raw = 200, json.dumps({"vehicles": self.vehicles})
        else:
            raise AssertionError(f"Unexpected URL in fake backend: {request.url}")
        envelope = ResponseEnvelope(
            status_code=status,
            status_text="OK" if status == 200 else "Error",
            headers={},
            raw=raw,
            parsed=parse_body(raw, request.body_kind),
        )
        if status != 200:
            raise HttpStatusError(f"HTTP {status}", status_code=status, url=request.url, envelope=envelope)
        return envelope


@dataclass
class RecordingRenderer:
    stations: list[Sequence[Station]] = field(default_factory=list)
    segments: list[Sequence[Sequence[Coordinate]]] = field(default_factory=list)
    vehicles: list[Sequence[Vehicle]] = field(default_factory=list)
    windows: list[MapWindow] = field(default_factory=list)

    def show_stations(self, stations: Sequence[Station]) -> None:
        self.stations.append(stations)

    def show_segments(self, segments: Sequence[Sequence[Coordinate]]) -> None:
        self.segments.append(segments)

    def show_vehicles(self, vehicles: Sequence[Vehicle]) -> None:
        self.vehicles.append(vehicles)

    def fit(self, window: MapWindow) -> None:
        self.windows.append(window)


@pytest.fixture
def config() -> RailwatchConfig:
    return RailwatchConfig(
        track_url=TRACK_URL,
        vehicles_url=VEHICLES_URL,
        vehicle_interval=3600.0,
        geolocation_retry_interval=0.0,
    )


async def _loaded(tracker: TransitTracker) -> None:
    await tracker.track_source().wait_idle()
    await tracker.vehicles_source().wait_idle()


@pytest.mark.asyncio
async def test_feeds_load_on_enter(config: RailwatchConfig) -> None:
    backend = FakeFeedBackend()
    async with TransitTracker(config, transport=backend) as tracker:
        await _loaded(tracker)

        assert [s.id for s in tracker.stations()] == ["A", "B"]
        assert len(tracker.layout().segments) == 1
        assert tracker.layout() is tracker.layout()
        assert [v.id for v in tracker.vehicles()] == ["T1"]
        assert tracker.nearest(USER).station.name == "Camden Yards"
        assert tracker.position() is None
        assert sorted(tracker.sources.names()) == ["position", "track", "vehicles"]

    assert backend.calls == {TRACK_URL: 1, VEHICLES_URL: 1}


@pytest.mark.asyncio
async def test_position_stream_drives_nearest_and_renderer(config: RailwatchConfig) -> None:
    provider = QueueGeolocation()
    renderer = RecordingRenderer()
    nearest_names: list[str] = []

    async with TransitTracker(config, transport=FakeFeedBackend(), geolocation=provider, renderer=renderer) as tracker:
        tracker.on("nearest", lambda nearest, _window: nearest_names.append(nearest.station.name))
        await _loaded(tracker)
        tracker.start()

        provider.push(USER)
        provider.push(GeoPosition(latitude=39.41, longitude=-76.49))
        await asyncio.sleep(0.05)
        await tracker.scheduler.join()

        assert tracker.position() == GeoPosition(latitude=39.41, longitude=-76.49)

    assert nearest_names == ["Camden Yards", "Timonium"]
    assert [s.id for s in renderer.stations[0]] == ["A", "B"]
    assert renderer.segments[0] == (((39.28, -76.62), (39.30, -76.61)),)
    assert [v.id for v in renderer.vehicles[0]] == ["T1"]
    assert [w.station.latitude for w in renderer.windows] == [39.30, 39.40]


@pytest.mark.asyncio
async def test_track_failure_leaves_correlation_unavailable(config: RailwatchConfig) -> None:
    backend = FakeFeedBackend(track_status=503)
    async with TransitTracker(config, transport=backend) as tracker:
        await _loaded(tracker)

        assert tracker.track_source().status == SourceStatus.FAILED
        assert isinstance(tracker.get("track"), HttpStatusError)
        with pytest.raises(InsufficientDataError):
            tracker.nearest(USER)
        # Vehicles are unaffected by the track failure.
        assert tracker.vehicles_source().status == SourceStatus.FRESH


@pytest.mark.asyncio
async def test_vehicle_refresh_replaces_vehicle_list(config: RailwatchConfig) -> None:
    backend = FakeFeedBackend()
    async with TransitTracker(config, transport=backend) as tracker:
        await _loaded(tracker)
        backend.vehicles = [{"id": "T2", "lat": 39.35, "lon": -76.55}, {"id": "T3", "lat": 39.36, "lon": -76.54}]

        await tracker.vehicles_source().refresh()

        assert [v.id for v in tracker.vehicles()] == ["T2", "T3"]


@pytest.mark.asyncio
async def test_unknown_source_raises_not_found(config: RailwatchConfig) -> None:
    async with TransitTracker(config, transport=FakeFeedBackend()) as tracker:
        with pytest.raises(NotFoundError):
            tracker.get("buses")


@pytest.mark.asyncio
async def test_missing_urls_rejected() -> None:
    with pytest.raises(ConfigError):
        async with TransitTracker(RailwatchConfig(), transport=FakeFeedBackend()):
            pass


def test_use_before_enter_raises(config: RailwatchConfig) -> None:
    tracker = TransitTracker(config, transport=FakeFeedBackend())
    with pytest.raises(RailwatchError):
        tracker.get("track")
    with pytest.raises(RailwatchError):
        tracker.start()


@pytest.mark.asyncio
async def test_replaced_source_of_wrong_kind_rejected(config: RailwatchConfig) -> None:
    config = dataclasses.replace(config, replace_duplicates=True)
    async with TransitTracker(config, transport=FakeFeedBackend()) as tracker:
        await _loaded(tracker)
        tracker.sources.add_push_source("track")

        with pytest.raises(RailwatchError, match="expected DataSource"):
            tracker.track_source()
        assert tracker.position_source().name == "position"
