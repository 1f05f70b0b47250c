"""Application context: wires transport, sources, correlator and scheduler."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any, TypeVar

import aiohttp

from railwatch._constants import POSITION_SOURCE, TRACK_SOURCE, VEHICLES_SOURCE
from railwatch._transport import BodyKind, HttpTransport, Transport
from railwatch.config import RailwatchConfig
from railwatch.events import EventChannel, Handler
from railwatch.exceptions import ConfigError, InsufficientDataError, RailwatchError
from railwatch.geo import MapWindow, NearestStation, correlate, nearest_station
from railwatch.geolocation import GeolocationProvider
from railwatch.models.geo import GeoPosition
from railwatch.models.station import Station, Vehicle
from railwatch.models.track import TrackLayout, parse_track_layout, parse_vehicles
from railwatch.registry import DataSources
from railwatch.render import MapPublisher, MapRenderer
from railwatch.scheduler import UpdateScheduler
from railwatch.sources import BaseSource, DataSource, PushSource, SourceOptions

_logger = logging.getLogger(__name__)

_S = TypeVar("_S", bound=BaseSource)


class TransitTracker:
    """Live transit tracker.

    Usage::

        async with TransitTracker(config, geolocation=provider) as tracker:
            tracker.on("nearest", lambda nearest, window: print(nearest.station.name))
            tracker.start()
            ...

    Entering the context registers the ``"track"`` (XML, fetched once),
    ``"vehicles"`` (JSON, polled) and ``"position"`` (pushed) sources; the
    two feeds start fetching immediately.
    """

    def __init__(
        self,
        config: RailwatchConfig,
        *,
        session: aiohttp.ClientSession | None = None,
        transport: Transport | None = None,
        geolocation: GeolocationProvider | None = None,
        renderer: MapRenderer | None = None,
    ) -> None:
        self._config = config
        self._external_session = session is not None
        self._http_session = session
        self._transport = transport
        self._geolocation = geolocation
        self._renderer = renderer
        self.events = EventChannel()
        self._sources: DataSources | None = None
        self._scheduler: UpdateScheduler | None = None
        self._layout_cache: tuple[Any, TrackLayout] | None = None

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> TransitTracker:
        if not self._config.track_url or not self._config.vehicles_url:
            raise ConfigError("track_url and vehicles_url must both be configured")
        if self._transport is None:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            self._transport = HttpTransport(
                self._http_session,
                default_headers={"user-agent": self._config.user_agent},
            )

        if self._renderer is not None:
            MapPublisher(self.events, self._renderer)

        sources = DataSources(
            self._transport,
            self.events,
            replace_duplicates=self._config.replace_duplicates,
        )
        sources.add_source(
            TRACK_SOURCE,
            self._config.track_url,
            SourceOptions(body_kind=BodyKind.XML, auto_start=True, busy_policy=self._config.busy_policy),
        )
        vehicles = sources.add_source(
            VEHICLES_SOURCE,
            self._config.vehicles_url,
            SourceOptions(body_kind=BodyKind.JSON, auto_start=True, busy_policy=self._config.busy_policy),
        )
        position = sources.add_push_source(POSITION_SOURCE)
        self._sources = sources

        self._scheduler = UpdateScheduler(
            vehicles,
            position,
            self.stations,
            self.events,
            self._geolocation,
            vehicle_interval=self._config.vehicle_interval,
            geolocation_retry_interval=self._config.geolocation_retry_interval,
            map_margin=self._config.map_margin,
        )
        return self

    async def __aexit__(self, *exc: Any) -> None:
        try:
            if self._scheduler is not None:
                await self._scheduler.stop()
                self._scheduler = None
            if self._sources is not None:
                await self._sources.cancel_all()
        finally:
            if not self._external_session and self._http_session is not None:
                await self._http_session.close()
                self._http_session = None
            self._sources = None

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _require_sources(self) -> DataSources:
        if self._sources is None:
            raise RailwatchError("Tracker not initialized. Use 'async with TransitTracker(...) as tracker:'")
        return self._sources

    def _require_scheduler(self) -> UpdateScheduler:
        if self._scheduler is None:
            raise RailwatchError("Tracker not initialized. Use 'async with TransitTracker(...) as tracker:'")
        return self._scheduler

    def _typed_source(self, name: str, kind: type[_S]) -> _S:
        source = self._require_sources().source(name)
        if not isinstance(source, kind):
            raise RailwatchError(f"Source {name!r} is a {type(source).__name__}, expected {kind.__name__}")
        return source

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def sources(self) -> DataSources:
        return self._require_sources()

    @property
    def scheduler(self) -> UpdateScheduler:
        return self._require_scheduler()

    def on(self, event_type: str, handler: Handler) -> None:
        self.events.on(event_type, handler)

    def start(self) -> None:
        """Start vehicle polling and, with a provider, position tracking."""
        self._require_scheduler().start()

    def get(self, name: str) -> Any:
        return self._require_sources().get(name)

    def layout(self) -> TrackLayout:
        """Decoded track layout from the last successful track fetch.

        Raises
        ------
        InsufficientDataError
            The track layout has not been loaded yet.
        ParseError
            The cached body is not a track-layout document.
        """
        source = self._require_sources().source(TRACK_SOURCE)
        if not source.has_data:
            raise InsufficientDataError("Track layout has not been loaded yet")
        data = source.data
        if self._layout_cache is not None and self._layout_cache[0] is data:
            return self._layout_cache[1]
        layout = parse_track_layout(data)
        self._layout_cache = (data, layout)
        return layout

    def stations(self) -> Sequence[Station]:
        return self.layout().stations

    def vehicles(self) -> list[Vehicle]:
        """Vehicles from the last successful vehicle fetch (empty before one)."""
        source = self._require_sources().source(VEHICLES_SOURCE)
        if not source.has_data:
            return []
        return parse_vehicles(source.data)

    def position(self) -> GeoPosition | None:
        source = self._require_sources().source(POSITION_SOURCE)
        return source.data if source.has_data else None

    def nearest(self, position: GeoPosition) -> NearestStation:
        return nearest_station(position, self.stations())

    def window(self, position: GeoPosition) -> tuple[NearestStation, MapWindow]:
        return correlate(position, self.stations(), margin=self._config.map_margin)

    def track_source(self) -> DataSource:
        return self._typed_source(TRACK_SOURCE, DataSource)

    def vehicles_source(self) -> DataSource:
        return self._typed_source(VEHICLES_SOURCE, DataSource)

    def position_source(self) -> PushSource:
        return self._typed_source(POSITION_SOURCE, PushSource)
