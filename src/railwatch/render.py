"""Map rendering collaborator interface.

The renderer only consumes data; it never feeds anything back into the
tracker. :class:`MapPublisher` translates channel events into renderer
calls.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any, Protocol

from railwatch._constants import EVENT_CHANGE, EVENT_NEAREST, TRACK_SOURCE, VEHICLES_SOURCE
from railwatch.events import EventChannel
from railwatch.exceptions import ParseError
from railwatch.geo import MapWindow, NearestStation
from railwatch.models.station import Station, Vehicle
from railwatch.models.track import Coordinate, parse_track_layout, parse_vehicles
from railwatch.sources import BaseSource

_logger = logging.getLogger(__name__)


class MapRenderer(Protocol):
    def show_stations(self, stations: Sequence[Station]) -> None:
        ...

    def show_segments(self, segments: Sequence[Sequence[Coordinate]]) -> None:
        ...

    def show_vehicles(self, vehicles: Sequence[Vehicle]) -> None:
        ...

    def fit(self, window: MapWindow) -> None:
        ...


class MapPublisher:
    """Forward decoded feed data and correlation results to a renderer.

    Only successful updates are forwarded; on a failed update the renderer
    keeps whatever it last showed.
    """

    def __init__(
        self,
        channel: EventChannel,
        renderer: MapRenderer,
        *,
        track_source: str = TRACK_SOURCE,
        vehicles_source: str = VEHICLES_SOURCE,
    ) -> None:
        self._renderer = renderer
        self._track_source = track_source
        self._vehicles_source = vehicles_source
        channel.on(EVENT_CHANGE, self._on_change)
        channel.on(EVENT_NEAREST, self._on_nearest)

    def _on_change(self, name: str, source: BaseSource) -> None:
        if source.error is not None or not source.has_data:
            return
        try:
            if name == self._track_source:
                layout = parse_track_layout(source.data)
                self._renderer.show_segments(layout.segments)
                self._renderer.show_stations(layout.stations)
            elif name == self._vehicles_source:
                self._renderer.show_vehicles(parse_vehicles(source.data))
        except ParseError as exc:
            _logger.warning("Not rendering %s: %s", name, exc)

    def _on_nearest(self, nearest: NearestStation, window: MapWindow, *_: Any) -> None:
        self._renderer.fit(window)
