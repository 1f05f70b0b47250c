"""Data models for feed payloads."""

from railwatch.models._base import FeedModel
from railwatch.models.geo import GeoPosition, parse_timestamp
from railwatch.models.station import Station, Vehicle
from railwatch.models.track import TrackLayout, parse_track_layout, parse_vehicles

__all__ = [
    "FeedModel",
    "GeoPosition",
    "Station",
    "TrackLayout",
    "Vehicle",
    "parse_timestamp",
    "parse_track_layout",
    "parse_vehicles",
]
