"""railwatch - Async live transit tracking: feed polling and nearest-station correlation."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("railwatch")
except PackageNotFoundError:
    __version__ = "0+local"
from railwatch._transport import BodyKind, HttpTransport, RequestDescriptor, ResponseEnvelope, Transport
from railwatch.config import RailwatchConfig
from railwatch.events import EventChannel
from railwatch.exceptions import (
    ConfigError,
    DuplicateSourceError,
    FetchError,
    GeolocationError,
    HttpStatusError,
    InsufficientDataError,
    NotFoundError,
    ParseError,
    RailwatchError,
    TransportError,
)
from railwatch.geo import MapWindow, NearestStation, correlate, haversine_m, map_window, nearest_station
from railwatch.geolocation import GeolocationProvider, QueueGeolocation
from railwatch.models import GeoPosition, Station, TrackLayout, Vehicle, parse_track_layout, parse_vehicles
from railwatch.registry import DataSources
from railwatch.render import MapPublisher, MapRenderer
from railwatch.scheduler import UpdateScheduler
from railwatch.sources import (
    NO_DATA,
    BusyPolicy,
    DataSource,
    PushSource,
    SourceOptions,
    SourceState,
    SourceStatus,
)
from railwatch.tracker import TransitTracker

__all__ = [
    "__version__",
    "NO_DATA",
    "BodyKind",
    "BusyPolicy",
    "ConfigError",
    "DataSource",
    "DataSources",
    "DuplicateSourceError",
    "EventChannel",
    "FetchError",
    "GeoPosition",
    "GeolocationError",
    "GeolocationProvider",
    "HttpStatusError",
    "HttpTransport",
    "InsufficientDataError",
    "MapPublisher",
    "MapRenderer",
    "MapWindow",
    "NearestStation",
    "NotFoundError",
    "ParseError",
    "PushSource",
    "QueueGeolocation",
    "RailwatchConfig",
    "RailwatchError",
    "RequestDescriptor",
    "ResponseEnvelope",
    "SourceOptions",
    "SourceState",
    "SourceStatus",
    "Station",
    "TrackLayout",
    "TransitTracker",
    "Transport",
    "TransportError",
    "UpdateScheduler",
    "Vehicle",
    "correlate",
    "haversine_m",
    "map_window",
    "nearest_station",
    "parse_track_layout",
    "parse_vehicles",
]
