"""Nearest-station correlation.

Distances are great-circle (haversine) distances on a spherical earth.
"""

from __future__ import annotations

import math
from collections.abc import Sequence

from pydantic import BaseModel, ConfigDict

from railwatch._constants import EARTH_RADIUS_M
from railwatch.exceptions import InsufficientDataError
from railwatch.models.geo import GeoPosition
from railwatch.models.station import Station

#: Smallest padding (degrees) applied around the map window.
DEFAULT_MIN_PAD_DEG = 0.002


class NearestStation(BaseModel):
    model_config = ConfigDict(frozen=True)

    station: Station
    distance_m: float


class MapWindow(BaseModel):
    """Raw map-fitting inputs: both points, their midpoint and a padded box.

    Turning this into a zoom level is up to the renderer.
    """

    model_config = ConfigDict(frozen=True)

    user: GeoPosition
    station: GeoPosition
    midpoint: GeoPosition
    south: float
    west: float
    north: float
    east: float


def haversine_m(a: GeoPosition, b: GeoPosition) -> float:
    """Great-circle distance between *a* and *b* in metres."""
    lat1, lon1 = math.radians(a.latitude), math.radians(a.longitude)
    lat2, lon2 = math.radians(b.latitude), math.radians(b.longitude)
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    s = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.asin(min(1.0, math.sqrt(s)))


def nearest_station(position: GeoPosition, stations: Sequence[Station]) -> NearestStation:
    """Return the station closest to *position*.

    Ties go to the station that comes first in *stations*.

    Raises
    ------
    InsufficientDataError
        *stations* is empty.
    """
    best: Station | None = None
    best_distance = math.inf
    for station in stations:
        distance = haversine_m(position, station.position)
        if distance < best_distance:
            best, best_distance = station, distance
    if best is None:
        raise InsufficientDataError("No stations to correlate against")
    return NearestStation(station=best, distance_m=best_distance)


def midpoint(a: GeoPosition, b: GeoPosition) -> GeoPosition:
    """Geographic midpoint of the great circle between *a* and *b*."""
    lat1, lon1 = math.radians(a.latitude), math.radians(a.longitude)
    lat2 = math.radians(b.latitude)
    dlon = math.radians(b.longitude - a.longitude)
    bx = math.cos(lat2) * math.cos(dlon)
    by = math.cos(lat2) * math.sin(dlon)
    lat = math.atan2(math.sin(lat1) + math.sin(lat2), math.hypot(math.cos(lat1) + bx, by))
    lon = lon1 + math.atan2(by, math.cos(lat1) + bx)
    lon_deg = (math.degrees(lon) + 540.0) % 360.0 - 180.0
    return GeoPosition(latitude=math.degrees(lat), longitude=lon_deg)


def map_window(
    position: GeoPosition,
    nearest: NearestStation,
    *,
    margin: float = 0.1,
    min_pad: float = DEFAULT_MIN_PAD_DEG,
) -> MapWindow:
    """Midpoint and padded bounding box covering *position* and the station."""
    target = nearest.station.position
    south, north = sorted((position.latitude, target.latitude))
    west, east = sorted((position.longitude, target.longitude))
    pad_lat = max((north - south) * margin, min_pad)
    pad_lon = max((east - west) * margin, min_pad)
    return MapWindow(
        user=position,
        station=target,
        midpoint=midpoint(position, target),
        south=max(-90.0, south - pad_lat),
        west=max(-180.0, west - pad_lon),
        north=min(90.0, north + pad_lat),
        east=min(180.0, east + pad_lon),
    )


def correlate(
    position: GeoPosition,
    stations: Sequence[Station],
    *,
    margin: float = 0.1,
) -> tuple[NearestStation, MapWindow]:
    nearest = nearest_station(position, stations)
    return nearest, map_window(position, nearest, margin=margin)
