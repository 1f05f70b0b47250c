"""Track-layout and vehicle feed decoders.

The track-layout feed is XML::

    <layout>
      <segment>
        <point lat="39.30" lon="-76.61"/>
        <point lat="39.31" lon="-76.60"/>
      </segment>
      <station id="A" name="Camden Yards" lat="39.30" lon="-76.61"/>
    </layout>

Attributes may also be given as child elements (``<name>...</name>``), and
namespaces are ignored. The vehicle feed is JSON: a list of records, or an
object holding the list under ``vehicles``/``data``/``items``/``entity``.
GTFS-realtime style entities (``{"vehicle": {"vehicle": {...}, "position":
{...}}}``) are flattened.
"""

from __future__ import annotations

import json
import logging
import xml.etree.ElementTree as ET
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError

from railwatch.exceptions import ParseError
from railwatch.ingestion.normalize import safe_float, valid_coordinates
from railwatch.models.station import Station, Vehicle

_logger = logging.getLogger(__name__)

_SEGMENT_TAGS = frozenset({"segment", "linestring", "path"})
_POINT_TAGS = frozenset({"point", "coord", "node", "pt"})
_STATION_TAGS = frozenset({"station", "stop"})
_VEHICLE_LIST_KEYS = ("vehicles", "data", "items", "entity")

Coordinate = tuple[float, float]


class TrackLayout(BaseModel):
    """Ordered line segments and stations of the network."""

    model_config = ConfigDict(frozen=True)

    segments: tuple[tuple[Coordinate, ...], ...] = ()
    stations: tuple[Station, ...] = ()


def _local(tag: Any) -> str:
    if not isinstance(tag, str):
        return ""
    return tag.rsplit("}", 1)[-1].lower()


def _element_record(element: ET.Element) -> dict[str, Any]:
    """Merge an element's attributes with its simple child elements."""
    record: dict[str, Any] = {_local(key): value for key, value in element.attrib.items()}
    for child in element:
        if len(child) == 0 and child.text is not None:
            record.setdefault(_local(child.tag), child.text.strip())
    return record


def _point(element: ET.Element) -> Coordinate | None:
    record = _element_record(element)
    latitude = safe_float(record.get("lat", record.get("latitude")))
    longitude = safe_float(record.get("lon", record.get("lng", record.get("longitude"))))
    if not valid_coordinates(latitude, longitude):
        return None
    return (latitude, longitude)  # type: ignore[return-value]


def _as_element(body: Any) -> ET.Element:
    if isinstance(body, ET.Element):
        return body
    if isinstance(body, (str, bytes)):
        try:
            return ET.fromstring(body)
        except ET.ParseError as exc:
            raise ParseError(f"Track layout is not valid XML: {exc}") from exc
    raise ParseError(f"Track layout must be XML, got {type(body).__name__}")


def parse_track_layout(body: Any) -> TrackLayout:
    """Decode a track-layout document into ordered segments and stations.

    Segments with fewer than two valid points and stations without a usable
    id or position are skipped.

    Raises
    ------
    ParseError
        *body* is not an XML document.
    """
    root = _as_element(body)
    segments: list[tuple[Coordinate, ...]] = []
    stations: list[Station] = []

    for element in root.iter():
        tag = _local(element.tag)
        if tag in _SEGMENT_TAGS:
            points = [p for child in element if _local(child.tag) in _POINT_TAGS if (p := _point(child)) is not None]
            if len(points) >= 2:
                segments.append(tuple(points))
            else:
                _logger.debug("Skipping segment with %d usable point(s)", len(points))
        elif tag in _STATION_TAGS:
            record = _element_record(element)
            try:
                stations.append(Station.model_validate(record))
            except ValidationError as exc:
                _logger.debug("Skipping invalid station record %s: %s", record, exc)

    return TrackLayout(segments=tuple(segments), stations=tuple(stations))


def _flatten_entity(record: dict[str, Any]) -> dict[str, Any]:
    nested = record.get("vehicle")
    if not isinstance(nested, dict):
        return record
    flat: dict[str, Any] = {}
    descriptor = nested.get("vehicle")
    if isinstance(descriptor, dict):
        flat.update(descriptor)
    position = nested.get("position")
    if isinstance(position, dict):
        flat.update(position)
    trip = nested.get("trip")
    if isinstance(trip, dict) and "routeId" in trip:
        flat.setdefault("route", trip["routeId"])
    flat.setdefault("id", record.get("id"))
    return flat


def parse_vehicles(body: Any) -> list[Vehicle]:
    """Decode a vehicle-position document into active vehicles.

    Raises
    ------
    ParseError
        *body* is neither a vehicle list nor an object holding one.
    """
    if isinstance(body, (str, bytes)):
        try:
            body = json.loads(body)
        except json.JSONDecodeError as exc:
            raise ParseError(f"Vehicle feed is not valid JSON: {exc}") from exc

    records: Any = body
    if isinstance(body, dict):
        records = next((body[key] for key in _VEHICLE_LIST_KEYS if isinstance(body.get(key), list)), None)
    if not isinstance(records, list):
        raise ParseError(f"Vehicle feed has no vehicle list (got {type(body).__name__})")

    vehicles: list[Vehicle] = []
    for record in records:
        if not isinstance(record, dict):
            continue
        try:
            vehicles.append(Vehicle.model_validate(_flatten_entity(record)))
        except ValidationError as exc:
            _logger.debug("Skipping invalid vehicle record: %s", exc.errors()[:1])
    return vehicles
