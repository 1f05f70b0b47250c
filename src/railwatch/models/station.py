"""Station and vehicle models."""

from __future__ import annotations

from typing import Any

from pydantic import AliasChoices, Field, field_validator, model_validator

from railwatch.ingestion.normalize import safe_float, safe_str
from railwatch.models._base import FeedModel
from railwatch.models.geo import GeoPosition

_LAT_KEYS = ("latitude", "lat")
_LON_KEYS = ("longitude", "lon", "lng", "long")


def _first_float(values: dict[str, Any], keys: tuple[str, ...]) -> float | None:
    for key in keys:
        parsed = safe_float(values.get(key))
        if parsed is not None:
            return parsed
    return None


def _fold_position(values: Any) -> Any:
    """Build a nested ``position`` from flat latitude/longitude keys."""
    if not isinstance(values, dict) or values.get("position") is not None:
        return values
    latitude = _first_float(values, _LAT_KEYS)
    longitude = _first_float(values, _LON_KEYS)
    if latitude is None or longitude is None:
        return values
    merged = dict(values)
    merged["position"] = {"latitude": latitude, "longitude": longitude}
    return merged


class Station(FeedModel):
    """A station parsed from the track-layout feed."""

    id: str = Field(validation_alias=AliasChoices("id", "stationId", "station_id", "code"))
    name: str = Field(default="", validation_alias=AliasChoices("name", "title", "label"))
    position: GeoPosition

    @model_validator(mode="before")
    @classmethod
    def _flat_coordinates(cls, values: Any) -> Any:
        return _fold_position(values)

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        return safe_str(value) or value

    @model_validator(mode="after")
    def _default_name(self) -> Station:
        if not self.name:
            object.__setattr__(self, "name", self.id)
        return self


class Vehicle(FeedModel):
    """A currently active vehicle from the vehicle-position feed."""

    id: str = Field(validation_alias=AliasChoices("id", "vehicleId", "vehicle_id", "vid"))
    position: GeoPosition
    heading: float | None = Field(default=None, validation_alias=AliasChoices("heading", "bearing", "direction"))
    route: str | None = Field(default=None, validation_alias=AliasChoices("route", "routeId", "route_id", "line"))

    @model_validator(mode="before")
    @classmethod
    def _flat_coordinates(cls, values: Any) -> Any:
        return _fold_position(values)

    @field_validator("id", "route", mode="before")
    @classmethod
    def _coerce_str(cls, value: Any) -> Any:
        return safe_str(value) or value

    @field_validator("heading", mode="before")
    @classmethod
    def _coerce_heading(cls, value: Any) -> float | None:
        return safe_float(value)
