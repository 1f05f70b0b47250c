"""Geographic position model."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import AliasChoices, Field, field_validator

from railwatch.ingestion.normalize import safe_float
from railwatch.models._base import FeedModel

# Threshold to distinguish epoch seconds from milliseconds.
_MS_THRESHOLD = 1_000_000_000_000


def parse_timestamp(value: Any) -> datetime | None:
    """Convert an epoch timestamp (seconds **or** milliseconds) to a UTC datetime."""
    if value is None or isinstance(value, datetime):
        return value
    ts = safe_float(value)
    if ts is None:
        return None
    if ts >= _MS_THRESHOLD:
        ts /= 1000.0
    return datetime.fromtimestamp(ts, tz=UTC)


class GeoPosition(FeedModel):
    """A point on the earth in decimal degrees.

    Parameters
    ----------
    latitude : float
        Latitude, -90..90.
    longitude : float
        Longitude, -180..180.
    accuracy : float or None
        Horizontal accuracy in metres, when the provider reports one.
    timestamp : datetime or None
        When the position was observed (UTC).
    """

    latitude: float = Field(validation_alias=AliasChoices("latitude", "lat"), ge=-90.0, le=90.0)
    longitude: float = Field(validation_alias=AliasChoices("longitude", "lon", "lng", "long"), ge=-180.0, le=180.0)
    accuracy: float | None = Field(default=None, validation_alias=AliasChoices("accuracy", "acc"), ge=0.0)
    timestamp: datetime | None = Field(default=None, validation_alias=AliasChoices("timestamp", "time", "ts"))

    @field_validator("latitude", "longitude", "accuracy", mode="before")
    @classmethod
    def _coerce_floats(cls, value: Any) -> Any:
        parsed = safe_float(value)
        # Leave unparseable input alone so pydantic reports it.
        return value if parsed is None else parsed

    @field_validator("timestamp", mode="before")
    @classmethod
    def _coerce_timestamp(cls, value: Any) -> datetime | None:
        if isinstance(value, str) and safe_float(value) is None:
            return datetime.fromisoformat(value)
        return parse_timestamp(value)

    @property
    def coordinates(self) -> tuple[float, float]:
        return (self.latitude, self.longitude)
