"""Shared constants."""

from __future__ import annotations

USER_AGENT = "railwatch/1.0 (+https://github.com/railwatch/railwatch)"

#: Mean earth radius in metres (IUGG).
EARTH_RADIUS_M = 6_371_008.8

#: Registry names used by :class:`railwatch.tracker.TransitTracker`.
TRACK_SOURCE = "track"
VEHICLES_SOURCE = "vehicles"
POSITION_SOURCE = "position"

#: Event types emitted on the tracker's channel.
EVENT_CHANGE = "change"
EVENT_ERROR = "error"
EVENT_NEAREST = "nearest"
