"""Tracker configuration for railwatch."""

from __future__ import annotations

import dataclasses
import os
from typing import Any

from railwatch._constants import USER_AGENT
from railwatch.exceptions import ConfigError
from railwatch.sources import BusyPolicy


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_float(name: str, value: str) -> float:
    try:
        result = float(value)
    except ValueError as exc:
        raise ConfigError(f"{name} must be a number, got {value!r}") from exc
    if result < 0:
        raise ConfigError(f"{name} must not be negative, got {value!r}")
    return result


@dataclasses.dataclass(frozen=True)
class RailwatchConfig:
    """Tracker configuration.

    Parameters
    ----------
    track_url : str
        URL of the XML track-layout feed (segments and stations).
    vehicles_url : str
        URL of the JSON vehicle-position feed.
    vehicle_interval : float
        Seconds between vehicle-position fetches.
    geolocation_retry_interval : float
        Seconds to wait before resubscribing after a geolocation error.
    busy_policy : BusyPolicy
        What a data source does with a fetch issued while one is in flight.
    replace_duplicates : bool
        Whether registering an existing source name replaces the old source
        instead of raising :class:`~railwatch.exceptions.DuplicateSourceError`.
    map_margin : float
        Fraction of the user/station span added on each side of the map window.
    user_agent : str
        ``User-Agent`` header sent with every feed request.
    """

    track_url: str = ""
    vehicles_url: str = ""
    vehicle_interval: float = 10.0
    geolocation_retry_interval: float = 30.0
    busy_policy: BusyPolicy = BusyPolicy.DROP
    replace_duplicates: bool = False
    map_margin: float = 0.1
    user_agent: str = USER_AGENT

    def __post_init__(self) -> None:
        if self.vehicle_interval <= 0:
            raise ConfigError("vehicle_interval must be positive")
        if self.geolocation_retry_interval < 0:
            raise ConfigError("geolocation_retry_interval must not be negative")
        if self.map_margin < 0:
            raise ConfigError("map_margin must not be negative")

    @classmethod
    def from_env(cls, **overrides: Any) -> RailwatchConfig:
        """Create configuration from ``RAILWATCH_*`` environment variables.

        Explicit keyword arguments override environment values.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        _ENV_STR_MAP = {
            "RAILWATCH_TRACK_URL": "track_url",
            "RAILWATCH_VEHICLES_URL": "vehicles_url",
            "RAILWATCH_USER_AGENT": "user_agent",
        }
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        _ENV_FLOAT_MAP = {
            "RAILWATCH_VEHICLE_INTERVAL": "vehicle_interval",
            "RAILWATCH_GEOLOCATION_RETRY": "geolocation_retry_interval",
            "RAILWATCH_MAP_MARGIN": "map_margin",
        }
        for env_key, field_name in _ENV_FLOAT_MAP.items():
            val = env.get(env_key)
            if val is not None and field_name not in overrides:
                config_kwargs[field_name] = _env_float(env_key, val)

        policy_env = env.get("RAILWATCH_BUSY_POLICY")
        if policy_env is not None and "busy_policy" not in overrides:
            try:
                config_kwargs["busy_policy"] = BusyPolicy(policy_env.strip().lower())
            except ValueError as exc:
                raise ConfigError(f"RAILWATCH_BUSY_POLICY must be 'drop' or 'queue', got {policy_env!r}") from exc

        if "replace_duplicates" not in overrides:
            config_kwargs["replace_duplicates"] = _env_bool(env.get("RAILWATCH_REPLACE_DUPLICATES"), False)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
