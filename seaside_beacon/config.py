"""
Configuration for Seaside Beacon

Values come from the environment (a local .env is loaded via python-dotenv).
Cache TTLs follow each upstream's real publication cadence:

- AccuWeather hourly: 30 min   (12-hour window, refreshed through the night)
- AccuWeather daily:  2 h      (sunrise times, overnight rain hours)
- Open-Meteo forecast / air quality: 6 h (one model cycle)
- Prediction layer:   10 min   (caller-side score cache)
"""

import os
from dataclasses import dataclass, field
from datetime import time
from typing import Dict, Optional, Tuple

from dotenv import load_dotenv

CHENNAI_LOCATION_KEY = "206671"


@dataclass(frozen=True)
class ForecastPoint:
    """A logical point (beach) served by the forecaster."""
    key: str
    name: str
    lat: float
    lon: float
    location_key: str  # AccuWeather location key


DEFAULT_POINTS: Dict[str, ForecastPoint] = {
    "marina": ForecastPoint("marina", "Marina Beach", 13.0499, 80.2824, CHENNAI_LOCATION_KEY),
    "elliot": ForecastPoint("elliot", "Elliot's Beach", 13.0067, 80.2669, CHENNAI_LOCATION_KEY),
    "covelong": ForecastPoint("covelong", "Covelong Beach", 12.7925, 80.2514, CHENNAI_LOCATION_KEY),
    "thiruvanmiyur": ForecastPoint("thiruvanmiyur", "Thiruvanmiyur Beach", 12.9826, 80.2589, CHENNAI_LOCATION_KEY),
}


@dataclass(frozen=True)
class Trigger:
    """A wall-clock warmup trigger."""
    at: time
    label: str
    providers: Tuple[str, ...]


# Model cycles + publication lag, local time.
# Open-Meteo GFS/ICON runs land roughly 4-4.5h after 00/06/12/18Z;
# AccuWeather's 12-hour window first covers 06:00 at 18:00.
DEFAULT_WARMUP_TRIGGERS: Tuple[Trigger, ...] = (
    Trigger(time(17, 30), "open-meteo-06z", ("open_meteo",)),
    Trigger(time(18, 5), "accuweather-evening", ("accuweather",)),
    Trigger(time(22, 0), "open-meteo-12z", ("open_meteo",)),
    Trigger(time(3, 45), "accuweather-predawn", ("accuweather",)),
    Trigger(time(4, 0), "open-meteo-18z", ("open_meteo",)),
)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ValueError(f"Environment variable {name} must be numeric, got {raw!r}") from e


@dataclass
class Settings:
    """Runtime settings. Build with Settings.from_env() in entry points."""

    accuweather_api_key: Optional[str] = None
    accuweather_base_url: str = "https://dataservice.accuweather.com"
    open_meteo_forecast_url: str = "https://api.open-meteo.com/v1/forecast"
    open_meteo_air_quality_url: str = "https://air-quality-api.open-meteo.com/v1/air-quality"
    # Reverse proxy dodging shared-IP throttling; exposes /forecast and /air-quality
    open_meteo_proxy_url: Optional[str] = None
    user_agent: str = "SeasideBeacon/1.0"

    timezone: str = "Asia/Kolkata"
    target_hour: int = 6
    # Predictions are served for the 18:00-06:00 local window
    prediction_open_hour: int = 18
    forecast_days: int = 2
    pressure_lookback_hours: int = 6

    request_timeout_seconds: float = 10.0
    grid_resolution_deg: float = 0.25

    accuweather_hourly_ttl: float = 30 * 60
    accuweather_daily_ttl: float = 2 * 60 * 60
    open_meteo_forecast_ttl: float = 6 * 60 * 60
    open_meteo_air_quality_ttl: float = 6 * 60 * 60
    prediction_ttl: float = 10 * 60
    failure_ttl: float = 90.0

    log_level: str = "INFO"
    points: Dict[str, ForecastPoint] = field(default_factory=lambda: dict(DEFAULT_POINTS))
    warmup_triggers: Tuple[Trigger, ...] = DEFAULT_WARMUP_TRIGGERS

    @classmethod
    def from_env(cls, load_env_file: bool = True) -> "Settings":
        if load_env_file:
            load_dotenv()

        return cls(
            accuweather_api_key=os.getenv("ACCUWEATHER_API_KEY") or None,
            open_meteo_proxy_url=(os.getenv("OPENMETEO_PROXY_URL") or "").rstrip("/") or None,
            timezone=os.getenv("SEASIDE_TIMEZONE", cls.timezone),
            request_timeout_seconds=_env_float("REQUEST_TIMEOUT_SECONDS", cls.request_timeout_seconds),
            grid_resolution_deg=_env_float("GRID_RESOLUTION_DEG", cls.grid_resolution_deg),
            accuweather_hourly_ttl=_env_float("ACCUWEATHER_HOURLY_TTL_SECONDS", cls.accuweather_hourly_ttl),
            accuweather_daily_ttl=_env_float("ACCUWEATHER_DAILY_TTL_SECONDS", cls.accuweather_daily_ttl),
            open_meteo_forecast_ttl=_env_float("OPENMETEO_FORECAST_TTL_SECONDS", cls.open_meteo_forecast_ttl),
            open_meteo_air_quality_ttl=_env_float("OPENMETEO_AIR_QUALITY_TTL_SECONDS", cls.open_meteo_air_quality_ttl),
            prediction_ttl=_env_float("PREDICTION_TTL_SECONDS", cls.prediction_ttl),
            failure_ttl=_env_float("FAILURE_TTL_SECONDS", cls.failure_ttl),
            log_level=os.getenv("LOG_LEVEL", cls.log_level),
        )
