"""
Data Source Selector for Seaside Beacon

Merges the normalized provider records for the target hour into one
AtmosphericSnapshot, with per-field attribution.

PRIORITY (overlapping fields):
- cloud_cover:    Open-Meteo first (model total cloud), AccuWeather fallback
- humidity, visibility_km, temperature_c, wind_speed_kmh:
                  AccuWeather first (station-calibrated), Open-Meteo fallback

Everything else comes from its only source. A field absent from every
source stays None and is attributed to None.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Mapping, Optional, Tuple

from seaside_beacon.models import AtmosphericSnapshot

logger = logging.getLogger(__name__)

ACCUWEATHER = "accuweather"
OPEN_METEO = "open_meteo"

# field -> providers in order of preference
FIELD_PRIORITY: Dict[str, Tuple[str, ...]] = {
    "cloud_cover": (OPEN_METEO, ACCUWEATHER),
    "humidity": (ACCUWEATHER, OPEN_METEO),
    "visibility_km": (ACCUWEATHER, OPEN_METEO),
    "temperature_c": (ACCUWEATHER, OPEN_METEO),
    "wind_speed_kmh": (ACCUWEATHER, OPEN_METEO),
}

ACCUWEATHER_HOURLY_FIELDS = ("precip_probability", "has_precipitation", "weather_description", "ceiling_m")
ACCUWEATHER_DAILY_FIELDS = ("night_hours_of_rain", "sunrise")
OPEN_METEO_FIELDS = ("high_cloud", "mid_cloud", "low_cloud", "pressure_series")
AIR_QUALITY_FIELDS = ("aod", "pm2_5", "pm10")


class DataSourceSelector:
    """Fixed-priority field merge across providers."""

    def __init__(self, priority: Optional[Mapping[str, Tuple[str, ...]]] = None):
        self.priority = dict(priority or FIELD_PRIORITY)

    def merge(
        self,
        accuweather_hourly: Optional[Mapping[str, Any]],
        accuweather_daily: Optional[Mapping[str, Any]],
        open_meteo_forecast: Optional[Mapping[str, Any]],
        air_quality: Optional[Mapping[str, Any]],
        target_time: Optional[datetime] = None,
    ) -> Tuple[AtmosphericSnapshot, Dict[str, Optional[str]]]:
        """
        Build the snapshot for one point.

        Args:
            accuweather_hourly: Parsed AccuWeather target-hour record
            accuweather_daily: Parsed AccuWeather daily record
            open_meteo_forecast: Open-Meteo target-hour record
            air_quality: Open-Meteo air-quality target-hour record
            target_time: Sunrise target (carried into the snapshot)

        Returns:
            (snapshot, attribution) where attribution maps field -> provider
        """
        hour_sources = {
            ACCUWEATHER: accuweather_hourly or {},
            OPEN_METEO: open_meteo_forecast or {},
        }
        values: Dict[str, Any] = {}
        attribution: Dict[str, Optional[str]] = {}

        for name, order in self.priority.items():
            values[name], attribution[name] = None, None
            for provider in order:
                value = hour_sources.get(provider, {}).get(name)
                if value is not None:
                    values[name], attribution[name] = value, provider
                    break

        for names, record, provider in (
            (ACCUWEATHER_HOURLY_FIELDS, accuweather_hourly, ACCUWEATHER),
            (ACCUWEATHER_DAILY_FIELDS, accuweather_daily, ACCUWEATHER),
            (OPEN_METEO_FIELDS, open_meteo_forecast, OPEN_METEO),
            (AIR_QUALITY_FIELDS, air_quality, OPEN_METEO),
        ):
            for name in names:
                value = (record or {}).get(name)
                values[name] = value
                attribution[name] = provider if value is not None else None

        snapshot = AtmosphericSnapshot(target_time=target_time, **values)

        missing = [name for name, provider in attribution.items() if provider is None]
        if missing:
            logger.debug(f"[DataSourceSelector] No source for: {', '.join(missing)}")
        return snapshot, attribution
