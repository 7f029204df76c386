"""
Open-Meteo Provider for Seaside Beacon

Coordinate-grid model API (no key). Keyed by GridCell so every beach in one
cell shares a single request. Optionally reached through a reverse proxy
(OPENMETEO_PROXY_URL) because the hosting platform's shared egress IP gets
throttled.

Endpoints:
- forecast:    multi-level cloud, mean-sea-level pressure, visibility, humidity
- air_quality: aerosol optical depth, PM2.5, PM10

Both update once per model cycle (6 h TTL).
"""

import logging
from datetime import datetime
from typing import Any, Hashable, List, Optional, TypedDict

import pandas as pd

from seaside_beacon.errors import PARSE_ERRORS, MalformedResponseError
from seaside_beacon.providers.base import ProviderClient

logger = logging.getLogger(__name__)

FORECAST_FIELDS = [
    "cloud_cover",
    "cloud_cover_low",
    "cloud_cover_mid",
    "cloud_cover_high",
    "pressure_msl",
    "visibility",
    "relative_humidity_2m",
    "temperature_2m",
    "wind_speed_10m",
]

AIR_QUALITY_FIELDS = ["aerosol_optical_depth", "pm2_5", "pm10"]

# Rows are on the hour; a neighbouring row is not the target hour
TARGET_TOLERANCE = pd.Timedelta(minutes=5)


class OpenMeteoHour(TypedDict):
    time: str
    cloud_cover: Optional[float]
    high_cloud: Optional[float]
    mid_cloud: Optional[float]
    low_cloud: Optional[float]
    pressure_series: Optional[List[float]]
    visibility_km: Optional[float]
    humidity: Optional[float]
    temperature_c: Optional[float]
    wind_speed_kmh: Optional[float]


class AirQualityHour(TypedDict):
    time: str
    aod: Optional[float]
    pm2_5: Optional[float]
    pm10: Optional[float]


class OpenMeteoClient(ProviderClient):
    """
    Provider for Open-Meteo forecast and air-quality data.
    """

    NAME = "open_meteo"
    FORECAST_URL = "https://api.open-meteo.com/v1/forecast"
    AIR_QUALITY_URL = "https://air-quality-api.open-meteo.com/v1/air-quality"
    ENDPOINT_TTLS = {
        "forecast": 6 * 60 * 60,
        "air_quality": 6 * 60 * 60,
    }

    def __init__(
        self,
        proxy_url: Optional[str] = None,
        forecast_url: Optional[str] = None,
        air_quality_url: Optional[str] = None,
        timezone: str = "Asia/Kolkata",
        forecast_days: int = 2,
        **kwargs: Any,
    ):
        super().__init__(**kwargs)
        if proxy_url:
            proxy_url = proxy_url.rstrip("/")
            self.urls = {
                "forecast": f"{proxy_url}/forecast",
                "air_quality": f"{proxy_url}/air-quality",
            }
            logger.info(f"[OpenMeteoClient] Using proxy {proxy_url}")
        else:
            self.urls = {
                "forecast": forecast_url or self.FORECAST_URL,
                "air_quality": air_quality_url or self.AIR_QUALITY_URL,
            }
            logger.info("[OpenMeteoClient] Direct (shared IP limits apply)")
        self.timezone = timezone
        self.forecast_days = forecast_days

    async def _request(self, endpoint: str, key: Hashable) -> Any:
        fields = FORECAST_FIELDS if endpoint == "forecast" else AIR_QUALITY_FIELDS
        params = {
            **key.as_params(),
            "hourly": ",".join(fields),
            "timezone": self.timezone,
            "forecast_days": self.forecast_days,
        }

        client = await self._get_client()
        logger.debug(f"[OpenMeteoClient] GET {self.urls[endpoint]} params={params}")
        resp = await client.get(self.urls[endpoint], params=params)
        resp.raise_for_status()
        data = resp.json()

        times = (data.get("hourly") or {}).get("time") if isinstance(data, dict) else None
        if not times:
            raise MalformedResponseError(f"[{self.NAME}] {endpoint} response has no hourly data")
        logger.info(f"[OpenMeteoClient] Received {len(times)} hourly {endpoint} records for {key}")
        return data


def hourly_frame(payload: dict) -> pd.DataFrame:
    """
    Build a UTC-indexed DataFrame from an Open-Meteo hourly block.

    Open-Meteo returns local wall-clock times plus utc_offset_seconds;
    columns whose length does not match the time axis are dropped.
    """
    hourly = payload.get("hourly") or {}
    times = hourly.get("time") or []
    if not times:
        raise MalformedResponseError("[open_meteo] Payload has no hourly time axis")

    columns = {
        name: values for name, values in hourly.items()
        if name != "time" and isinstance(values, list) and len(values) == len(times)
    }
    offset = pd.Timedelta(seconds=payload.get("utc_offset_seconds", 0) or 0)
    index = (pd.to_datetime(times) - offset).tz_localize("UTC")

    df = pd.DataFrame(columns, index=index)
    if not df.empty:
        df = df.apply(pd.to_numeric, errors="coerce")
    return df.sort_index()


def _locate(df: pd.DataFrame, target: datetime) -> pd.Timestamp:
    target_ts = pd.Timestamp(target).tz_convert("UTC")
    pos = df.index.get_indexer([target_ts], method="nearest")[0]
    if pos < 0 or abs(df.index[pos] - target_ts) > TARGET_TOLERANCE:
        raise MalformedResponseError(f"[open_meteo] No hourly record for {target.isoformat()}")
    return df.index[pos]


def _num(row: pd.Series, column: str) -> Optional[float]:
    if column not in row.index or pd.isna(row[column]):
        return None
    return float(row[column])


def extract_forecast_at(payload: dict, target: datetime, lookback_hours: int = 6) -> OpenMeteoHour:
    """
    Pull the target-hour record plus the pressure lookback series.

    Args:
        payload: Raw forecast response
        target: Timezone-aware target time
        lookback_hours: Length of the pressure window ending at target

    Returns:
        OpenMeteoHour; pressure_series is None with fewer than 2 readings

    Raises:
        MalformedResponseError: target hour missing, or payload of the wrong shape
    """
    try:
        return _forecast_at(payload, target, lookback_hours)
    except PARSE_ERRORS as e:
        raise MalformedResponseError(f"[open_meteo] Bad forecast payload: {e}") from e


def _forecast_at(payload: dict, target: datetime, lookback_hours: int) -> OpenMeteoHour:
    df = hourly_frame(payload)
    ts = _locate(df, target)
    row = df.loc[ts]

    pressure: Optional[List[float]] = None
    if "pressure_msl" in df.columns:
        window = df.loc[ts - pd.Timedelta(hours=lookback_hours):ts, "pressure_msl"].dropna()
        if len(window) >= 2:
            pressure = [round(float(v), 1) for v in window]

    visibility_m = _num(row, "visibility")

    return {
        "time": ts.isoformat(),
        "cloud_cover": _num(row, "cloud_cover"),
        "high_cloud": _num(row, "cloud_cover_high"),
        "mid_cloud": _num(row, "cloud_cover_mid"),
        "low_cloud": _num(row, "cloud_cover_low"),
        "pressure_series": pressure,
        "visibility_km": visibility_m / 1000.0 if visibility_m is not None else None,
        "humidity": _num(row, "relative_humidity_2m"),
        "temperature_c": _num(row, "temperature_2m"),
        "wind_speed_kmh": _num(row, "wind_speed_10m"),
    }


def extract_air_quality_at(payload: dict, target: datetime) -> AirQualityHour:
    """Pull AOD and particulates for the target hour."""
    try:
        return _air_quality_at(payload, target)
    except PARSE_ERRORS as e:
        raise MalformedResponseError(f"[open_meteo] Bad air-quality payload: {e}") from e


def _air_quality_at(payload: dict, target: datetime) -> AirQualityHour:
    df = hourly_frame(payload)
    ts = _locate(df, target)
    row = df.loc[ts]

    return {
        "time": ts.isoformat(),
        "aod": _num(row, "aerosol_optical_depth"),
        "pm2_5": _num(row, "pm2_5"),
        "pm10": _num(row, "pm10"),
    }

