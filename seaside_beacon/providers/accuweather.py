"""
AccuWeather Provider for Seaside Beacon

Location-keyed polling API. Uses Key: 206671 (Chennai) for every beach.

Endpoints:
- hourly: /forecasts/v1/hourly/12hour/{key}  (cloud, humidity, visibility, wind, precip)
- daily:  /forecasts/v1/daily/1day/{key}     (sunrise/sunset, overnight rain hours)

RATE LIMITING:
- Free Tier: 50 calls/day per key
- Cache TTL: 30 min hourly, 2 h daily (prevents quota exhaustion)
- 401/403 abort immediately; 503 is how the quota limit surfaces
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Hashable, List, Optional, TypedDict

from seaside_beacon.errors import PARSE_ERRORS, AuthError, MalformedResponseError
from seaside_beacon.providers.base import ProviderClient

logger = logging.getLogger(__name__)

MILES_TO_KM = 1.60934
FEET_TO_M = 0.3048

# Records are on the hour; a neighbouring hour is not the target hour
TARGET_TOLERANCE = timedelta(minutes=5)


class AccuWeatherHour(TypedDict):
    time: str
    cloud_cover: Optional[float]
    humidity: Optional[float]
    visibility_km: Optional[float]
    wind_speed_kmh: Optional[float]
    precip_probability: Optional[float]
    has_precipitation: Optional[bool]
    weather_description: Optional[str]
    temperature_c: Optional[float]
    ceiling_m: Optional[float]


class AccuWeatherDay(TypedDict):
    date: str
    sunrise: Optional[str]
    sunset: Optional[str]
    night_hours_of_rain: Optional[float]


class AccuWeatherClient(ProviderClient):
    """
    Provider for AccuWeather data.
    Restricted to 50 calls/day (Free Tier), hence the cache TTLs.
    """

    NAME = "accuweather"
    BASE_URL = "https://dataservice.accuweather.com"
    ENDPOINT_TTLS = {
        "hourly": 30 * 60,
        "daily": 2 * 60 * 60,
    }
    PATHS = {
        "hourly": "/forecasts/v1/hourly/12hour/{key}",
        "daily": "/forecasts/v1/daily/1day/{key}",
    }

    def __init__(self, api_key: Optional[str], base_url: Optional[str] = None, **kwargs: Any):
        super().__init__(**kwargs)
        self.api_key = api_key
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        if not self.api_key:
            logger.warning("[AccuWeatherClient] No API Key configured!")

    async def _request(self, endpoint: str, key: Hashable) -> Any:
        if not self.api_key:
            raise AuthError(self.NAME, "No API key configured")

        url = self.base_url + self.PATHS[endpoint].format(key=key)
        params = {"apikey": self.api_key, "details": "true", "metric": "true"}

        client = await self._get_client()
        logger.debug(f"[AccuWeatherClient] GET {url}")
        resp = await client.get(url, params=params)
        resp.raise_for_status()
        data = resp.json()

        if endpoint == "hourly":
            if not isinstance(data, list) or not data:
                raise MalformedResponseError(f"[{self.NAME}] Hourly response has no records")
            logger.info(f"[AccuWeatherClient] Fetched {len(data)} hours of forecast data")
        else:
            if not isinstance(data, dict) or not data.get("DailyForecasts"):
                raise MalformedResponseError(f"[{self.NAME}] Daily response has no DailyForecasts")
        return data


def _value(obj: Any, *path: str) -> Any:
    for part in path:
        if not isinstance(obj, dict):
            return None
        obj = obj.get(part)
    return obj


def _visibility_km(record: dict) -> Optional[float]:
    value = _value(record, "Visibility", "Value")
    if value is None:
        return None
    unit = _value(record, "Visibility", "Unit") or "km"
    return float(value) * MILES_TO_KM if unit == "mi" else float(value)


def _ceiling_m(record: dict) -> Optional[float]:
    value = _value(record, "Ceiling", "Value")
    if value is None:
        return None
    unit = _value(record, "Ceiling", "Unit") or "m"
    return float(value) * FEET_TO_M if unit == "ft" else float(value)


def select_target_hour(hourly: List[dict], target: datetime) -> dict:
    """
    Pick the hourly record for target.

    A 12-hour window that ends before (or starts after) the target hour is
    rejected, never answered with a neighbouring hour.

    Args:
        hourly: Raw AccuWeather 12-hour response
        target: Timezone-aware target time (next 6 AM local)

    Returns:
        The raw record for the target hour

    Raises:
        MalformedResponseError: no record at the target hour
    """
    best = None
    smallest_diff = None
    for record in hourly or []:
        raw_time = record.get("DateTime") if isinstance(record, dict) else None
        if not raw_time:
            continue
        try:
            forecast_time = datetime.fromisoformat(raw_time)
        except (TypeError, ValueError):
            continue
        if forecast_time.tzinfo is None:
            continue
        diff = abs(forecast_time - target)
        if smallest_diff is None or diff < smallest_diff:
            best, smallest_diff = record, diff

    if best is None or smallest_diff > TARGET_TOLERANCE:
        raise MalformedResponseError(
            f"[accuweather] No hourly record for {target.isoformat()}"
        )

    logger.debug(f"[accuweather] Selected {best['DateTime']} (diff: {smallest_diff.total_seconds() / 60:.0f} min)")
    return best


def parse_hourly_record(record: dict) -> AccuWeatherHour:
    """Normalize one raw hourly record (metric units)."""
    try:
        return _parse_hourly_record(record)
    except PARSE_ERRORS as e:
        raise MalformedResponseError(f"[accuweather] Bad hourly record: {e}") from e


def _parse_hourly_record(record: dict) -> AccuWeatherHour:
    has_precip = record.get("HasPrecipitation")
    return {
        "time": record.get("DateTime", ""),
        "cloud_cover": record.get("CloudCover"),
        "humidity": record.get("RelativeHumidity"),
        "visibility_km": _visibility_km(record),
        "wind_speed_kmh": _value(record, "Wind", "Speed", "Value"),
        "precip_probability": record.get("PrecipitationProbability"),
        "has_precipitation": bool(has_precip) if has_precip is not None else None,
        "weather_description": record.get("IconPhrase"),
        "temperature_c": _value(record, "Temperature", "Value"),
        "ceiling_m": _ceiling_m(record),
    }


def parse_daily(payload: dict, target: datetime) -> AccuWeatherDay:
    """
    Extract sunrise and the overnight rain signal relevant to target.

    The night before the target sunrise belongs to the previous calendar
    day's forecast. When that day is not in the payload (pre-dawn requests),
    the rain signal is unknown rather than zero.

    Raises:
        MalformedResponseError: the payload does not have the expected shape
    """
    try:
        return _parse_daily(payload, target)
    except PARSE_ERRORS as e:
        raise MalformedResponseError(f"[accuweather] Bad daily payload: {e}") from e


def _parse_daily(payload: dict, target: datetime) -> AccuWeatherDay:
    forecasts = payload.get("DailyForecasts") or []
    by_date = {}
    for day in forecasts:
        date_str = (day.get("Date") or "")[:10]
        if date_str:
            by_date[date_str] = day

    target_day = by_date.get(target.date().isoformat())
    previous_day = by_date.get((target.date() - timedelta(days=1)).isoformat())

    night_rain = _value(previous_day, "Night", "HoursOfRain") if previous_day else None
    sun_source = target_day or previous_day

    return {
        "date": target.date().isoformat(),
        "sunrise": _value(target_day, "Sun", "Rise") if target_day else None,
        "sunset": _value(sun_source, "Sun", "Set") if sun_source else None,
        "night_hours_of_rain": float(night_rain) if night_rain is not None else None,
    }
