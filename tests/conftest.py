"""
Shared fixtures for the Seaside Beacon test suite.

Time is fixed: "now" is 2025-03-20 19:00 IST, so the target sunrise is
2025-03-21 06:00 IST (equinox, solar bonus 0). Upstreams are faked with
httpx.MockTransport; retries sleep through a recorder instead of asyncio.
"""

import logging
import sys
from datetime import datetime, timedelta
from pathlib import Path
from zoneinfo import ZoneInfo

import httpx
import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from seaside_beacon.config import Settings
from seaside_beacon.forecast import SunriseForecaster
from seaside_beacon.providers.accuweather import AccuWeatherClient
from seaside_beacon.providers.open_meteo import OpenMeteoClient
from seaside_beacon.resilience import RetryConfig

logging.basicConfig(level=logging.DEBUG)

IST = ZoneInfo("Asia/Kolkata")
NOW = datetime(2025, 3, 20, 19, 0, tzinfo=IST)
TARGET = datetime(2025, 3, 21, 6, 0, tzinfo=IST)


class FakeClock:
    """Monotonic clock the test moves by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class SleepRecorder:
    """Stands in for asyncio.sleep; returns immediately."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def accuweather_hourly(start: datetime = NOW, **at_target) -> list:
    """12 hourly records starting one hour after start; at_target overrides the 06:00 record."""
    records = []
    for i in range(1, 13):
        ts = start + timedelta(hours=i)
        record = {
            "DateTime": ts.isoformat(),
            "IconPhrase": "Partly cloudy",
            "HasPrecipitation": False,
            "PrecipitationProbability": 5,
            "Temperature": {"Value": 27.0, "Unit": "C"},
            "Wind": {"Speed": {"Value": 10.0, "Unit": "km/h"}},
            "RelativeHumidity": 75,
            "Visibility": {"Value": 12.0, "Unit": "km"},
            "Ceiling": {"Value": 9144.0, "Unit": "m"},
            "CloudCover": 30,
        }
        if ts == TARGET:
            record.update(at_target)
        records.append(record)
    return records


def accuweather_daily(night_rain=0.0) -> dict:
    return {
        "DailyForecasts": [
            {
                "Date": "2025-03-20T07:00:00+05:30",
                "Sun": {"Rise": "2025-03-20T06:15:00+05:30", "Set": "2025-03-20T18:20:00+05:30"},
                "Night": {"HoursOfRain": night_rain},
            },
            {
                "Date": "2025-03-21T07:00:00+05:30",
                "Sun": {"Rise": "2025-03-21T06:14:00+05:30", "Set": "2025-03-21T18:20:00+05:30"},
                "Night": {"HoursOfRain": 0.0},
            },
        ]
    }


def open_meteo_forecast(**at_target) -> dict:
    """Two local days of hourly data; pressure falls 3 hPa over the 6 h before 06:00 on day two."""
    times, columns = [], {
        "cloud_cover": [], "cloud_cover_low": [], "cloud_cover_mid": [], "cloud_cover_high": [],
        "pressure_msl": [], "visibility": [], "relative_humidity_2m": [],
        "temperature_2m": [], "wind_speed_10m": [],
    }
    base = datetime(2025, 3, 20, 0, 0)
    for i in range(48):
        ts = base + timedelta(hours=i)
        times.append(ts.strftime("%Y-%m-%dT%H:%M"))
        row = {
            "cloud_cover": 35.0,
            "cloud_cover_low": 20.0,
            "cloud_cover_mid": 20.0,
            "cloud_cover_high": 40.0,
            "pressure_msl": 1012.0 - 0.5 * (i - 24) if 24 <= i <= 30 else 1012.0,
            "visibility": 24140.0,
            "relative_humidity_2m": 80.0,
            "temperature_2m": 25.0,
            "wind_speed_10m": 12.0,
        }
        if i == 30:
            row.update(at_target)
        for name in columns:
            columns[name].append(row[name])
    return {
        "latitude": 13.0,
        "longitude": 80.25,
        "utc_offset_seconds": 19800,
        "timezone": "Asia/Kolkata",
        "hourly": {"time": times, **columns},
    }


def open_meteo_air_quality(aod=0.12) -> dict:
    base = datetime(2025, 3, 20, 0, 0)
    times = [(base + timedelta(hours=i)).strftime("%Y-%m-%dT%H:%M") for i in range(48)]
    return {
        "utc_offset_seconds": 19800,
        "hourly": {
            "time": times,
            "aerosol_optical_depth": [aod] * 48,
            "pm2_5": [18.0] * 48,
            "pm10": [35.0] * 48,
        },
    }


class FakeUpstream:
    """
    Routes MockTransport requests to canned payloads.

    status[route] forces an HTTP status; calls[route] counts requests.
    """

    ROUTES = ("hourly", "daily", "forecast", "air_quality")

    def __init__(self):
        self.payloads = {
            "hourly": accuweather_hourly(),
            "daily": accuweather_daily(),
            "forecast": open_meteo_forecast(),
            "air_quality": open_meteo_air_quality(),
        }
        self.status = {}
        self.calls = {route: 0 for route in self.ROUTES}
        self.requests = []

    @staticmethod
    def route(request: httpx.Request) -> str:
        path = request.url.path
        if "/hourly/" in path:
            return "hourly"
        if "/daily/" in path:
            return "daily"
        if path.endswith("air-quality"):
            return "air_quality"
        if path.endswith("forecast"):
            return "forecast"
        raise AssertionError(f"Unexpected request {request.url}")

    def handle(self, request: httpx.Request) -> httpx.Response:
        route = self.route(request)
        self.calls[route] += 1
        self.requests.append(request)
        status = self.status.get(route, 200)
        if status != 200:
            return httpx.Response(status, json={"Message": "error"})
        return httpx.Response(200, json=self.payloads[route])

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def target():
    return TARGET


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleep():
    return SleepRecorder()


@pytest.fixture
def retry_config():
    return RetryConfig(jitter=False)


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest.fixture
def http_client(upstream):
    return httpx.AsyncClient(transport=upstream.transport)


@pytest.fixture
def settings():
    return Settings(accuweather_api_key="test-key")


@pytest.fixture
def client_kwargs(http_client, clock, sleep, retry_config):
    return dict(http_client=http_client, clock=clock, sleep=sleep, retry_config=retry_config)


@pytest.fixture
def accuweather(client_kwargs):
    return AccuWeatherClient(api_key="test-key", **client_kwargs)


@pytest.fixture
def open_meteo(client_kwargs):
    return OpenMeteoClient(**client_kwargs)


@pytest.fixture
def forecaster(settings, accuweather, open_meteo, clock):
    return SunriseForecaster(settings, accuweather, open_meteo, clock=clock, now=lambda: NOW)
