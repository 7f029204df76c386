"""
Tests for the AccuWeather and Open-Meteo providers

Upstreams are faked with httpx.MockTransport (see conftest.FakeUpstream).

Run with: python -m pytest tests/test_providers.py -v
"""

from datetime import timedelta

import pytest

from conftest import (
    TARGET,
    accuweather_daily,
    accuweather_hourly,
    open_meteo_air_quality,
    open_meteo_forecast,
)
from seaside_beacon.config import CHENNAI_LOCATION_KEY
from seaside_beacon.errors import MalformedResponseError, NoDataAvailable
from seaside_beacon.grid import GridCell
from seaside_beacon.providers.accuweather import (
    AccuWeatherClient,
    parse_daily,
    parse_hourly_record,
    select_target_hour,
)
from seaside_beacon.providers.open_meteo import (
    OpenMeteoClient,
    extract_air_quality_at,
    extract_forecast_at,
    hourly_frame,
)

CELL = GridCell(13.0, 80.25)


class TestAccuWeatherClient:

    @pytest.mark.asyncio
    async def test_hourly_request(self, accuweather, upstream):
        result = await accuweather.fetch("hourly", CHENNAI_LOCATION_KEY)

        assert result.source == "API"
        assert len(result.data) == 12
        request = upstream.requests[0]
        assert request.url.path == f"/forecasts/v1/hourly/12hour/{CHENNAI_LOCATION_KEY}"
        assert request.url.params["apikey"] == "test-key"
        assert request.url.params["details"] == "true"
        assert request.url.params["metric"] == "true"

    @pytest.mark.asyncio
    async def test_daily_request(self, accuweather, upstream):
        result = await accuweather.fetch("daily", CHENNAI_LOCATION_KEY)

        assert "DailyForecasts" in result.data
        assert upstream.requests[0].url.path == f"/forecasts/v1/daily/1day/{CHENNAI_LOCATION_KEY}"

    @pytest.mark.asyncio
    async def test_missing_api_key_never_hits_network(self, client_kwargs, upstream):
        client = AccuWeatherClient(api_key=None, **client_kwargs)

        with pytest.raises(NoDataAvailable):
            await client.fetch("hourly", CHENNAI_LOCATION_KEY)

        assert upstream.calls["hourly"] == 0
        assert client.stats["api_calls"] == 1

    @pytest.mark.asyncio
    async def test_quota_503_is_retried(self, accuweather, upstream, retry_config):
        upstream.status["hourly"] = 503

        with pytest.raises(NoDataAvailable):
            await accuweather.fetch("hourly", CHENNAI_LOCATION_KEY)

        assert upstream.calls["hourly"] == retry_config.max_retries + 1

    @pytest.mark.asyncio
    async def test_unauthorized_is_not_retried(self, accuweather, upstream):
        upstream.status["hourly"] = 401

        with pytest.raises(NoDataAvailable):
            await accuweather.fetch("hourly", CHENNAI_LOCATION_KEY)

        assert upstream.calls["hourly"] == 1

    @pytest.mark.asyncio
    async def test_empty_hourly_is_malformed(self, accuweather, upstream):
        upstream.payloads["hourly"] = []

        with pytest.raises(NoDataAvailable):
            await accuweather.fetch("hourly", CHENNAI_LOCATION_KEY)
        assert upstream.calls["hourly"] == 1


class TestAccuWeatherParsing:

    def test_select_target_hour(self):
        record = select_target_hour(accuweather_hourly(), TARGET)
        assert record["DateTime"] == TARGET.isoformat()

    def test_select_target_hour_out_of_window(self):
        early = accuweather_hourly(start=TARGET - timedelta(hours=20))
        with pytest.raises(MalformedResponseError):
            select_target_hour(early, TARGET)

    def test_window_ending_an_hour_short_is_rejected(self):
        # Requested at 17:00: the window runs 18:00-05:00
        short = accuweather_hourly(start=TARGET - timedelta(hours=13))
        assert short[-1]["DateTime"] == (TARGET - timedelta(hours=1)).isoformat()

        with pytest.raises(MalformedResponseError):
            select_target_hour(short, TARGET)

    def test_parse_hourly_bad_value_is_malformed(self):
        record = {"DateTime": TARGET.isoformat(), "Visibility": {"Value": "n/a", "Unit": "km"}}
        with pytest.raises(MalformedResponseError):
            parse_hourly_record(record)

    def test_parse_hourly_converts_imperial_units(self):
        record = {
            "DateTime": TARGET.isoformat(),
            "CloudCover": 40,
            "RelativeHumidity": 70,
            "Visibility": {"Value": 10.0, "Unit": "mi"},
            "Ceiling": {"Value": 10000.0, "Unit": "ft"},
            "Wind": {"Speed": {"Value": 9.0, "Unit": "km/h"}},
            "PrecipitationProbability": 20,
            "HasPrecipitation": False,
            "IconPhrase": "Hazy sunshine",
            "Temperature": {"Value": 26.0},
        }
        hour = parse_hourly_record(record)

        assert hour["visibility_km"] == pytest.approx(16.0934)
        assert hour["ceiling_m"] == pytest.approx(3048.0)
        assert hour["wind_speed_kmh"] == 9.0
        assert hour["has_precipitation"] is False
        assert hour["weather_description"] == "Hazy sunshine"

    def test_parse_hourly_missing_fields(self):
        hour = parse_hourly_record({"DateTime": TARGET.isoformat()})
        assert hour["cloud_cover"] is None
        assert hour["visibility_km"] is None
        assert hour["has_precipitation"] is None

    def test_parse_daily_uses_previous_night(self):
        day = parse_daily(accuweather_daily(night_rain=2.5), TARGET)
        assert day["night_hours_of_rain"] == 2.5
        assert day["sunrise"] == "2025-03-21T06:14:00+05:30"

    def test_parse_daily_unknown_night(self):
        payload = {"DailyForecasts": accuweather_daily()["DailyForecasts"][1:]}
        day = parse_daily(payload, TARGET)
        assert day["night_hours_of_rain"] is None
        assert day["sunrise"] is not None

    def test_parse_daily_bad_rain_hours_is_malformed(self):
        payload = accuweather_daily()
        payload["DailyForecasts"][0]["Night"]["HoursOfRain"] = "n/a"

        with pytest.raises(MalformedResponseError):
            parse_daily(payload, TARGET)

    def test_parse_daily_non_dict_entry_is_malformed(self):
        with pytest.raises(MalformedResponseError):
            parse_daily({"DailyForecasts": ["2025-03-20"]}, TARGET)


class TestOpenMeteoClient:

    @pytest.mark.asyncio
    async def test_forecast_request_params(self, open_meteo, upstream):
        result = await open_meteo.fetch("forecast", CELL)

        assert result.source == "API"
        params = upstream.requests[0].url.params
        assert upstream.requests[0].url.host == "api.open-meteo.com"
        assert params["latitude"] == "13.0"
        assert params["longitude"] == "80.25"
        assert "cloud_cover_high" in params["hourly"].split(",")
        assert "pressure_msl" in params["hourly"].split(",")
        assert params["timezone"] == "Asia/Kolkata"
        assert params["forecast_days"] == "2"

    @pytest.mark.asyncio
    async def test_air_quality_request(self, open_meteo, upstream):
        await open_meteo.fetch("air_quality", CELL)

        request = upstream.requests[0]
        assert request.url.host == "air-quality-api.open-meteo.com"
        assert "aerosol_optical_depth" in request.url.params["hourly"]

    @pytest.mark.asyncio
    async def test_proxy_urls(self, client_kwargs, upstream):
        client = OpenMeteoClient(proxy_url="https://proxy.example.workers.dev/", **client_kwargs)

        await client.fetch("forecast", CELL)
        await client.fetch("air_quality", CELL)

        urls = [str(r.url).split("?")[0] for r in upstream.requests]
        assert urls == [
            "https://proxy.example.workers.dev/forecast",
            "https://proxy.example.workers.dev/air-quality",
        ]

    @pytest.mark.asyncio
    async def test_missing_hourly_block_is_malformed(self, open_meteo, upstream):
        upstream.payloads["forecast"] = {"error": False}

        with pytest.raises(NoDataAvailable):
            await open_meteo.fetch("forecast", CELL)
        assert upstream.calls["forecast"] == 1


class TestOpenMeteoExtraction:

    def test_hourly_frame_is_utc(self):
        df = hourly_frame(open_meteo_forecast())
        assert str(df.index.tz) == "UTC"
        assert len(df) == 48
        # 2025-03-20T00:00 local (+05:30)
        assert df.index[0].isoformat() == "2025-03-19T18:30:00+00:00"

    def test_extract_forecast_at_target(self):
        hour = extract_forecast_at(open_meteo_forecast(), TARGET)

        assert hour["high_cloud"] == 40.0
        assert hour["mid_cloud"] == 20.0
        assert hour["low_cloud"] == 20.0
        assert hour["visibility_km"] == pytest.approx(24.14)
        assert hour["pressure_series"][0] == 1012.0
        assert hour["pressure_series"][-1] == 1009.0
        assert len(hour["pressure_series"]) == 7

    def test_pressure_gaps_are_dropped(self):
        payload = open_meteo_forecast()
        pressure = payload["hourly"]["pressure_msl"]
        for i in range(24, 30):
            pressure[i] = None

        hour = extract_forecast_at(payload, TARGET)
        assert hour["pressure_series"] is None

    def test_null_values_become_none(self):
        hour = extract_forecast_at(open_meteo_forecast(cloud_cover_high=None), TARGET)
        assert hour["high_cloud"] is None

    def test_target_outside_payload(self):
        with pytest.raises(MalformedResponseError):
            extract_forecast_at(open_meteo_forecast(), TARGET + timedelta(days=3))

    def test_missing_target_row_is_rejected(self):
        payload = open_meteo_forecast()
        hourly = payload["hourly"]
        target_index = hourly["time"].index("2025-03-21T06:00")
        for values in hourly.values():
            del values[target_index]

        with pytest.raises(MalformedResponseError):
            extract_forecast_at(payload, TARGET)

    def test_bad_utc_offset_is_malformed(self):
        payload = open_meteo_air_quality()
        payload["utc_offset_seconds"] = "IST"

        with pytest.raises(MalformedResponseError):
            extract_air_quality_at(payload, TARGET)

    def test_extract_air_quality(self):
        hour = extract_air_quality_at(open_meteo_air_quality(aod=0.31), TARGET)
        assert hour["aod"] == pytest.approx(0.31)
        assert hour["pm2_5"] == 18.0
