"""
Sunrise Forecaster for Seaside Beacon

get_score(point_id) pipeline:
1. Validate the point (UnknownPointError, synchronous)
2. Prediction cache (short TTL, keyed by point + target sunrise)
3. Resolve provider keys: AccuWeather location key, Open-Meteo grid cell
4. Fetch all four endpoints concurrently through the provider layers
5. Extract the target-hour records, merge, score, label
6. Cache the result

Only AccuWeather hourly and Open-Meteo forecast are primary. If both come
up empty the point raises DataUnavailable; daily and air-quality data are
enrichments that fall back to the scorer's neutral defaults.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, time as dt_time, timedelta
from typing import Any, Callable, Dict, Hashable, Iterable, List, Optional, Set, Tuple, Union
from zoneinfo import ZoneInfo

import httpx

from seaside_beacon.cache_manager import CacheStore
from seaside_beacon.config import ForecastPoint, Settings
from seaside_beacon.errors import DataUnavailable, MalformedResponseError, NoDataAvailable, UnknownPointError
from seaside_beacon.grid import GridKeyReducer
from seaside_beacon.labels import atmospheric_labels
from seaside_beacon.models import ScoreResult
from seaside_beacon.providers.accuweather import (
    AccuWeatherClient,
    parse_daily,
    parse_hourly_record,
    select_target_hour,
)
from seaside_beacon.providers.base import FetchResult, ProviderClient
from seaside_beacon.providers.open_meteo import (
    OpenMeteoClient,
    extract_air_quality_at,
    extract_forecast_at,
)
from seaside_beacon.scoring import calculate_sunrise_score
from seaside_beacon.selector import DataSourceSelector

logger = logging.getLogger(__name__)


def next_target_time(now: datetime, timezone: str = "Asia/Kolkata", hour: int = 6) -> datetime:
    """
    Next occurrence of hour:00 local time, strictly after now.

    At 05:59 this is today's sunrise; from 06:00 on it is tomorrow's.
    """
    tz = ZoneInfo(timezone)
    local = now.astimezone(tz)
    target = datetime.combine(local.date(), dt_time(hour), tzinfo=tz)
    if target <= local:
        target = datetime.combine(local.date() + timedelta(days=1), dt_time(hour), tzinfo=tz)
    return target


@dataclass(frozen=True)
class PredictionWindow:
    """Whether predictions are currently served, and when they open."""
    available: bool
    opens_in: timedelta

    @property
    def message(self) -> str:
        if self.available:
            return "Predictions available"
        hours, rem = divmod(int(self.opens_in.total_seconds()), 3600)
        return f"Predictions available in {hours}h {rem // 60}m"


def prediction_availability(
    now: datetime,
    timezone: str = "Asia/Kolkata",
    open_hour: int = 18,
    close_hour: int = 6,
) -> PredictionWindow:
    """
    Predictions target the next sunrise and only make sense once the
    evening forecasts cover it: open from open_hour until close_hour local.
    """
    tz = ZoneInfo(timezone)
    local = now.astimezone(tz)
    if local.hour >= open_hour or local.hour < close_hour:
        return PredictionWindow(available=True, opens_in=timedelta(0))
    opens_at = datetime.combine(local.date(), dt_time(open_hour), tzinfo=tz)
    return PredictionWindow(available=False, opens_in=opens_at - local)


class SunriseForecaster:
    """
    Orchestrates acquisition, merge and scoring for the configured points.

    All collaborators are injected; build_forecaster() wires the defaults.
    """

    def __init__(
        self,
        settings: Settings,
        accuweather: AccuWeatherClient,
        open_meteo: OpenMeteoClient,
        grid: Optional[GridKeyReducer] = None,
        selector: Optional[DataSourceSelector] = None,
        prediction_cache: Optional[CacheStore] = None,
        clock: Callable[[], float] = time.monotonic,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.settings = settings
        self.accuweather = accuweather
        self.open_meteo = open_meteo
        self.providers: Dict[str, ProviderClient] = {
            accuweather.NAME: accuweather,
            open_meteo.NAME: open_meteo,
        }
        self.grid = grid or GridKeyReducer(settings.grid_resolution_deg)
        self.selector = selector or DataSourceSelector()
        self.predictions = prediction_cache or CacheStore(
            "predictions", settings.prediction_ttl, clock=clock
        )
        self._tz = ZoneInfo(settings.timezone)
        self._now = now or (lambda: datetime.now(self._tz))

    @property
    def points(self) -> Dict[str, ForecastPoint]:
        return self.settings.points

    def resolve_point(self, point_id: str) -> ForecastPoint:
        point = self.settings.points.get(point_id)
        if point is None:
            raise UnknownPointError(point_id)
        return point

    def target_time(self) -> datetime:
        return next_target_time(self._now(), self.settings.timezone, self.settings.target_hour)

    def availability(self) -> PredictionWindow:
        return prediction_availability(
            self._now(),
            self.settings.timezone,
            open_hour=self.settings.prediction_open_hour,
            close_hour=self.settings.target_hour,
        )

    def provider_keys(self, point: ForecastPoint) -> Dict[str, Hashable]:
        """Cache key per provider for one point."""
        return {
            self.accuweather.NAME: point.location_key,
            self.open_meteo.NAME: self.grid.reduce(point.lat, point.lon),
        }

    async def _safe_fetch(self, client: ProviderClient, endpoint: str, key: Hashable) -> Optional[FetchResult]:
        try:
            return await client.fetch(endpoint, key)
        except NoDataAvailable as e:
            logger.warning(f"[SunriseForecaster] {e}")
            return None

    @staticmethod
    def _extract(label: str, func: Callable[[], Any]) -> Any:
        try:
            return func()
        except MalformedResponseError as e:
            logger.warning(f"[SunriseForecaster] {label}: {e}")
            return None

    async def get_score(self, point_id: str) -> ScoreResult:
        """
        Score the next sunrise at one point.

        Args:
            point_id: Configured point key (e.g. "marina")

        Returns:
            ScoreResult with snapshot, breakdown, attribution and labels

        Raises:
            UnknownPointError: point_id is not configured
            DataUnavailable: both primary sources yielded nothing
        """
        point = self.resolve_point(point_id)
        target = self.target_time()
        cache_key = (point.key, target.isoformat())

        cached = self.predictions.get_fresh(cache_key)
        if cached is not None:
            logger.debug(f"[SunriseForecaster] Prediction cache hit for {point.key}")
            return cached.payload

        keys = self.provider_keys(point)
        acc_key, om_key = keys[self.accuweather.NAME], keys[self.open_meteo.NAME]
        logger.info(
            f"[SunriseForecaster] Scoring {point.name} for {target.isoformat()} "
            f"(location {acc_key}, cell {om_key})"
        )

        hourly, daily, forecast, air = await asyncio.gather(
            self._safe_fetch(self.accuweather, "hourly", acc_key),
            self._safe_fetch(self.accuweather, "daily", acc_key),
            self._safe_fetch(self.open_meteo, "forecast", om_key),
            self._safe_fetch(self.open_meteo, "air_quality", om_key),
        )

        acc_hour = self._extract(
            "accuweather.hourly", lambda: parse_hourly_record(select_target_hour(hourly.data, target))
        ) if hourly else None
        acc_day = self._extract(
            "accuweather.daily", lambda: parse_daily(daily.data, target)
        ) if daily else None
        om_hour = self._extract(
            "open_meteo.forecast",
            lambda: extract_forecast_at(forecast.data, target, self.settings.pressure_lookback_hours),
        ) if forecast else None
        aq_hour = self._extract(
            "open_meteo.air_quality", lambda: extract_air_quality_at(air.data, target)
        ) if air else None

        if acc_hour is None and om_hour is None:
            raise DataUnavailable(point.key, "no AccuWeather hourly or Open-Meteo forecast for the target hour")

        snapshot, attribution = self.selector.merge(acc_hour, acc_day, om_hour, aq_hour, target)
        breakdown = calculate_sunrise_score(snapshot, latitude=point.lat)

        degraded: List[str] = []
        for name, result, record in (
            ("accuweather.hourly", hourly, acc_hour),
            ("accuweather.daily", daily, acc_day),
            ("open_meteo.forecast", forecast, om_hour),
            ("open_meteo.air_quality", air, aq_hour),
        ):
            if record is None:
                degraded.append(f"{name}:missing")
            elif result.is_degraded:
                degraded.append(f"{name}:{result.status_label}")

        result = ScoreResult(
            point_id=point.key,
            point_name=point.name,
            snapshot=snapshot,
            breakdown=breakdown,
            source_attribution=attribution,
            labels=atmospheric_labels(snapshot, breakdown),
            degraded_sources=degraded,
            generated_at=self._now(),
        )
        self.predictions.put(cache_key, result)

        logger.info(
            f"[SunriseForecaster] {point.name}: {result.score}/100 "
            f"{result.verdict.value} ({result.recommendation.value})"
            + (f" degraded={degraded}" if degraded else "")
        )
        return result

    async def get_scores(
        self, point_ids: Optional[Iterable[str]] = None
    ) -> Dict[str, Union[ScoreResult, Exception]]:
        """
        Score several points concurrently.

        Points sharing a grid cell or location key share the upstream
        fetch. Per-point failures are returned in place of the result.
        """
        ids = list(point_ids) if point_ids is not None else list(self.settings.points)
        for point_id in ids:
            self.resolve_point(point_id)

        results = await asyncio.gather(
            *(self.get_score(point_id) for point_id in ids), return_exceptions=True
        )
        return dict(zip(ids, results))

    def refresh_targets(self, providers: Iterable[str]) -> List[Tuple[str, str, Hashable]]:
        """Unique (provider, endpoint, key) triples covering every point."""
        wanted = set(providers)
        unknown = wanted - set(self.providers)
        if unknown:
            raise ValueError(f"Unknown provider(s): {', '.join(sorted(unknown))}")

        seen: Set[Tuple[str, str, Hashable]] = set()
        targets: List[Tuple[str, str, Hashable]] = []
        for point in self.settings.points.values():
            for name, key in self.provider_keys(point).items():
                if name not in wanted:
                    continue
                for endpoint in self.providers[name].endpoints:
                    triple = (name, endpoint, key)
                    if triple not in seen:
                        seen.add(triple)
                        targets.append(triple)
        return targets

    async def refresh(self, provider: str, endpoint: str, key: Hashable) -> FetchResult:
        """Force a refresh through the normal fetch path (skips only the positive cache)."""
        return await self.providers[provider].fetch(endpoint, key, force_refresh=True)

    def invalidate_predictions(self, point_id: Optional[str] = None) -> None:
        """Drop cached predictions for the current target (one point or all)."""
        if point_id is None:
            self.predictions.clear()
            return
        point = self.resolve_point(point_id)
        self.predictions.invalidate((point.key, self.target_time().isoformat()))

    async def aclose(self) -> None:
        for client in self.providers.values():
            await client.aclose()


def build_forecaster(
    settings: Optional[Settings] = None,
    http_client: Optional[httpx.AsyncClient] = None,
) -> SunriseForecaster:
    """Wire the default providers from settings."""
    settings = settings or Settings.from_env()
    common = dict(
        http_client=http_client,
        timeout_seconds=settings.request_timeout_seconds,
        user_agent=settings.user_agent,
        failure_ttl_seconds=settings.failure_ttl,
    )

    accuweather = AccuWeatherClient(
        api_key=settings.accuweather_api_key,
        base_url=settings.accuweather_base_url,
        endpoint_ttls={
            "hourly": settings.accuweather_hourly_ttl,
            "daily": settings.accuweather_daily_ttl,
        },
        **common,
    )
    open_meteo = OpenMeteoClient(
        proxy_url=settings.open_meteo_proxy_url,
        forecast_url=settings.open_meteo_forecast_url,
        air_quality_url=settings.open_meteo_air_quality_url,
        timezone=settings.timezone,
        forecast_days=settings.forecast_days,
        endpoint_ttls={
            "forecast": settings.open_meteo_forecast_ttl,
            "air_quality": settings.open_meteo_air_quality_ttl,
        },
        **common,
    )

    return SunriseForecaster(settings, accuweather, open_meteo)
