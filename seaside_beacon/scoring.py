"""
Sunrise Scoring Engine for Seaside Beacon

Deterministic, pure functions: AtmosphericSnapshot -> ScoreBreakdown.
Nothing here performs I/O or awaits.

Weights (max points, sum = 100):
    Cloud cover 18 | Cloud layers 20 | AOD 16 | Humidity 15 |
    Pressure trend 11 | Visibility 10 | Weather 5 | Wind 5

composite = clamp(sum(sub-scores) + synergy + post_rain + solar, 0, 100)

Every sub-score has an explicit neutral default for a missing input, so
snapshots of different completeness stay comparable.

NOTE: the weights are a calibrated heuristic from a single ground-truth
audit of Chennai sunrises; keep them as they are until a new audit exists.
"""

import logging
import math
from datetime import date, datetime
from typing import Dict, Optional, Sequence, Tuple, Union

import numpy as np

from seaside_beacon.models import (
    AtmosphericSnapshot,
    FactorScore,
    Recommendation,
    ScoreBreakdown,
    Verdict,
)

logger = logging.getLogger(__name__)

MAX_POINTS: Dict[str, int] = {
    "cloud_cover": 18,
    "multi_level_cloud": 20,
    "humidity": 15,
    "pressure_trend": 11,
    "aod": 16,
    "visibility": 10,
    "weather": 5,
    "wind": 5,
}

NEUTRAL: Dict[str, int] = {
    "cloud_cover": 9,
    "multi_level_cloud": 10,
    "humidity": 8,
    "pressure_trend": 5,
    "aod": 8,
    "visibility": 6,
    "weather": 3,
    "wind": 3,
}

SYNERGY_BOUND = 4
POST_RAIN_BONUS = 5
SOLAR_BOUND = 2

# Piecewise-linear curves (x breakpoints, y points)
CLOUD_COVER_CURVE = ([0, 15, 30, 45, 60, 75, 90, 100], [6, 8, 15, 18, 15, 10, 3, 0])
HUMIDITY_CURVE = ([0, 55, 70, 90, 95, 100], [15, 15, 12, 8, 3, 0])
AOD_CURVE = ([0.0, 0.05, 0.20, 0.40, 0.70, 1.00, 1.50], [12, 16, 16, 10, 4, 1, 0])
VISIBILITY_CURVE = ([0, 3, 5, 10, 15, 18], [0, 2, 4, 6, 8, 10])

# Exact user-facing cutoffs (score >= threshold)
VERDICT_THRESHOLDS: Tuple[Tuple[int, Verdict], ...] = (
    (85, Verdict.EXCELLENT),
    (70, Verdict.VERY_GOOD),
    (55, Verdict.GOOD),
    (40, Verdict.FAIR),
    (25, Verdict.POOR),
)
RECOMMENDATION_THRESHOLDS: Tuple[Tuple[int, Recommendation], ...] = (
    (70, Recommendation.GO),
    (50, Recommendation.MAYBE),
    (30, Recommendation.SKIP),
)


def _round(value: float) -> int:
    """Round half up (Python's round() is banker's rounding)."""
    return int(math.floor(value + 0.5))


def _interp(value: float, curve: Tuple[Sequence[float], Sequence[float]], max_points: int) -> int:
    xs, ys = curve
    score = _round(float(np.interp(value, xs, ys)))
    return max(0, min(max_points, score))


def _missing(value: Optional[float]) -> bool:
    return value is None or (isinstance(value, float) and math.isnan(value))


def score_cloud_cover(cloud_cover: Optional[float]) -> int:
    """
    CLOUD COVER (max 18)
    30-60% is the canvas for orange/red reflection, peak at 45%.
    Clear skies are pale; overcast blocks the light.
    """
    if _missing(cloud_cover):
        return NEUTRAL["cloud_cover"]
    return _interp(cloud_cover, CLOUD_COVER_CURVE, MAX_POINTS["cloud_cover"])


def score_multi_level_cloud(
    high: Optional[float],
    mid: Optional[float],
    low: Optional[float],
    ceiling_m: Optional[float] = None,
    cloud_cover: Optional[float] = None,
) -> int:
    """
    CLOUD LAYERS (max 20)
    High cloud catches the first light; low cloud on the horizon blocks it.
    Without layer data, fall back to the AccuWeather ceiling height.
    """
    if _missing(high) or _missing(mid) or _missing(low):
        if _missing(ceiling_m) or _missing(cloud_cover) or cloud_cover < 20:
            return NEUTRAL["multi_level_cloud"]
        if ceiling_m >= 6000:
            return 17
        if ceiling_m >= 4000:
            return 14
        if ceiling_m >= 2000:
            return 10
        if ceiling_m >= 1000:
            return 5
        return 2

    if high >= 30:
        if low <= 30:
            if mid <= 40:
                return 20  # high canvas, minimal interference
            if mid <= 60:
                return 17
            return 14
        if low <= 60:
            return 12
        return 6

    if mid >= 50 and low <= 40:
        return 10  # mid-level canvas
    if low <= 40:
        return 7
    if low <= 70:
        return 4
    return 1


def score_humidity(humidity: Optional[float]) -> int:
    """
    HUMIDITY (max 15)
    Dry air gives saturated colors. 70-90% is a normal coastal dawn
    (scores 8-12), not fog; the steep drop starts above 90%.
    """
    if _missing(humidity):
        return NEUTRAL["humidity"]
    return _interp(humidity, HUMIDITY_CURVE, MAX_POINTS["humidity"])


def pressure_change(series: Optional[Sequence[Optional[float]]]) -> Optional[float]:
    """Net change over the lookback window in hPa, None if unknown."""
    if not series or len(series) < 2 or _missing(series[0]) or _missing(series[-1]):
        return None
    return round(series[-1] - series[0], 1)


def score_pressure_trend(series: Optional[Sequence[Optional[float]]]) -> int:
    """
    PRESSURE TREND (max 11), 6-hour change
    A moderate fall (-2 to -6 hPa) marks a clearing front: broken,
    dramatic cloud. Rapid falls mean storms; rising pressure means a
    flat, stable sky.
    """
    delta = pressure_change(series)
    if delta is None:
        return NEUTRAL["pressure_trend"]
    if -6 <= delta <= -2:
        return 11
    if -2 < delta < -0.5:
        return 8
    if -0.5 <= delta <= 0.5:
        return 5
    if 0.5 < delta <= 3:
        return 4
    if delta > 3:
        return 3
    if delta > -9:
        return 4
    return 1


def score_aod(aod: Optional[float]) -> int:
    """
    AEROSOL OPTICAL DEPTH (max 16)
    0.05-0.20 is the goldilocks band: enough particles to scatter red,
    not enough to mute it. Very clean air is slightly paler; haze and
    dust events kill the color.
    """
    if _missing(aod) or aod < 0:
        return NEUTRAL["aod"]
    return _interp(aod, AOD_CURVE, MAX_POINTS["aod"])


def score_visibility(visibility_km: Optional[float]) -> int:
    """VISIBILITY (max 10). Full marks from 18 km."""
    if _missing(visibility_km) or visibility_km < 0:
        return NEUTRAL["visibility"]
    return _interp(visibility_km, VISIBILITY_CURVE, MAX_POINTS["visibility"])


def score_weather_conditions(
    precip_probability: Optional[float],
    has_precipitation: Optional[bool],
    description: Optional[str],
) -> int:
    """
    WEATHER (max 5)
    Precipitation probability + active weather penalty.
    """
    if _missing(precip_probability) and has_precipitation is None and not description:
        return NEUTRAL["weather"]

    score = MAX_POINTS["weather"]
    precip = 0 if _missing(precip_probability) else precip_probability

    if precip > 70:
        score -= 4
    elif precip > 50:
        score -= 3
    elif precip > 30:
        score -= 2
    elif precip > 15:
        score -= 1

    if has_precipitation:
        score -= 2

    desc = (description or "").lower()
    if "thunder" in desc or "storm" in desc:
        score -= 3
    if "fog" in desc or "mist" in desc:
        score -= 2
    if "haze" in desc:
        score -= 1
    if "sunny" in desc or "clear" in desc:
        score += 1

    return max(0, min(MAX_POINTS["weather"], score))


def score_wind(wind_speed_kmh: Optional[float]) -> int:
    """WIND (max 5). Calm air keeps the cloud structure in place."""
    if _missing(wind_speed_kmh):
        return NEUTRAL["wind"]
    if wind_speed_kmh <= 10:
        return 5
    if wind_speed_kmh <= 20:
        return 4
    if wind_speed_kmh <= 30:
        return 2
    if wind_speed_kmh <= 40:
        return 1
    return 0


def synergy_adjustment(
    cloud_cover: Optional[float],
    humidity: Optional[float],
    visibility_km: Optional[float],
) -> int:
    """
    Cross-factor correction in [-4, +4].

    Near-fog visibility forces -4 before any bonus path is considered.
    """
    if not _missing(visibility_km):
        if visibility_km < 3:
            return -SYNERGY_BOUND
        if visibility_km < 5:
            return -3

    if _missing(cloud_cover) or _missing(humidity):
        return 0

    if cloud_cover < 15 and humidity < 50:
        return -2  # vivid but boring: crisp air, empty sky
    if 30 <= cloud_cover <= 60 and humidity <= 65:
        return SYNERGY_BOUND
    if 25 <= cloud_cover <= 65 and humidity <= 75:
        return 2
    if cloud_cover > 75 and humidity > 85:
        return -3
    if cloud_cover < 15:
        return -1
    if humidity > 90:
        return -2
    return 0


def post_rain_bonus(snapshot: AtmosphericSnapshot) -> Tuple[int, bool]:
    """
    Atmospheric washout bonus (0 or +5).

    Overnight rain followed by a dry dawn leaves the clearest air and
    broken cloud. With no overnight rain data, fall back to the
    post-rain signature: high visibility, broken cloud, humid air.

    Returns:
        (bonus, is_post_rain)
    """
    precip = 0 if _missing(snapshot.precip_probability) else snapshot.precip_probability
    if precip > 20:
        return 0, False

    if snapshot.night_hours_of_rain is not None:
        if snapshot.night_hours_of_rain > 0:
            return POST_RAIN_BONUS, True
        return 0, False

    vis = snapshot.visibility_km
    cloud = snapshot.cloud_cover
    humidity = snapshot.humidity
    if _missing(vis) or _missing(cloud) or _missing(humidity):
        return 0, False
    if vis >= 15 and 20 <= cloud <= 60 and 55 <= humidity <= 85:
        return POST_RAIN_BONUS, True
    return 0, False


def solar_angle_bonus(when: Optional[Union[date, datetime]], latitude: float = 13.0) -> int:
    """
    Seasonal bonus in [-2, +2] from the date alone.

    Winter sunrises come up at a shallower angle, stretching the colored
    twilight; summer sunrises climb fast. Uses the solar declination.
    """
    if when is None:
        return 0
    day_of_year = when.timetuple().tm_yday
    declination = 23.45 * math.sin(math.radians(360 * (284 + day_of_year) / 365))
    hemisphere = -1 if latitude < 0 else 1
    bonus = _round(-declination / 23.45 * SOLAR_BOUND * hemisphere)
    return max(-SOLAR_BOUND, min(SOLAR_BOUND, bonus))


def get_verdict(score: int) -> Verdict:
    for threshold, verdict in VERDICT_THRESHOLDS:
        if score >= threshold:
            return verdict
    return Verdict.UNFAVORABLE


def get_recommendation(score: int) -> Recommendation:
    for threshold, recommendation in RECOMMENDATION_THRESHOLDS:
        if score >= threshold:
            return recommendation
    return Recommendation.NO


def calculate_sunrise_score(snapshot: AtmosphericSnapshot, latitude: float = 13.0) -> ScoreBreakdown:
    """
    MASTER SCORING FUNCTION

    Args:
        snapshot: Merged atmospheric snapshot at the target hour
        latitude: Point latitude (solar bonus hemisphere)

    Returns:
        ScoreBreakdown with composite, verdict and recommendation
    """
    s = snapshot
    visibility = round(s.visibility_km, 1) if not _missing(s.visibility_km) else None

    factors = {
        "cloud_cover": FactorScore(s.cloud_cover, score_cloud_cover(s.cloud_cover), MAX_POINTS["cloud_cover"]),
        "multi_level_cloud": FactorScore(
            {"high": s.high_cloud, "mid": s.mid_cloud, "low": s.low_cloud},
            score_multi_level_cloud(s.high_cloud, s.mid_cloud, s.low_cloud, s.ceiling_m, s.cloud_cover),
            MAX_POINTS["multi_level_cloud"],
        ),
        "humidity": FactorScore(s.humidity, score_humidity(s.humidity), MAX_POINTS["humidity"]),
        "pressure_trend": FactorScore(
            pressure_change(s.pressure_series), score_pressure_trend(s.pressure_series), MAX_POINTS["pressure_trend"]
        ),
        "aod": FactorScore(s.aod, score_aod(s.aod), MAX_POINTS["aod"]),
        "visibility": FactorScore(visibility, score_visibility(s.visibility_km), MAX_POINTS["visibility"]),
        "weather": FactorScore(
            s.precip_probability,
            score_weather_conditions(s.precip_probability, s.has_precipitation, s.weather_description),
            MAX_POINTS["weather"],
        ),
        "wind": FactorScore(s.wind_speed_kmh, score_wind(s.wind_speed_kmh), MAX_POINTS["wind"]),
    }

    synergy = synergy_adjustment(s.cloud_cover, s.humidity, s.visibility_km)
    rain_bonus, is_post_rain = post_rain_bonus(s)
    solar = solar_angle_bonus(s.target_time, latitude)

    base = sum(f.score for f in factors.values())
    composite = max(0, min(100, base + synergy + rain_bonus + solar))

    logger.debug(
        "[scoring] "
        + " | ".join(f"{name}={f.score}/{f.max_score}" for name, f in factors.items())
        + f" | synergy={synergy:+d} post_rain=+{rain_bonus} solar={solar:+d} => {composite}"
    )

    return ScoreBreakdown(
        factors=factors,
        synergy=synergy,
        post_rain_bonus=rain_bonus,
        is_post_rain=is_post_rain,
        solar_bonus=solar,
        composite=composite,
        verdict=get_verdict(composite),
        recommendation=get_recommendation(composite),
    )
