"""
Data model for Seaside Beacon

AtmosphericSnapshot is the normalized, merged view of both providers at the
target hour. Every field is independently nullable; the scoring engine
supplies a neutral default for each one.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class Verdict(Enum):
    EXCELLENT = "EXCELLENT"
    VERY_GOOD = "VERY GOOD"
    GOOD = "GOOD"
    FAIR = "FAIR"
    POOR = "POOR"
    UNFAVORABLE = "UNFAVORABLE"


class Recommendation(Enum):
    GO = "GO"
    MAYBE = "MAYBE"
    SKIP = "SKIP"
    NO = "NO"


@dataclass
class AtmosphericSnapshot:
    cloud_cover: Optional[float] = None          # %
    humidity: Optional[float] = None             # %
    visibility_km: Optional[float] = None
    wind_speed_kmh: Optional[float] = None
    pressure_series: Optional[List[float]] = None  # hPa, 6 h lookback ending at target
    aod: Optional[float] = None
    high_cloud: Optional[float] = None           # %
    mid_cloud: Optional[float] = None            # %
    low_cloud: Optional[float] = None            # %
    precip_probability: Optional[float] = None   # %
    has_precipitation: Optional[bool] = None
    weather_description: Optional[str] = None
    temperature_c: Optional[float] = None
    ceiling_m: Optional[float] = None
    night_hours_of_rain: Optional[float] = None
    pm2_5: Optional[float] = None
    pm10: Optional[float] = None
    sunrise: Optional[str] = None
    target_time: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        if self.target_time is not None:
            data["target_time"] = self.target_time.isoformat()
        return data


@dataclass(frozen=True)
class FactorScore:
    value: Any
    score: int
    max_score: int

    def to_dict(self) -> Dict[str, Any]:
        return {"value": self.value, "score": self.score, "maxScore": self.max_score}


@dataclass
class ScoreBreakdown:
    factors: Dict[str, FactorScore]
    synergy: int
    post_rain_bonus: int
    is_post_rain: bool
    solar_bonus: int
    composite: int
    verdict: Verdict
    recommendation: Recommendation

    @property
    def base_score(self) -> int:
        return sum(f.score for f in self.factors.values())

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {name: f.to_dict() for name, f in self.factors.items()}
        data.update({
            "synergy": self.synergy,
            "postRainBonus": self.post_rain_bonus,
            "isPostRain": self.is_post_rain,
            "solarBonus": self.solar_bonus,
            "composite": self.composite,
            "verdict": self.verdict.value,
            "recommendation": self.recommendation.value,
        })
        return data


@dataclass
class ScoreResult:
    """What get_score hands to its collaborators (routes, email, insights)."""
    point_id: str
    point_name: str
    snapshot: AtmosphericSnapshot
    breakdown: ScoreBreakdown
    source_attribution: Dict[str, Optional[str]]
    labels: Dict[str, str]
    degraded_sources: List[str] = field(default_factory=list)
    generated_at: Optional[datetime] = None

    @property
    def score(self) -> int:
        return self.breakdown.composite

    @property
    def verdict(self) -> Verdict:
        return self.breakdown.verdict

    @property
    def recommendation(self) -> Recommendation:
        return self.breakdown.recommendation

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pointId": self.point_id,
            "pointName": self.point_name,
            "score": self.score,
            "verdict": self.verdict.value,
            "recommendation": self.recommendation.value,
            "snapshot": self.snapshot.to_dict(),
            "breakdown": self.breakdown.to_dict(),
            "sourceAttribution": dict(self.source_attribution),
            "labels": dict(self.labels),
            "degradedSources": list(self.degraded_sources),
            "generatedAt": self.generated_at.isoformat() if self.generated_at else None,
        }
