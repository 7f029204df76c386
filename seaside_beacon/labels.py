"""
Atmospheric labels for Seaside Beacon

Short user-facing ratings plus a one-line context per factor, for the
frontend cards, the email and the insight prompt. "N/A" when the input
is missing.
"""

from typing import Dict, Optional

from seaside_beacon.models import AtmosphericSnapshot, ScoreBreakdown
from seaside_beacon.scoring import pressure_change

NA = "N/A"


def cloud_label(cloud_cover: Optional[float]) -> str:
    if cloud_cover is None:
        return NA
    if 30 <= cloud_cover <= 60:
        return "Optimal"
    if cloud_cover < 30:
        return "Too Clear"
    if cloud_cover <= 75:
        return "Partly Overcast"
    return "Overcast"


def cloud_context(cloud_cover: Optional[float]) -> str:
    if cloud_cover is None:
        return NA
    if 30 <= cloud_cover <= 60:
        return "Acts as canvas for orange and red sky reflections"
    if cloud_cover < 30:
        return "Clear skies produce pale, less dramatic colors"
    if cloud_cover <= 75:
        return "Some gaps allow light through, moderate color potential"
    return "Dense coverage blocks most light and color"


def humidity_label(humidity: Optional[float]) -> str:
    if humidity is None:
        return NA
    if humidity <= 40:
        return "Excellent"
    if humidity <= 55:
        return "Very Good"
    if humidity <= 70:
        return "Moderate"
    if humidity <= 85:
        return "High"
    return "Very High"


def humidity_context(humidity: Optional[float]) -> str:
    if humidity is None:
        return NA
    if humidity <= 55:
        return "Low humidity = crisp, vibrant, saturated colors"
    if humidity <= 70:
        return "Moderate humidity may slightly mute sky colors"
    if humidity <= 90:
        return "Typical coastal dawn humidity, colors softened but present"
    return "Near-saturated air scatters light, washing out colors"


def visibility_label(visibility_km: Optional[float]) -> str:
    if visibility_km is None:
        return NA
    if visibility_km >= 15:
        return "Exceptional"
    if visibility_km >= 10:
        return "Excellent"
    if visibility_km >= 8:
        return "Very Good"
    if visibility_km >= 5:
        return "Good"
    return "Poor"


def visibility_context(visibility_km: Optional[float]) -> str:
    if visibility_km is None:
        return NA
    if visibility_km >= 10:
        return "Excellent clarity enhances color intensity and contrast"
    if visibility_km >= 8:
        return "Good atmospheric scattering boosts warm tones"
    return "Reduced visibility softens colors and contrast"


def wind_label(wind_speed_kmh: Optional[float]) -> str:
    if wind_speed_kmh is None:
        return NA
    if wind_speed_kmh <= 10:
        return "Calm"
    if wind_speed_kmh <= 20:
        return "Light"
    if wind_speed_kmh <= 30:
        return "Moderate"
    return "Strong"


def cloud_layer_label(high: Optional[float], mid: Optional[float], low: Optional[float]) -> str:
    if high is None or mid is None or low is None:
        return NA
    if high >= 30 and low <= 30:
        return "High Canvas"
    if high >= 30 and low <= 60:
        return "Mixed Layers"
    if high < 30 and mid >= 50 and low <= 40:
        return "Mid Canvas"
    if low > 60:
        return "Low Cloud Block"
    return "Thin Layers"


def cloud_layer_context(high: Optional[float], mid: Optional[float], low: Optional[float]) -> str:
    if high is None or mid is None or low is None:
        return NA
    if high >= 30 and low <= 30:
        return "High clouds catch first light while the horizon stays open"
    if low > 60:
        return "Low clouds on the horizon may block the sun at rise"
    if mid >= 50:
        return "Mid-level clouds can glow, but with less height for color"
    return "Some layered cloud, color depends on horizon gaps"


def aod_label(aod: Optional[float]) -> str:
    if aod is None or aod < 0:
        return NA
    if aod < 0.1:
        return "Crystal Clear"
    if aod < 0.2:
        return "Very Clean"
    if aod < 0.4:
        return "Clean"
    if aod < 0.7:
        return "Hazy"
    if aod < 1.0:
        return "Very Hazy"
    return "Polluted"


def aod_context(aod: Optional[float]) -> str:
    if aod is None or aod < 0:
        return NA
    if aod < 0.05:
        return "Very clean air, slightly paler colors"
    if aod <= 0.2:
        return "Light aerosol scatters red without muting it"
    if aod < 0.7:
        return "Haze dulls colors and softens the sun disc"
    return "Heavy haze or dust, colors largely washed out"


def pressure_label(delta: Optional[float]) -> str:
    if delta is None:
        return NA
    if delta <= -9:
        return "Storm Risk"
    if delta < -6:
        return "Rapid Fall"
    if delta <= -2:
        return "Clearing Front"
    if delta < -0.5:
        return "Slight Fall"
    if delta <= 0.5:
        return "Stable"
    if delta <= 3:
        return "Rising"
    return "Strong Rise"


def pressure_context(delta: Optional[float]) -> str:
    if delta is None:
        return NA
    if delta < -6:
        return "Rapid pressure fall, unsettled and stormy dawn likely"
    if delta <= -2:
        return "Falling pressure brings broken, dramatic cloud"
    if delta <= 0.5:
        return "Steady pressure, little change in the sky overnight"
    return "Rising pressure favors a stable, flat sky"


def atmospheric_labels(snapshot: AtmosphericSnapshot, breakdown: Optional[ScoreBreakdown] = None) -> Dict[str, str]:
    """
    Labels and context lines for every displayed factor.

    The pressure change is taken from the breakdown when one is given, so
    the label always agrees with the scored value.
    """
    s = snapshot
    if breakdown is not None and "pressure_trend" in breakdown.factors:
        delta = breakdown.factors["pressure_trend"].value
    else:
        delta = pressure_change(s.pressure_series)

    return {
        "cloud_label": cloud_label(s.cloud_cover),
        "cloud_context": cloud_context(s.cloud_cover),
        "humidity_label": humidity_label(s.humidity),
        "humidity_context": humidity_context(s.humidity),
        "visibility_label": visibility_label(s.visibility_km),
        "visibility_context": visibility_context(s.visibility_km),
        "wind_label": wind_label(s.wind_speed_kmh),
        "cloud_layer_label": cloud_layer_label(s.high_cloud, s.mid_cloud, s.low_cloud),
        "cloud_layer_context": cloud_layer_context(s.high_cloud, s.mid_cloud, s.low_cloud),
        "aod_label": aod_label(s.aod),
        "aod_context": aod_context(s.aod),
        "pressure_label": pressure_label(delta),
        "pressure_context": pressure_context(delta),
    }
