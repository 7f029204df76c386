"""
Providers package for Seaside Beacon

Both upstreams share the acquisition protocol in base.py:

1. AccuWeather - Commercial provider, keyed by location (one key for Chennai)
   hourly (12 h window) + daily (sunrise, overnight rain)
2. Open-Meteo  - Open model API, keyed by grid cell, optional reverse proxy
   forecast (cloud layers, pressure) + air quality (AOD, PM)
"""

from seaside_beacon.providers.base import (
    FetchResult,
    ProviderClient,
)

from seaside_beacon.providers.accuweather import (
    AccuWeatherClient,
    AccuWeatherDay,
    AccuWeatherHour,
)

from seaside_beacon.providers.open_meteo import (
    AirQualityHour,
    OpenMeteoClient,
    OpenMeteoHour,
)

__all__ = [
    # Acquisition protocol
    "FetchResult",
    "ProviderClient",
    # AccuWeather (location-keyed)
    "AccuWeatherClient",
    "AccuWeatherDay",
    "AccuWeatherHour",
    # Open-Meteo (grid-keyed)
    "AirQualityHour",
    "OpenMeteoClient",
    "OpenMeteoHour",
]
