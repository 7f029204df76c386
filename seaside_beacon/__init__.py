"""
Seaside Beacon: Sunrise Quality Forecaster

Predicts how good tomorrow's sunrise will look at Chennai's beaches, as a
0-100 score with a verdict and a GO / MAYBE / SKIP / NO recommendation.

This package implements a cache-first approach:
- Two upstreams (AccuWeather, Open-Meteo) behind one four-layer fetch path:
  positive cache, negative cache, in-flight dedup, retry with backoff
- Stale data is served rather than nothing when an upstream is down
- Scoring is deterministic and pure (no I/O)

Architecture:
    providers/       - Upstream clients:
                       * base.py        - Generic four-layer ProviderClient
                       * accuweather.py - Location-keyed, 50 calls/day free tier
                       * open_meteo.py  - Grid-keyed forecast + air quality
    grid.py          - Coordinate -> shared grid cell key
    cache_manager.py - Positive / negative cache per endpoint
    inflight.py      - Request coalescing
    resilience.py    - Failure classification + retry with backoff
    selector.py      - Per-field provider priority merge
    scoring.py       - Sunrise scoring engine
    labels.py        - User-facing atmospheric labels
    forecast.py      - get_score orchestration
    scheduler.py     - Model-cycle cache warmup

Entry Points:
    main.py          - CLI (points, score, warmup, schedule)
"""

__version__ = "1.0.0"
__author__ = "Seaside Beacon"
