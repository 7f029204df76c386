"""
Grid key reduction for Seaside Beacon

Open-Meteo is queried per coordinate, but all Chennai beaches sit inside a
couple of model cells. Snapping coordinates to a coarse grid lets nearby
points share one cache entry and one in-flight request.
"""

import math
from dataclasses import dataclass
from typing import Dict

# ~28 km at Chennai's latitude, coarser than the upstream models' native cells
DEFAULT_RESOLUTION_DEG = 0.25


@dataclass(frozen=True)
class GridCell:
    """Rounded coordinate pair used as a cache / in-flight key."""
    lat: float
    lon: float

    def as_params(self) -> Dict[str, float]:
        return {"latitude": self.lat, "longitude": self.lon}

    def __str__(self) -> str:
        return f"{self.lat:.2f},{self.lon:.2f}"


class GridKeyReducer:
    """Maps a coordinate onto the grid cell that owns it."""

    def __init__(self, resolution_deg: float = DEFAULT_RESOLUTION_DEG):
        if resolution_deg <= 0:
            raise ValueError(f"Grid resolution must be positive, got {resolution_deg}")
        self.resolution_deg = resolution_deg

    def _snap(self, value: float) -> float:
        # Half-up rounding so 12.875 and 12.8750001 land in the same cell
        steps = math.floor(value / self.resolution_deg + 0.5)
        return round(steps * self.resolution_deg, 4)

    def reduce(self, lat: float, lon: float) -> GridCell:
        if not -90.0 <= lat <= 90.0 or not -180.0 <= lon <= 180.0:
            raise ValueError(f"Coordinate out of range: ({lat}, {lon})")
        return GridCell(lat=self._snap(lat), lon=self._snap(lon))
