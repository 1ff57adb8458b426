"""
Geospatial helpers: great-circle distance, radius filtering, grid clustering
and sun-based time-of-day classification.

All coordinates are WGS84 decimal degrees. Distances are kilometres.
"""

import math
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, TypeVar

EARTH_RADIUS_KM = 6371.0
BOX_MARGIN = 1e-9  # degrees, absorbs float rounding at the boundary

# Sun elevation thresholds (degrees)
SUNRISE_ELEVATION = -0.833  # refraction + solar disc radius
CIVIL_TWILIGHT_ELEVATION = -6.0

T = TypeVar("T")


def distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Haversine distance between two points."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def is_within_radius(
    center_lat: float,
    center_lon: float,
    point_lat: float,
    point_lon: float,
    radius_km: float,
) -> bool:
    """True if the point lies within radius_km of the center (boundary included)."""
    return distance_km(center_lat, center_lon, point_lat, point_lon) <= radius_km


def route_distance_km(points: Sequence[tuple[float, float]]) -> float:
    """Total length of a path of (lat, lon) points, in the order given."""
    total = 0.0
    for (lat1, lon1), (lat2, lon2) in zip(points, points[1:]):
        total += distance_km(lat1, lon1, lat2, lon2)
    return total


def bounding_box(lat: float, lon: float, radius_km: float) -> tuple[float, float, float, float]:
    """
    Lat/lon window that contains every point within radius_km of (lat, lon).

    Used as a cheap SQL pre-filter; callers still apply the exact haversine
    check. Near the poles the longitude span opens up to the full circle.

    Returns:
        (min_lat, max_lat, min_lon, max_lon)
    """
    angular = radius_km / EARTH_RADIUS_KM
    d_lat = math.degrees(angular) + BOX_MARGIN
    cos_lat = math.cos(math.radians(lat))
    if angular >= math.pi / 2 or math.sin(angular) >= cos_lat:
        d_lon = 180.0
    else:
        d_lon = min(180.0, math.degrees(math.asin(math.sin(angular) / cos_lat)) + BOX_MARGIN)
    return lat - d_lat, lat + d_lat, lon - d_lon, lon + d_lon


def filter_within_radius(
    items: Iterable[T],
    lat: float,
    lon: float,
    radius_km: float,
    key: Callable[[T], tuple[float, float]],
) -> list[T]:
    """Keep the items whose key(item) -> (lat, lon) is within the radius."""
    return [
        item for item in items
        if is_within_radius(lat, lon, *key(item), radius_km)
    ]


# =============================================================================
# Grid clustering
# =============================================================================

@dataclass
class Cluster:
    """Located items that fall into the same grid cell."""
    cell: str
    items: list[Any] = field(default_factory=list)
    center_lat: float = 0.0
    center_lon: float = 0.0

    @property
    def count(self) -> int:
        return len(self.items)


def grid_cell(lat: float, lon: float, grid_size: float = 0.1) -> str:
    grid_lat = math.floor(lat / grid_size) * grid_size
    grid_lon = math.floor(lon / grid_size) * grid_size
    return f"{grid_lat:.1f},{grid_lon:.1f}"


def cluster_by_grid(
    items: Iterable[T],
    key: Callable[[T], tuple[float, float]],
    grid_size: float = 0.1,
) -> list[Cluster]:
    """
    Group items into grid cells (0.1 degree is roughly 10 km).

    Returns clusters with their centroid, largest first.
    """
    clusters: dict[str, Cluster] = {}
    for item in items:
        lat, lon = key(item)
        cell = grid_cell(lat, lon, grid_size)
        clusters.setdefault(cell, Cluster(cell=cell)).items.append(item)

    for cluster in clusters.values():
        coords = [key(item) for item in cluster.items]
        cluster.center_lat = sum(c[0] for c in coords) / len(coords)
        cluster.center_lon = sum(c[1] for c in coords) / len(coords)

    return sorted(clusters.values(), key=lambda c: c.count, reverse=True)


# =============================================================================
# Time of day
# =============================================================================

def solar_elevation(when: datetime, lat: float, lon: float) -> float:
    """
    Approximate sun elevation in degrees (NOAA general solar position
    equations, accurate to a fraction of a degree).

    Naive datetimes are treated as UTC.
    """
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    when = when.astimezone(timezone.utc)

    day_of_year = when.timetuple().tm_yday
    hour = when.hour + when.minute / 60 + when.second / 3600
    gamma = 2 * math.pi / 365 * (day_of_year - 1 + (hour - 12) / 24)

    eq_time = 229.18 * (
        0.000075
        + 0.001868 * math.cos(gamma)
        - 0.032077 * math.sin(gamma)
        - 0.014615 * math.cos(2 * gamma)
        - 0.040849 * math.sin(2 * gamma)
    )
    decl = (
        0.006918
        - 0.399912 * math.cos(gamma)
        + 0.070257 * math.sin(gamma)
        - 0.006758 * math.cos(2 * gamma)
        + 0.000907 * math.sin(2 * gamma)
        - 0.002697 * math.cos(3 * gamma)
        + 0.00148 * math.sin(3 * gamma)
    )

    true_solar_minutes = hour * 60 + eq_time + 4 * lon
    hour_angle = math.radians(true_solar_minutes / 4 - 180)
    lat_rad = math.radians(lat)

    cos_zenith = (
        math.sin(lat_rad) * math.sin(decl)
        + math.cos(lat_rad) * math.cos(decl) * math.cos(hour_angle)
    )
    cos_zenith = max(-1.0, min(1.0, cos_zenith))
    return 90 - math.degrees(math.acos(cos_zenith))


def _is_morning(when: datetime, lon: float) -> bool:
    """True before local solar noon."""
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    when = when.astimezone(timezone.utc)
    solar_hour = (when.hour + when.minute / 60 + lon / 15) % 24
    return solar_hour < 12


def time_of_day(when: datetime, lat: float, lon: float) -> str:
    """Classify a moment at a location as Night, Dawn, Day or Dusk."""
    elevation = solar_elevation(when, lat, lon)
    if elevation >= SUNRISE_ELEVATION:
        return "Day"
    if elevation >= CIVIL_TWILIGHT_ELEVATION:
        return "Dawn" if _is_morning(when, lon) else "Dusk"
    return "Night"
