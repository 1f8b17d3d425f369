"""
Geofence evaluation: great-circle distance between a position fix and a post.
Pure functions, no I/O.
"""
import math
from dataclasses import dataclass
from typing import Optional

EARTH_RADIUS_METERS = 6_371_000.0
DEFAULT_GEOFENCE_RADIUS_METERS = 500.0


@dataclass(frozen=True)
class Coordinates:
    """A WGS84 point. Latitude in [-90, 90], longitude in [-180, 180]."""
    latitude: float
    longitude: float
    accuracy: Optional[float] = None  # meters, as reported by the device


@dataclass(frozen=True)
class GeofenceResult:
    distance_meters: Optional[float]
    inside: bool


def haversine_distance(a: Coordinates, b: Coordinates) -> float:
    """Great-circle distance in meters between two points on a sphere of radius EARTH_RADIUS_METERS."""
    lat1 = math.radians(a.latitude)
    lat2 = math.radians(b.latitude)
    dlat = lat2 - lat1
    dlon = math.radians(b.longitude) - math.radians(a.longitude)

    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    # rounding can push h just past 1 for antipodal points
    h = min(1.0, max(0.0, h))
    return 2 * EARTH_RADIUS_METERS * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def evaluate(
    current: Coordinates,
    target: Optional[Coordinates],
    radius_meters: float = DEFAULT_GEOFENCE_RADIUS_METERS,
) -> GeofenceResult:
    """
    Decide whether ``current`` lies inside the circle of ``radius_meters`` around ``target``.

    A post without coordinates (``target is None``) admits every position, so guards
    at unmapped posts are never blocked. The boundary counts as inside.
    """
    if target is None:
        return GeofenceResult(distance_meters=None, inside=True)
    distance = haversine_distance(current, target)
    return GeofenceResult(distance_meters=distance, inside=distance <= radius_meters)
