"""Great-circle distance and coordinate-based proximity scoring."""

import math

from .constants import EARTH_RADIUS_M, MAX_PROXIMITY_DISTANCE_M
from .models import Entity


def haversine_distance(
    coord1: tuple[float, float],
    coord2: tuple[float, float],
    radius: float = EARTH_RADIUS_M,
) -> float:
    """Distance in meters between two (lat, lon) points in degrees."""
    lat1, lon1 = coord1
    lat2, lon2 = coord2
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    delta_lat = math.radians(lat2 - lat1)
    delta_lon = math.radians(lon2 - lon1)

    a = (
        math.sin(delta_lat / 2) ** 2
        + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(delta_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return radius * c


def first_coordinate(entity: Entity) -> tuple[float, float] | None:
    """Coordinate of the entity's first coordinate-bearing tag."""
    for tag in entity.tags:
        coordinate = tag.coordinate
        if coordinate is not None:
            return coordinate
    return None


def proximity_score(
    distance_m: float,
    max_distance_m: float = MAX_PROXIMITY_DISTANCE_M,
) -> float:
    """Map a distance to [0, 1]: 1.0 at zero distance, 0.0 at or beyond the cap.

    Examples:
        >>> proximity_score(100.0)
        0.99
        >>> proximity_score(20_000.0)
        0.0
    """
    if max_distance_m <= 0:
        return 0.0
    return 1.0 - min(distance_m, max_distance_m) / max_distance_m


def entity_distance(e1: Entity, e2: Entity) -> float | None:
    """Distance between two entities' first coordinates, None if unknown."""
    coord1 = first_coordinate(e1)
    coord2 = first_coordinate(e2)
    if coord1 is None or coord2 is None:
        return None
    distance = haversine_distance(coord1, coord2)
    return distance if math.isfinite(distance) else None
