"""
Geographic utility functions.

This module provides the core geospatial calculations used by the route
matching services: great-circle distances, point-to-segment distances and
nearest-vertex lookups along a decoded route polyline.

Points are any objects exposing ``latitude`` and ``longitude`` attributes
(normally ``services.routing.types.GeoPoint``).
"""

from math import radians, cos, sin, asin, sqrt
from typing import Sequence

EARTH_RADIUS_KM = 6371.0

# Planar degree -> km multiplier. Only valid at metro-area scale.
KM_PER_DEGREE = 111.0


def haversine_km(a, b) -> float:
    """
    Great-circle distance between two points in kilometres.

    Args:
        a: First point (latitude/longitude attributes)
        b: Second point

    Returns:
        Distance in kilometres
    """
    lat1, lon1, lat2, lon2 = map(
        radians,
        [float(a.latitude), float(a.longitude), float(b.latitude), float(b.longitude)],
    )
    dlat = lat2 - lat1
    dlon = lon2 - lon1
    h = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlon / 2) ** 2
    # rounding can push h marginally above 1 for antipodal points
    return 2 * EARTH_RADIUS_KM * asin(sqrt(min(1.0, h)))


def distance_to_segment_km(point, seg_start, seg_end) -> float:
    """
    Distance from ``point`` to the segment ``seg_start`` -> ``seg_end``.

    The point is projected onto the line through the segment in plain degree
    space and the projection parameter is clamped to [0, 1], so beyond either
    end the distance to that endpoint is used. The planar degree distance is
    converted with a fixed 111 km/degree factor.
    """
    px, py = float(point.latitude), float(point.longitude)
    sx, sy = float(seg_start.latitude), float(seg_start.longitude)
    ex, ey = float(seg_end.latitude), float(seg_end.longitude)

    dx = ex - sx
    dy = ey - sy
    length_sq = dx * dx + dy * dy

    if length_sq == 0:
        t = 0.0
    else:
        t = ((px - sx) * dx + (py - sy) * dy) / length_sq
        t = max(0.0, min(1.0, t))

    nearest_x = sx + t * dx
    nearest_y = sy + t * dy
    return sqrt((px - nearest_x) ** 2 + (py - nearest_y) ** 2) * KM_PER_DEGREE


def is_point_on_segment(point, seg_start, seg_end, threshold_km: float) -> bool:
    """True when ``point`` lies within ``threshold_km`` of the segment."""
    return distance_to_segment_km(point, seg_start, seg_end) <= threshold_km


def distance_to_polyline_km(point, polyline: Sequence) -> float:
    """
    Smallest distance from ``point`` to any segment of ``polyline``.

    A single-vertex polyline degrades to the distance to that vertex.
    Raises ValueError on an empty polyline.
    """
    if not polyline:
        raise ValueError("Cannot measure distance to an empty polyline")
    if len(polyline) == 1:
        return distance_to_segment_km(point, polyline[0], polyline[0])

    return min(
        distance_to_segment_km(point, polyline[i], polyline[i + 1])
        for i in range(len(polyline) - 1)
    )


def nearest_vertex_index(point, polyline: Sequence) -> int:
    """Index of the polyline vertex closest to ``point`` (first one wins ties)."""
    if not polyline:
        raise ValueError("Cannot search an empty polyline")

    best_index = 0
    best_distance = float("inf")
    for index, vertex in enumerate(polyline):
        distance = haversine_km(point, vertex)
        if distance < best_distance:
            best_distance = distance
            best_index = index
    return best_index
