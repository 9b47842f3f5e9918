"""
Route diagnostics.

Standalone helpers behind the point-on-route and route-overlap endpoints:

    - check_point_on_route: how far a point lies from a driver's actual route
    - calculate_route_overlap: share of one route running alongside another
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Tuple

from common.utils.geo import distance_to_polyline_km, distance_to_segment_km, haversine_km
from .exceptions import RoutingError
from .sources import RouteSource
from .types import GeoPoint

logger = logging.getLogger(__name__)

DEFAULT_POINT_THRESHOLD_KM = 2.0
DEFAULT_OVERLAP_THRESHOLD_KM = 0.1


@dataclass(frozen=True)
class PointOnRouteResult:
    is_on_route: bool
    distance_km: float
    nearest_point: GeoPoint
    route_aware: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "isOnRoute": self.is_on_route,
            "distance": round(self.distance_km, 3),
            "nearestPoint": self.nearest_point.to_dict(),
            "routeAware": self.route_aware,
        }


@dataclass(frozen=True)
class RouteOverlap:
    overlap_percentage: float
    overlap_distance_km: float
    route_a_distance_km: float
    route_b_distance_km: float

    def to_dict(self) -> Dict[str, float]:
        return {
            "overlapPercentage": round(self.overlap_percentage, 2),
            "overlapDistance": round(self.overlap_distance_km, 3),
            "route1Distance": round(self.route_a_distance_km, 3),
            "route2Distance": round(self.route_b_distance_km, 3),
        }


def check_point_on_route(
    source: RouteSource,
    point: GeoPoint,
    route_start: GeoPoint,
    route_end: GeoPoint,
    threshold_km: float = DEFAULT_POINT_THRESHOLD_KM,
) -> PointOnRouteResult:
    """
    Check whether ``point`` is within ``threshold_km`` of the driving route
    from ``route_start`` to ``route_end``.

    When the route cannot be fetched, the straight-line distance to
    ``route_start`` is reported and the point is never considered on-route.
    """
    try:
        route = source.get_route(route_start, route_end)
    except RoutingError as exc:
        logger.warning("Point-on-route check falling back to straight line: %s", exc)
        return PointOnRouteResult(
            is_on_route=False,
            distance_km=haversine_km(point, route_start),
            nearest_point=route_start,
            route_aware=False,
        )

    vertices = route.polyline
    min_distance = float("inf")
    nearest = vertices[0]
    if len(vertices) == 1:
        min_distance = haversine_km(point, nearest)

    for seg_start, seg_end in zip(vertices, vertices[1:]):
        distance = distance_to_segment_km(point, seg_start, seg_end)
        if distance < min_distance:
            min_distance = distance
            nearest = seg_start

    return PointOnRouteResult(
        is_on_route=min_distance <= threshold_km,
        distance_km=min_distance,
        nearest_point=nearest,
    )


def calculate_route_overlap(
    source: RouteSource,
    route_a: Tuple[GeoPoint, GeoPoint],
    route_b: Tuple[GeoPoint, GeoPoint],
    threshold_km: float = DEFAULT_OVERLAP_THRESHOLD_KM,
) -> RouteOverlap:
    """
    Estimate how much of route A runs alongside route B.

    The vertices of A are sampled against B's polyline. A segment of A counts
    as shared when both of its vertices lie within ``threshold_km`` of B. The
    percentage is the shared length over A's polyline length, clamped to
    [0, 100].

    Raises:
        RoutingError: If either route cannot be fetched
    """
    geometry_a = source.get_route(*route_a)
    geometry_b = source.get_route(*route_b)

    points_a = geometry_a.polyline
    points_b = geometry_b.polyline

    near_b = [distance_to_polyline_km(point, points_b) <= threshold_km for point in points_a]

    overlap_km = 0.0
    length_a = 0.0
    for index, (seg_start, seg_end) in enumerate(zip(points_a, points_a[1:])):
        length = haversine_km(seg_start, seg_end)
        length_a += length
        if near_b[index] and near_b[index + 1]:
            overlap_km += length

    if length_a > 0:
        percentage = overlap_km / length_a * 100
    else:
        percentage = 0.0

    return RouteOverlap(
        overlap_percentage=min(100.0, max(0.0, percentage)),
        overlap_distance_km=overlap_km,
        route_a_distance_km=geometry_a.distance_km,
        route_b_distance_km=geometry_b.distance_km,
    )
