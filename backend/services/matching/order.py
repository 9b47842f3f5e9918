"""
Order-on-route classification.

Decides whether a passenger's pickup comes before their dropoff along a
driver's actual route, and how far each point lies from that route.
"""

import logging

from common.utils.geo import distance_to_polyline_km, haversine_km, nearest_vertex_index
from services.routing import GeoPoint, RouteSource, RoutingError
from .types import OrderCheckResult

logger = logging.getLogger(__name__)

DEFAULT_ON_ROUTE_THRESHOLD_KM = 1.0


def straight_line_order_check(pickup: GeoPoint, dropoff: GeoPoint,
                              driver_origin: GeoPoint) -> OrderCheckResult:
    """
    Route-unaware fallback used whenever no driving route is available.

    Distances are straight-line distances to the driver's origin and the
    order is considered valid when the dropoff lies further from the origin
    than the pickup. Nothing is reported as on-route.
    """
    pickup_distance = haversine_km(pickup, driver_origin)
    dropoff_distance = haversine_km(dropoff, driver_origin)
    return OrderCheckResult(
        is_valid_order=dropoff_distance > pickup_distance,
        pickup_distance_km=pickup_distance,
        dropoff_distance_km=dropoff_distance,
        pickup_on_route=False,
        dropoff_on_route=False,
        route_aware=False,
    )


def check_route_order(
    source: RouteSource,
    pickup: GeoPoint,
    dropoff: GeoPoint,
    driver_origin: GeoPoint,
    driver_destination: GeoPoint,
    *,
    on_route_threshold_km: float = DEFAULT_ON_ROUTE_THRESHOLD_KM,
) -> OrderCheckResult:
    """
    Classify a pickup/dropoff pair against the driver's route.

    The order is valid only when the route vertex nearest the pickup comes
    strictly before the vertex nearest the dropoff. Distances and on-route
    flags come from a scan over the route's segments.

    Routing failures fall back to ``straight_line_order_check``.
    """
    try:
        route = source.get_route(driver_origin, driver_destination)
    except RoutingError as exc:
        logger.warning(
            "Route order check falling back to straight line (%s -> %s): %s",
            driver_origin.as_tuple(), driver_destination.as_tuple(), exc,
        )
        return straight_line_order_check(pickup, dropoff, driver_origin)

    vertices = route.polyline
    pickup_index = nearest_vertex_index(pickup, vertices)
    dropoff_index = nearest_vertex_index(dropoff, vertices)

    pickup_distance = distance_to_polyline_km(pickup, vertices)
    dropoff_distance = distance_to_polyline_km(dropoff, vertices)

    return OrderCheckResult(
        is_valid_order=pickup_index < dropoff_index,
        pickup_distance_km=pickup_distance,
        dropoff_distance_km=dropoff_distance,
        pickup_on_route=pickup_distance <= on_route_threshold_km,
        dropoff_on_route=dropoff_distance <= on_route_threshold_km,
    )
