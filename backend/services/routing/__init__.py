"""
Driving route lookups.

This package handles:
    - The RouteSource interface and its Google / in-memory implementations
    - TTL caching of routes in the Django cache
    - Point-on-route and route-overlap diagnostics
"""

from .cache import CachedRouteSource, route_cache_key
from .diagnostics import calculate_route_overlap, check_point_on_route
from .exceptions import ProviderTransientError, RouteUnavailable, RoutingError
from .provider import get_route_source
from .sources import GoogleDirectionsSource, InMemoryRouteSource, RouteSource
from .types import GeoPoint, RouteGeometry, RouteLeg

__all__ = [
    "CachedRouteSource",
    "route_cache_key",
    "calculate_route_overlap",
    "check_point_on_route",
    "ProviderTransientError",
    "RouteUnavailable",
    "RoutingError",
    "get_route_source",
    "GoogleDirectionsSource",
    "InMemoryRouteSource",
    "RouteSource",
    "GeoPoint",
    "RouteGeometry",
    "RouteLeg",
]
