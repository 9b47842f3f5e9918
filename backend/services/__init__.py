"""
Services package - Business logic layer.

This package contains the route matching logic. It works on plain value
objects and is decoupled from the HTTP layer and the ORM.

Modules:
    - routing: Driving routes, route caching and route diagnostics
    - matching: Route compatibility scoring and standing search checks
"""

# Expose commonly used functions at package level
from .matching import (
    MatchingEngine,
    find_matching_rides,
    on_trip_created,
    search,
    select_for_display,
    InvalidRoute,
)
from .routing import (
    get_route_source,
    check_point_on_route,
    calculate_route_overlap,
    RoutingError,
    RouteUnavailable,
    ProviderTransientError,
)

__all__ = [
    # Matching
    "MatchingEngine",
    "find_matching_rides",
    "on_trip_created",
    "search",
    "select_for_display",
    # Routing
    "get_route_source",
    "check_point_on_route",
    "calculate_route_overlap",
    # Exceptions
    "InvalidRoute",
    "RoutingError",
    "RouteUnavailable",
    "ProviderTransientError",
]
