"""
Route sources.

A RouteSource turns an ordered list of stops into a RouteGeometry. Two
implementations live here:

    - GoogleDirectionsSource: the Google Directions API (driving mode)
    - InMemoryRouteSource: deterministic straight-line routes, no network

Caching is layered on top by ``services.routing.cache.CachedRouteSource``.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from typing import Iterable, Optional, Sequence

import googlemaps
import polyline as polyline_codec
from googlemaps import exceptions as gmaps_exceptions

from common.utils.geo import haversine_km
from .exceptions import ProviderTransientError, RouteUnavailable
from .types import GeoPoint, RouteGeometry, RouteLeg

logger = logging.getLogger(__name__)

# Directions API statuses that are worth treating as temporary
TRANSIENT_API_STATUSES = {"OVER_QUERY_LIMIT", "UNKNOWN_ERROR"}


class RouteSource(ABC):
    """Capability interface for anything that can produce driving routes."""

    def get_route(self, origin: GeoPoint, destination: GeoPoint) -> RouteGeometry:
        """
        Driving route between two points.

        Raises:
            RouteUnavailable: If the provider has no route
            ProviderTransientError: On network failures
        """
        return self.route_through((origin, destination))

    def get_route_with_waypoints(
        self,
        origin: GeoPoint,
        waypoints: Optional[Sequence[GeoPoint]],
        destination: GeoPoint,
    ) -> RouteGeometry:
        """Driving route visiting ``waypoints`` in the given order."""
        waypoints = tuple(waypoints or ())
        if not waypoints:
            return self.get_route(origin, destination)
        return self.route_through((origin, *waypoints, destination))

    @abstractmethod
    def route_through(self, stops: Sequence[GeoPoint]) -> RouteGeometry:
        """Route visiting every stop in order (at least two stops)."""


class GoogleDirectionsSource(RouteSource):
    """Route source backed by the Google Directions API."""

    def __init__(self, api_key: Optional[str] = None, timeout: int = 10, client=None):
        if client is None:
            if not api_key:
                raise ValueError("A Google Maps API key is required")
            client = googlemaps.Client(
                key=api_key,
                timeout=timeout,
                retry_timeout=timeout,
                retry_over_query_limit=False,
            )
        self.client = client

    def route_through(self, stops: Sequence[GeoPoint]) -> RouteGeometry:
        if len(stops) < 2:
            raise ValueError("At least two stops are required to compute a route")

        origin, *waypoints, destination = stops
        try:
            routes = self.client.directions(
                origin=origin.as_tuple(),
                destination=destination.as_tuple(),
                mode="driving",
                waypoints=[point.as_tuple() for point in waypoints] or None,
                alternatives=False,
                # pickup must stay ahead of dropoff
                optimize_waypoints=False,
            )
        except gmaps_exceptions.ApiError as exc:
            if exc.status in TRANSIENT_API_STATUSES:
                raise ProviderTransientError(f"Directions API error: {exc.status}") from exc
            raise RouteUnavailable(f"No route found: {exc.status}") from exc
        except (gmaps_exceptions.Timeout, gmaps_exceptions.TransportError,
                gmaps_exceptions.HTTPError) as exc:
            raise ProviderTransientError(f"Directions request failed: {exc}") from exc

        if not routes:
            raise RouteUnavailable("No route found: ZERO_RESULTS")

        return self._parse_route(routes[0])

    @staticmethod
    def _parse_route(route: dict) -> RouteGeometry:
        """Convert one Directions API route into km/minutes and decoded points."""
        try:
            legs = tuple(
                RouteLeg(
                    distance_km=leg["distance"]["value"] / 1000,
                    duration_min=leg["duration"]["value"] / 60,
                    start=GeoPoint(leg["start_location"]["lat"], leg["start_location"]["lng"]),
                    end=GeoPoint(leg["end_location"]["lat"], leg["end_location"]["lng"]),
                )
                for leg in route["legs"]
            )
            points = tuple(
                GeoPoint(lat, lng)
                for lat, lng in polyline_codec.decode(route["overview_polyline"]["points"])
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise RouteUnavailable(f"Malformed directions response: {exc}") from exc

        if not legs or not points:
            raise RouteUnavailable("Directions response has no legs or geometry")

        return RouteGeometry(
            distance_km=sum(leg.distance_km for leg in legs),
            duration_min=sum(leg.duration_min for leg in legs),
            polyline=points,
            legs=legs,
        )


class InMemoryRouteSource(RouteSource):
    """
    Deterministic route source that needs no network.

    Each leg is a straight line sampled into ``points_per_leg`` segments;
    distances are great-circle and durations assume ``speed_kmh``. Useful for
    tests and for development when no API key is configured.

    Args:
        speed_kmh: Average driving speed used for durations
        points_per_leg: Number of segments each leg is split into
        unavailable: Points that no route may start, end or pass through
        fail_with: Exception class raised for every lookup
        fail_multi_stop: Raise RouteUnavailable for routes with waypoints
    """

    def __init__(
        self,
        speed_kmh: float = 40.0,
        points_per_leg: int = 20,
        unavailable: Iterable[GeoPoint] = (),
        fail_with: Optional[type] = None,
        fail_multi_stop: bool = False,
    ):
        self.speed_kmh = speed_kmh
        self.points_per_leg = max(1, points_per_leg)
        self.unavailable = frozenset(unavailable)
        self.fail_with = fail_with
        self.fail_multi_stop = fail_multi_stop
        self.calls = 0
        self._lock = threading.Lock()

    def route_through(self, stops: Sequence[GeoPoint]) -> RouteGeometry:
        if len(stops) < 2:
            raise ValueError("At least two stops are required to compute a route")

        with self._lock:
            self.calls += 1

        if self.fail_with is not None:
            raise self.fail_with("Route source configured to fail")
        if self.fail_multi_stop and len(stops) > 2:
            raise RouteUnavailable("No route found through waypoints")
        if any(stop in self.unavailable for stop in stops):
            raise RouteUnavailable("No route found: ZERO_RESULTS")

        points = [stops[0]]
        legs = []
        for start, end in zip(stops, stops[1:]):
            for step in range(1, self.points_per_leg + 1):
                fraction = step / self.points_per_leg
                points.append(GeoPoint(
                    start.latitude + (end.latitude - start.latitude) * fraction,
                    start.longitude + (end.longitude - start.longitude) * fraction,
                ))
            distance = haversine_km(start, end)
            legs.append(RouteLeg(
                distance_km=distance,
                duration_min=distance / self.speed_kmh * 60,
                start=start,
                end=end,
            ))

        return RouteGeometry(
            distance_km=sum(leg.distance_km for leg in legs),
            duration_min=sum(leg.duration_min for leg in legs),
            polyline=tuple(points),
            legs=tuple(legs),
        )
