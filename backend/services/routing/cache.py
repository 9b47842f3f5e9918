"""
Route caching on top of Django's cache framework.

Entries are keyed by the rounded coordinates of every stop, in order, and
expire after a fixed TTL. Each entry is written with a single ``cache.set``
so a key is either fully present or absent; concurrent writers of the same
key store equal values, so last-writer-wins is safe and no locking is done.
"""

import logging
from typing import Sequence

from django.core.cache import caches

from .sources import RouteSource
from .types import GeoPoint, RouteGeometry

logger = logging.getLogger(__name__)

DEFAULT_ROUTE_TTL_SECONDS = 3600

# 5 decimals ~ 1.1 m
KEY_PRECISION = 5


def route_cache_key(stops: Sequence[GeoPoint], precision: int = KEY_PRECISION) -> str:
    """Canonical cache key: plain routes use ``route:``, waypoint routes ``route:wp:``."""
    prefix = "route:" if len(stops) <= 2 else "route:wp:"
    return prefix + "|".join(
        f"{stop.latitude:.{precision}f},{stop.longitude:.{precision}f}" for stop in stops
    )


class CachedRouteSource(RouteSource):
    """Memoises another RouteSource in the ``cache_alias`` cache for ``ttl`` seconds."""

    def __init__(self, source: RouteSource, cache_alias: str = "routes",
                 ttl: int = DEFAULT_ROUTE_TTL_SECONDS):
        self.source = source
        self.cache_alias = cache_alias
        self.ttl = ttl

    @property
    def cache(self):
        # Django cache handles are per-thread
        return caches[self.cache_alias]

    def route_through(self, stops: Sequence[GeoPoint]) -> RouteGeometry:
        key = route_cache_key(stops)
        cache = self.cache

        cached = cache.get(key)
        if cached is not None:
            logger.debug("Route cache hit for %s", key)
            return cached

        # Failures propagate and are never cached
        route = self.source.route_through(stops)
        cache.set(key, route, timeout=self.ttl)
        return route
