"""Builds the configured RouteSource from ``settings.ROUTING``."""

import logging

from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from .cache import CachedRouteSource, DEFAULT_ROUTE_TTL_SECONDS
from .sources import GoogleDirectionsSource, InMemoryRouteSource, RouteSource

logger = logging.getLogger(__name__)


def get_route_source() -> RouteSource:
    """
    Return the cached route source selected by settings.

    ROUTING keys:
        PROVIDER: "google" or "memory"
        GOOGLE_MAPS_API_KEY: API key for the google provider
        TIMEOUT_SECONDS: HTTP timeout for provider calls
        CACHE_ALIAS: Django cache alias for route entries
        CACHE_TTL_SECONDS: Lifetime of a cached route
    """
    config = getattr(settings, "ROUTING", {})
    provider = config.get("PROVIDER", "google")

    if provider == "google":
        source = GoogleDirectionsSource(
            api_key=config.get("GOOGLE_MAPS_API_KEY"),
            timeout=config.get("TIMEOUT_SECONDS", 10),
        )
    elif provider == "memory":
        source = InMemoryRouteSource()
    else:
        raise ImproperlyConfigured(f"Unknown ROUTING provider: {provider!r}")

    logger.debug("Using %s route provider", provider)
    return CachedRouteSource(
        source,
        cache_alias=config.get("CACHE_ALIAS", "routes"),
        ttl=config.get("CACHE_TTL_SECONDS", DEFAULT_ROUTE_TTL_SECONDS),
    )
