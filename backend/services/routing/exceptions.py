"""Custom exceptions for route lookups."""


class RoutingError(Exception):
    """Base class for failures while fetching a driving route."""
    pass


class RouteUnavailable(RoutingError):
    """Raised when the provider reports that no route exists."""
    pass


class ProviderTransientError(RoutingError):
    """Raised on network failures, timeouts and rate limiting."""
    pass
