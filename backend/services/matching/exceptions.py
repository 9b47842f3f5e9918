"""Custom exceptions for route matching."""


class InvalidRoute(ValueError):
    """Raised when a passenger route is missing or has malformed coordinates."""
    pass
