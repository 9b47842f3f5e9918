"""Common utility functions."""

from .geo import (
    distance_to_polyline_km,
    distance_to_segment_km,
    haversine_km,
    is_point_on_segment,
    nearest_vertex_index,
)
from .schedule import (
    is_day_match,
    is_time_match,
    normalize_days,
    parse_time_minutes,
    time_difference_minutes,
)

__all__ = [
    "distance_to_polyline_km",
    "distance_to_segment_km",
    "haversine_km",
    "is_point_on_segment",
    "nearest_vertex_index",
    "is_day_match",
    "is_time_match",
    "normalize_days",
    "parse_time_minutes",
    "time_difference_minutes",
]
