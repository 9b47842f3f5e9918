"""
Route compatibility matching.

This package handles:
    - Classifying pickup/dropoff order along a driver's route
    - Scoring and ranking candidate driver trips for a passenger
    - Choosing which matches to display
    - Re-checking standing rider searches when a trip is published
"""

from .engine import MatchingEngine, find_matching_rides, search
from .exceptions import InvalidRoute
from .order import check_route_order, straight_line_order_check
from .scoring import MatchSignals, ScoreBand, ScoringPolicy, score_degraded, score_match
from .selection import select_for_display
from .standing_search import on_trip_created
from .types import CandidateOutcome, MatchResult, OrderCheckResult, Schedule, TripRoute

__all__ = [
    "MatchingEngine",
    "find_matching_rides",
    "search",
    "InvalidRoute",
    "check_route_order",
    "straight_line_order_check",
    "MatchSignals",
    "ScoreBand",
    "ScoringPolicy",
    "score_degraded",
    "score_match",
    "select_for_display",
    "on_trip_created",
    "CandidateOutcome",
    "MatchResult",
    "OrderCheckResult",
    "Schedule",
    "TripRoute",
]
