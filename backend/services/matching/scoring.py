"""
Match scoring policy.

All thresholds and point values used to score a passenger/driver pairing
live in ``ScoringPolicy``. ``score_match`` turns the signals gathered for one
candidate into an integer score plus the human-readable reasons behind it,
in the order the contributions were applied.
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import List, Optional, Tuple

from django.conf import settings

from .types import OrderCheckResult


@dataclass(frozen=True)
class ScoreBand:
    """Awards ``points`` when a value is below (or at) ``limit``."""
    limit: float
    points: int
    label: str
    inclusive: bool = True

    def contains(self, value: float) -> bool:
        return value <= self.limit if self.inclusive else value < self.limit


DEFAULT_TIME_BANDS = (
    ScoreBand(0, 25, "Exact time match"),
    ScoreBand(15, 10, "Departure within 15 min ({value:g} min apart)"),
    ScoreBand(30, 6, "Departure within 30 min ({value:g} min apart)"),
    ScoreBand(60, 2, "Departure within an hour ({value:g} min apart)"),
    ScoreBand(90, -5, "Departure times over an hour apart ({value:g} min)"),
)

DEFAULT_DETOUR_BANDS = (
    ScoreBand(0.1, 10, "No detour needed"),
    ScoreBand(0.5, 5, "Minimal detour (+{value:.1f} km)", inclusive=False),
    ScoreBand(1, 3, "Small detour (+{value:.1f} km)", inclusive=False),
    ScoreBand(2, 1, "Moderate detour (+{value:.1f} km)", inclusive=False),
    ScoreBand(3, -2, "Noticeable detour (+{value:.1f} km)", inclusive=False),
    ScoreBand(5, -5, "Large detour (+{value:.1f} km)", inclusive=False),
)


@dataclass(frozen=True)
class ScoringPolicy:
    # distance thresholds (km)
    on_route_threshold_km: float = 1.0
    near_route_threshold_km: float = 2.0
    close_route_threshold_km: float = 5.0
    exact_match_threshold_km: float = 0.1
    quick_filter_km: float = 20.0

    # admission
    admission_floor: int = 50
    notification_threshold: int = 40

    # route alignment band
    perfect_alignment_points: int = 50
    both_on_route_points: int = 35
    one_on_route_points: int = 20
    other_near_points: int = 10
    other_close_points: int = 3
    other_far_points: int = -10
    both_near_points: int = 15
    one_near_points: int = 5
    both_close_points: int = 0
    no_alignment_points: int = -20
    exact_location_points: int = 5
    order_penalty: int = -25

    # schedule
    time_window_min: int = 60
    time_window_bands: Tuple[ScoreBand, ...] = DEFAULT_TIME_BANDS
    time_fallback_points: int = -15
    time_fallback_label: str = "Departure times too far apart ({value:g} min)"
    day_match_points: int = 15
    day_mismatch_points: int = -5

    # detour
    detour_bands: Tuple[ScoreBand, ...] = DEFAULT_DETOUR_BANDS
    detour_fallback_points: int = -10
    detour_fallback_label: str = "Very large detour (+{value:.1f} km)"

    # straight-line scoring when routing is unusable
    degraded_on_route_points: int = 30
    degraded_time_points: int = 25
    degraded_day_points: int = 15

    @classmethod
    def from_settings(cls) -> "ScoringPolicy":
        """Default policy with overrides from ``settings.MATCHING["POLICY"]``."""
        overrides = dict(getattr(settings, "MATCHING", {}).get("POLICY", {}))
        known = {f.name for f in fields(cls)}
        unknown = set(overrides) - known
        if unknown:
            raise ValueError(f"Unknown scoring policy keys: {sorted(unknown)}")

        for key in ("time_window_bands", "detour_bands"):
            if key in overrides:
                overrides[key] = tuple(
                    band if isinstance(band, ScoreBand) else ScoreBand(*band)
                    for band in overrides[key]
                )
        return replace(cls(), **overrides)

    def admits(self, score: int, floor: Optional[int] = None) -> bool:
        return score >= (self.admission_floor if floor is None else floor)


@dataclass(frozen=True)
class MatchSignals:
    """Everything score_match needs to know about one candidate."""
    order: OrderCheckResult
    time_difference_min: int
    day_match: bool
    # None when no detour could be assessed
    detour_distance_km: Optional[float] = None


class _Tally:
    def __init__(self):
        self.score = 0
        self.reasons: List[str] = []

    def add(self, points: int, reason: str):
        self.score += points
        self.reasons.append(reason)


def _apply_band(tally: _Tally, bands, value: float, fallback_points: int, fallback_label: str):
    for band in bands:
        if band.contains(value):
            tally.add(band.points, band.label.format(value=value))
            return
    tally.add(fallback_points, fallback_label.format(value=value))


def _score_alignment(tally: _Tally, order: OrderCheckResult, policy: ScoringPolicy):
    pickup_km = order.pickup_distance_km
    dropoff_km = order.dropoff_distance_km

    def exact_bonus(name, distance):
        if distance <= policy.exact_match_threshold_km:
            tally.add(policy.exact_location_points, f"{name} is right on the driver's route")

    if order.pickup_on_route and order.dropoff_on_route:
        if order.is_valid_order:
            tally.add(
                policy.perfect_alignment_points,
                "Perfect route alignment: pickup and dropoff are on the driver's route",
            )
        else:
            tally.add(policy.both_on_route_points, "Pickup and dropoff are on the driver's route")
        exact_bonus("Pickup", pickup_km)
        exact_bonus("Dropoff", dropoff_km)

    elif order.pickup_on_route or order.dropoff_on_route:
        if order.pickup_on_route:
            on_name, on_km, other_name, other_km = "Pickup", pickup_km, "Dropoff", dropoff_km
        else:
            on_name, on_km, other_name, other_km = "Dropoff", dropoff_km, "Pickup", pickup_km

        tally.add(policy.one_on_route_points, f"{on_name} is on the driver's route ({on_km:.1f} km away)")
        exact_bonus(on_name, on_km)

        if other_km <= policy.near_route_threshold_km:
            tally.add(policy.other_near_points,
                      f"{other_name} is near the driver's route ({other_km:.1f} km away)")
        elif other_km <= policy.close_route_threshold_km:
            tally.add(policy.other_close_points,
                      f"{other_name} is within {policy.close_route_threshold_km:g} km of the driver's route")
        else:
            tally.add(policy.other_far_points,
                      f"{other_name} is far from the driver's route ({other_km:.1f} km away)")

    else:
        pickup_near = pickup_km <= policy.near_route_threshold_km
        dropoff_near = dropoff_km <= policy.near_route_threshold_km

        if pickup_near and dropoff_near:
            tally.add(policy.both_near_points, "Pickup and dropoff are near the driver's route")
        elif pickup_near or dropoff_near:
            name, distance = ("Pickup", pickup_km) if pickup_near else ("Dropoff", dropoff_km)
            tally.add(policy.one_near_points, f"{name} is near the driver's route ({distance:.1f} km away)")
        elif max(pickup_km, dropoff_km) <= policy.close_route_threshold_km:
            tally.add(policy.both_close_points,
                      f"Pickup and dropoff are within {policy.close_route_threshold_km:g} km of the driver's route")
        else:
            tally.add(policy.no_alignment_points, "Route does not align with the driver's route")


def score_match(signals: MatchSignals, policy: ScoringPolicy) -> Tuple[int, List[str]]:
    """
    Score one candidate.

    Contributions are applied in a fixed order: route alignment, order
    validity, time difference, day overlap, detour. The score may be negative.
    """
    tally = _Tally()

    _score_alignment(tally, signals.order, policy)

    if not signals.order.is_valid_order:
        tally.add(policy.order_penalty, "Pickup comes after dropoff along the driver's route")

    _apply_band(tally, policy.time_window_bands, signals.time_difference_min,
                policy.time_fallback_points, policy.time_fallback_label)

    if signals.day_match:
        tally.add(policy.day_match_points, "Schedule days overlap")
    else:
        tally.add(policy.day_mismatch_points, "No shared schedule days")

    if signals.detour_distance_km is not None:
        _apply_band(tally, policy.detour_bands, signals.detour_distance_km,
                    policy.detour_fallback_points, policy.detour_fallback_label)

    return tally.score, tally.reasons


def score_degraded(
    pickup_distance_km: float,
    dropoff_distance_km: float,
    time_difference_min: int,
    day_match: bool,
    policy: ScoringPolicy,
) -> Tuple[int, List[str]]:
    """Reduced scoring band used when the full evaluation of a candidate failed."""
    tally = _Tally()

    if pickup_distance_km <= policy.near_route_threshold_km:
        tally.add(policy.degraded_on_route_points, "Pickup near driver's route (straight-line estimate)")
    if dropoff_distance_km <= policy.near_route_threshold_km:
        tally.add(policy.degraded_on_route_points, "Dropoff near driver's route (straight-line estimate)")
    if time_difference_min <= policy.time_window_min:
        tally.add(policy.degraded_time_points, "Time matches")
    if day_match:
        tally.add(policy.degraded_day_points, "Days match")

    return tally.score, tally.reasons
