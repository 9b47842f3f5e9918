"""Value objects flowing through the matching engine."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional

from common.utils.schedule import normalize_days
from services.routing.types import GeoPoint, RouteGeometry


@dataclass(frozen=True)
class Schedule:
    """Weekdays plus a wall-clock time such as "8:00 AM"."""
    days: FrozenSet[str]
    time: str

    def __post_init__(self):
        days = normalize_days(self.days or ())
        if not days:
            raise ValueError("Schedule needs at least one day")
        object.__setattr__(self, "days", days)


@dataclass(frozen=True)
class TripRoute:
    """
    A passenger's desired trip or a driver's offered trip.

    ``id``, ``price``, ``seats_available`` and ``owner_meta`` are only set for
    driver trips; the engine never looks inside ``owner_meta``.
    """
    pickup: GeoPoint
    dropoff: GeoPoint
    schedule: Schedule
    id: Optional[int] = None
    price: Optional[float] = None
    seats_available: Optional[int] = None
    owner_meta: Dict[str, Any] = field(default_factory=dict, compare=False, hash=False)


@dataclass(frozen=True)
class OrderCheckResult:
    is_valid_order: bool
    pickup_distance_km: float
    dropoff_distance_km: float
    pickup_on_route: bool
    dropoff_on_route: bool
    # False when computed by the straight-line fallback
    route_aware: bool = True


@dataclass
class MatchResult:
    driver_trip_id: Optional[int]
    match_score: int
    reasons: List[str]
    pickup_distance_km: float
    dropoff_distance_km: float
    is_valid_order: bool
    time_difference_min: int
    detour_distance_km: float = 0.0
    detour_duration_min: float = 0.0
    recommended_route: Optional[RouteGeometry] = None
    original_route: Optional[RouteGeometry] = None
    degraded: bool = False
    trip: Optional[TripRoute] = field(default=None, repr=False)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.driver_trip_id,
            "matchScore": self.match_score,
            "reasons": list(self.reasons),
            "pickupDistance": round(self.pickup_distance_km, 3),
            "dropoffDistance": round(self.dropoff_distance_km, 3),
            "isValidOrder": self.is_valid_order,
            "timeDifference": self.time_difference_min,
            "detourDistance": round(self.detour_distance_km, 3),
            "detourDuration": round(self.detour_duration_min, 1),
            "degraded": self.degraded,
        }
        if self.recommended_route is not None:
            data["recommendedRoute"] = self.recommended_route.to_dict()
        if self.original_route is not None:
            data["originalRoute"] = self.original_route.summary()
        if self.trip is not None:
            data.update({
                "pickupLocation": self.trip.pickup.to_dict(),
                "dropoffLocation": self.trip.dropoff.to_dict(),
                "schedule": {
                    "days": sorted(self.trip.schedule.days),
                    "time": self.trip.schedule.time,
                },
                "price": self.trip.price,
                "available_seats": self.trip.seats_available,
                **self.trip.owner_meta,
            })
        return data


@dataclass(frozen=True)
class CandidateOutcome:
    """
    Result of evaluating one candidate trip; exceptions never escape it.

    Scored and degraded outcomes always carry a MatchResult, whatever its
    score. Skipped outcomes carry the reason instead.
    """
    SCORED = "scored"
    DEGRADED = "degraded"
    SKIPPED = "skipped"

    status: str
    trip_id: Optional[int]
    result: Optional[MatchResult] = None
    reason: str = ""

    @property
    def score(self) -> Optional[int]:
        return self.result.match_score if self.result is not None else None
