"""
Route matching engine.

Scores candidate driver trips against a passenger route and returns the
admitted matches ordered by score. Each candidate is evaluated independently
on a bounded thread pool; a candidate whose evaluation fails is re-scored with
straight-line estimates, and skipped if even that fails, so one bad candidate
never aborts the batch.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Iterable, List, Optional, Sequence

from django.conf import settings

from common.utils.geo import distance_to_segment_km, haversine_km
from common.utils.schedule import is_day_match, time_difference_minutes
from services.routing import GeoPoint, RouteSource, RoutingError, get_route_source
from .exceptions import InvalidRoute
from .order import check_route_order, straight_line_order_check
from .scoring import MatchSignals, ScoringPolicy, score_degraded, score_match
from .types import CandidateOutcome, MatchResult, TripRoute

logger = logging.getLogger(__name__)

RECOMMENDED_LEG_LABELS = (
    "Driver start to passenger pickup",
    "Passenger pickup to passenger dropoff",
    "Passenger dropoff to driver destination",
)


def validate_passenger_route(route) -> None:
    """Raise InvalidRoute unless ``route`` has usable pickup and dropoff points."""
    if route is None:
        raise InvalidRoute("Passenger route is required")
    for name in ("pickup", "dropoff"):
        point = getattr(route, name, None)
        if not isinstance(point, GeoPoint):
            raise InvalidRoute(f"Passenger {name} location is missing or malformed")


class MatchingEngine:
    """
    Finds and ranks driver trips compatible with a passenger route.

    Args:
        source: Route source (defaults to the configured, cached source)
        policy: Scoring thresholds and weights
        max_workers: Upper bound on concurrently evaluated candidates
        timeout_seconds: Budget for a whole batch; unfinished candidates are skipped
    """

    def __init__(
        self,
        source: Optional[RouteSource] = None,
        policy: Optional[ScoringPolicy] = None,
        max_workers: Optional[int] = None,
        timeout_seconds: Optional[float] = None,
    ):
        config = getattr(settings, "MATCHING", {})
        self.source = source if source is not None else get_route_source()
        self.policy = policy if policy is not None else ScoringPolicy.from_settings()
        self.max_workers = max_workers or config.get("MAX_WORKERS", 8)
        self.timeout_seconds = (
            timeout_seconds if timeout_seconds is not None
            else config.get("SEARCH_TIMEOUT_SECONDS", 20)
        )

    # ------------------------------------------------------------------
    # Batch entry points
    # ------------------------------------------------------------------

    def find_matching_rides(self, passenger: TripRoute,
                            candidates: Iterable[TripRoute]) -> List[MatchResult]:
        """
        Admitted matches for ``passenger``, best first.

        Raises:
            InvalidRoute: If the passenger's pickup/dropoff are unusable
        """
        outcomes = self.evaluate_all(passenger, candidates)

        admitted = [
            outcome.result for outcome in outcomes
            if outcome.result is not None and self.policy.admits(outcome.result.match_score)
        ]
        # stable sort: ties keep candidate order
        admitted.sort(key=lambda match: match.match_score, reverse=True)
        return admitted

    def evaluate_all(self, passenger: TripRoute,
                     candidates: Iterable[TripRoute]) -> List[CandidateOutcome]:
        """
        Evaluate every candidate surviving the quick filter, in input order.

        Evaluation always runs on the pool, so ``timeout_seconds`` bounds the
        batch even with a single worker or a single candidate.
        """
        validate_passenger_route(passenger)

        survivors = [trip for trip in candidates if self.passes_quick_filter(passenger, trip)]
        if not survivors:
            return []

        executor = ThreadPoolExecutor(max_workers=max(1, min(self.max_workers, len(survivors))))
        try:
            futures = [executor.submit(self.evaluate_candidate, passenger, trip) for trip in survivors]
            wait(futures, timeout=self.timeout_seconds)

            outcomes = []
            for trip, future in zip(survivors, futures):
                if future.done():
                    outcomes.append(future.result())
                else:
                    future.cancel()
                    logger.warning("Skipping trip %s: evaluation timed out", trip.id)
                    outcomes.append(CandidateOutcome(
                        status=CandidateOutcome.SKIPPED, trip_id=trip.id, reason="timeout",
                    ))
            return outcomes
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    def passes_quick_filter(self, passenger: TripRoute, trip: TripRoute) -> bool:
        """Drop trips whose pickup AND dropoff are both too far from the passenger's."""
        try:
            pickup_gap = haversine_km(passenger.pickup, trip.pickup)
            dropoff_gap = haversine_km(passenger.dropoff, trip.dropoff)
        except (AttributeError, TypeError, ValueError):
            logger.warning("Skipping trip %s: unusable coordinates", getattr(trip, "id", None))
            return False
        limit = self.policy.quick_filter_km
        return not (pickup_gap > limit and dropoff_gap > limit)

    # ------------------------------------------------------------------
    # Single candidate
    # ------------------------------------------------------------------

    def evaluate_candidate(self, passenger: TripRoute, trip: TripRoute) -> CandidateOutcome:
        """Score one trip; never raises."""
        try:
            return CandidateOutcome(
                status=CandidateOutcome.SCORED,
                trip_id=trip.id,
                result=self._score_candidate(passenger, trip),
            )
        except Exception as exc:
            logger.warning("Full scoring failed for trip %s, using straight-line estimate: %s",
                           trip.id, exc)

        try:
            return CandidateOutcome(
                status=CandidateOutcome.DEGRADED,
                trip_id=trip.id,
                result=self._score_degraded(passenger, trip),
            )
        except Exception as exc:
            logger.exception("Skipping trip %s: degraded scoring failed", trip.id)
            return CandidateOutcome(status=CandidateOutcome.SKIPPED, trip_id=trip.id, reason=str(exc))

    def _score_candidate(self, passenger: TripRoute, trip: TripRoute) -> MatchResult:
        policy = self.policy

        order = check_route_order(
            self.source,
            passenger.pickup,
            passenger.dropoff,
            trip.pickup,
            trip.dropoff,
            on_route_threshold_km=policy.on_route_threshold_km,
        )
        original_route = self.source.get_route(trip.pickup, trip.dropoff)

        recommended_route = None
        detour_km = None
        detour_min = 0.0
        if order.is_valid_order or (order.pickup_on_route and order.dropoff_on_route):
            try:
                recommended_route = self.source.get_route_with_waypoints(
                    trip.pickup, [passenger.pickup, passenger.dropoff], trip.dropoff,
                ).with_leg_labels(RECOMMENDED_LEG_LABELS)
                detour_km = recommended_route.distance_km - original_route.distance_km
                detour_min = recommended_route.duration_min - original_route.duration_min
            except RoutingError as exc:
                logger.info("No recommended route for trip %s: %s", trip.id, exc)
                detour_km = 0.0

        time_difference = time_difference_minutes(passenger.schedule.time, trip.schedule.time)
        day_match = is_day_match(passenger.schedule.days, trip.schedule.days)

        score, reasons = score_match(
            MatchSignals(
                order=order,
                time_difference_min=time_difference,
                day_match=day_match,
                detour_distance_km=detour_km,
            ),
            policy,
        )

        return MatchResult(
            driver_trip_id=trip.id,
            match_score=score,
            reasons=reasons,
            pickup_distance_km=order.pickup_distance_km,
            dropoff_distance_km=order.dropoff_distance_km,
            is_valid_order=order.is_valid_order,
            time_difference_min=time_difference,
            detour_distance_km=detour_km if recommended_route is not None else 0.0,
            detour_duration_min=detour_min,
            recommended_route=recommended_route,
            original_route=original_route,
            trip=trip,
        )

    def _score_degraded(self, passenger: TripRoute, trip: TripRoute) -> MatchResult:
        """Straight-line scoring against the segment from the trip's pickup to its dropoff."""
        pickup_km = distance_to_segment_km(passenger.pickup, trip.pickup, trip.dropoff)
        dropoff_km = distance_to_segment_km(passenger.dropoff, trip.pickup, trip.dropoff)
        time_difference = time_difference_minutes(passenger.schedule.time, trip.schedule.time)
        day_match = is_day_match(passenger.schedule.days, trip.schedule.days)

        score, reasons = score_degraded(pickup_km, dropoff_km, time_difference, day_match, self.policy)
        order = straight_line_order_check(passenger.pickup, passenger.dropoff, trip.pickup)

        return MatchResult(
            driver_trip_id=trip.id,
            match_score=score,
            reasons=reasons,
            pickup_distance_km=pickup_km,
            dropoff_distance_km=dropoff_km,
            is_valid_order=order.is_valid_order,
            time_difference_min=time_difference,
            degraded=True,
            trip=trip,
        )


def find_matching_rides(passenger: TripRoute, candidates: Sequence[TripRoute],
                        engine: Optional[MatchingEngine] = None) -> List[MatchResult]:
    """Module-level shortcut using a default-configured engine."""
    return (engine or MatchingEngine()).find_matching_rides(passenger, candidates)


def search(passenger: TripRoute, candidates: Sequence[TripRoute],
           engine: Optional[MatchingEngine] = None) -> List[MatchResult]:
    """Ranked matches for a live search; callers apply their own display policy."""
    return find_matching_rides(passenger, candidates, engine=engine)
