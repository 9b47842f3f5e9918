"""
Standing rider search notifications.

When a driver publishes a new trip, every active rider search is checked
against it and a SavedMatch is recorded for each search the trip suits.

The store is any object providing:
    - get_trip(trip_id) -> TripRoute | None   (active trips only)
    - active_searches() -> iterable of search records with an ``id``
    - search_route(search) -> TripRoute
    - save_match_if_absent(search_id, trip_id, score) -> saved match | None
"""

import logging
from typing import List, Optional

from common.utils.schedule import is_day_match
from .engine import MatchingEngine

logger = logging.getLogger(__name__)


def on_trip_created(trip_id: int, *, store=None,
                    engine: Optional[MatchingEngine] = None,
                    threshold: Optional[int] = None) -> List:
    """
    Check all active rider searches against a newly created trip.

    Searches scoring at least ``threshold`` (the policy's notification
    threshold by default) get a SavedMatch with status "new", unless one
    already exists for the pair. Straight-line (degraded) results must also
    reach the policy's admission floor.
    Failures are logged per search and never propagate.

    Returns:
        The SavedMatch records created by this call
    """
    if store is None:
        from rides.store import DjangoMatchStore
        store = DjangoMatchStore()

    trip = store.get_trip(trip_id)
    if trip is None:
        logger.info("Trip %s not found or not active, skipping rider search check", trip_id)
        return []

    searches = list(store.active_searches())
    if not searches:
        logger.info("No active rider searches to check for trip %s", trip_id)
        return []

    logger.info("Checking %d active rider searches against trip %s", len(searches), trip_id)

    # one candidate per search, no point fanning out
    engine = engine or MatchingEngine(max_workers=1)
    if threshold is None:
        threshold = engine.policy.notification_threshold
    created = []

    for search in searches:
        try:
            passenger = store.search_route(search)

            if not is_day_match(passenger.schedule.days, trip.schedule.days):
                logger.debug("Search %s: no day overlap with trip %s, skipping", search.id, trip_id)
                continue

            outcomes = engine.evaluate_all(passenger, [trip])
            result = outcomes[0].result if outcomes else None
            if result is None:
                logger.debug("Search %s: trip %s not comparable", search.id, trip_id)
                continue

            # straight-line estimates alone must clear the admission floor
            floor = max(threshold, engine.policy.admission_floor) if result.degraded else threshold
            if not engine.policy.admits(result.match_score, floor=floor):
                logger.debug(
                    "Search %s: score %d below threshold %d",
                    search.id, result.match_score, floor,
                )
                continue

            saved = store.save_match_if_absent(search.id, trip_id, result.match_score)
            if saved is None:
                logger.info("Match already exists for search %s and trip %s", search.id, trip_id)
                continue

            created.append(saved)
            logger.info(
                "Created match for rider search %s and trip %s (score: %d)",
                search.id, trip_id, result.match_score,
            )
        except Exception:
            logger.exception("Error checking rider search %s against trip %s", search.id, trip_id)

    logger.info("Finished checking rider searches for trip %s (%d new matches)", trip_id, len(created))
    return created
