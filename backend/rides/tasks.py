"""Celery tasks for ride-related background processing."""

from celery import shared_task
import logging

logger = logging.getLogger(__name__)


@shared_task
def check_rider_searches_for_trip(trip_id: int):
    """
    Celery task to match a newly published trip against standing rider searches.

    This task is enqueued once the trip row has been committed. Every active
    rider search the trip suits gets a SavedMatch; errors are logged and
    never retried.

    Returns:
        Number of matches created
    """
    from services.matching import on_trip_created

    try:
        created = on_trip_created(trip_id)
        logger.info(f"Rider search check for trip {trip_id} created {len(created)} matches")
        return len(created)
    except Exception as e:
        logger.error(f"Error checking rider searches for trip {trip_id}: {e}")
        return 0
