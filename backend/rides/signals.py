"""Enqueue the standing search check when a trip is published."""

import logging
from functools import partial

from django.db import transaction
from django.db.models.signals import post_save
from django.dispatch import receiver

from .models import Trip

logger = logging.getLogger(__name__)


def enqueue_rider_search_check(trip_id: int):
    from .tasks import check_rider_searches_for_trip

    try:
        check_rider_searches_for_trip.delay(trip_id)
    except Exception as e:
        # broker unavailable; the trip itself is already saved
        logger.error(f"Could not enqueue rider search check for trip {trip_id}: {e}")


@receiver(post_save, sender=Trip)
def trip_created(sender, instance, created, **kwargs):
    if not created or instance.status != 'active':
        return
    transaction.on_commit(partial(enqueue_rider_search_check, instance.id))
