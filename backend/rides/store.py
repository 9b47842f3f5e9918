"""
ORM adapter between the rides models and the matching engine.

This module handles:
    - Converting Trip and RiderSearch rows into TripRoute values
    - Loading active trips and searches
    - Persisting SavedMatch records at most once per (search, trip)
"""

import logging
from typing import List, Optional

from django.db import IntegrityError, transaction

from services.matching.types import Schedule, TripRoute
from services.routing.types import GeoPoint
from .models import RiderSearch, SavedMatch, Trip

logger = logging.getLogger(__name__)


def driver_meta(driver) -> dict:
    """Owner details shown next to a match; opaque to the engine."""
    return {
        "driver": {
            "id": driver.id,
            "name": driver.display_name,
            "rating": float(driver.rating),
            "phone_number": driver.phone_number,
        }
    }


def trip_to_route(trip: Trip) -> TripRoute:
    """Build the engine's view of a driver trip."""
    return TripRoute(
        pickup=GeoPoint(trip.pickup_latitude, trip.pickup_longitude),
        dropoff=GeoPoint(trip.dropoff_latitude, trip.dropoff_longitude),
        schedule=Schedule(days=trip.schedule_days, time=trip.schedule_time),
        id=trip.id,
        price=float(trip.price) if trip.price is not None else None,
        seats_available=trip.available_seats,
        owner_meta=driver_meta(trip.driver),
    )


def search_to_route(search: RiderSearch) -> TripRoute:
    """Build the passenger route for a standing rider search."""
    return TripRoute(
        pickup=GeoPoint(search.pickup_latitude, search.pickup_longitude),
        dropoff=GeoPoint(search.dropoff_latitude, search.dropoff_longitude),
        schedule=Schedule(days=search.schedule_days, time=search.schedule_time),
    )


class DjangoMatchStore:
    """Trip/search store backed by the rides models."""

    def get_trip(self, trip_id: int) -> Optional[TripRoute]:
        """Active trip as a TripRoute, or None if missing or not active."""
        trip = (
            Trip.objects.select_related('driver')
            .filter(id=trip_id, status='active')
            .first()
        )
        if trip is None:
            return None
        return trip_to_route(trip)

    def active_trips(self, exclude_driver=None) -> List[TripRoute]:
        """
        Active trips with at least one free seat.

        Rows that cannot be converted are logged and left out.
        """
        queryset = Trip.objects.select_related('driver').filter(
            status='active', available_seats__gt=0,
        ).order_by('created_at', 'id')
        if exclude_driver is not None:
            queryset = queryset.exclude(driver=exclude_driver)

        routes = []
        for trip in queryset:
            try:
                routes.append(trip_to_route(trip))
            except (TypeError, ValueError) as e:
                logger.warning(f"Skipping trip {trip.id} with unusable route data: {e}")
        return routes

    def active_searches(self) -> List[RiderSearch]:
        return list(RiderSearch.objects.filter(status='active').order_by('id'))

    def search_route(self, search: RiderSearch) -> TripRoute:
        return search_to_route(search)

    def save_match_if_absent(self, search_id: int, trip_id: int, score: int) -> Optional[SavedMatch]:
        """
        Record a match unless one already exists for (search, trip).

        Returns:
            The new SavedMatch, or None when the pair was already recorded
        """
        if SavedMatch.objects.filter(search_id=search_id, trip_id=trip_id).exists():
            return None

        try:
            with transaction.atomic():
                return SavedMatch.objects.create(
                    search_id=search_id,
                    trip_id=trip_id,
                    score=score,
                    status='new',
                )
        except IntegrityError:
            # a concurrent worker recorded the same pair first
            logger.info(f"Match for search {search_id} and trip {trip_id} already recorded")
            return None

    def new_matches_for_rider(self, rider):
        """
        Unseen matches from the rider's active searches, best first.

        Matches whose trip is no longer active are left out.
        """
        return (
            SavedMatch.objects.select_related('search', 'trip', 'trip__driver')
            .filter(
                search__rider=rider,
                search__status='active',
                trip__status='active',
                status='new',
            )
            .order_by('-score', '-created_at', 'id')
        )

    def set_match_status(self, match_id: int, rider, status: str) -> bool:
        """
        Move one of the rider's saved matches to ``status``.

        Returns:
            False when no match with that id belongs to the rider
        """
        updated = SavedMatch.objects.filter(id=match_id, search__rider=rider).update(status=status)
        if updated:
            logger.info(f"Saved match {match_id} marked {status} by rider {rider.id}")
        return bool(updated)
