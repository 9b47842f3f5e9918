from django.db import models
from django.conf import settings


class Trip(models.Model):
    """A driver's published recurring trip between two points"""

    STATUS_CHOICES = [
        ('active', 'Active'),
        ('full', 'Full'),
        ('cancelled', 'Cancelled'),
        ('completed', 'Completed'),
    ]

    driver = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='trips',
        limit_choices_to={'role': 'driver'}
    )

    # Pickup location (driver's start)
    pickup_latitude = models.DecimalField(max_digits=9, decimal_places=6)
    pickup_longitude = models.DecimalField(max_digits=9, decimal_places=6)
    pickup_address = models.TextField(null=True, blank=True)

    # Dropoff location (driver's destination)
    dropoff_latitude = models.DecimalField(max_digits=9, decimal_places=6)
    dropoff_longitude = models.DecimalField(max_digits=9, decimal_places=6)
    dropoff_address = models.TextField(null=True, blank=True)

    # Recurring schedule, e.g. ["monday", "wednesday"] at "8:30 AM"
    schedule_days = models.JSONField(default=list)
    schedule_time = models.CharField(max_length=16)

    price = models.DecimalField(max_digits=8, decimal_places=2, null=True, blank=True)
    available_seats = models.PositiveIntegerField(default=1)

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='active')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'rides'
        ordering = ['-created_at']

    def __str__(self):
        return f"Trip #{self.id} - {self.driver} - {self.status}"


class RiderSearch(models.Model):
    """A rider's standing search, re-checked whenever a new trip is published"""

    STATUS_CHOICES = [
        ('active', 'Active'),
        ('paused', 'Paused'),
        ('cancelled', 'Cancelled'),
    ]

    rider = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='rider_searches'
    )

    pickup_latitude = models.DecimalField(max_digits=9, decimal_places=6)
    pickup_longitude = models.DecimalField(max_digits=9, decimal_places=6)
    pickup_address = models.TextField(null=True, blank=True)

    dropoff_latitude = models.DecimalField(max_digits=9, decimal_places=6)
    dropoff_longitude = models.DecimalField(max_digits=9, decimal_places=6)
    dropoff_address = models.TextField(null=True, blank=True)

    schedule_days = models.JSONField(default=list)
    schedule_time = models.CharField(max_length=16)

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='active')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'rider_searches'
        ordering = ['-created_at']

    def __str__(self):
        return f"Search #{self.id} - {self.rider} - {self.status}"


class SavedMatch(models.Model):
    """A trip found for a standing rider search."""

    STATUS_CHOICES = [
        ('new', 'New'),
        ('viewed', 'Viewed'),
        ('dismissed', 'Dismissed'),
    ]

    search = models.ForeignKey(
        RiderSearch,
        on_delete=models.CASCADE,
        related_name='matches'
    )

    trip = models.ForeignKey(
        Trip,
        on_delete=models.CASCADE,
        related_name='saved_matches'
    )

    score = models.IntegerField()
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default='new')
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'rider_search_matches'
        ordering = ['-score', '-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['search', 'trip'],
                name='unique_search_trip'
            )
        ]

    def __str__(self):
        return f"Match #{self.id} - Search {self.search_id} -> Trip {self.trip_id} ({self.score})"
