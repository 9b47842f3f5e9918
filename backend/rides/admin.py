"""Tells what to show in the Django admin interface for rides app"""

from django.contrib import admin
from .models import Trip, RiderSearch, SavedMatch

@admin.register(Trip)
class TripAdmin(admin.ModelAdmin):
    """Driver trip admin"""
    list_display = ['id', 'driver', 'schedule_time', 'available_seats', 'price', 'status', 'created_at']
    list_filter = ['status', 'created_at']
    search_fields = ['driver__username', 'pickup_address', 'dropoff_address']
    readonly_fields = ['created_at']
    date_hierarchy = 'created_at'


@admin.register(RiderSearch)
class RiderSearchAdmin(admin.ModelAdmin):
    list_display = ("id", "rider", "schedule_time", "status", "created_at")
    list_filter = ("status",)
    search_fields = ("rider__username", "pickup_address", "dropoff_address")


@admin.register(SavedMatch)
class SavedMatchAdmin(admin.ModelAdmin):
    list_display = ("search", "trip", "score", "status", "created_at")
    list_filter = ("status",)
    search_fields = ("search__rider__username", "trip__driver__username")
