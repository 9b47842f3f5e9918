"""Rides app configuration."""

from django.apps import AppConfig


class RidesConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'rides'

    def ready(self):
        # Connects the post_save hook that checks standing rider searches
        from . import signals  # noqa: F401
