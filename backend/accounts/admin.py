from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.db.models import Count

from accounts.models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """Riders and drivers, with their published trips and standing searches"""

    list_display = ("username", "display_name", "role", "phone_number", "rating",
                    "trip_count", "search_count", "is_active")
    list_filter = ("role", "is_active", "is_staff")
    search_fields = ("username", "first_name", "last_name", "email", "phone_number")
    ordering = ("username",)

    fieldsets = BaseUserAdmin.fieldsets + (
        ("Rideshare profile", {"fields": ("role", "phone_number", "rating")}),
    )
    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        ("Rideshare profile", {"fields": ("role", "phone_number")}),
    )

    def get_queryset(self, request):
        return super().get_queryset(request).annotate(
            trip_total=Count("trips", distinct=True),
            search_total=Count("rider_searches", distinct=True),
        )

    @admin.display(description="Trips", ordering="trip_total")
    def trip_count(self, obj):
        return obj.trip_total

    @admin.display(description="Searches", ordering="search_total")
    def search_count(self, obj):
        return obj.search_total
