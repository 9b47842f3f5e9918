from django.contrib import admin
from django.urls import path, include

from .views import health_check

urlpatterns = [
    path('admin/', admin.site.urls),
    path("health/", health_check), # Health check endpoint

    # Authentication endpoints (at /api/auth/)
    path('api/auth/', include('accounts.urls')),  # accounts.urls have JWT token and refresh endpoints

    # Matching, saved match and route endpoints (at /api/matching/, /api/rider-searches/ and /api/routes/)
    path('api/', include('rides.urls')),
]
