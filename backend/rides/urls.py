from django.urls import path
from . import views

app_name = 'rides'

urlpatterns = [
    # Matching APIs (at /api/matching/)
    path('matching/search/', views.search_matches, name='match-search'),

    # Saved matches for standing searches (at /api/rider-searches/)
    path('rider-searches/matches/new/', views.new_saved_matches, name='saved-matches-new'),
    path('rider-searches/matches/<int:match_id>/viewed/', views.mark_match_viewed, name='saved-match-viewed'),
    path('rider-searches/matches/<int:match_id>/dismiss/', views.dismiss_match, name='saved-match-dismiss'),

    # Route APIs (at /api/routes/)
    path('routes/calculate/', views.calculate_route, name='route-calculate'),
    path('routes/calculate-with-waypoints/', views.calculate_route_with_waypoints, name='route-calculate-waypoints'),
    path('routes/check-point/', views.check_point, name='route-check-point'),
    path('routes/overlap/', views.route_overlap, name='route-overlap'),
]
