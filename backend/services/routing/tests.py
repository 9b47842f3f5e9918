from unittest.mock import Mock, patch

import polyline as polyline_codec
from django.core.cache import caches
from django.core.exceptions import ImproperlyConfigured
from django.test import SimpleTestCase, override_settings
from googlemaps import exceptions as gmaps_exceptions

from . import (
	CachedRouteSource,
	GeoPoint,
	GoogleDirectionsSource,
	InMemoryRouteSource,
	ProviderTransientError,
	RouteUnavailable,
	RoutingError,
	calculate_route_overlap,
	check_point_on_route,
	get_route_source,
	route_cache_key,
)

TEST_CACHES = {
	'default': {'BACKEND': 'django.core.cache.backends.locmem.LocMemCache', 'LOCATION': 'routing-tests-default'},
	'routes': {'BACKEND': 'django.core.cache.backends.locmem.LocMemCache', 'LOCATION': 'routing-tests-routes'},
}

ORIGIN = GeoPoint(45.7489, 21.2083)
DESTINATION = GeoPoint(45.7650, 21.2300)


def directions_response(points, legs):
	"""Minimal Directions API route in the shape googlemaps returns."""
	return [{
		'legs': [
			{
				'distance': {'value': meters},
				'duration': {'value': seconds},
				'start_location': {'lat': start[0], 'lng': start[1]},
				'end_location': {'lat': end[0], 'lng': end[1]},
			}
			for meters, seconds, start, end in legs
		],
		'overview_polyline': {'points': polyline_codec.encode(points)},
	}]


class GeoPointTests(SimpleTestCase):
	def test_coordinates_are_coerced_to_float(self):
		point = GeoPoint('45.748900', 21)
		self.assertEqual(point.as_tuple(), (45.7489, 21.0))

	def test_out_of_range_or_non_numeric_is_rejected(self):
		for latitude, longitude in [(91, 0), (0, -180.5), ('north', 0), (None, 0)]:
			with self.subTest(latitude=latitude, longitude=longitude):
				with self.assertRaises(ValueError):
					GeoPoint(latitude, longitude)


@override_settings(CACHES=TEST_CACHES)
class CachedRouteSourceTests(SimpleTestCase):
	def setUp(self):
		caches['routes'].clear()
		self.source = InMemoryRouteSource()
		self.cached = CachedRouteSource(self.source, cache_alias='routes', ttl=60)

	def test_repeated_lookup_hits_provider_once(self):
		first = self.cached.get_route(ORIGIN, DESTINATION)
		second = self.cached.get_route(ORIGIN, DESTINATION)

		self.assertEqual(self.source.calls, 1)
		self.assertEqual(first, second)

	def test_cache_hit_equals_fresh_provider_result(self):
		cached = self.cached.get_route(ORIGIN, DESTINATION)
		cached_again = self.cached.get_route(ORIGIN, DESTINATION)
		fresh = InMemoryRouteSource().get_route(ORIGIN, DESTINATION)

		self.assertEqual(cached_again, fresh)
		self.assertEqual(cached, fresh)

	def test_entries_expire_after_ttl(self):
		with patch('time.time', return_value=1000.0):
			self.cached.get_route(ORIGIN, DESTINATION)
		with patch('time.time', return_value=1059.0):
			self.cached.get_route(ORIGIN, DESTINATION)
		self.assertEqual(self.source.calls, 1)

		with patch('time.time', return_value=1061.0):
			self.cached.get_route(ORIGIN, DESTINATION)
		self.assertEqual(self.source.calls, 2)

	def test_waypointless_call_equals_plain_call(self):
		plain = self.cached.get_route(ORIGIN, DESTINATION)
		with_empty_waypoints = self.cached.get_route_with_waypoints(ORIGIN, [], DESTINATION)

		self.assertEqual(plain, with_empty_waypoints)
		self.assertEqual(self.source.calls, 1)

	def test_waypoint_routes_are_cached_separately(self):
		waypoint = GeoPoint(45.7536, 21.2257)
		self.cached.get_route(ORIGIN, DESTINATION)
		route = self.cached.get_route_with_waypoints(ORIGIN, [waypoint], DESTINATION)

		self.assertEqual(self.source.calls, 2)
		self.assertEqual(len(route.legs), 2)

	def test_failures_are_not_cached(self):
		source = InMemoryRouteSource(fail_with=ProviderTransientError)
		cached = CachedRouteSource(source, cache_alias='routes')

		for _ in range(2):
			with self.assertRaises(ProviderTransientError):
				cached.get_route(ORIGIN, DESTINATION)
		self.assertEqual(source.calls, 2)

	def test_cache_key_rounds_coordinates(self):
		near_origin = GeoPoint(45.748900001, 21.208299999)
		self.assertEqual(route_cache_key([ORIGIN, DESTINATION]), route_cache_key([near_origin, DESTINATION]))
		self.assertTrue(route_cache_key([ORIGIN, DESTINATION]).startswith('route:'))
		self.assertTrue(route_cache_key([ORIGIN, ORIGIN, DESTINATION]).startswith('route:wp:'))


class GoogleDirectionsSourceTests(SimpleTestCase):
	def setUp(self):
		self.client = Mock()
		self.source = GoogleDirectionsSource(client=self.client)

	def test_parses_route_into_km_and_minutes(self):
		points = [(45.7489, 21.2083), (45.7550, 21.2200), (45.7650, 21.2300)]
		self.client.directions.return_value = directions_response(
			points, [(2500, 420, points[0], points[-1])]
		)

		route = self.source.get_route(ORIGIN, DESTINATION)

		self.assertAlmostEqual(route.distance_km, 2.5)
		self.assertAlmostEqual(route.duration_min, 7.0)
		self.assertEqual(len(route.polyline), 3)
		self.assertAlmostEqual(route.polyline[1].latitude, 45.755, places=5)

		kwargs = self.client.directions.call_args.kwargs
		self.assertEqual(kwargs['mode'], 'driving')
		self.assertIsNone(kwargs['waypoints'])
		self.assertFalse(kwargs['optimize_waypoints'])

	def test_waypoints_keep_their_order(self):
		pickup = GeoPoint(45.7536, 21.2257)
		dropoff = GeoPoint(45.7608, 21.2264)
		points = [ORIGIN.as_tuple(), pickup.as_tuple(), dropoff.as_tuple(), DESTINATION.as_tuple()]
		self.client.directions.return_value = directions_response(points, [
			(1500, 180, points[0], points[1]),
			(800, 120, points[1], points[2]),
			(600, 60, points[2], points[3]),
		])

		route = self.source.get_route_with_waypoints(ORIGIN, [pickup, dropoff], DESTINATION)

		self.assertEqual(self.client.directions.call_args.kwargs['waypoints'], [pickup.as_tuple(), dropoff.as_tuple()])
		self.assertAlmostEqual(route.distance_km, 2.9)
		self.assertAlmostEqual(route.duration_min, 6.0)
		self.assertEqual(len(route.legs), 3)

	def test_empty_route_list_is_unavailable(self):
		self.client.directions.return_value = []
		with self.assertRaises(RouteUnavailable):
			self.source.get_route(ORIGIN, DESTINATION)

	def test_api_error_statuses_are_mapped(self):
		cases = [
			('ZERO_RESULTS', RouteUnavailable),
			('NOT_FOUND', RouteUnavailable),
			('OVER_QUERY_LIMIT', ProviderTransientError),
			('UNKNOWN_ERROR', ProviderTransientError),
		]
		for api_status, expected in cases:
			with self.subTest(status=api_status):
				self.client.directions.side_effect = gmaps_exceptions.ApiError(api_status)
				with self.assertRaises(expected):
					self.source.get_route(ORIGIN, DESTINATION)

	def test_network_failures_are_transient(self):
		for error in [gmaps_exceptions.Timeout(), gmaps_exceptions.TransportError(), gmaps_exceptions.HTTPError(500)]:
			with self.subTest(error=type(error).__name__):
				self.client.directions.side_effect = error
				with self.assertRaises(ProviderTransientError):
					self.source.get_route(ORIGIN, DESTINATION)

	def test_malformed_response_is_unavailable(self):
		self.client.directions.return_value = [{'legs': [{'distance': {}}]}]
		with self.assertRaises(RouteUnavailable):
			self.source.get_route(ORIGIN, DESTINATION)

	def test_requires_api_key_without_client(self):
		with self.assertRaises(ValueError):
			GoogleDirectionsSource(api_key=None)


class RouteSourceSettingsTests(SimpleTestCase):
	@override_settings(ROUTING={'PROVIDER': 'memory', 'CACHE_ALIAS': 'routes', 'CACHE_TTL_SECONDS': 120})
	def test_memory_provider_is_wrapped_in_cache(self):
		source = get_route_source()

		self.assertIsInstance(source, CachedRouteSource)
		self.assertIsInstance(source.source, InMemoryRouteSource)
		self.assertEqual(source.ttl, 120)

	@override_settings(ROUTING={'PROVIDER': 'google', 'GOOGLE_MAPS_API_KEY': 'AIza-test-key'})
	def test_google_provider_builds_client(self):
		with patch('services.routing.sources.googlemaps.Client') as client_class:
			source = get_route_source()

		self.assertIsInstance(source.source, GoogleDirectionsSource)
		self.assertEqual(client_class.call_args.kwargs['key'], 'AIza-test-key')

	@override_settings(ROUTING={'PROVIDER': 'osrm'})
	def test_unknown_provider_is_rejected(self):
		with self.assertRaises(ImproperlyConfigured):
			get_route_source()


class RouteDiagnosticsTests(SimpleTestCase):
	def setUp(self):
		self.source = InMemoryRouteSource()
		self.start = GeoPoint(0, 0)
		self.end = GeoPoint(0, 0.1)

	def test_point_near_route_is_on_route(self):
		result = check_point_on_route(self.source, GeoPoint(0.005, 0.05), self.start, self.end)

		self.assertTrue(result.is_on_route)
		self.assertAlmostEqual(result.distance_km, 0.555, places=3)
		self.assertTrue(result.route_aware)

	def test_point_far_from_route_respects_threshold(self):
		result = check_point_on_route(self.source, GeoPoint(0.05, 0.05), self.start, self.end, threshold_km=2.0)
		self.assertFalse(result.is_on_route)

	def test_point_check_falls_back_to_straight_line(self):
		source = InMemoryRouteSource(fail_with=RouteUnavailable)
		point = GeoPoint(0.001, 0.05)

		result = check_point_on_route(source, point, self.start, self.end)

		self.assertFalse(result.is_on_route)
		self.assertFalse(result.route_aware)
		self.assertEqual(result.nearest_point, self.start)
		self.assertGreater(result.distance_km, 5)

	def test_identical_routes_fully_overlap(self):
		overlap = calculate_route_overlap(self.source, (self.start, self.end), (self.start, self.end))
		self.assertAlmostEqual(overlap.overlap_percentage, 100.0)

	def test_half_shared_route(self):
		longer_end = GeoPoint(0, 0.2)
		overlap = calculate_route_overlap(self.source, (self.start, longer_end), (self.start, self.end))

		self.assertAlmostEqual(overlap.overlap_percentage, 50.0, places=6)
		self.assertAlmostEqual(overlap.route_a_distance_km, 2 * overlap.route_b_distance_km, places=6)

	def test_distant_routes_do_not_overlap(self):
		far = (GeoPoint(1, 1), GeoPoint(1, 1.1))
		overlap = calculate_route_overlap(self.source, (self.start, self.end), far)
		self.assertEqual(overlap.overlap_percentage, 0.0)

	def test_overlap_propagates_routing_errors(self):
		source = InMemoryRouteSource(fail_with=ProviderTransientError)
		with self.assertRaises(RoutingError):
			calculate_route_overlap(source, (self.start, self.end), (self.start, self.end))
