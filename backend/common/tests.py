from django.test import SimpleTestCase

from services.routing.types import GeoPoint

from .utils.geo import (
	KM_PER_DEGREE,
	distance_to_polyline_km,
	distance_to_segment_km,
	haversine_km,
	is_point_on_segment,
	nearest_vertex_index,
)
from .utils.schedule import (
	is_day_match,
	is_time_match,
	normalize_days,
	parse_time_minutes,
	time_difference_minutes,
)


class GeoTests(SimpleTestCase):
	def setUp(self):
		self.a = GeoPoint(45.7489, 21.2083)
		self.b = GeoPoint(45.7650, 21.2300)

	def test_haversine_is_symmetric(self):
		self.assertAlmostEqual(haversine_km(self.a, self.b), haversine_km(self.b, self.a), places=9)

	def test_haversine_zero_for_same_point(self):
		self.assertEqual(haversine_km(self.a, self.a), 0.0)

	def test_haversine_known_distance(self):
		# one degree of latitude is roughly 111.2 km
		distance = haversine_km(GeoPoint(0, 0), GeoPoint(1, 0))
		self.assertAlmostEqual(distance, 111.19, places=1)

	def test_haversine_antipodal_points(self):
		distance = haversine_km(GeoPoint(0, 0), GeoPoint(0, 180))
		self.assertAlmostEqual(distance, 6371.0 * 3.141592653589793, places=3)

	def test_segment_distance_inside_projection(self):
		start = GeoPoint(0, 0)
		end = GeoPoint(0, 1)
		point = GeoPoint(0.01, 0.5)
		self.assertAlmostEqual(distance_to_segment_km(point, start, end), 0.01 * KM_PER_DEGREE, places=6)

	def test_segment_distance_clamps_to_nearer_endpoint(self):
		start = GeoPoint(0, 0)
		end = GeoPoint(0, 0.1)
		before = GeoPoint(0.02, -0.05)
		after = GeoPoint(-0.01, 0.3)

		expected_before = ((0.02 ** 2 + 0.05 ** 2) ** 0.5) * KM_PER_DEGREE
		expected_after = ((0.01 ** 2 + 0.2 ** 2) ** 0.5) * KM_PER_DEGREE

		self.assertAlmostEqual(distance_to_segment_km(before, start, end), expected_before, places=6)
		self.assertAlmostEqual(distance_to_segment_km(after, start, end), expected_after, places=6)

	def test_degenerate_segment_uses_start_point(self):
		start = GeoPoint(10, 10)
		point = GeoPoint(10.03, 10.04)
		self.assertAlmostEqual(distance_to_segment_km(point, start, start), 0.05 * KM_PER_DEGREE, places=6)

	def test_is_point_on_segment_threshold_is_inclusive(self):
		start = GeoPoint(0, 0)
		end = GeoPoint(0, 1)
		point = GeoPoint(0.01, 0.5)
		distance = distance_to_segment_km(point, start, end)

		self.assertTrue(is_point_on_segment(point, start, end, distance))
		self.assertFalse(is_point_on_segment(point, start, end, distance - 0.001))

	def test_polyline_distance_is_min_over_segments(self):
		polyline = [GeoPoint(0, 0), GeoPoint(0, 1), GeoPoint(1, 1)]
		point = GeoPoint(0.5, 1.02)
		self.assertAlmostEqual(distance_to_polyline_km(point, polyline), 0.02 * KM_PER_DEGREE, places=6)

	def test_polyline_single_vertex_and_empty(self):
		vertex = GeoPoint(0, 0)
		point = GeoPoint(0, 0.01)
		self.assertAlmostEqual(distance_to_polyline_km(point, [vertex]), 0.01 * KM_PER_DEGREE, places=6)

		with self.assertRaises(ValueError):
			distance_to_polyline_km(point, [])

	def test_nearest_vertex_first_index_wins_ties(self):
		polyline = [GeoPoint(0, 0), GeoPoint(0, 2), GeoPoint(0, 2)]
		self.assertEqual(nearest_vertex_index(GeoPoint(0, 1.9), polyline), 1)
		self.assertEqual(nearest_vertex_index(GeoPoint(0, 1), polyline), 0)


class ScheduleTests(SimpleTestCase):
	def test_parse_twelve_hour_times(self):
		self.assertEqual(parse_time_minutes('8:00 AM'), 480)
		self.assertEqual(parse_time_minutes('8:30 pm'), 20 * 60 + 30)
		self.assertEqual(parse_time_minutes('12:15 AM'), 15)
		self.assertEqual(parse_time_minutes('12:15 PM'), 12 * 60 + 15)

	def test_parse_twenty_four_hour_times(self):
		self.assertEqual(parse_time_minutes('17:45'), 17 * 60 + 45)
		self.assertEqual(parse_time_minutes('0:05'), 5)

	def test_parse_rejects_garbage(self):
		for value in ['', 'noon', '25:00', '13:00 PM', '8:60 AM', '8:00 XM', None]:
			with self.subTest(value=value):
				with self.assertRaises(ValueError):
					parse_time_minutes(value)

	def test_time_difference_is_symmetric_and_non_negative(self):
		self.assertEqual(time_difference_minutes('8:00 AM', '8:10 AM'), 10)
		self.assertEqual(time_difference_minutes('8:10 AM', '8:00 AM'), 10)
		self.assertEqual(time_difference_minutes('9:00 AM', '9:00 AM'), 0)

	def test_day_and_time_examples(self):
		self.assertTrue(is_day_match({'mon', 'wed'}, {'wed', 'fri'}))
		self.assertFalse(is_day_match({'mon'}, {'tue'}))
		self.assertTrue(is_time_match('8:00 AM', '8:45 AM', 60))
		self.assertFalse(is_time_match('8:00 AM', '9:15 AM', 60))

	def test_time_match_window_is_inclusive(self):
		self.assertTrue(is_time_match('8:00 AM', '9:00 AM'))
		self.assertFalse(is_time_match('8:00 AM', '9:01 AM'))
		self.assertTrue(is_time_match('8:00 AM', '8:20 AM', window=20))

	def test_day_match_requires_shared_day(self):
		self.assertTrue(is_day_match(['Monday', 'wednesday'], ['wednesday ', 'friday']))
		self.assertFalse(is_day_match(['monday'], ['tuesday']))
		self.assertFalse(is_day_match([], ['monday']))

	def test_normalize_days_drops_blank_entries(self):
		self.assertEqual(normalize_days([' Monday', '', 'MONDAY']), frozenset({'monday'}))
