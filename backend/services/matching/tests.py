import threading
from unittest.mock import patch

from django.test import SimpleTestCase, override_settings

from services.routing import GeoPoint, InMemoryRouteSource, ProviderTransientError, RouteUnavailable

from . import (
	CandidateOutcome,
	InvalidRoute,
	MatchingEngine,
	MatchResult,
	MatchSignals,
	OrderCheckResult,
	Schedule,
	ScoringPolicy,
	TripRoute,
	check_route_order,
	score_match,
	select_for_display,
	straight_line_order_check,
)

PASSENGER = TripRoute(
	pickup=GeoPoint(45.7536, 21.2257),
	dropoff=GeoPoint(45.7608, 21.2264),
	schedule=Schedule(days=['wednesday'], time='8:00 AM'),
)


def driver_trip(trip_id=1, pickup=(45.7489, 21.2083), dropoff=(45.7650, 21.2300),
				days=('wednesday', 'thursday'), time='8:10 AM'):
	return TripRoute(
		pickup=GeoPoint(*pickup),
		dropoff=GeoPoint(*dropoff),
		schedule=Schedule(days=days, time=time),
		id=trip_id,
		price=4.5,
		seats_available=3,
		owner_meta={'driver': {'id': 7, 'name': 'Ana Pop'}},
	)


def order_result(valid=True, pickup_km=0.5, dropoff_km=0.5, pickup_on=True, dropoff_on=True):
	return OrderCheckResult(
		is_valid_order=valid,
		pickup_distance_km=pickup_km,
		dropoff_distance_km=dropoff_km,
		pickup_on_route=pickup_on,
		dropoff_on_route=dropoff_on,
	)


def match_result(trip_id, score):
	return MatchResult(
		driver_trip_id=trip_id,
		match_score=score,
		reasons=[],
		pickup_distance_km=0.0,
		dropoff_distance_km=0.0,
		is_valid_order=True,
		time_difference_min=0,
	)


class BlockingRouteSource(InMemoryRouteSource):
	"""Holds every lookup until ``release`` is set."""

	def __init__(self):
		super().__init__()
		self.release = threading.Event()

	def route_through(self, stops):
		self.release.wait(5)
		return super().route_through(stops)


class RouteOrderTests(SimpleTestCase):
	def setUp(self):
		self.source = InMemoryRouteSource()
		self.origin = GeoPoint(0, 0)
		self.destination = GeoPoint(0, 0.1)

	def test_pickup_before_dropoff_is_valid(self):
		result = check_route_order(
			self.source, GeoPoint(0.001, 0.02), GeoPoint(0.001, 0.08), self.origin, self.destination,
		)

		self.assertTrue(result.is_valid_order)
		self.assertTrue(result.pickup_on_route)
		self.assertTrue(result.dropoff_on_route)
		self.assertAlmostEqual(result.pickup_distance_km, 0.111, places=3)
		self.assertTrue(result.route_aware)

	def test_reversed_points_are_invalid(self):
		result = check_route_order(
			self.source, GeoPoint(0.001, 0.08), GeoPoint(0.001, 0.02), self.origin, self.destination,
		)
		self.assertFalse(result.is_valid_order)

	def test_points_nearest_the_same_vertex_are_invalid(self):
		result = check_route_order(
			self.source, GeoPoint(0.001, 0.05), GeoPoint(-0.001, 0.0501), self.origin, self.destination,
		)
		self.assertFalse(result.is_valid_order)

	def test_on_route_threshold(self):
		result = check_route_order(
			self.source, GeoPoint(0.02, 0.02), GeoPoint(0.001, 0.08), self.origin, self.destination,
			on_route_threshold_km=1.0,
		)
		self.assertFalse(result.pickup_on_route)
		self.assertTrue(result.dropoff_on_route)

	def test_routing_failure_falls_back_to_straight_line(self):
		source = InMemoryRouteSource(fail_with=RouteUnavailable)
		pickup = GeoPoint(0.001, 0.02)
		dropoff = GeoPoint(0.001, 0.08)

		result = check_route_order(source, pickup, dropoff, self.origin, self.destination)

		self.assertEqual(result, straight_line_order_check(pickup, dropoff, self.origin))
		self.assertTrue(result.is_valid_order)
		self.assertFalse(result.pickup_on_route)
		self.assertFalse(result.dropoff_on_route)
		self.assertFalse(result.route_aware)

	def test_straight_line_order_uses_distance_from_origin(self):
		result = straight_line_order_check(GeoPoint(0, 0.08), GeoPoint(0, 0.02), self.origin)
		self.assertFalse(result.is_valid_order)
		self.assertGreater(result.pickup_distance_km, result.dropoff_distance_km)


class ScoreMatchTests(SimpleTestCase):
	def setUp(self):
		self.policy = ScoringPolicy()

	def score(self, order, time_difference=0, day_match=True, detour=None):
		return score_match(MatchSignals(order, time_difference, day_match, detour), self.policy)

	def test_perfect_alignment_reason_comes_first(self):
		score, reasons = self.score(order_result(), time_difference=10, detour=0.3)

		self.assertEqual(score, 50 + 10 + 15 + 5)
		self.assertTrue(reasons[0].startswith('Perfect route alignment'))

	def test_exact_location_bonus(self):
		score, reasons = self.score(order_result(pickup_km=0.05, dropoff_km=0.1))
		self.assertEqual(score, 50 + 5 + 5 + 25 + 15)

	def test_invalid_order_penalty(self):
		score, reasons = self.score(order_result(valid=False))

		self.assertEqual(score, 35 - 25 + 25 + 15)
		self.assertIn("Pickup comes after dropoff along the driver's route", reasons)

	def test_one_point_on_route(self):
		cases = [(1.5, 10), (4.0, 3), (8.0, -10)]
		for other_km, other_points in cases:
			with self.subTest(other_km=other_km):
				order = order_result(dropoff_km=other_km, dropoff_on=False)
				score, _ = self.score(order)
				self.assertEqual(score, 20 + other_points + 25 + 15)

	def test_neither_point_on_route(self):
		cases = [
			((1.5, 1.8), 15),
			((1.5, 3.0), 5),
			((3.0, 4.5), 0),
			((3.0, 6.0), -20),
		]
		for (pickup_km, dropoff_km), points in cases:
			with self.subTest(pickup_km=pickup_km, dropoff_km=dropoff_km):
				order = order_result(pickup_km=pickup_km, dropoff_km=dropoff_km, pickup_on=False, dropoff_on=False)
				score, _ = self.score(order)
				self.assertEqual(score, points + 25 + 15)

	def test_time_bands(self):
		cases = [(0, 25), (15, 10), (16, 6), (30, 6), (60, 2), (90, -5), (91, -15)]
		for difference, points in cases:
			with self.subTest(difference=difference):
				score, _ = self.score(order_result(), time_difference=difference)
				self.assertEqual(score, 50 + points + 15)

	def test_day_mismatch(self):
		score, reasons = self.score(order_result(), day_match=False)
		self.assertEqual(score, 50 + 25 - 5)
		self.assertIn('No shared schedule days', reasons)

	def test_detour_score_never_increases_with_detour(self):
		detours = [0, 0.1, 0.2, 0.5, 0.9, 1.5, 2.5, 4, 6, 12]
		scores = [self.score(order_result(), detour=detour)[0] for detour in detours]
		self.assertEqual(scores, sorted(scores, reverse=True))
		self.assertEqual(scores[0] - scores[-1], 10 - (-10))

	def test_detour_band_skipped_without_detour(self):
		score, reasons = self.score(order_result(), detour=None)

		self.assertEqual(score, 50 + 25 + 15)
		self.assertEqual(len(reasons), 3)

	@override_settings(MATCHING={'POLICY': {'admission_floor': 60, 'time_window_bands': [(0, 30, 'Same time')]}})
	def test_policy_overrides_from_settings(self):
		policy = ScoringPolicy.from_settings()

		self.assertEqual(policy.admission_floor, 60)
		self.assertEqual(policy.time_window_bands[0].points, 30)
		self.assertFalse(policy.admits(59))

	@override_settings(MATCHING={'POLICY': {'bonus_points': 10}})
	def test_unknown_policy_keys_are_rejected(self):
		with self.assertRaises(ValueError):
			ScoringPolicy.from_settings()


class MatchingEngineTests(SimpleTestCase):
	def setUp(self):
		self.source = InMemoryRouteSource()
		self.engine = MatchingEngine(source=self.source, policy=ScoringPolicy(), max_workers=1)

	def test_commuter_scenario_is_a_strong_match(self):
		matches = self.engine.find_matching_rides(PASSENGER, [driver_trip()])

		self.assertEqual(len(matches), 1)
		match = matches[0]
		self.assertGreaterEqual(match.match_score, 80)
		self.assertTrue(match.reasons[0].startswith('Perfect route alignment'))
		self.assertTrue(match.is_valid_order)
		self.assertEqual(match.time_difference_min, 10)
		self.assertAlmostEqual(match.detour_distance_km, 0.34, delta=0.05)
		self.assertFalse(match.degraded)

	def test_recommended_route_is_labelled(self):
		match = self.engine.find_matching_rides(PASSENGER, [driver_trip()])[0]

		legs = match.recommended_route.legs
		self.assertEqual(len(legs), 3)
		self.assertEqual(legs[0].label, 'Driver start to passenger pickup')
		self.assertEqual(legs[2].label, 'Passenger dropoff to driver destination')

		data = match.to_dict()
		self.assertEqual(data['id'], 1)
		self.assertIn('recommendedRoute', data)
		self.assertEqual(data['driver']['name'], 'Ana Pop')
		self.assertEqual(data['schedule']['days'], ['thursday', 'wednesday'])

	def test_failed_waypoint_lookup_omits_recommended_route(self):
		engine = MatchingEngine(source=InMemoryRouteSource(fail_multi_stop=True), policy=ScoringPolicy(), max_workers=1)

		match = engine.find_matching_rides(PASSENGER, [driver_trip()])[0]

		self.assertIsNone(match.recommended_route)
		self.assertEqual(match.detour_distance_km, 0.0)
		self.assertIn('No detour needed', match.reasons)
		self.assertNotIn('recommendedRoute', match.to_dict())

	def test_admission_floor_is_inclusive(self):
		for score, expected in [(49, 0), (50, 1)]:
			with self.subTest(score=score):
				with patch('services.matching.engine.score_match', return_value=(score, ['stub'])):
					matches = self.engine.find_matching_rides(PASSENGER, [driver_trip()])
				self.assertEqual(len(matches), expected)

	def test_quick_filter_drops_distant_trips(self):
		distant = driver_trip(pickup=(46.2, 21.2083), dropoff=(46.3, 21.23))

		outcomes = self.engine.evaluate_all(PASSENGER, [distant])

		self.assertEqual(outcomes, [])
		self.assertEqual(self.source.calls, 0)

	def test_quick_filter_keeps_trip_when_one_end_is_near(self):
		one_end_near = driver_trip(pickup=(45.7489, 21.2083), dropoff=(46.3, 21.23))
		self.assertTrue(self.engine.passes_quick_filter(PASSENGER, one_end_near))

	def test_invalid_passenger_route(self):
		broken = TripRoute(pickup=None, dropoff=PASSENGER.dropoff, schedule=PASSENGER.schedule)
		with self.assertRaises(InvalidRoute):
			self.engine.find_matching_rides(broken, [driver_trip()])

	def test_provider_failure_degrades_candidate(self):
		engine = MatchingEngine(
			source=InMemoryRouteSource(fail_with=ProviderTransientError), policy=ScoringPolicy(), max_workers=1,
		)

		outcome = engine.evaluate_all(PASSENGER, [driver_trip()])[0]

		self.assertEqual(outcome.status, CandidateOutcome.DEGRADED)
		self.assertTrue(outcome.result.degraded)
		# both points near the trip, time within an hour, days overlap
		self.assertEqual(outcome.score, 30 + 30 + 25 + 15)
		self.assertIsNone(outcome.result.recommended_route)

	def test_unscorable_candidate_is_skipped_without_aborting_batch(self):
		broken = driver_trip(trip_id=2, time='whenever')

		outcomes = self.engine.evaluate_all(PASSENGER, [driver_trip(trip_id=1), broken])

		self.assertEqual([outcome.status for outcome in outcomes], [CandidateOutcome.SCORED, CandidateOutcome.SKIPPED])
		self.assertIsNone(outcomes[1].result)
		self.assertEqual(
			[match.driver_trip_id for match in self.engine.find_matching_rides(PASSENGER, [driver_trip(trip_id=1), broken])],
			[1],
		)

	def test_results_are_sorted_and_stable_across_threads(self):
		engine = MatchingEngine(source=InMemoryRouteSource(), policy=ScoringPolicy(), max_workers=4)
		weaker = driver_trip(trip_id=9, time='9:00 AM')
		trips = [weaker] + [driver_trip(trip_id=trip_id) for trip_id in (3, 1, 2)]

		first = [match.driver_trip_id for match in engine.find_matching_rides(PASSENGER, trips)]
		second = [match.driver_trip_id for match in engine.find_matching_rides(PASSENGER, trips)]

		self.assertEqual(first, [3, 1, 2, 9])
		self.assertEqual(first, second)

	def test_batch_timeout_skips_unfinished_candidates(self):
		source = BlockingRouteSource()
		engine = MatchingEngine(source=source, policy=ScoringPolicy(), max_workers=2, timeout_seconds=0.1)
		try:
			outcomes = engine.evaluate_all(PASSENGER, [driver_trip(trip_id=1), driver_trip(trip_id=2)])
		finally:
			source.release.set()

		self.assertEqual([outcome.status for outcome in outcomes], [CandidateOutcome.SKIPPED] * 2)
		self.assertEqual(outcomes[0].reason, 'timeout')

	def test_single_worker_batch_honours_timeout(self):
		source = BlockingRouteSource()
		engine = MatchingEngine(source=source, policy=ScoringPolicy(), max_workers=1, timeout_seconds=0.1)
		try:
			outcomes = engine.evaluate_all(PASSENGER, [driver_trip(trip_id=4)])
		finally:
			source.release.set()

		self.assertEqual(len(outcomes), 1)
		self.assertEqual(outcomes[0].status, CandidateOutcome.SKIPPED)
		self.assertEqual(outcomes[0].trip_id, 4)
		self.assertEqual(outcomes[0].reason, 'timeout')


class DisplayPolicyTests(SimpleTestCase):
	def test_keeps_strong_matches_up_to_max(self):
		matches = [match_result(trip_id, 90 - trip_id) for trip_id in range(15)]

		shown = select_for_display(matches, min_score=50, min_results=3, max_results=10)

		self.assertEqual(len(shown), 10)
		self.assertEqual(shown[0].driver_trip_id, 0)

	def test_backfills_to_minimum(self):
		matches = [match_result(1, 70), match_result(2, 45), match_result(3, 20), match_result(4, 30)]

		shown = select_for_display(matches, min_score=50, min_results=3, max_results=10)

		self.assertEqual([match.driver_trip_id for match in shown], [1, 2, 4])

	def test_fewer_matches_than_minimum(self):
		shown = select_for_display([match_result(1, 10)], min_score=50, min_results=3, max_results=10)
		self.assertEqual(len(shown), 1)

	@override_settings(MATCHING={'DISPLAY': {'MIN_SCORE': 60, 'MIN_RESULTS': 1, 'MAX_RESULTS': 2}})
	def test_defaults_come_from_settings(self):
		matches = [match_result(1, 80), match_result(2, 70), match_result(3, 65), match_result(4, 10)]

		shown = select_for_display(matches)

		self.assertEqual([match.driver_trip_id for match in shown], [1, 2])
