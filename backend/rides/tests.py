from io import StringIO
from unittest.mock import Mock, patch

from django.core.cache import caches
from django.core.management import CommandError, call_command
from django.test import TestCase, override_settings
from rest_framework.test import APIRequestFactory, force_authenticate

from accounts.models import User
from services.matching import MatchingEngine, on_trip_created
from services.routing import InMemoryRouteSource, ProviderTransientError, RouteUnavailable

from .models import RiderSearch, SavedMatch, Trip
from .store import DjangoMatchStore
from .tasks import check_rider_searches_for_trip
from .views import (
	calculate_route,
	calculate_route_with_waypoints,
	check_point,
	dismiss_match,
	mark_match_viewed,
	new_saved_matches,
	route_overlap,
	search_matches,
)

TEST_SETTINGS = {
	'ROUTING': {'PROVIDER': 'memory', 'CACHE_ALIAS': 'routes', 'CACHE_TTL_SECONDS': 3600},
	'CACHES': {
		'default': {'BACKEND': 'django.core.cache.backends.locmem.LocMemCache', 'LOCATION': 'rides-tests-default'},
		'routes': {'BACKEND': 'django.core.cache.backends.locmem.LocMemCache', 'LOCATION': 'rides-tests-routes'},
	},
}


class RideFixturesMixin:
	def setUp(self):
		caches['routes'].clear()
		self.factory = APIRequestFactory()
		self.driver = User.objects.create_user(
			username='driver',
			password='driver1234',
			role='driver',
			phone_number='0700000001',
			first_name='Ana',
			last_name='Pop'
		)
		self.rider = User.objects.create_user(
			username='rider',
			password='rider1234',
			role='rider',
			phone_number='0700000002'
		)

	def create_trip(self, **overrides):
		fields = {
			'driver': self.driver,
			'pickup_latitude': '45.748900',
			'pickup_longitude': '21.208300',
			'dropoff_latitude': '45.765000',
			'dropoff_longitude': '21.230000',
			'schedule_days': ['wednesday', 'thursday'],
			'schedule_time': '8:10 AM',
			'price': '12.50',
			'available_seats': 3,
		}
		fields.update(overrides)
		return Trip.objects.create(**fields)

	def create_search(self, **overrides):
		fields = {
			'rider': self.rider,
			'pickup_latitude': '45.753600',
			'pickup_longitude': '21.225700',
			'dropoff_latitude': '45.760800',
			'dropoff_longitude': '21.226400',
			'schedule_days': ['wednesday'],
			'schedule_time': '8:00 AM',
		}
		fields.update(overrides)
		return RiderSearch.objects.create(**fields)

	def engine(self, source=None):
		return MatchingEngine(source=source or InMemoryRouteSource(), max_workers=1)


class FailingSearchStore(DjangoMatchStore):
	def __init__(self, failing_search_id):
		self.failing_search_id = failing_search_id

	def search_route(self, search):
		if search.id == self.failing_search_id:
			raise ValueError('corrupt search row')
		return super().search_route(search)


@override_settings(**TEST_SETTINGS)
class StandingSearchTests(RideFixturesMixin, TestCase):
	def test_matching_search_gets_new_saved_match(self):
		search = self.create_search()
		trip = self.create_trip()

		created = on_trip_created(trip.id, engine=self.engine())

		self.assertEqual(len(created), 1)
		match = SavedMatch.objects.get()
		self.assertEqual(match.search, search)
		self.assertEqual(match.trip, trip)
		self.assertEqual(match.status, 'new')
		self.assertGreaterEqual(match.score, 80)

	def test_repeated_notification_does_not_duplicate(self):
		self.create_search()
		trip = self.create_trip()

		on_trip_created(trip.id, engine=self.engine())
		second = on_trip_created(trip.id, engine=self.engine())

		self.assertEqual(second, [])
		self.assertEqual(SavedMatch.objects.count(), 1)

	def test_inactive_or_missing_trip_is_a_no_op(self):
		self.create_search()
		trip = self.create_trip(status='cancelled')
		source = InMemoryRouteSource()

		self.assertEqual(on_trip_created(trip.id, engine=self.engine(source)), [])
		self.assertEqual(on_trip_created(99999, engine=self.engine(source)), [])
		self.assertEqual(source.calls, 0)
		self.assertFalse(SavedMatch.objects.exists())

	def test_search_without_shared_day_is_skipped(self):
		self.create_search(schedule_days=['monday'])
		trip = self.create_trip()
		source = InMemoryRouteSource()

		created = on_trip_created(trip.id, engine=self.engine(source))

		self.assertEqual(created, [])
		self.assertEqual(source.calls, 0)

	def test_paused_searches_are_ignored(self):
		self.create_search(status='paused')
		trip = self.create_trip()

		self.assertEqual(on_trip_created(trip.id, engine=self.engine()), [])

	def test_notification_threshold_is_below_admission_floor(self):
		self.create_search()
		trip = self.create_trip()

		with patch('services.matching.engine.score_match', return_value=(39, ['stub'])):
			self.assertEqual(on_trip_created(trip.id, engine=self.engine()), [])
		with patch('services.matching.engine.score_match', return_value=(45, ['stub'])):
			created = on_trip_created(trip.id, engine=self.engine())

		self.assertEqual(len(created), 1)
		self.assertEqual(created[0].score, 45)

	def test_degraded_match_near_route_is_saved(self):
		self.create_search()
		trip = self.create_trip()
		source = InMemoryRouteSource(fail_with=ProviderTransientError)

		created = on_trip_created(trip.id, engine=self.engine(source))

		self.assertEqual(len(created), 1)
		self.assertEqual(created[0].score, 100)

	def test_degraded_match_off_route_is_not_saved(self):
		# ~5 km north of the trip, so only time and day points remain
		self.create_search(
			pickup_latitude='45.803600',
			dropoff_latitude='45.810800',
		)
		trip = self.create_trip()
		source = InMemoryRouteSource(fail_with=ProviderTransientError)

		created = on_trip_created(trip.id, engine=self.engine(source))

		self.assertEqual(created, [])
		self.assertFalse(SavedMatch.objects.exists())

	def test_one_failing_search_does_not_stop_the_others(self):
		broken = self.create_search()
		healthy = self.create_search()
		trip = self.create_trip()

		with self.assertLogs('services.matching.standing_search', level='ERROR'):
			created = on_trip_created(trip.id, store=FailingSearchStore(broken.id), engine=self.engine())

		self.assertEqual([match.search_id for match in created], [healthy.id])


@override_settings(**TEST_SETTINGS)
class MatchStoreTests(RideFixturesMixin, TestCase):
	def test_active_trips_need_free_seats_and_active_status(self):
		open_trip = self.create_trip()
		self.create_trip(available_seats=0)
		self.create_trip(status='full')

		routes = DjangoMatchStore().active_trips()

		self.assertEqual([route.id for route in routes], [open_trip.id])
		route = routes[0]
		self.assertAlmostEqual(route.pickup.latitude, 45.7489)
		self.assertEqual(route.price, 12.5)
		self.assertEqual(route.owner_meta['driver']['name'], 'Ana Pop')
		self.assertEqual(route.schedule.days, frozenset({'wednesday', 'thursday'}))

	def test_active_trips_can_exclude_own_trips(self):
		self.create_trip()
		self.assertEqual(DjangoMatchStore().active_trips(exclude_driver=self.driver), [])

	def test_unusable_trip_rows_are_skipped(self):
		self.create_trip(schedule_days=[])
		good = self.create_trip()

		routes = DjangoMatchStore().active_trips()

		self.assertEqual([route.id for route in routes], [good.id])

	def test_save_match_if_absent(self):
		search = self.create_search()
		trip = self.create_trip()
		store = DjangoMatchStore()

		self.assertIsNotNone(store.save_match_if_absent(search.id, trip.id, 70))
		self.assertIsNone(store.save_match_if_absent(search.id, trip.id, 75))
		self.assertEqual(SavedMatch.objects.get().score, 70)

	def test_concurrent_insert_counts_as_existing(self):
		search = self.create_search()
		trip = self.create_trip()
		SavedMatch.objects.create(search=search, trip=trip, score=60)

		# pre-check misses the row another worker just wrote
		with patch.object(SavedMatch.objects, 'filter', return_value=Mock(exists=Mock(return_value=False))):
			result = DjangoMatchStore().save_match_if_absent(search.id, trip.id, 60)

		self.assertIsNone(result)
		self.assertEqual(SavedMatch.objects.count(), 1)


@override_settings(**TEST_SETTINGS)
class TripCreatedHookTests(RideFixturesMixin, TestCase):
	def test_new_trip_enqueues_check_after_commit(self):
		with patch.object(check_rider_searches_for_trip, 'delay') as mock_delay:
			with self.captureOnCommitCallbacks(execute=False) as callbacks:
				trip = self.create_trip()
			mock_delay.assert_not_called()

			for callback in callbacks:
				callback()

		mock_delay.assert_called_once_with(trip.id)

	def test_updates_do_not_enqueue(self):
		trip = self.create_trip()

		with patch.object(check_rider_searches_for_trip, 'delay') as mock_delay:
			with self.captureOnCommitCallbacks(execute=True):
				trip.available_seats = 2
				trip.save()

		mock_delay.assert_not_called()

	def test_broker_failure_does_not_fail_trip_creation(self):
		with patch.object(check_rider_searches_for_trip, 'delay', side_effect=ConnectionError('broker down')):
			with self.assertLogs('rides.signals', level='ERROR'):
				with self.captureOnCommitCallbacks(execute=True):
					trip = self.create_trip()

		self.assertTrue(Trip.objects.filter(id=trip.id).exists())

	def test_task_runs_notifier(self):
		self.create_search()
		trip = self.create_trip()

		self.assertEqual(check_rider_searches_for_trip(trip.id), 1)
		self.assertEqual(SavedMatch.objects.count(), 1)

	@patch('services.matching.on_trip_created', side_effect=RuntimeError('boom'))
	def test_task_logs_and_swallows_errors(self, mock_notifier):
		with self.assertLogs('rides.tasks', level='ERROR'):
			self.assertEqual(check_rider_searches_for_trip(5), 0)

	def test_management_command_runs_inline(self):
		self.create_search()
		trip = self.create_trip()
		out = StringIO()

		call_command('check_rider_searches', trip.id, stdout=out)

		self.assertIn('Created 1 new matches', out.getvalue())
		self.assertEqual(SavedMatch.objects.count(), 1)

	def test_management_command_rejects_unknown_trip(self):
		with self.assertRaises(CommandError):
			call_command('check_rider_searches', 424242, stdout=StringIO())


@override_settings(**TEST_SETTINGS)
class MatchSearchViewTests(RideFixturesMixin, TestCase):
	def search_payload(self, **overrides):
		payload = {
			'pickup_latitude': 45.7536,
			'pickup_longitude': 21.2257,
			'dropoff_latitude': 45.7608,
			'dropoff_longitude': 21.2264,
			'schedule_days': ['wednesday'],
			'schedule_time': '8:00 AM',
		}
		payload.update(overrides)
		return payload

	def post(self, view, data, user=None):
		request = self.factory.post('/api/', data, format='json')
		force_authenticate(request, user=user or self.rider)
		return view(request)

	def test_search_returns_ranked_matches(self):
		trip = self.create_trip()
		self.create_trip(schedule_time='11:00 AM', schedule_days=['sunday'])

		response = self.post(search_matches, self.search_payload())

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['count'], 1)
		match = response.data['matches'][0]
		self.assertEqual(match['id'], trip.id)
		self.assertGreaterEqual(match['matchScore'], 80)
		self.assertIn('recommendedRoute', match)
		self.assertEqual(match['available_seats'], 3)

	def test_search_skips_full_trips(self):
		self.create_trip(available_seats=0)

		response = self.post(search_matches, self.search_payload())

		self.assertEqual(response.data, {'matches': [], 'count': 0})

	def test_search_validation(self):
		cases = [
			{'pickup_latitude': 95},
			{'dropoff_longitude': -181},
			{'schedule_days': []},
			{'schedule_time': 'sometime'},
		]
		for overrides in cases:
			with self.subTest(overrides=overrides):
				response = self.post(search_matches, self.search_payload(**overrides))
				self.assertEqual(response.status_code, 400)

	def test_search_requires_authentication(self):
		request = self.factory.post('/api/', self.search_payload(), format='json')
		response = search_matches(request)
		self.assertEqual(response.status_code, 401)

	def test_engine_failure_returns_empty_result(self):
		self.create_trip()

		with patch('rides.views.MatchingEngine.find_matching_rides', side_effect=RuntimeError('boom')):
			with self.assertLogs('rides.views', level='ERROR'):
				response = self.post(search_matches, self.search_payload())

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['count'], 0)


@override_settings(**TEST_SETTINGS)
class RouteViewTests(RideFixturesMixin, TestCase):
	origin = {'latitude': 45.7489, 'longitude': 21.2083}
	destination = {'latitude': 45.7650, 'longitude': 21.2300}

	def post(self, view, data):
		request = self.factory.post('/api/routes/', data, format='json')
		force_authenticate(request, user=self.rider)
		return view(request)

	def test_calculate_route(self):
		response = self.post(calculate_route, {'origin': self.origin, 'destination': self.destination})

		self.assertEqual(response.status_code, 200)
		self.assertGreater(response.data['route']['distance'], 2)
		self.assertEqual(len(response.data['route']['legs']), 1)

	def test_calculate_route_with_waypoints(self):
		waypoint = {'latitude': 45.7536, 'longitude': 21.2257}
		response = self.post(calculate_route_with_waypoints, {
			'origin': self.origin, 'destination': self.destination, 'waypoints': [waypoint],
		})

		self.assertEqual(response.status_code, 200)
		self.assertEqual(len(response.data['route']['legs']), 2)

	def test_routing_failure_is_bad_gateway(self):
		with patch('rides.views.get_route_source', return_value=InMemoryRouteSource(fail_with=RouteUnavailable)):
			response = self.post(calculate_route, {'origin': self.origin, 'destination': self.destination})
		self.assertEqual(response.status_code, 502)

	def test_check_point(self):
		response = self.post(check_point, {
			'point': {'latitude': 45.7536, 'longitude': 21.2257},
			'routeStart': self.origin,
			'routeEnd': self.destination,
		})

		self.assertEqual(response.status_code, 200)
		self.assertTrue(response.data['isOnRoute'])

	def test_check_point_requires_all_points(self):
		response = self.post(check_point, {'point': self.origin, 'routeStart': self.origin})
		self.assertEqual(response.status_code, 400)

	def test_route_overlap(self):
		trip = {'pickupLocation': self.origin, 'dropoffLocation': self.destination}
		response = self.post(route_overlap, {'route1': trip, 'route2': trip})

		self.assertEqual(response.status_code, 200)
		self.assertAlmostEqual(response.data['overlap']['overlapPercentage'], 100.0)


@override_settings(**TEST_SETTINGS)
class HealthCheckTests(TestCase):
	@patch('app_backend.views.redis.Redis.from_url')
	def test_healthy_services(self, mock_redis):
		response = self.client.get('/health/')

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.json()['services']['database'], 'healthy')
		self.assertEqual(response.json()['services']['celery'], 'healthy')

	@patch('app_backend.views.redis.Redis.from_url', side_effect=ConnectionError('refused'))
	def test_redis_down_is_unhealthy(self, mock_redis):
		response = self.client.get('/health/')
		self.assertEqual(response.status_code, 503)


@override_settings(**TEST_SETTINGS)
class SavedMatchViewTests(RideFixturesMixin, TestCase):
	def setUp(self):
		super().setUp()
		self.other_rider = User.objects.create_user(
			username='other',
			password='other1234',
			role='rider'
		)
		self.search = self.create_search()
		self.trip = self.create_trip()
		self.match = SavedMatch.objects.create(search=self.search, trip=self.trip, score=70)

	def get_new(self, user=None):
		request = self.factory.get('/api/rider-searches/matches/new/')
		force_authenticate(request, user=user or self.rider)
		return new_saved_matches(request)

	def put(self, view, match_id, user=None):
		request = self.factory.put(f'/api/rider-searches/matches/{match_id}/')
		force_authenticate(request, user=user or self.rider)
		return view(request, match_id=match_id)

	def test_lists_new_matches_best_first(self):
		better_trip = self.create_trip(schedule_time='8:05 AM')
		better = SavedMatch.objects.create(search=self.search, trip=better_trip, score=90)

		response = self.get_new()

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['count'], 2)
		self.assertEqual([match['id'] for match in response.data['matches']], [better.id, self.match.id])
		first = response.data['matches'][0]
		self.assertEqual(first['status'], 'new')
		self.assertEqual(first['search']['id'], self.search.id)
		self.assertEqual(first['trip']['driver']['name'], 'Ana Pop')
		self.assertEqual(first['trip']['schedule_days'], ['wednesday', 'thursday'])

	def test_list_skips_seen_inactive_and_foreign_matches(self):
		SavedMatch.objects.create(search=self.search, trip=self.create_trip(status='cancelled'), score=95)
		SavedMatch.objects.create(search=self.search, trip=self.create_trip(), score=80, status='dismissed')
		paused = self.create_search(status='paused')
		SavedMatch.objects.create(search=paused, trip=self.trip, score=85)
		foreign = self.create_search(rider=self.other_rider)
		SavedMatch.objects.create(search=foreign, trip=self.trip, score=99)

		response = self.get_new()

		self.assertEqual([match['id'] for match in response.data['matches']], [self.match.id])

	def test_mark_viewed(self):
		response = self.put(mark_match_viewed, self.match.id)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['status'], 'viewed')
		self.match.refresh_from_db()
		self.assertEqual(self.match.status, 'viewed')
		self.assertEqual(self.get_new().data['count'], 0)

	def test_dismiss(self):
		response = self.put(dismiss_match, self.match.id)

		self.assertEqual(response.status_code, 200)
		self.match.refresh_from_db()
		self.assertEqual(self.match.status, 'dismissed')

	def test_other_riders_cannot_change_a_match(self):
		for view in (mark_match_viewed, dismiss_match):
			with self.subTest(view=view.__name__):
				response = self.put(view, self.match.id, user=self.other_rider)
				self.assertEqual(response.status_code, 404)

		self.match.refresh_from_db()
		self.assertEqual(self.match.status, 'new')

	def test_unknown_match_is_not_found(self):
		self.assertEqual(self.put(dismiss_match, 424242).status_code, 404)

	def test_requires_authentication(self):
		request = self.factory.get('/api/rider-searches/matches/new/')
		self.assertEqual(new_saved_matches(request).status_code, 401)

	def test_routes_are_wired(self):
		self.client.force_login(self.rider)

		listed = self.client.get('/api/rider-searches/matches/new/')
		dismissed = self.client.put(f'/api/rider-searches/matches/{self.match.id}/dismiss/')

		self.assertEqual(listed.status_code, 200)
		self.assertEqual(dismissed.status_code, 200)
		self.match.refresh_from_db()
		self.assertEqual(self.match.status, 'dismissed')
