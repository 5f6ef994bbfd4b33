# ABOUTME: Test the JSON API views for search, autocomplete, and admin sync.
# ABOUTME: Geocoding and the sync service are mocked; responses are checked as JSON.

from unittest.mock import patch

from django.test import TestCase, override_settings
from django.urls import reverse

from officiants.geo import Coordinates
from officiants.models import CachedAffiliation, CachedMunicipality, Officiant, SyncRun
from officiants.services import SyncAlreadyRunning, SyncSummary


TORONTO = Coordinates(43.6532, -79.3832)


class SearchViewTests(TestCase):

    def setUp(self):
        patcher = patch('officiants.services.search.LocationGeocoder')
        self.geocoder = patcher.start().return_value
        self.geocoder.resolve_location.return_value = None
        self.addCleanup(patcher.stop)

        Officiant.objects.create(ontario_id=1, first_name='Ana', last_name='Lopez', municipality='Toronto',
                                 affiliation='Roman Catholic Church', latitude=43.66, longitude=-79.38)
        Officiant.objects.create(ontario_id=2, first_name='Ben', last_name='Miller', municipality='Ottawa',
                                 affiliation='United Church of Canada', latitude=45.42, longitude=-75.70)
        Officiant.objects.create(ontario_id=3, first_name='Cy', last_name='Ng', municipality='Toronto',
                                 affiliation='Roman Catholic Church')

    def test_attribute_search(self):
        response = self.client.get(reverse('search_officiants'), {'affiliation': 'catholic'})

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertTrue(data['success'])
        self.assertEqual(data['mode'], 'attribute')
        self.assertEqual(data['total'], 2)
        self.assertEqual(data['count'], 2)
        self.assertEqual({r['ontario_id'] for r in data['results']}, {1, 3})
        self.assertIsNone(data['results'][0]['distance'])
        self.assertIsNone(data['params']['radius'])

    def test_radius_search_with_coordinates(self):
        response = self.client.get(reverse('search_officiants'), {
            'lat': TORONTO.latitude, 'lng': TORONTO.longitude, 'radius': '25',
        })

        data = response.json()
        self.assertEqual(data['mode'], 'radius')
        self.assertEqual([r['ontario_id'] for r in data['results']], [1])
        self.assertLess(data['results'][0]['distance'], 25)
        self.geocoder.resolve_location.assert_not_called()

    def test_location_defaults_to_fifty_km(self):
        self.geocoder.resolve_location.return_value = TORONTO

        data = self.client.get(reverse('search_officiants'), {'location': 'Toronto'}).json()

        self.geocoder.resolve_location.assert_called_once_with('Toronto')
        self.assertEqual(data['params']['radius'], 50.0)
        self.assertEqual(data['params']['lat'], TORONTO.latitude)
        self.assertEqual(data['mode'], 'radius')
        self.assertEqual(data['total'], 1)

    def test_coordinates_default_to_fifty_km(self):
        data = self.client.get(reverse('search_officiants'), {
            'lat': TORONTO.latitude, 'lng': TORONTO.longitude,
        }).json()

        self.assertEqual(data['params']['radius'], 50.0)
        self.assertEqual(data['mode'], 'radius')
        self.assertEqual([r['ontario_id'] for r in data['results']], [1])
        self.geocoder.resolve_location.assert_not_called()

    def test_lone_latitude_gets_no_default_radius(self):
        data = self.client.get(reverse('search_officiants'), {'lat': TORONTO.latitude}).json()

        self.assertIsNone(data['params']['radius'])
        self.assertEqual(data['mode'], 'attribute')
        self.assertEqual(data['total'], 3)

    def test_ungeocodable_location_filters_by_municipality(self):
        data = self.client.get(reverse('search_officiants'), {'location': 'Ottawa'}).json()

        self.assertEqual(data['mode'], 'attribute')
        self.assertEqual([r['ontario_id'] for r in data['results']], [2])

    def test_unparseable_numbers_fall_back_to_defaults(self):
        data = self.client.get(reverse('search_officiants'), {
            'limit': 'lots', 'offset': '-', 'radius': 'far', 'lat': 'north',
        }).json()

        self.assertTrue(data['success'])
        self.assertEqual(data['params']['limit'], 50)
        self.assertEqual(data['params']['offset'], 0)
        self.assertEqual(data['total'], 3)

    def test_limit_and_offset(self):
        data = self.client.get(reverse('search_officiants'), {'limit': 1, 'offset': 1}).json()

        self.assertEqual(data['count'], 1)
        self.assertEqual(data['total'], 3)

    def test_search_error_returns_500(self):
        with patch('officiants.views.OfficiantSearchService.search', side_effect=RuntimeError('database is down')):
            with self.assertLogs('officiants.services', level='ERROR'):
                response = self.client.get(reverse('search_officiants'), {'q': 'ana'})

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {'success': False, 'error': 'database is down'})

    def test_post_not_allowed(self):
        response = self.client.post(reverse('search_officiants'))

        self.assertEqual(response.status_code, 405)


class OfficiantDetailViewTests(TestCase):

    def test_found(self):
        officiant = Officiant.objects.create(ontario_id=9, first_name='Dee', last_name='Roy', municipality='Guelph')

        data = self.client.get(reverse('officiant_detail', args=[officiant.pk])).json()

        self.assertTrue(data['success'])
        self.assertEqual(data['officiant']['full_name'], 'Dee Roy')
        self.assertIsNone(data['officiant']['lat'])

    def test_not_found(self):
        response = self.client.get(reverse('officiant_detail', args=[999]))

        self.assertEqual(response.status_code, 404)
        self.assertFalse(response.json()['success'])


class AutocompleteViewTests(TestCase):

    def test_municipalities(self):
        for name in ('Toronto', 'Barrie', 'Ottawa'):
            CachedMunicipality.objects.create(name=name)

        data = self.client.get(reverse('municipalities')).json()

        self.assertEqual(data, {'success': True, 'municipalities': ['Barrie', 'Ottawa', 'Toronto'], 'count': 3})

    def test_affiliations_are_cacheable(self):
        CachedAffiliation.objects.create(name='Anglican Church of Canada')

        response = self.client.get(reverse('affiliations'))

        self.assertEqual(response.json()['affiliations'], ['Anglican Church of Canada'])
        self.assertIn('s-maxage=3600', response['Cache-Control'])


@override_settings(ADMIN_PASSWORD='s3cret')
class AdminSyncViewTests(TestCase):

    def auth(self, password='s3cret'):
        return {'HTTP_AUTHORIZATION': f'Bearer {password}'}

    def test_missing_password_is_rejected(self):
        response = self.client.get(reverse('admin_sync'))

        self.assertEqual(response.status_code, 401)

    def test_wrong_password_is_rejected(self):
        self.assertEqual(self.client.get(reverse('admin_sync'), **self.auth('guess')).status_code, 401)
        self.assertEqual(self.client.post(reverse('admin_sync'), **self.auth('guess')).status_code, 401)

    @override_settings(ADMIN_PASSWORD='')
    def test_admin_api_disabled_without_password(self):
        response = self.client.get(reverse('admin_sync'), **self.auth(''))

        self.assertEqual(response.status_code, 401)

    def test_status(self):
        Officiant.objects.create(ontario_id=1, latitude=43.0, longitude=-79.0)
        Officiant.objects.create(ontario_id=2)
        SyncRun.objects.create(status=SyncRun.STATUS_COMPLETED, total_fetched=2)

        data = self.client.get(reverse('admin_sync'), **self.auth()).json()

        self.assertTrue(data['success'])
        self.assertFalse(data['running'])
        self.assertEqual(data['stats'], {'total_officiants': 2, 'geocoded_officiants': 1, 'geocoded_percent': 50})
        self.assertEqual(len(data['sync_history']), 1)
        self.assertEqual(data['sync_history'][0]['status'], SyncRun.STATUS_COMPLETED)

    def test_status_reports_running_sync(self):
        SyncRun.objects.create(status=SyncRun.STATUS_RUNNING)

        data = self.client.get(reverse('admin_sync'), **self.auth()).json()

        self.assertTrue(data['running'])

    @patch('officiants.views.OfficiantSyncService')
    def test_trigger_runs_sync(self, mock_service):
        mock_service.return_value.start.return_value = SyncSummary(
            success=True, total_fetched=5, total_inserted=2, total_updated=3, geocoded_count=4,
            duration=1.234, run_id=17,
        )

        response = self.client.post(reverse('admin_sync'), **self.auth())

        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertTrue(data['success'])
        self.assertEqual(data['run_id'], 17)
        self.assertEqual(data['status'], SyncRun.STATUS_COMPLETED)
        self.assertEqual(data['total_inserted'], 2)
        self.assertEqual(data['duration'], 1.23)

    @patch('officiants.views.OfficiantSyncService')
    def test_trigger_reports_failed_sync(self, mock_service):
        mock_service.return_value.start.return_value = SyncSummary(success=False, error='timeout', run_id=3)

        data = self.client.post(reverse('admin_sync'), **self.auth()).json()

        self.assertFalse(data['success'])
        self.assertEqual(data['status'], SyncRun.STATUS_FAILED)
        self.assertEqual(data['error'], 'timeout')

    @patch('officiants.views.OfficiantSyncService')
    def test_trigger_conflicts_with_running_sync(self, mock_service):
        mock_service.return_value.start.side_effect = SyncAlreadyRunning('A sync is already running')

        response = self.client.post(reverse('admin_sync'), **self.auth())

        self.assertEqual(response.status_code, 409)
        self.assertFalse(response.json()['success'])
