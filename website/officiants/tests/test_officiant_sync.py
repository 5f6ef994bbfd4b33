# ABOUTME: Test the officiant registry sync and the sync run ledger.
# ABOUTME: Covers upsert idempotency, geocode caching, partial failure, and stale run detection.

from datetime import timedelta
from unittest.mock import MagicMock, patch

import requests
from django.test import TestCase
from django.utils import timezone

from officiants.models import (
    CachedAffiliation,
    CachedMunicipality,
    GeocodeCache,
    Officiant,
    SyncRun,
)
from officiants.services.geocoding import GeocodeMemoryCache, LocationGeocoder
from officiants.services.ontario_api_client import DatastorePage, OntarioDataCatalogueAPI, UpstreamAPIError
from officiants.services.officiant_sync import (
    SYNC_TIMEOUT_MESSAGE,
    OfficiantSyncService,
    SyncAlreadyRunning,
    SyncRunLedger,
)


PLACES = {
    'toronto': (43.6535, -79.3839),
    'ottawa': (45.4215, -75.6972),
    'kingston': (44.2312, -76.4860),
}


def record(ontario_id, first='Pat', last='Taylor', municipality='Toronto', affiliation='United Church of Canada'):
    return {
        '_id': ontario_id,
        'First Name': first,
        'Last Name': last,
        'Municipality': municipality,
        'Affiliation': affiliation,
    }


class FakeRegistry:
    """Serves fixed pages; optionally fails when asked for page ``fail_at``."""

    def __init__(self, pages, fail_at=None):
        self.pages = pages
        self.fail_at = fail_at

    def iter_pages(self):
        total = sum(len(page) for page in self.pages)
        offset = 0
        for number, records in enumerate(self.pages, start=1):
            if number == self.fail_at:
                raise requests.ConnectionError(f'Registry unavailable on page {number}')
            yield DatastorePage(records=records, total=total, offset=offset)
            offset += len(records)


def datastore_response(records, total):
    response = MagicMock()
    response.json.return_value = {'success': True, 'result': {'records': records, 'total': total}}
    return response


def fake_nominatim(url, params=None, headers=None, timeout=None):
    place = params['q'].split(',')[0].strip().lower()
    coords = PLACES.get(place)
    response = MagicMock()
    response.json.return_value = [{'lat': str(coords[0]), 'lon': str(coords[1])}] if coords else []
    return response


@patch('officiants.services.geocoding.time.sleep')
class OfficiantSyncServiceTests(TestCase):

    def setUp(self):
        self.session = MagicMock()
        self.session.get.side_effect = fake_nominatim

    def make_service(self, pages, fail_at=None, **kwargs):
        geocoder = LocationGeocoder(cache=GeocodeMemoryCache(), session=self.session)
        return OfficiantSyncService(api=FakeRegistry(pages, fail_at=fail_at), geocoder=geocoder, **kwargs)

    def default_pages(self):
        return [
            [record(1, first='Ana', municipality='Toronto'), record(2, first='Ben', municipality='Ottawa')],
            [record(3, first='Cy', municipality=' toronto ', affiliation='Roman Catholic Church')],
        ]

    def test_first_run_inserts_and_geocodes(self, mock_sleep):
        summary = self.make_service(self.default_pages()).run()

        self.assertTrue(summary.success)
        self.assertIsNone(summary.error)
        self.assertEqual(summary.total_fetched, 3)
        self.assertEqual(summary.total_inserted, 3)
        self.assertEqual(summary.total_updated, 0)
        self.assertEqual(summary.geocoded_count, 3)

        ana = Officiant.objects.get(ontario_id=1)
        self.assertEqual((ana.latitude, ana.longitude), PLACES['toronto'])
        self.assertIsNotNone(ana.last_synced_at)

        # "Toronto" and " toronto " share one lookup
        self.assertEqual(self.session.get.call_count, 2)
        self.assertEqual(set(GeocodeCache.objects.values_list('name', flat=True)), {'toronto', 'ottawa'})

        run = SyncRun.objects.get(pk=summary.run_id)
        self.assertEqual(run.status, SyncRun.STATUS_COMPLETED)
        self.assertIsNotNone(run.completed_at)
        self.assertEqual((run.total_fetched, run.total_inserted, run.total_updated, run.geocoded_count), (3, 3, 0, 3))

    def test_second_run_is_idempotent(self, mock_sleep):
        self.make_service(self.default_pages()).run()
        before = list(Officiant.objects.order_by('ontario_id').values_list(
            'ontario_id', 'first_name', 'last_name', 'municipality', 'affiliation', 'latitude', 'longitude',
        ))
        self.session.get.reset_mock()

        summary = self.make_service(self.default_pages()).run()

        after = list(Officiant.objects.order_by('ontario_id').values_list(
            'ontario_id', 'first_name', 'last_name', 'municipality', 'affiliation', 'latitude', 'longitude',
        ))
        self.assertTrue(summary.success)
        self.assertEqual(summary.total_inserted, 0)
        self.assertEqual(summary.total_updated, 3)
        self.assertEqual(before, after)
        # Durable cache covers every municipality
        self.session.get.assert_not_called()

    def test_existing_row_is_updated_in_place(self, mock_sleep):
        existing = Officiant.objects.create(ontario_id=2, first_name='Old', last_name='Name', municipality='Ottawa')
        created_at = existing.created_at

        summary = self.make_service(self.default_pages()).run()

        self.assertEqual(summary.total_inserted, 2)
        self.assertEqual(summary.total_updated, 1)
        existing.refresh_from_db()
        self.assertEqual(existing.first_name, 'Ben')
        self.assertEqual(existing.last_name, 'Taylor')
        self.assertEqual(existing.created_at, created_at)
        self.assertEqual(Officiant.objects.count(), 3)

    def test_unresolvable_municipality_leaves_coordinates_empty(self, mock_sleep):
        pages = [[record(1, municipality='Atlantis'), record(2, municipality='Kingston'), record(3, municipality='')]]

        summary = self.make_service(pages).run()

        self.assertTrue(summary.success)
        self.assertEqual(summary.geocoded_count, 1)
        self.assertIsNone(Officiant.objects.get(ontario_id=1).latitude)
        self.assertIsNone(Officiant.objects.get(ontario_id=3).latitude)
        self.assertFalse(GeocodeCache.objects.filter(name='atlantis').exists())
        self.assertEqual(self.session.get.call_count, 2)

    def test_failure_on_page_three_keeps_earlier_pages(self, mock_sleep):
        pages = [
            [record(1), record(2)],
            [record(3), record(4)],
            [record(5), record(6)],
            [record(7), record(8)],
            [record(9), record(10)],
        ]

        with self.assertLogs('officiants.services', level='ERROR'):
            summary = self.make_service(pages, fail_at=3).run()

        self.assertFalse(summary.success)
        self.assertIn('page 3', summary.error)
        self.assertEqual(summary.total_inserted, 4)
        self.assertEqual(sorted(Officiant.objects.values_list('ontario_id', flat=True)), [1, 2, 3, 4])

        run = SyncRun.objects.get(pk=summary.run_id)
        self.assertEqual(run.status, SyncRun.STATUS_FAILED)
        self.assertIn('page 3', run.error_message)
        self.assertIsNotNone(run.completed_at)

    def test_empty_page_inside_total_fails_run(self, mock_sleep):
        registry_session = MagicMock()
        registry_session.get.side_effect = [
            datastore_response([record(1), record(2)], total=6),
            datastore_response([], total=6),
        ]
        service = OfficiantSyncService(
            api=OntarioDataCatalogueAPI(session=registry_session, page_size=2),
            geocoder=LocationGeocoder(cache=GeocodeMemoryCache(), session=self.session),
        )

        with self.assertLogs('officiants.services', level='ERROR'):
            summary = service.run()

        self.assertFalse(summary.success)
        self.assertIn('empty page at offset 2 of 6', summary.error)
        self.assertEqual(summary.total_fetched, 2)
        self.assertEqual(sorted(Officiant.objects.values_list('ontario_id', flat=True)), [1, 2])

        run = SyncRun.objects.get(pk=summary.run_id)
        self.assertEqual(run.status, SyncRun.STATUS_FAILED)
        self.assertIn('empty page', run.error_message)

    def test_malformed_record_fails_run(self, mock_sleep):
        pages = [[record(1), {'First Name': 'No', 'Last Name': 'Id'}]]

        with self.assertLogs('officiants.services', level='ERROR'):
            summary = self.make_service(pages).run()

        self.assertFalse(summary.success)
        self.assertEqual(Officiant.objects.count(), 0)
        self.assertEqual(SyncRun.objects.get().status, SyncRun.STATUS_FAILED)

    def test_lookup_tables_are_rebuilt(self, mock_sleep):
        CachedMunicipality.objects.create(name='Stale Town')
        CachedAffiliation.objects.create(name='Stale Church')

        self.make_service(self.default_pages()).run()

        self.assertEqual(
            list(CachedAffiliation.objects.values_list('name', flat=True)),
            ['Roman Catholic Church', 'United Church of Canada'],
        )
        self.assertNotIn('Stale Town', CachedMunicipality.objects.values_list('name', flat=True))
        self.assertIn('Ottawa', CachedMunicipality.objects.values_list('name', flat=True))

    def test_upserts_in_batches(self, mock_sleep):
        pages = [[record(i) for i in range(1, 8)]]
        progress = []

        summary = self.make_service(
            pages, batch_size=3, on_progress=lambda stage, done, total: progress.append((stage, done, total)),
        ).run()

        self.assertEqual(summary.total_inserted, 7)
        upserts = [p for p in progress if p[0] == 'upsert']
        self.assertEqual(upserts, [('upsert', 3, 7), ('upsert', 6, 7), ('upsert', 7, 7)])
        self.assertIn(('fetch', 7, 7), progress)
        self.assertIn(('geocode', 1, 1), progress)

    def test_repeated_id_in_page_is_stored_once(self, mock_sleep):
        pages = [[record(1, first='First'), record(1, first='Second')]]

        summary = self.make_service(pages).run()

        self.assertEqual(summary.total_inserted, 1)
        self.assertEqual(Officiant.objects.get(ontario_id=1).first_name, 'Second')

    def test_start_refuses_when_run_in_progress(self, mock_sleep):
        SyncRun.objects.create(status=SyncRun.STATUS_RUNNING)

        with self.assertRaises(SyncAlreadyRunning):
            self.make_service(self.default_pages()).start()

        self.assertEqual(Officiant.objects.count(), 0)

    def test_start_ignores_stale_run(self, mock_sleep):
        SyncRun.objects.create(status=SyncRun.STATUS_RUNNING, started_at=timezone.now() - timedelta(minutes=30))

        summary = self.make_service(self.default_pages()).start()

        self.assertTrue(summary.success)
        self.assertEqual(SyncRun.objects.filter(status=SyncRun.STATUS_RUNNING).count(), 0)


class NormalizeRecordTests(TestCase):

    def test_fields_are_trimmed(self):
        officiant = OfficiantSyncService.normalize_record({
            '_id': '42',
            'First Name': '  Maria ',
            'Last Name': 'Silva\n',
            'Municipality': ' Mississauga',
            'Affiliation': 'Anglican Church of Canada  ',
        })

        self.assertEqual(officiant.ontario_id, 42)
        self.assertEqual(officiant.first_name, 'Maria')
        self.assertEqual(officiant.last_name, 'Silva')
        self.assertEqual(officiant.municipality, 'Mississauga')
        self.assertEqual(officiant.affiliation, 'Anglican Church of Canada')

    def test_missing_fields_are_blank(self):
        officiant = OfficiantSyncService.normalize_record({'_id': 7, 'First Name': None})

        self.assertEqual(officiant.first_name, '')
        self.assertEqual(officiant.last_name, '')
        self.assertEqual(officiant.municipality, '')
        self.assertEqual(officiant.affiliation, '')

    def test_unusable_id_raises(self):
        for raw in ({}, {'_id': None}, {'_id': 'abc'}, {'_id': True}):
            with self.assertRaises(UpstreamAPIError, msg=repr(raw)):
                OfficiantSyncService.normalize_record(raw)


class SyncRunLedgerTests(TestCase):

    def setUp(self):
        self.ledger = SyncRunLedger()

    def test_no_runs(self):
        self.assertFalse(self.ledger.is_sync_running())
        self.assertIsNone(self.ledger.get_latest_run_status())

    def test_fresh_run_is_running(self):
        run_id = self.ledger.create_run()

        self.assertTrue(self.ledger.is_sync_running())
        status = self.ledger.get_latest_run_status()
        self.assertEqual(status.run_id, run_id)
        self.assertEqual(status.status, SyncRun.STATUS_RUNNING)

    def test_stale_run_is_not_running(self):
        run_id = self.ledger.create_run()
        started_at = SyncRun.objects.get(pk=run_id).started_at

        self.assertTrue(self.ledger.is_sync_running(now=started_at + timedelta(minutes=9)))

        with self.assertLogs('officiants.services', level='WARNING'):
            self.assertFalse(self.ledger.is_sync_running(now=started_at + timedelta(minutes=11)))

        run = SyncRun.objects.get(pk=run_id)
        self.assertEqual(run.status, SyncRun.STATUS_FAILED)
        self.assertEqual(run.error_message, SYNC_TIMEOUT_MESSAGE)

    def test_latest_status_reports_stale_run_as_failed(self):
        SyncRun.objects.create(status=SyncRun.STATUS_RUNNING, started_at=timezone.now() - timedelta(hours=1))

        with self.assertLogs('officiants.services', level='WARNING'):
            status = self.ledger.get_latest_run_status()

        self.assertEqual(status.status, SyncRun.STATUS_FAILED)
        self.assertEqual(status.error_message, SYNC_TIMEOUT_MESSAGE)

    def test_complete_run_records_counts(self):
        run_id = self.ledger.create_run()

        self.ledger.complete_run(run_id, {'fetched': 10, 'inserted': 4, 'updated': 6, 'geocoded': 9})

        run = SyncRun.objects.get(pk=run_id)
        self.assertEqual(run.status, SyncRun.STATUS_COMPLETED)
        self.assertEqual((run.total_fetched, run.total_inserted, run.total_updated, run.geocoded_count), (10, 4, 6, 9))
        self.assertFalse(self.ledger.is_sync_running())

    def test_terminal_status_is_not_overwritten(self):
        run_id = self.ledger.create_run()
        self.ledger.fail_run(run_id, 'boom')

        with self.assertLogs('officiants.services', level='WARNING'):
            self.ledger.complete_run(run_id, {'fetched': 1})

        run = SyncRun.objects.get(pk=run_id)
        self.assertEqual(run.status, SyncRun.STATUS_FAILED)
        self.assertEqual(run.error_message, 'boom')

    def test_recent_runs_newest_first(self):
        now = timezone.now()
        for minutes in (30, 20, 10):
            SyncRun.objects.create(status=SyncRun.STATUS_COMPLETED, started_at=now - timedelta(minutes=minutes))

        runs = self.ledger.recent_runs(limit=2)

        self.assertEqual(len(runs), 2)
        self.assertGreater(runs[0].started_at, runs[1].started_at)
