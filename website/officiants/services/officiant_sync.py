# ABOUTME: Service for re-syncing the full officiant registry from the Ontario Data Catalogue.
# ABOUTME: Geocodes new municipalities, upserts by ontario_id, and records each run in SyncRun.

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Callable, Dict, List, Optional, Set

from django.db import transaction
from django.utils import timezone

from ..models import CachedAffiliation, CachedMunicipality, GeocodeCache, Officiant, SyncRun
from .geocoding import GeocodeMemoryCache, LocationGeocoder
from .ontario_api_client import OntarioDataCatalogueAPI, UpstreamAPIError

logger = logging.getLogger('officiants.services')

SYNC_STALE_AFTER = timedelta(minutes=10)
SYNC_TIMEOUT_MESSAGE = 'Sync timed out (exceeded 10 minutes)'

ProgressCallback = Callable[[str, int, int], None]


class SyncAlreadyRunning(Exception):
    """Another sync run is recorded as running and is not yet stale."""


@dataclass
class SyncSummary:
    success: bool
    total_fetched: int = 0
    total_inserted: int = 0
    total_updated: int = 0
    geocoded_count: int = 0
    error: Optional[str] = None
    duration: float = 0.0
    run_id: Optional[int] = None


@dataclass
class SyncRunStatus:
    run_id: int
    status: str
    started_at: Any
    completed_at: Any = None
    error_message: str = ''


class SyncRunLedger:
    """Reads and writes ``SyncRun`` audit rows."""

    def __init__(self, stale_after: timedelta = SYNC_STALE_AFTER):
        self.stale_after = stale_after

    def create_run(self) -> int:
        return SyncRun.objects.create(status=SyncRun.STATUS_RUNNING, started_at=timezone.now()).pk

    def complete_run(self, run_id: int, counts: Dict[str, int]) -> None:
        updated = SyncRun.objects.filter(pk=run_id, status=SyncRun.STATUS_RUNNING).update(
            status=SyncRun.STATUS_COMPLETED,
            completed_at=timezone.now(),
            total_fetched=counts.get('fetched', 0),
            total_inserted=counts.get('inserted', 0),
            total_updated=counts.get('updated', 0),
            geocoded_count=counts.get('geocoded', 0),
        )
        if not updated:
            logger.warning("Sync run %s was no longer running when it completed", run_id)

    def fail_run(self, run_id: int, message: str) -> None:
        updated = SyncRun.objects.filter(pk=run_id, status=SyncRun.STATUS_RUNNING).update(
            status=SyncRun.STATUS_FAILED,
            completed_at=timezone.now(),
            error_message=message,
        )
        if not updated:
            logger.warning("Sync run %s was no longer running when it failed", run_id)

    def get_latest_run_status(self, now=None) -> Optional[SyncRunStatus]:
        run = SyncRun.objects.order_by('-started_at', '-pk').first()
        if run is None:
            return None
        if run.status == SyncRun.STATUS_RUNNING and self._is_stale(run, now):
            self._expire(run, now)
        return SyncRunStatus(
            run_id=run.pk,
            status=run.status,
            started_at=run.started_at,
            completed_at=run.completed_at,
            error_message=run.error_message,
        )

    def is_sync_running(self, now=None) -> bool:
        """
        True if the newest ``running`` record is younger than the staleness threshold.

        Stale records are marked failed as a side effect so a crashed process
        can't block future runs.
        """
        run = (
            SyncRun.objects.filter(status=SyncRun.STATUS_RUNNING)
            .order_by('-started_at', '-pk')
            .first()
        )
        if run is None:
            return False
        if self._is_stale(run, now):
            self._expire(run, now)
            return False
        return True

    def recent_runs(self, limit: int = 10) -> List[SyncRun]:
        return list(SyncRun.objects.order_by('-started_at', '-pk')[:limit])

    def _is_stale(self, run: SyncRun, now=None) -> bool:
        now = now or timezone.now()
        return now - run.started_at > self.stale_after

    def _expire(self, run: SyncRun, now=None) -> None:
        now = now or timezone.now()
        logger.warning("Sync run %s started at %s is stale; marking failed", run.pk, run.started_at)
        SyncRun.objects.filter(pk=run.pk, status=SyncRun.STATUS_RUNNING).update(
            status=SyncRun.STATUS_FAILED,
            completed_at=now,
            error_message=SYNC_TIMEOUT_MESSAGE,
        )
        run.status = SyncRun.STATUS_FAILED
        run.completed_at = now
        run.error_message = SYNC_TIMEOUT_MESSAGE


def is_sync_running() -> bool:
    return SyncRunLedger().is_sync_running()


class OfficiantSyncService:
    """
    Sync officiants from the Ontario Data Catalogue.

    Each upstream page is normalized, its unseen municipalities are geocoded
    (rate limited, persisted to ``GeocodeCache``), and its rows are upserted
    by ``ontario_id`` before the next page is requested. Autocomplete tables
    are rebuilt once all pages are in.
    """

    UPSERT_BATCH_SIZE = 500
    UPSERT_FIELDS = [
        'first_name',
        'last_name',
        'municipality',
        'affiliation',
        'latitude',
        'longitude',
        'updated_at',
        'last_synced_at',
    ]

    def __init__(
        self,
        api: Optional[OntarioDataCatalogueAPI] = None,
        geocoder: Optional[LocationGeocoder] = None,
        ledger: Optional[SyncRunLedger] = None,
        batch_size: Optional[int] = None,
        on_progress: Optional[ProgressCallback] = None,
    ):
        self.api = api or OntarioDataCatalogueAPI()
        # A fresh memory cache per run: misses from earlier runs get retried.
        self.geocoder = geocoder or LocationGeocoder(cache=GeocodeMemoryCache())
        self.ledger = ledger or SyncRunLedger()
        self.batch_size = batch_size or self.UPSERT_BATCH_SIZE
        self.on_progress = on_progress
        self.stats = {
            'fetched': 0,
            'inserted': 0,
            'updated': 0,
            'geocoded': 0,
        }

    # --------------------------------------
    @classmethod
    def sync(cls, **kwargs) -> SyncSummary:
        return cls(**kwargs).run()

    def start(self) -> SyncSummary:
        """Run unless another live run is recorded."""
        if self.ledger.is_sync_running():
            raise SyncAlreadyRunning('A sync is already running')
        return self.run()

    def run(self) -> SyncSummary:
        started = time.monotonic()
        run_id = self.ledger.create_run()
        logger.info("Starting officiant sync (run %s)", run_id)

        try:
            self._sync()
        except Exception as e:
            message = str(e) or e.__class__.__name__
            logger.exception("Officiant sync failed")
            self.ledger.fail_run(run_id, message)
            return self._summary(False, started, run_id, error=message)

        self.ledger.complete_run(run_id, self.stats)
        logger.info(
            "Officiant sync finished: %s fetched, %s inserted, %s updated, %s geocoded",
            self.stats['fetched'], self.stats['inserted'], self.stats['updated'], self.stats['geocoded'],
        )
        return self._summary(True, started, run_id)

    def _summary(self, success: bool, started: float, run_id: int, error: Optional[str] = None) -> SyncSummary:
        return SyncSummary(
            success=success,
            total_fetched=self.stats['fetched'],
            total_inserted=self.stats['inserted'],
            total_updated=self.stats['updated'],
            geocoded_count=self.stats['geocoded'],
            error=error,
            duration=time.monotonic() - started,
            run_id=run_id,
        )

    def _sync(self) -> None:
        existing_ids: Set[int] = set(Officiant.objects.values_list('ontario_id', flat=True))
        self._load_geocode_cache()

        for page in self.api.iter_pages():
            officiants = [self.normalize_record(record) for record in page.records]
            self.stats['fetched'] += len(officiants)
            self._notify('fetch', self.stats['fetched'], page.total)

            self._geocode_new_municipalities(officiants)
            self._attach_coordinates(officiants)
            self._upsert(officiants, existing_ids)

        self._refresh_lookup_tables()

    # --------------------------------------
    @staticmethod
    def _clean_text(value: Any) -> str:
        if not isinstance(value, str):
            return ''
        return value.strip()

    @classmethod
    def normalize_record(cls, record: Dict[str, Any]) -> Officiant:
        """Build an unsaved Officiant from a raw registry record."""
        raw_id = record.get('_id')
        try:
            if isinstance(raw_id, bool):
                raise TypeError
            ontario_id = int(raw_id)
        except (TypeError, ValueError):
            raise UpstreamAPIError(f'Registry record has no usable _id: {raw_id!r}')

        return Officiant(
            ontario_id=ontario_id,
            first_name=cls._clean_text(record.get('First Name')),
            last_name=cls._clean_text(record.get('Last Name')),
            municipality=cls._clean_text(record.get('Municipality')),
            affiliation=cls._clean_text(record.get('Affiliation')),
        )

    def _load_geocode_cache(self) -> None:
        entries = {
            name: (latitude, longitude)
            for name, latitude, longitude in GeocodeCache.objects.values_list('name', 'latitude', 'longitude')
        }
        self.geocoder.prime(entries)
        logger.info("Loaded %s cached municipality geocodes", len(entries))

    def _geocode_new_municipalities(self, officiants: List[Officiant]) -> None:
        uncached = list(dict.fromkeys(
            o.municipality for o in officiants
            if o.municipality and not self.geocoder.is_cached(o.municipality)
        ))
        if not uncached:
            return

        logger.info("Geocoding %s new municipalities", len(uncached))
        self.geocoder.resolve_many(
            uncached,
            on_progress=lambda done, total: self._notify('geocode', done, total),
            on_resolved=self._store_geocode,
        )

    @staticmethod
    def _store_geocode(name: str, coords) -> None:
        GeocodeCache.objects.update_or_create(
            name=name,
            defaults={'latitude': coords.latitude, 'longitude': coords.longitude},
        )

    def _attach_coordinates(self, officiants: List[Officiant]) -> None:
        for officiant in officiants:
            coords = self.geocoder.cached_place(officiant.municipality) if officiant.municipality else None
            if coords is None:
                officiant.latitude = None
                officiant.longitude = None
                continue
            officiant.latitude = coords.latitude
            officiant.longitude = coords.longitude
            self.stats['geocoded'] += 1

    def _upsert(self, officiants: List[Officiant], existing_ids: Set[int]) -> None:
        # Last occurrence wins if the registry repeats an id within a page.
        unique = list({o.ontario_id: o for o in officiants}.values())
        now = timezone.now()

        for start in range(0, len(unique), self.batch_size):
            batch = unique[start:start + self.batch_size]
            for officiant in batch:
                officiant.last_synced_at = now

            with transaction.atomic():
                Officiant.objects.bulk_create(
                    batch,
                    update_conflicts=True,
                    unique_fields=['ontario_id'],
                    update_fields=self.UPSERT_FIELDS,
                )

            batch_ids = {o.ontario_id for o in batch}
            self.stats['updated'] += len(batch_ids & existing_ids)
            self.stats['inserted'] += len(batch_ids - existing_ids)
            existing_ids |= batch_ids
            self._notify('upsert', self.stats['inserted'] + self.stats['updated'], self.stats['fetched'])

    @transaction.atomic
    def _refresh_lookup_tables(self) -> None:
        affiliations = sorted(set(
            Officiant.objects.exclude(affiliation='').values_list('affiliation', flat=True)
        ))
        municipalities = sorted(set(
            Officiant.objects.exclude(municipality='').values_list('municipality', flat=True)
        ))

        CachedAffiliation.objects.all().delete()
        CachedAffiliation.objects.bulk_create([CachedAffiliation(name=name) for name in affiliations])

        CachedMunicipality.objects.all().delete()
        CachedMunicipality.objects.bulk_create([CachedMunicipality(name=name) for name in municipalities])

        logger.info(
            "Refreshed lookup tables: %s affiliations, %s municipalities",
            len(affiliations), len(municipalities),
        )

    def _notify(self, stage: str, done: int, total: int) -> None:
        if self.on_progress is not None:
            self.on_progress(stage, done, total)
