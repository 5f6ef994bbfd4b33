"""
Management command to sync wedding officiants from the Ontario Data Catalogue.

Fetches the full registry, geocodes municipalities that have not been seen
before (1 request/second against Nominatim), upserts every officiant by its
registry id, and rebuilds the autocomplete tables.
"""

import logging

from django.core.management.base import BaseCommand, CommandError
from tqdm import tqdm

from officiants.services import OfficiantSyncService, OntarioDataCatalogueAPI, SyncAlreadyRunning, SyncRunLedger

logger = logging.getLogger('officiants.services')


class TqdmProgress:
    """Render ``on_progress`` callbacks as one tqdm bar per stage."""

    DESCRIPTIONS = {
        'fetch': ('Registry records', 'rec'),
        'geocode': ('Geocoding municipalities', 'place'),
        'upsert': ('Saving officiants', 'rec'),
    }

    def __init__(self, disable=False):
        self.disable = disable
        self.bars = {}

    def __call__(self, stage, done, total):
        bar = self.bars.get(stage)
        if bar is None or (stage == 'geocode' and done == 1):
            if bar is not None:
                bar.close()
            desc, unit = self.DESCRIPTIONS.get(stage, (stage, 'it'))
            bar = tqdm(total=total, desc=desc, unit=unit, disable=self.disable)
            self.bars[stage] = bar
        bar.total = total
        bar.n = done
        bar.refresh()

    def close(self):
        for bar in self.bars.values():
            bar.close()
        self.bars.clear()


class Command(BaseCommand):
    help = 'Sync Ontario wedding officiants from the Ontario Data Catalogue'

    def add_arguments(self, parser):
        parser.add_argument(
            '--check',
            action='store_true',
            help='Show the upstream record count and the latest sync run without syncing',
        )
        parser.add_argument(
            '--force',
            action='store_true',
            help='Run even if another sync is recorded as running',
        )

    def handle(self, *args, **options):
        verbosity = options.get('verbosity', 1)

        # Configure logging based on verbosity
        if verbosity >= 3:
            logger.setLevel(logging.DEBUG)
        elif verbosity >= 2:
            logger.setLevel(logging.INFO)
        else:
            logger.setLevel(logging.WARNING)

        # Add console handler if not already present
        if not logger.hasHandlers():
            handler = logging.StreamHandler()
            handler.setLevel(logging.DEBUG)
            formatter = logging.Formatter('%(levelname)s: %(message)s')
            handler.setFormatter(formatter)
            logger.addHandler(handler)

        if options['check']:
            self._check()
            return

        progress = TqdmProgress(disable=verbosity == 0)
        service = OfficiantSyncService(on_progress=progress)
        try:
            summary = service.run() if options['force'] else service.start()
        except SyncAlreadyRunning:
            raise CommandError('A sync is already running; use --force to run anyway')
        finally:
            progress.close()

        self.stdout.write(f"  Run: {summary.run_id}")
        self.stdout.write(f"  Fetched: {summary.total_fetched}")
        self.stdout.write(f"  Inserted: {summary.total_inserted}")
        self.stdout.write(f"  Updated: {summary.total_updated}")
        self.stdout.write(f"  Geocoded: {summary.geocoded_count}")
        self.stdout.write(f"  Duration: {summary.duration:.1f}s")

        if not summary.success:
            raise CommandError(f'Sync failed: {summary.error}')
        self.stdout.write(self.style.SUCCESS('Sync completed successfully'))

    def _check(self):
        total = OntarioDataCatalogueAPI().get_total()
        self.stdout.write(f"Upstream officiants: {total}")

        latest = SyncRunLedger().get_latest_run_status()
        if latest is None:
            self.stdout.write(self.style.WARNING('No sync has run yet'))
            return

        self.stdout.write(f"Latest run: #{latest.run_id} {latest.status} (started {latest.started_at:%Y-%m-%d %H:%M})")
        if latest.error_message:
            self.stdout.write(self.style.ERROR(f"  Error: {latest.error_message}"))
