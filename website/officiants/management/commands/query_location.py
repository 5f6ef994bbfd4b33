# ABOUTME: Query management command to geocode a location the way search does.
# ABOUTME: Interactive tool for checking postal code and place name resolution.

from django.core.management.base import BaseCommand

from officiants.constants import is_postal_code, lookup_fsa, normalize_postal_code
from officiants.geo import distance_between
from officiants.services import LocationGeocoder


class Command(BaseCommand):
    help = 'Resolve a place name or postal code to coordinates'

    def add_arguments(self, parser):
        parser.add_argument(
            'location',
            type=str,
            help='Place name or postal code (e.g., "Toronto" or "M5V 2T6")'
        )
        parser.add_argument(
            '--from',
            dest='origin',
            type=str,
            help='Second location to measure the distance to',
        )

    def handle(self, *args, **options):
        location = options['location']
        geocoder = LocationGeocoder()

        coords = geocoder.resolve_location(location)
        if coords is None:
            self.stdout.write(self.style.ERROR(f'Error: Could not resolve "{location}"'))
            return

        self.stdout.write(self.style.SUCCESS('\n=== Location ==='))
        if is_postal_code(location):
            code = normalize_postal_code(location)
            source = 'FSA table' if lookup_fsa(code) is not None else 'Nominatim'
            self.stdout.write(f"Postal code: {code}")
        else:
            source = 'Nominatim'
            self.stdout.write(f"Place:       {location.strip()}")
        self.stdout.write(f"Latitude:    {coords.latitude:.4f}")
        self.stdout.write(f"Longitude:   {coords.longitude:.4f}")
        self.stdout.write(f"Source:      {source}")

        origin = options.get('origin')
        if origin:
            other = geocoder.resolve_location(origin)
            if other is None:
                self.stdout.write(self.style.WARNING(f'\nCould not resolve "{origin}"'))
                return
            self.stdout.write(f"\nDistance to {origin.strip()}: {distance_between(coords, other):.1f} km")
