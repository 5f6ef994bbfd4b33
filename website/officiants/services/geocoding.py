# ABOUTME: Geocoding services for converting Ontario place names and postal codes to coordinates.
# ABOUTME: Uses the static FSA table first, then OSM Nominatim, memoized in a per-process cache.

import logging
import math
import time
from typing import Callable, Dict, Iterable, Mapping, Optional, Tuple

import requests
from django.conf import settings

from ..constants import (
    COUNTRY_CODE,
    POSTAL_CODE_QUALIFIER,
    REGION_QUALIFIER,
    is_postal_code,
    lookup_fsa,
    normalize_place_name,
    normalize_postal_code,
)
from ..geo import Coordinates

logger = logging.getLogger('officiants.services')


class GeocodeMemoryCache:
    """
    Process-local memo of resolved locations.

    Values are ``Coordinates`` or ``None`` for a lookup that found nothing, so
    known-bad input doesn't hit the network twice. There is no eviction and no
    locking: two requests racing on the same key both resolve it and store the
    same answer.
    """

    def __init__(self, entries: Optional[Mapping[str, Optional[Coordinates]]] = None):
        self._entries: Dict[str, Optional[Coordinates]] = dict(entries or {})

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def get(self, key: str) -> Optional[Coordinates]:
        return self._entries.get(key)

    def set(self, key: str, value: Optional[Coordinates]) -> None:
        self._entries[key] = value

    def update(self, entries: Mapping[str, Optional[Coordinates]]) -> None:
        self._entries.update(entries)


# Shared by interactive searches within one process.
default_cache = GeocodeMemoryCache()


def parse_nominatim_response(payload) -> Optional[Coordinates]:
    """
    Extract coordinates from a Nominatim ``format=json`` response.

    Anything other than a non-empty list whose first item carries numeric
    ``lat``/``lon`` strings is treated as "no result".
    """
    if not isinstance(payload, list) or not payload:
        return None

    first = payload[0]
    if not isinstance(first, dict):
        return None

    try:
        lat = float(first['lat'])
        lon = float(first['lon'])
    except (KeyError, TypeError, ValueError):
        return None

    if not (math.isfinite(lat) and math.isfinite(lon)):
        return None
    if not (-90.0 <= lat <= 90.0 and -180.0 <= lon <= 180.0):
        return None

    return Coordinates(lat, lon)


class LocationGeocoder:
    """
    Resolve Ontario place names and postal codes to coordinates.

    Features:
    - Postal codes covered by the FSA table never touch the network
    - Results (including misses) are memoized in a ``GeocodeMemoryCache``
    - Batch resolution is rate limited to 1 request/second for Nominatim
      usage-policy compliance; single lookups are not throttled
    - Never raises on transport, HTTP or payload errors
    """

    NOMINATIM_ENDPOINT = 'https://nominatim.openstreetmap.org/search'
    USER_AGENT = 'OfficiantFinder/1.0 (wedding officiant directory)'
    RATE_LIMIT_SECONDS = 1.0
    TIMEOUT_SECONDS = 10

    def __init__(
        self,
        cache: Optional[GeocodeMemoryCache] = None,
        session=None,
        endpoint: Optional[str] = None,
        user_agent: Optional[str] = None,
        rate_limit_seconds: Optional[float] = None,
    ):
        self.cache = cache if cache is not None else default_cache
        self.session = session if session is not None else requests
        self.endpoint = endpoint or getattr(settings, 'NOMINATIM_ENDPOINT', self.NOMINATIM_ENDPOINT)
        self.user_agent = user_agent or getattr(settings, 'GEOCODER_USER_AGENT', self.USER_AGENT)
        if rate_limit_seconds is None:
            rate_limit_seconds = getattr(settings, 'GEOCODER_RATE_LIMIT_SECONDS', self.RATE_LIMIT_SECONDS)
        self.rate_limit_seconds = rate_limit_seconds
        self._last_request_time: Optional[float] = None

    # --------------------------------------
    def resolve_location(self, text: Optional[str]) -> Optional[Coordinates]:
        """Dispatch free-text location input to the postal or place resolver."""
        text = (text or '').strip()
        if not text:
            return None
        if is_postal_code(text):
            return self.resolve_postal_code(text)
        return self.resolve_place(text)

    def resolve_postal_code(self, code: Optional[str]) -> Optional[Coordinates]:
        key = normalize_postal_code(code)
        if not key:
            return None

        if key in self.cache:
            return self.cache.get(key)

        if is_postal_code(key):
            centroid = lookup_fsa(key)
            if centroid is not None:
                logger.debug("Resolved %s from FSA table", key)
                self.cache.set(key, centroid)
                return centroid

        result = self._query_nominatim(f"{key}, {POSTAL_CODE_QUALIFIER}")
        self.cache.set(key, result)
        return result

    def resolve_place(self, name: Optional[str]) -> Optional[Coordinates]:
        key = normalize_place_name(name)
        if not key:
            return None

        if key in self.cache:
            return self.cache.get(key)

        result = self._query_nominatim(self._qualify(name))
        self.cache.set(key, result)
        return result

    def resolve_many(
        self,
        names: Iterable[str],
        on_progress: Optional[Callable[[int, int], None]] = None,
        on_resolved: Optional[Callable[[str, Coordinates], None]] = None,
    ) -> Dict[str, Coordinates]:
        """
        Resolve a batch of place names, spacing external calls by the rate limit.

        Returns successful resolutions keyed by normalized name.
        ``on_resolved`` fires only for names freshly resolved over the network.
        """
        pending: Dict[str, str] = {}
        for name in names:
            key = normalize_place_name(name)
            if key and key not in pending:
                pending[key] = name

        results: Dict[str, Coordinates] = {}
        total = len(pending)
        for done, (key, name) in enumerate(pending.items(), start=1):
            if key in self.cache:
                coords = self.cache.get(key)
            else:
                coords = self._query_nominatim(self._qualify(name), throttle=True)
                self.cache.set(key, coords)
                if coords is not None and on_resolved is not None:
                    on_resolved(key, coords)

            if coords is not None:
                results[key] = coords
            if on_progress is not None:
                on_progress(done, total)

        return results

    def prime(self, entries: Mapping[str, Tuple[float, float]]) -> None:
        """Seed the memory cache with previously resolved place names."""
        self.cache.update({
            normalize_place_name(name): Coordinates(*coords)
            for name, coords in entries.items()
        })

    def is_cached(self, name: str) -> bool:
        return normalize_place_name(name) in self.cache

    def cached_place(self, name: str) -> Optional[Coordinates]:
        """Memoized coordinates for a place name, without any lookup."""
        return self.cache.get(normalize_place_name(name))

    # --------------------------------------
    @staticmethod
    def _qualify(name: str) -> str:
        return f"{' '.join(name.split())}, {REGION_QUALIFIER}"

    def _apply_rate_limit(self) -> None:
        """Ensure consecutive external calls are at least ``rate_limit_seconds`` apart."""
        if self._last_request_time is not None:
            elapsed = time.monotonic() - self._last_request_time
            if elapsed < self.rate_limit_seconds:
                time.sleep(self.rate_limit_seconds - elapsed)
        self._last_request_time = time.monotonic()

    def _query_nominatim(self, query: str, throttle: bool = False) -> Optional[Coordinates]:
        """
        Query Nominatim for a single best match.

        Returns:
            Coordinates on success, None on empty result or any failure
        """
        if throttle:
            self._apply_rate_limit()

        params = {
            'q': query,
            'format': 'json',
            'limit': 1,
            'countrycodes': COUNTRY_CODE,
        }
        headers = {
            'User-Agent': self.user_agent,
        }

        try:
            response = self.session.get(
                self.endpoint,
                params=params,
                headers=headers,
                timeout=self.TIMEOUT_SECONDS,
            )
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as e:
            logger.warning('Geocoding failed for %s: %s', query, e)
            return None

        coords = parse_nominatim_response(payload)
        if coords is None:
            logger.info('No geocoding results for %s', query)
        return coords
