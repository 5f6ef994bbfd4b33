# ABOUTME: Officiant search: attribute filtering, radius search by distance, and featured ordering.
# ABOUTME: Location text is geocoded on demand; a failed lookup degrades to a municipality filter.

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from django.db.models import Q, QuerySet, Value
from django.db.models.functions import Concat

from ..geo import Coordinates, haversine_distance
from ..models import FeaturedSlot, Officiant
from .featured import FeaturedListingProvider, apply_featured
from .geocoding import LocationGeocoder

logger = logging.getLogger('officiants.services')

MODE_RADIUS = 'radius'
MODE_ATTRIBUTE = 'attribute'


@dataclass
class SearchRequest:
    location: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None
    affiliation: Optional[str] = None
    query: Optional[str] = None
    radius: Optional[float] = None
    limit: int = 50
    offset: int = 0


@dataclass
class SearchResultRow:
    officiant: Officiant
    distance: Optional[float] = None
    featured: bool = False


@dataclass
class SearchResults:
    results: List[SearchResultRow] = field(default_factory=list)
    total: int = 0
    mode: str = MODE_ATTRIBUTE
    lat: Optional[float] = None
    lng: Optional[float] = None


class OfficiantSearchService:
    """
    Plan and run an officiant search.

    Process:
    1. Geocode the location text unless explicit coordinates were given
    2. Radius mode when coordinates and a radius are both known, else attribute mode
    3. Attribute mode pushes limit/offset down to the database
    4. Radius mode fetches every candidate with coordinates, filters and sorts
       by distance in Python, then paginates
    5. First pages get featured officiants moved to the front
    """

    def __init__(
        self,
        geocoder: Optional[LocationGeocoder] = None,
        featured_provider: Optional[FeaturedListingProvider] = None,
    ):
        self._geocoder = geocoder
        self.featured_provider = featured_provider or FeaturedListingProvider()

    @property
    def geocoder(self) -> LocationGeocoder:
        """Lazy-load LocationGeocoder."""
        if self._geocoder is None:
            self._geocoder = LocationGeocoder()
        return self._geocoder

    def search(self, request: SearchRequest) -> SearchResults:
        location = (request.location or '').strip() or None
        affiliation = (request.affiliation or '').strip() or None
        query = (request.query or '').strip() or None
        limit = max(int(request.limit), 0)
        offset = max(int(request.offset), 0)

        origin = self._resolve_origin(request, location)

        queryset = self._base_queryset(affiliation, query)

        if origin is not None and request.radius is not None:
            rows, total = self._radius_search(queryset, origin, request.radius, limit, offset)
            mode = MODE_RADIUS
        else:
            if location and origin is None:
                queryset = queryset.filter(municipality__icontains=location)
            total = queryset.count()
            rows = [SearchResultRow(officiant=o) for o in queryset[offset:offset + limit]]
            mode = MODE_ATTRIBUTE

        if offset == 0 and rows:
            featured_ids = self.featured_provider.get_active_featured_ids(
                municipality=location,
                affiliation=affiliation,
                slot_type=FeaturedSlot.SLOT_SEARCH_TOP,
            )
            rows = apply_featured(rows, featured_ids, offset=offset)

        logger.debug(
            "Search location=%r affiliation=%r q=%r mode=%s total=%s",
            location, affiliation, query, mode, total,
        )

        return SearchResults(
            results=rows,
            total=total,
            mode=mode,
            lat=origin.latitude if origin else None,
            lng=origin.longitude if origin else None,
        )

    # --------------------------------------
    def _resolve_origin(self, request: SearchRequest, location: Optional[str]) -> Optional[Coordinates]:
        if request.lat is not None and request.lng is not None:
            return Coordinates(float(request.lat), float(request.lng))
        if not location:
            return None

        coords = self.geocoder.resolve_location(location)
        if coords is None:
            logger.info("Could not geocode %r; falling back to municipality filter", location)
        return coords

    @staticmethod
    def _base_queryset(affiliation: Optional[str], query: Optional[str]) -> QuerySet:
        queryset = Officiant.objects.all()

        if affiliation:
            queryset = queryset.filter(affiliation__icontains=affiliation)

        if query:
            queryset = queryset.annotate(
                search_full_name=Concat('first_name', Value(' '), 'last_name'),
            ).filter(
                Q(first_name__icontains=query) |
                Q(last_name__icontains=query) |
                Q(search_full_name__icontains=query) |
                Q(municipality__icontains=query)
            )

        return queryset

    @staticmethod
    def _radius_search(queryset: QuerySet, origin: Coordinates, radius: float, limit: int, offset: int):
        candidates = queryset.filter(latitude__isnull=False, longitude__isnull=False)

        matches: List[SearchResultRow] = []
        for officiant in candidates:
            distance = haversine_distance(
                origin.latitude, origin.longitude,
                officiant.latitude, officiant.longitude,
            )
            if distance <= radius:
                matches.append(SearchResultRow(officiant=officiant, distance=distance))

        matches.sort(key=lambda row: (row.distance, row.officiant.id))
        return matches[offset:offset + limit], len(matches)
