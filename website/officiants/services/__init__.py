# ABOUTME: Service layer for the officiants application.
# ABOUTME: Re-exports the service classes so callers can import from officiants.services.

from .ontario_api_client import OntarioDataCatalogueAPI, UpstreamAPIError
from .geocoding import GeocodeMemoryCache, LocationGeocoder
from .featured import FeaturedListingProvider, apply_featured
from .search import OfficiantSearchService, SearchRequest, SearchResults

from .officiant_sync import (
    OfficiantSyncService,
    SyncAlreadyRunning,
    SyncRunLedger,
    SyncSummary,
)

__all__ = [
    'OntarioDataCatalogueAPI',
    'UpstreamAPIError',
    'GeocodeMemoryCache',
    'LocationGeocoder',
    'FeaturedListingProvider',
    'apply_featured',
    'OfficiantSearchService',
    'SearchRequest',
    'SearchResults',
    'OfficiantSyncService',
    'SyncAlreadyRunning',
    'SyncRunLedger',
    'SyncSummary',
]
