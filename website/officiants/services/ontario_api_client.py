# ABOUTME: API client for fetching the marriage officiant registry from the Ontario Data Catalogue.
# ABOUTME: Handles offset pagination and validates the CKAN datastore_search response shape.

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional

import requests
from django.conf import settings

logger = logging.getLogger(__name__)


class UpstreamAPIError(Exception):
    """The registry returned a response we can't use."""


@dataclass
class DatastorePage:
    records: List[Dict[str, Any]]
    total: int
    offset: int


def parse_datastore_page(payload: Any, offset: int = 0) -> DatastorePage:
    """Validate a ``{"result": {"records": [...], "total": n}}`` payload."""
    result = payload.get('result') if isinstance(payload, dict) else None
    if not isinstance(result, dict):
        raise UpstreamAPIError('Malformed registry response: missing "result"')

    records = result.get('records')
    if not isinstance(records, list) or not all(isinstance(r, dict) for r in records):
        raise UpstreamAPIError('Malformed registry response: "records" is not a list of objects')

    total = result.get('total')
    if isinstance(total, bool) or not isinstance(total, int) or total < 0:
        raise UpstreamAPIError('Malformed registry response: "total" is not a count')

    return DatastorePage(records=records, total=total, offset=offset)


class OntarioDataCatalogueAPI:
    """Thin client for the CKAN datastore behind data.ontario.ca."""

    BASE_URL = "https://data.ontario.ca/api/3/action/datastore_search"
    RESOURCE_ID = "e010f610-c3d6-4f88-849b-6f8c11e98d9c"
    DEFAULT_PAGE_SIZE = 1000
    TIMEOUT_SECONDS = 30

    def __init__(
        self,
        session=None,
        base_url: Optional[str] = None,
        resource_id: Optional[str] = None,
        page_size: Optional[int] = None,
    ):
        self.session = session if session is not None else requests
        self.base_url = base_url or getattr(settings, 'ONTARIO_API_BASE_URL', self.BASE_URL)
        self.resource_id = resource_id or getattr(settings, 'ONTARIO_OFFICIANTS_RESOURCE_ID', self.RESOURCE_ID)
        self.page_size = page_size or self.DEFAULT_PAGE_SIZE

    def _request(self, params: Dict[str, Any]) -> Any:
        logger.debug("GET %s params=%s", self.base_url, params)
        response = self.session.get(self.base_url, params=params, timeout=self.TIMEOUT_SECONDS)
        response.raise_for_status()
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamAPIError(f'Registry response is not JSON: {e}') from e

    def fetch_page(self, offset: int = 0, limit: Optional[int] = None) -> DatastorePage:
        params = {
            'resource_id': self.resource_id,
            'limit': limit or self.page_size,
            'offset': offset,
        }
        return parse_datastore_page(self._request(params), offset=offset)

    def iter_pages(self) -> Iterator[DatastorePage]:
        """Yield pages until ``total`` records have been covered."""
        page = self.fetch_page(0)
        yield page

        total = page.total
        offset = self.page_size
        while offset < total:
            page = self.fetch_page(offset)
            if not page.records:
                raise UpstreamAPIError(f'Registry returned an empty page at offset {offset} of {total}')
            yield page
            offset += self.page_size

    def get_total(self) -> int:
        """Number of records upstream, without fetching them."""
        return self.fetch_page(0, limit=1).total
