# ABOUTME: Featured-listing lookup and the first-page reordering applied to search results.
# ABOUTME: Eligibility (time window, scope) lives in the provider; the merge only reorders.

import logging
from typing import Iterable, List, Optional, Sequence

from django.db import DatabaseError
from django.db.models import Q
from django.utils import timezone

from ..models import FeaturedSlot

logger = logging.getLogger('officiants.services')


class FeaturedListingProvider:
    """Active featured placements from the ``FeaturedSlot`` table."""

    def get_active_featured_ids(
        self,
        municipality: Optional[str] = None,
        affiliation: Optional[str] = None,
        slot_type: Optional[str] = None,
        now=None,
    ) -> List[int]:
        """
        Officiant ids with a slot that is active right now.

        A scoped ``municipality``/``affiliation`` matches slots that are either
        unscoped on that column or scoped to the same value.
        """
        now = now or timezone.now()
        try:
            queryset = FeaturedSlot.objects.filter(
                is_active=True,
                starts_at__lte=now,
                ends_at__gte=now,
            )
            if slot_type:
                queryset = queryset.filter(slot_type=slot_type)
            if municipality:
                queryset = queryset.filter(Q(municipality__isnull=True) | Q(municipality__iexact=municipality))
            if affiliation:
                queryset = queryset.filter(Q(affiliation__isnull=True) | Q(affiliation__iexact=affiliation))
            ids = list(queryset.values_list('officiant_id', flat=True))
        except DatabaseError:
            logger.warning("Failed to load featured slots", exc_info=True)
            return []

        # One officiant can hold several overlapping slots.
        return list(dict.fromkeys(ids))


def apply_featured(rows: Sequence, featured_ids: Iterable[int], offset: int = 0) -> list:
    """
    Move featured rows to the front of a first page, keeping relative order.

    Rows are ``SearchResultRow``-like objects with ``officiant`` and a
    writable ``featured`` flag. Pages past the first are returned unchanged.
    """
    rows = list(rows)
    if offset != 0:
        return rows

    featured_set = set(featured_ids)
    if not featured_set:
        return rows

    featured, regular = [], []
    for row in rows:
        if row.officiant.id in featured_set:
            row.featured = True
            featured.append(row)
        else:
            regular.append(row)
    return featured + regular
