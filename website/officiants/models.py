from typing import Optional

from django.db import models
from django.utils import timezone
from django.utils.translation import gettext_lazy as _

from .geo import Coordinates


class Officiant(models.Model):
    """A person registered with the Province of Ontario to solemnize marriages."""

    ontario_id = models.IntegerField(
        unique=True,
        help_text=_('Record id assigned by the Ontario Data Catalogue')
    )
    first_name = models.CharField(max_length=255, blank=True)
    last_name = models.CharField(max_length=255, blank=True)
    municipality = models.CharField(max_length=255, blank=True, db_index=True)
    affiliation = models.CharField(max_length=255, blank=True, db_index=True)

    latitude = models.FloatField(null=True, blank=True)
    longitude = models.FloatField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)
    last_synced_at = models.DateTimeField(null=True, blank=True, help_text=_('Last time this was synced from external API'))

    class Meta:
        ordering = ['last_name', 'first_name', 'id']
        verbose_name = _('Officiant')
        verbose_name_plural = _('Officiants')
        indexes = [models.Index(fields=['latitude', 'longitude'], name='officiant_lat_lng_idx')]

    def __str__(self):
        return f"{self.full_name} ({self.municipality})"

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    @property
    def coordinates(self) -> Optional[Coordinates]:
        if self.latitude is None or self.longitude is None:
            return None
        return Coordinates(self.latitude, self.longitude)


class GeocodeCache(models.Model):
    """Durable municipality geocodes, reused across sync runs."""

    name = models.CharField(
        max_length=255,
        unique=True,
        help_text=_('Lower-cased, trimmed municipality name')
    )
    latitude = models.FloatField()
    longitude = models.FloatField()

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Geocode Cache Entry"
        verbose_name_plural = "Geocode Cache Entries"
        ordering = ['name']

    def __str__(self):
        return f"{self.name} ({self.latitude}, {self.longitude})"


class SyncRun(models.Model):
    """Audit row for one execution of the officiant sync."""

    STATUS_RUNNING = 'running'
    STATUS_COMPLETED = 'completed'
    STATUS_FAILED = 'failed'
    STATUS_CHOICES = [
        (STATUS_RUNNING, _('Running')),
        (STATUS_COMPLETED, _('Completed')),
        (STATUS_FAILED, _('Failed')),
    ]

    started_at = models.DateTimeField(default=timezone.now, db_index=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_RUNNING, db_index=True)
    total_fetched = models.IntegerField(default=0)
    total_inserted = models.IntegerField(default=0)
    total_updated = models.IntegerField(default=0)
    geocoded_count = models.IntegerField(default=0)
    error_message = models.TextField(blank=True)

    class Meta:
        ordering = ['-started_at']

    def __str__(self):
        return f"Sync {self.started_at:%Y-%m-%d %H:%M} ({self.status})"


class CachedAffiliation(models.Model):
    """Distinct affiliation names, rebuilt after each sync for autocomplete."""

    name = models.CharField(max_length=255, unique=True)

    class Meta:
        ordering = ['name']

    def __str__(self):
        return self.name


class CachedMunicipality(models.Model):
    """Distinct municipality names, rebuilt after each sync for autocomplete."""

    name = models.CharField(max_length=255, unique=True)

    class Meta:
        ordering = ['name']
        verbose_name_plural = 'Cached municipalities'

    def __str__(self):
        return self.name


class FeaturedSlot(models.Model):
    """Paid placement that moves an officiant to the front of first-page results."""

    SLOT_SEARCH_TOP = 'search_top'
    SLOT_HOMEPAGE = 'homepage'
    SLOT_CATEGORY = 'category'
    SLOT_TYPE_CHOICES = [
        (SLOT_SEARCH_TOP, _('Top of search results')),
        (SLOT_HOMEPAGE, _('Homepage')),
        (SLOT_CATEGORY, _('Category page')),
    ]

    officiant = models.ForeignKey(Officiant, on_delete=models.CASCADE, related_name='featured_slots')
    slot_type = models.CharField(max_length=20, choices=SLOT_TYPE_CHOICES, default=SLOT_SEARCH_TOP)
    municipality = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text=_('Only feature in searches for this municipality (empty = everywhere)')
    )
    affiliation = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text=_('Only feature in searches for this affiliation (empty = all)')
    )
    starts_at = models.DateTimeField()
    ends_at = models.DateTimeField()
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['starts_at', 'id']
        indexes = [models.Index(fields=['slot_type', 'is_active'], name='featured_slot_type_active_idx')]

    def __str__(self):
        return f"{self.officiant} [{self.slot_type}] {self.starts_at:%Y-%m-%d} - {self.ends_at:%Y-%m-%d}"
