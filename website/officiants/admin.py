from django.contrib import admin

from .models import (
    Officiant,
    GeocodeCache,
    SyncRun,
    CachedAffiliation,
    CachedMunicipality,
    FeaturedSlot,
)


@admin.register(Officiant)
class OfficiantAdmin(admin.ModelAdmin):
    list_display = ['last_name', 'first_name', 'municipality', 'affiliation', 'ontario_id', 'has_coordinates']
    list_filter = ['affiliation']
    search_fields = ['first_name', 'last_name', 'municipality', 'affiliation', 'ontario_id']
    readonly_fields = ['created_at', 'updated_at', 'last_synced_at']

    @admin.display(boolean=True, description='Geocoded')
    def has_coordinates(self, obj):
        return obj.coordinates is not None


@admin.register(GeocodeCache)
class GeocodeCacheAdmin(admin.ModelAdmin):
    list_display = ['name', 'latitude', 'longitude', 'updated_at']
    search_fields = ['name']
    readonly_fields = ['created_at', 'updated_at']


@admin.register(SyncRun)
class SyncRunAdmin(admin.ModelAdmin):
    list_display = ['started_at', 'status', 'total_fetched', 'total_inserted', 'total_updated', 'geocoded_count']
    list_filter = ['status']
    readonly_fields = [
        'started_at', 'completed_at', 'status', 'total_fetched',
        'total_inserted', 'total_updated', 'geocoded_count', 'error_message',
    ]


@admin.register(CachedAffiliation)
class CachedAffiliationAdmin(admin.ModelAdmin):
    list_display = ['name']
    search_fields = ['name']


@admin.register(CachedMunicipality)
class CachedMunicipalityAdmin(admin.ModelAdmin):
    list_display = ['name']
    search_fields = ['name']


@admin.register(FeaturedSlot)
class FeaturedSlotAdmin(admin.ModelAdmin):
    list_display = ['officiant', 'slot_type', 'municipality', 'affiliation', 'starts_at', 'ends_at', 'is_active']
    list_filter = ['slot_type', 'is_active']
    search_fields = ['officiant__first_name', 'officiant__last_name', 'municipality', 'affiliation']
    raw_id_fields = ['officiant']
