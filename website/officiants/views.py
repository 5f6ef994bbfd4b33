import hmac
import logging
import math

from django.conf import settings
from django.http import JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from .models import CachedAffiliation, CachedMunicipality, Officiant, SyncRun
from .services import OfficiantSearchService, OfficiantSyncService, SearchRequest, SyncAlreadyRunning, SyncRunLedger

logger = logging.getLogger('officiants.services')

DEFAULT_LIMIT = 50
DEFAULT_OFFSET = 0
DEFAULT_RADIUS_KM = 50.0


def _int_param(request, name, default):
    try:
        return int(request.GET.get(name, ''))
    except ValueError:
        return default


def _float_param(request, name, default=None):
    try:
        value = float(request.GET.get(name, ''))
    except ValueError:
        return default
    return value if math.isfinite(value) else default


def _error_response(message, status=500):
    return JsonResponse({'success': False, 'error': message}, status=status)


def _serialize_officiant(officiant):
    return {
        'id': officiant.id,
        'ontario_id': officiant.ontario_id,
        'first_name': officiant.first_name,
        'last_name': officiant.last_name,
        'full_name': officiant.full_name,
        'municipality': officiant.municipality,
        'affiliation': officiant.affiliation,
        'lat': officiant.latitude,
        'lng': officiant.longitude,
    }


def _serialize_sync_run(run):
    return {
        'id': run.id,
        'status': run.status,
        'started_at': run.started_at.isoformat() if run.started_at else None,
        'completed_at': run.completed_at.isoformat() if run.completed_at else None,
        'total_fetched': run.total_fetched,
        'total_inserted': run.total_inserted,
        'total_updated': run.total_updated,
        'geocoded_count': run.geocoded_count,
        'error_message': run.error_message,
    }


# Public API

@require_http_methods(["GET"])
def search_officiants(request):
    """
    JSON search endpoint.

    Query params: location, lat, lng, affiliation, q, radius, limit, offset.
    A location or a lat/lng pair without an explicit radius searches within 50 km.
    """
    location = request.GET.get('location', '').strip() or None
    lat = _float_param(request, 'lat')
    lng = _float_param(request, 'lng')
    radius = _float_param(request, 'radius')
    if radius is None and (location or (lat is not None and lng is not None)):
        radius = DEFAULT_RADIUS_KM

    search_request = SearchRequest(
        location=location,
        lat=lat,
        lng=lng,
        affiliation=request.GET.get('affiliation', '').strip() or None,
        query=request.GET.get('q', '').strip() or None,
        radius=radius,
        limit=_int_param(request, 'limit', DEFAULT_LIMIT),
        offset=_int_param(request, 'offset', DEFAULT_OFFSET),
    )

    try:
        results = OfficiantSearchService().search(search_request)
    except Exception as e:
        logger.exception('Officiant search failed')
        return _error_response(str(e) or 'Search failed')

    rows = []
    for row in results.results:
        data = _serialize_officiant(row.officiant)
        data['distance'] = round(row.distance, 2) if row.distance is not None else None
        data['featured'] = row.featured
        rows.append(data)

    return JsonResponse({
        'success': True,
        'results': rows,
        'count': len(rows),
        'total': results.total,
        'mode': results.mode,
        'params': {
            'location': search_request.location,
            'lat': results.lat,
            'lng': results.lng,
            'radius': search_request.radius,
            'affiliation': search_request.affiliation,
            'limit': search_request.limit,
            'offset': search_request.offset,
        },
    })


@require_http_methods(["GET"])
def officiant_detail(request, pk):
    try:
        officiant = Officiant.objects.filter(pk=pk).first()
    except Exception as e:
        logger.exception('Failed to load officiant %s', pk)
        return _error_response(str(e) or 'Failed to get officiant')

    if officiant is None:
        return _error_response('Officiant not found', status=404)
    return JsonResponse({'success': True, 'officiant': _serialize_officiant(officiant)})


@require_http_methods(["GET"])
def municipalities(request):
    try:
        names = list(CachedMunicipality.objects.values_list('name', flat=True))
    except Exception as e:
        logger.exception('Failed to load municipalities')
        return _error_response(str(e) or 'Failed to get municipalities')
    return JsonResponse({'success': True, 'municipalities': names, 'count': len(names)})


@require_http_methods(["GET"])
def affiliations(request):
    try:
        names = list(CachedAffiliation.objects.values_list('name', flat=True))
    except Exception as e:
        logger.exception('Failed to load affiliations')
        return _error_response(str(e) or 'Failed to get affiliations')

    response = JsonResponse({'success': True, 'affiliations': names, 'count': len(names)})
    response['Cache-Control'] = 'public, s-maxage=3600, stale-while-revalidate=86400'
    return response


# Admin API

def _is_admin(request):
    """Check the ``Authorization: Bearer <ADMIN_PASSWORD>`` header."""
    expected = getattr(settings, 'ADMIN_PASSWORD', '')
    if not expected:
        return False

    header = request.headers.get('Authorization', '')
    if not header.startswith('Bearer '):
        return False
    supplied = header[len('Bearer '):]
    return hmac.compare_digest(supplied.encode(), expected.encode())


@csrf_exempt
@require_http_methods(["GET", "POST"])
def admin_sync(request):
    """GET: officiant counts and recent sync runs. POST: run a sync now."""
    if not _is_admin(request):
        return JsonResponse({'success': False, 'error': 'Unauthorized'}, status=401)

    if request.method == 'POST':
        return _trigger_sync()

    ledger = SyncRunLedger()
    try:
        running = ledger.is_sync_running()
        total = Officiant.objects.count()
        geocoded = Officiant.objects.filter(latitude__isnull=False, longitude__isnull=False).count()
        history = [_serialize_sync_run(run) for run in ledger.recent_runs()]
    except Exception as e:
        logger.exception('Failed to load sync status')
        return _error_response(str(e) or 'Failed to fetch sync status')

    return JsonResponse({
        'success': True,
        'running': running,
        'stats': {
            'total_officiants': total,
            'geocoded_officiants': geocoded,
            'geocoded_percent': round(geocoded * 100 / total) if total else 0,
        },
        'sync_history': history,
    })


def _trigger_sync():
    try:
        summary = OfficiantSyncService().start()
    except SyncAlreadyRunning:
        return JsonResponse({'success': False, 'error': 'Sync already running'}, status=409)
    except Exception as e:
        logger.exception('Failed to start sync')
        return _error_response(str(e) or 'Sync failed')

    return JsonResponse({
        'success': summary.success,
        'run_id': summary.run_id,
        'status': SyncRun.STATUS_COMPLETED if summary.success else SyncRun.STATUS_FAILED,
        'total_fetched': summary.total_fetched,
        'total_inserted': summary.total_inserted,
        'total_updated': summary.total_updated,
        'geocoded_count': summary.geocoded_count,
        'duration': round(summary.duration, 2),
        'error': summary.error,
    })
