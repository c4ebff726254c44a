import logging
from datetime import timedelta

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.core.cache import cache

from lpg_backend.core.cache_utils import tenant_cache_key, DASHBOARD_PREFIX, DASHBOARD_KPI_CACHE_TTL
from lpg_backend.core.permissions import CanViewReports
from lpg_backend.core.utils import parse_date, today
from lpg_backend.receivables.services import driver_performance
from .services import build_dashboard, daily_sales, cached_daily_sales, financial_summary

logger = logging.getLogger('lpg_backend.reports')

DEFAULT_RANGE_DAYS = 30


def _date_range(request):
    date_to = parse_date(request.query_params.get('date_to'), default=today())
    date_from = parse_date(request.query_params.get('date_from'),
                           default=date_to - timedelta(days=DEFAULT_RANGE_DAYS))
    return date_from, date_to


@api_view(['GET'])
@permission_classes([IsAuthenticated, CanViewReports])
def dashboard(request):
    """Headline numbers for the tenant, cached for five minutes"""
    tenant = request.user.tenant
    cache_key = tenant_cache_key(DASHBOARD_PREFIX, tenant.id)
    cached = cache.get(cache_key)
    if cached is not None:
        logger.debug(f"Cache HIT for dashboard of tenant {tenant.id}")
        return Response(cached)

    try:
        data = build_dashboard(tenant)
    except Exception as e:
        logger.error(f"Error in dashboard for tenant {tenant.id}: {str(e)}", exc_info=True)
        return Response({'error': 'Failed to load dashboard'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    cache.set(cache_key, data, DASHBOARD_KPI_CACHE_TTL)
    return Response(data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, CanViewReports])
def daily_sales_report(request):
    tenant = request.user.tenant
    date_from, date_to = _date_range(request)
    if date_from > date_to:
        return Response({'error': 'date_from must be on or before date_to'}, status=status.HTTP_400_BAD_REQUEST)

    logger.info(f"User {request.user.email} requested daily sales {date_from}..{date_to}")
    try:
        if date_to < today():
            data = cached_daily_sales(tenant.id, date_from, date_to)
        else:
            data = daily_sales(tenant.id, date_from, date_to)
    except Exception as e:
        logger.error(f"Error in daily_sales_report: {str(e)}", exc_info=True)
        return Response({'error': 'Failed to build daily sales report'},
                        status=status.HTTP_500_INTERNAL_SERVER_ERROR)
    return Response(data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, CanViewReports])
def driver_performance_report(request):
    """Sales and collection efficiency per driver, best first"""
    tenant = request.user.tenant
    date_from, date_to = _date_range(request)
    try:
        drivers = driver_performance(tenant, date_from, date_to)
    except Exception as e:
        logger.error(f"Error in driver_performance_report: {str(e)}", exc_info=True)
        return Response({'error': 'Failed to build driver performance report'},
                        status=status.HTTP_500_INTERNAL_SERVER_ERROR)
    return Response({
        'date_from': date_from.isoformat(),
        'date_to': date_to.isoformat(),
        'drivers': drivers,
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, CanViewReports])
def financial_summary_report(request):
    """
    Income statement for date_from..date_to.
    compare_from and compare_to add a comparison period; both or neither must be given.
    """
    tenant = request.user.tenant
    date_from, date_to = _date_range(request)
    if date_from > date_to:
        return Response({'error': 'date_from must be on or before date_to'}, status=status.HTTP_400_BAD_REQUEST)

    compare_from = parse_date(request.query_params.get('compare_from'))
    compare_to = parse_date(request.query_params.get('compare_to'))
    if (compare_from is None) != (compare_to is None):
        return Response({'error': 'compare_from and compare_to must be given together'},
                        status=status.HTTP_400_BAD_REQUEST)
    if compare_from and compare_from > compare_to:
        return Response({'error': 'compare_from must be on or before compare_to'},
                        status=status.HTTP_400_BAD_REQUEST)

    logger.info(f"User {request.user.email} requested financial summary {date_from}..{date_to}")
    try:
        data = financial_summary(tenant, date_from, date_to, compare_from, compare_to)
    except Exception as e:
        logger.error(f"Error in financial_summary_report: {str(e)}", exc_info=True)
        return Response({'error': 'Failed to build financial summary'},
                        status=status.HTTP_500_INTERNAL_SERVER_ERROR)
    return Response(data)
