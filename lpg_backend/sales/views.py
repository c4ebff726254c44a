import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.shortcuts import get_object_or_404

from lpg_backend.core.permissions import (
    IsTenantUser, has_role_permission, CREATE_SALE, UPDATE_SALE, DELETE_SALE,
)
from lpg_backend.core.utils import create_audit_log, model_snapshot, paginate, parse_date, today
from lpg_backend.inventory.services import available_full_cylinders
from lpg_backend.parties.models import Driver
from .filters import SaleFilter
from .models import Sale
from .serializers import SaleSerializer, SaleUpdateSerializer, BulkDeleteSerializer
from .services import (
    business_validation_errors, create_sale, update_sale, delete_sale, bulk_delete_sales,
    sales_summary, daily_summary,
)

logger = logging.getLogger(__name__)

SALE_AUDIT_FIELDS = ['driver', 'product', 'sale_type', 'quantity', 'unit_price', 'total_value', 'discount',
                     'net_value', 'payment_type', 'cash_deposited', 'cylinders_deposited', 'sale_date', 'notes']


def _insufficient_permissions():
    return Response({'error': 'Insufficient permissions'}, status=status.HTTP_403_FORBIDDEN)


def _business_error(errors):
    return Response({'error': 'Business validation failed', 'details': errors},
                    status=status.HTTP_400_BAD_REQUEST)


def _insufficient_inventory(available, requested):
    return Response({'error': 'Insufficient inventory', 'available': available, 'requested': requested},
                    status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsTenantUser])
def sale_list_create(request):
    """
    GET: paginated sales with filters and a summary of the filtered set.
    POST: record a sale, its inventory movement and the driver's receivables.
    """
    tenant = request.user.tenant
    if request.method == 'GET':
        queryset = Sale.objects.filter(tenant=tenant).select_related('driver', 'product', 'product__cylinder_size', 'user')
        filterset = SaleFilter(request.query_params, queryset=queryset)
        if not filterset.is_valid():
            return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
        sales = filterset.qs.order_by('-sale_date', '-created_at')
        data = paginate(request, sales, SaleSerializer)
        data['summary'] = sales_summary(sales)
        return Response(data)

    if not has_role_permission(request.user, CREATE_SALE):
        return _insufficient_permissions()

    serializer = SaleSerializer(data=request.data, context={'request': request})
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    driver = serializer.validated_data['driver']
    product = serializer.validated_data['product']
    if driver.status != Driver.STATUS_ACTIVE:
        return Response({'error': 'Driver is not active'}, status=status.HTTP_400_BAD_REQUEST)
    if not product.is_active:
        return Response({'error': 'Product is not active'}, status=status.HTTP_400_BAD_REQUEST)

    sale = Sale(tenant=tenant, user=request.user, **serializer.validated_data)
    if not sale.sale_date:
        sale.sale_date = today()
    sale.recompute_totals()

    errors = business_validation_errors(sale)
    if errors:
        return _business_error(errors)

    available = available_full_cylinders(tenant, product)
    if sale.quantity > available:
        return _insufficient_inventory(available, sale.quantity)

    try:
        create_sale(sale)
    except Exception as e:
        logger.error(f"Error creating sale for tenant {tenant.id}: {str(e)}", exc_info=True)
        return Response({'error': 'Failed to create sale'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

    create_audit_log(request=request, action='CREATE', model_name='Sale', object_id=sale.id,
                     object_name=str(sale), changes={'new': model_snapshot(sale, fields=SALE_AUDIT_FIELDS)})
    return Response(SaleSerializer(sale).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsTenantUser])
def sale_detail(request, pk):
    """Retrieve a sale, or edit / delete one of today's sales"""
    tenant = request.user.tenant
    sale = get_object_or_404(Sale.objects.select_related('driver', 'product', 'user'), pk=pk, tenant=tenant)

    if request.method == 'GET':
        return Response(SaleSerializer(sale).data)

    if request.method in ('PUT', 'PATCH'):
        if not has_role_permission(request.user, UPDATE_SALE):
            return _insufficient_permissions()
        if sale.sale_date != today():
            return Response({'error': "Can only edit today's sales"}, status=status.HTTP_400_BAD_REQUEST)

        old = model_snapshot(sale, fields=SALE_AUDIT_FIELDS)
        old_product_id, old_quantity = sale.product_id, sale.quantity
        serializer = SaleUpdateSerializer(sale, data=request.data, partial=request.method == 'PATCH',
                                          context={'request': request})
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        for field, value in serializer.validated_data.items():
            setattr(sale, field, value)
        sale.recompute_totals()

        errors = business_validation_errors(sale)
        if errors:
            return _business_error(errors)

        if sale.product_id != old_product_id:
            needed = sale.quantity
        else:
            needed = sale.quantity - old_quantity
        if needed > 0:
            available = available_full_cylinders(tenant, sale.product)
            if needed > available:
                return _insufficient_inventory(available, needed)

        update_sale(sale)
        create_audit_log(request=request, action='UPDATE', model_name='Sale', object_id=sale.id,
                         object_name=str(sale),
                         changes={'old': old, 'new': model_snapshot(sale, fields=SALE_AUDIT_FIELDS)})
        return Response(SaleSerializer(sale).data)
    else:  # DELETE
        if not has_role_permission(request.user, DELETE_SALE):
            return _insufficient_permissions()
        if sale.sale_date != today():
            return Response({'error': "Can only delete today's sales"}, status=status.HTTP_400_BAD_REQUEST)

        sale_id, sale_name = sale.id, str(sale)
        old = model_snapshot(sale, fields=SALE_AUDIT_FIELDS)
        delete_sale(sale)
        create_audit_log(request=request, action='DELETE', model_name='Sale', object_id=sale_id,
                         object_name=sale_name, changes={'old': old})
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsTenantUser])
def sale_bulk_delete(request):
    """Delete several sales of one day atomically"""
    if not has_role_permission(request.user, DELETE_SALE):
        return _insufficient_permissions()

    serializer = BulkDeleteSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    tenant = request.user.tenant
    requested_ids = sorted(set(serializer.validated_data['sales_ids']))
    sale_date = serializer.validated_data.get('date') or today()

    sales = list(Sale.objects.filter(tenant=tenant, id__in=requested_ids, sale_date=sale_date)
                 .select_related('driver'))
    found_ids = sorted(s.id for s in sales)
    if len(found_ids) != len(requested_ids):
        return Response({
            'error': 'Some sales were not found for the given date',
            'requested_ids': requested_ids,
            'found_ids': found_ids,
            'missing_ids': [i for i in requested_ids if i not in found_ids],
        }, status=status.HTTP_404_NOT_FOUND)

    affected_drivers = bulk_delete_sales(tenant, sales)
    for sale_id in found_ids:
        create_audit_log(request=request, action='DELETE', model_name='Sale', object_id=sale_id,
                         object_name=f"Sale {sale_id}", changes={'metadata': {'bulk_delete': True}})

    return Response({
        'message': f"Deleted {len(found_ids)} sales",
        'deleted_count': len(found_ids),
        'deleted_ids': found_ids,
        'affected_drivers': affected_drivers,
        'date': sale_date.isoformat(),
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsTenantUser])
def sale_daily_summary(request):
    """Per-driver sales totals for one day"""
    summary_date = parse_date(request.query_params.get('date'), default=today())
    return Response(daily_summary(request.user.tenant, summary_date))
