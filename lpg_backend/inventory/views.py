import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db import transaction
from django.shortcuts import get_object_or_404

from lpg_backend.core.permissions import IsTenantUser, is_manager_or_admin
from lpg_backend.core.utils import create_audit_log, model_snapshot, paginate, parse_bool, parse_date, today
from lpg_backend.sales.services import reports_changed
from .filters import ShipmentFilter, MovementFilter
from .models import Shipment, InventoryMovement
from .serializers import ShipmentSerializer, InventoryMovementSerializer
from .services import (
    current_inventory_levels, daily_inventory, cylinders_summary, empty_cylinders_by_size,
    low_stock_alerts, record_shipment_movement,
)

logger = logging.getLogger(__name__)

SHIPMENT_AUDIT_FIELDS = ['product', 'shipment_type', 'status', 'quantity', 'unit_cost', 'total_cost',
                         'shipment_date', 'invoice_number', 'notes']


def _forbidden():
    return Response({'error': 'Manager or admin access required.'}, status=status.HTTP_403_FORBIDDEN)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsTenantUser])
def inventory_levels(request):
    """Current full/empty stock per active product with low-stock flags"""
    levels = current_inventory_levels(request.user.tenant)
    totals = {
        'full_cylinders': sum(level['full_cylinders'] for level in levels),
        'empty_cylinders': sum(level['empty_cylinders'] for level in levels),
        'total_cylinders': sum(level['total_cylinders'] for level in levels),
        'low_stock_count': sum(1 for level in levels if level['is_low_stock']),
    }
    return Response({'products': levels, 'totals': totals})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsTenantUser])
def inventory_daily(request):
    """
    Daily full/empty calculation per product.
    persist=true stores the rows as InventoryRecords (manager or admin).
    """
    day = parse_date(request.query_params.get('date'), default=today())
    persist = parse_bool(request.query_params.get('persist'))
    if persist and not is_manager_or_admin(request.user):
        return _forbidden()
    try:
        return Response(daily_inventory(request.user.tenant, day, persist=persist))
    except Exception as e:
        logger.error(f"Error calculating daily inventory for {day}: {str(e)}", exc_info=True)
        return Response({'error': 'Failed to calculate daily inventory'},
                        status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsTenantUser])
def cylinders_summary_view(request):
    return Response(cylinders_summary(request.user.tenant))


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsTenantUser])
def empty_cylinders_view(request):
    """Empty cylinders per size for a date, with the formula behind each row"""
    day = parse_date(request.query_params.get('date'), default=today())
    persist = parse_bool(request.query_params.get('persist'))
    if persist and not is_manager_or_admin(request.user):
        return _forbidden()
    try:
        return Response(empty_cylinders_by_size(request.user.tenant, day, persist=persist))
    except Exception as e:
        logger.error(f"Error calculating empty cylinders for {day}: {str(e)}", exc_info=True)
        return Response({'error': 'Failed to calculate empty cylinders'},
                        status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsTenantUser])
def movement_list(request):
    queryset = InventoryMovement.objects.filter(tenant=request.user.tenant).select_related('product', 'driver')
    filterset = MovementFilter(request.query_params, queryset=queryset)
    if not filterset.is_valid():
        return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
    return Response(paginate(request, filterset.qs.order_by('-created_at'), InventoryMovementSerializer))


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsTenantUser])
def inventory_alerts(request):
    """Products at or below their low-stock threshold"""
    alerts = low_stock_alerts(request.user.tenant)
    return Response({
        'alerts': alerts,
        'count': len(alerts),
        'critical_count': sum(1 for a in alerts if a['severity'] == 'CRITICAL'),
    })


# Shipment views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsTenantUser])
def shipment_list_create(request):
    """List shipments or record a new one"""
    tenant = request.user.tenant
    if request.method == 'GET':
        queryset = Shipment.objects.filter(tenant=tenant).select_related('product', 'product__cylinder_size')
        filterset = ShipmentFilter(request.query_params, queryset=queryset)
        if not filterset.is_valid():
            return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)
        return Response(paginate(request, filterset.qs.order_by('-shipment_date', '-created_at'), ShipmentSerializer))
    else:
        if not is_manager_or_admin(request.user):
            return _forbidden()
        serializer = ShipmentSerializer(data=request.data, context={'request': request})
        if serializer.is_valid():
            with transaction.atomic():
                shipment = serializer.save(tenant=tenant, created_by=request.user)
                record_shipment_movement(shipment)
            reports_changed(tenant.id)
            create_audit_log(request=request, action='CREATE', model_name='Shipment', object_id=shipment.id,
                             object_name=str(shipment),
                             changes={'new': model_snapshot(shipment, fields=SHIPMENT_AUDIT_FIELDS)})
            return Response(ShipmentSerializer(shipment).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsTenantUser])
def shipment_detail(request, pk):
    """Retrieve, update or delete a shipment"""
    shipment = get_object_or_404(Shipment.objects.select_related('product'), pk=pk, tenant=request.user.tenant)

    if request.method == 'GET':
        return Response(ShipmentSerializer(shipment).data)

    if not is_manager_or_admin(request.user):
        return _forbidden()

    if request.method in ('PUT', 'PATCH'):
        old = model_snapshot(shipment, fields=SHIPMENT_AUDIT_FIELDS)
        serializer = ShipmentSerializer(shipment, data=request.data, partial=request.method == 'PATCH',
                                        context={'request': request})
        if serializer.is_valid():
            with transaction.atomic():
                shipment = serializer.save()
                if record_shipment_movement(shipment) is not None:
                    logger.info(f"Shipment {shipment.id} completed, movement recorded")
            reports_changed(shipment.tenant_id)
            create_audit_log(request=request, action='UPDATE', model_name='Shipment', object_id=shipment.id,
                             object_name=str(shipment),
                             changes={'old': old, 'new': model_snapshot(shipment, fields=SHIPMENT_AUDIT_FIELDS)})
            return Response(ShipmentSerializer(shipment).data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        if shipment.status == Shipment.STATUS_COMPLETED:
            return Response({'error': 'Cannot delete a completed shipment'}, status=status.HTTP_400_BAD_REQUEST)
        shipment_id, shipment_name = shipment.id, str(shipment)
        shipment.delete()
        reports_changed(request.user.tenant_id)
        create_audit_log(request=request, action='DELETE', model_name='Shipment', object_id=shipment_id,
                         object_name=shipment_name)
        return Response(status=status.HTTP_204_NO_CONTENT)
