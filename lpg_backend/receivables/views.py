import logging
from datetime import timedelta

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.shortcuts import get_object_or_404

from lpg_backend.core.models import AuditLog
from lpg_backend.core.permissions import IsTenantUser, is_manager_or_admin
from lpg_backend.core.utils import create_audit_log, model_snapshot, paginate, parse_date, today
from lpg_backend.messaging.service import MessageService
from lpg_backend.parties.models import Driver
from lpg_backend.sales.services import reports_changed
from .filters import CustomerReceivableFilter
from .models import ReceivableRecord, CustomerReceivable
from .serializers import (
    ReceivableRecordSerializer, CustomerReceivableSerializer,
    PaymentSerializer, CylinderReturnSerializer, RecalculateSerializer,
)
from .services import (
    ReceivableOperationError, receivables_summary, recalculate, current_totals,
    validate_customer_receivables, receivables_by_driver_size,
    record_cash_payment, record_cylinder_return,
)

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_DAYS = 30
RECEIVABLE_AUDIT_FIELDS = ['driver', 'customer', 'customer_name', 'receivable_type', 'amount', 'quantity',
                           'size', 'due_date', 'status']
RECEIVABLE_CHANGE_ACTIONS = ['CREATE', 'UPDATE', 'DELETE', 'PAYMENT', 'CYLINDER_RETURN']


def _audit_metadata(receivable, **extra):
    """Driver and customer context stored on every receivable audit entry"""
    metadata = {
        'driver_id': receivable.driver_id,
        'driver_name': receivable.driver.name,
        'customer_name': receivable.customer_name,
        'receivable_type': receivable.receivable_type,
    }
    metadata.update(extra)
    return metadata


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsTenantUser])
def receivables_list(request):
    """Latest receivables of every active driver as of a date"""
    as_of = parse_date(request.query_params.get('date'), default=today())
    try:
        return Response(receivables_summary(request.user.tenant, as_of))
    except Exception as e:
        logger.error(f"Error building receivables summary: {str(e)}", exc_info=True)
        return Response({'error': 'Failed to fetch receivables'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsTenantUser])
def driver_receivables(request, driver_id):
    """Receivable history of one driver, newest first"""
    tenant = request.user.tenant
    driver = get_object_or_404(Driver, pk=driver_id, tenant=tenant)
    try:
        days = max(1, int(request.query_params.get('days', DEFAULT_HISTORY_DAYS)))
    except (TypeError, ValueError):
        days = DEFAULT_HISTORY_DAYS

    since = today() - timedelta(days=days)
    records = ReceivableRecord.objects.filter(tenant=tenant, driver=driver, date__gte=since).order_by('-date')
    cash, cylinders = current_totals(tenant, driver)
    return Response({
        'driver': {'id': driver.id, 'name': driver.name, 'driver_type': driver.driver_type},
        'days': days,
        'current_cash_receivables': cash,
        'current_cylinder_receivables': cylinders,
        'records': ReceivableRecordSerializer(records, many=True).data,
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsTenantUser])
def receivables_recalculate(request):
    """Recompute receivable records for a driver (or all active drivers) on a date"""
    if not is_manager_or_admin(request.user):
        return Response({'error': 'Manager or admin access required.'}, status=status.HTTP_403_FORBIDDEN)

    serializer = RecalculateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    tenant = request.user.tenant
    target_date = serializer.validated_data.get('date') or today()
    cascade = serializer.validated_data.get('cascade', False)
    driver = None
    driver_id = serializer.validated_data.get('driver_id')
    if driver_id:
        driver = get_object_or_404(Driver, pk=driver_id, tenant=tenant)

    records = recalculate(tenant, target_date, driver=driver, cascade=cascade)
    reports_changed(tenant.id)
    create_audit_log(request=request, action='RECALCULATE', model_name='ReceivableRecord',
                     object_id=driver.id if driver else 'all', object_name=driver.name if driver else 'All drivers',
                     changes={'metadata': {'date': target_date, 'cascade': cascade, 'records': len(records)}})
    logger.info(f"Recalculated {len(records)} receivable records for tenant {tenant.id} from {target_date}")
    return Response({
        'message': f"Recalculated {len(records)} receivable records",
        'date': target_date.isoformat(),
        'records': ReceivableRecordSerializer(records, many=True).data,
    })


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsTenantUser])
def customer_receivable_list_create(request):
    """
    GET: customer receivables grouped under each active retail driver.
    POST: add a customer receivable.
    """
    tenant = request.user.tenant
    if request.method == 'GET':
        queryset = CustomerReceivable.objects.filter(
            tenant=tenant,
            driver__status=Driver.STATUS_ACTIVE,
            driver__driver_type=Driver.TYPE_RETAIL,
        ).select_related('driver', 'customer').order_by('driver__name', 'customer_name')
        filterset = CustomerReceivableFilter(request.query_params, queryset=queryset)
        if not filterset.is_valid():
            return Response(filterset.errors, status=status.HTTP_400_BAD_REQUEST)

        drivers = {}
        for receivable in filterset.qs:
            entry = drivers.setdefault(receivable.driver_id, {
                'driver_id': receivable.driver_id,
                'driver_name': receivable.driver.name,
                'total_cash': 0,
                'total_cylinders': 0,
                'receivables': [],
            })
            entry['receivables'].append(CustomerReceivableSerializer(receivable).data)
            if receivable.status != CustomerReceivable.STATUS_PAID:
                if receivable.receivable_type == CustomerReceivable.TYPE_CASH:
                    entry['total_cash'] += receivable.amount
                else:
                    entry['total_cylinders'] += receivable.quantity
        return Response({'drivers': list(drivers.values())})
    else:
        serializer = CustomerReceivableSerializer(data=request.data, context={'request': request})
        if serializer.is_valid():
            receivable = serializer.save(tenant=tenant)
            create_audit_log(request=request, action='CREATE', model_name='CustomerReceivable',
                             object_id=receivable.id, object_name=receivable.customer_name,
                             changes={'new': model_snapshot(receivable, fields=RECEIVABLE_AUDIT_FIELDS),
                                      'metadata': _audit_metadata(receivable)})
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsTenantUser])
def customer_receivable_detail(request, pk):
    receivable = get_object_or_404(CustomerReceivable.objects.select_related('driver', 'customer'),
                                   pk=pk, tenant=request.user.tenant)

    if request.method == 'GET':
        return Response(CustomerReceivableSerializer(receivable).data)
    elif request.method == 'PATCH':
        old = model_snapshot(receivable, fields=RECEIVABLE_AUDIT_FIELDS)
        serializer = CustomerReceivableSerializer(receivable, data=request.data, partial=True,
                                                  context={'request': request})
        if serializer.is_valid():
            serializer.save()
            create_audit_log(request=request, action='UPDATE', model_name='CustomerReceivable',
                             object_id=receivable.id, object_name=receivable.customer_name,
                             changes={'old': old, 'new': model_snapshot(receivable, fields=RECEIVABLE_AUDIT_FIELDS),
                                      'metadata': _audit_metadata(receivable)})
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        receivable_id, name = receivable.id, receivable.customer_name
        changes = {'old': model_snapshot(receivable, fields=RECEIVABLE_AUDIT_FIELDS),
                   'metadata': _audit_metadata(receivable)}
        receivable.delete()
        create_audit_log(request=request, action='DELETE', model_name='CustomerReceivable',
                         object_id=receivable_id, object_name=name, changes=changes)
        return Response(status=status.HTTP_204_NO_CONTENT)


def _collection_response(receivable, sale, record, old_totals, message):
    old_cash, old_cylinders = old_totals
    return {
        'message': message,
        'receivable': CustomerReceivableSerializer(receivable).data,
        'sale_id': sale.id,
        'driver_receivables': {
            'old_cash': old_cash,
            'old_cylinders': old_cylinders,
            'new_cash': record.total_cash_receivables if record else old_cash,
            'new_cylinders': record.total_cylinder_receivables if record else old_cylinders,
        },
    }


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsTenantUser])
def receivable_payment(request):
    """Collect cash against a customer's cash receivable"""
    serializer = PaymentSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    data = serializer.validated_data
    receivable = get_object_or_404(CustomerReceivable.objects.select_related('driver', 'customer'),
                                   pk=data['customer_receivable_id'], tenant=request.user.tenant)
    try:
        receivable, sale, record, old_totals = record_cash_payment(
            receivable, data['amount'], data['payment_method'], request.user, notes=data.get('notes', ''))
    except ReceivableOperationError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    reports_changed(receivable.tenant_id)
    create_audit_log(request=request, action='PAYMENT', model_name='CustomerReceivable',
                     object_id=receivable.id, object_name=receivable.customer_name,
                     changes={'metadata': _audit_metadata(receivable, amount=data['amount'],
                                                          payment_method=data['payment_method'],
                                                          remaining=receivable.amount, sale_id=sale.id)})
    MessageService(receivable.tenant).notify_payment_received(
        receivable.customer, data['amount'], 'cash', received_by=request.user.name)

    return Response(_collection_response(receivable, sale, record, old_totals, 'Payment recorded successfully'))


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsTenantUser])
def cylinder_return(request):
    """Collect empty cylinders against a customer's cylinder receivable"""
    serializer = CylinderReturnSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    data = serializer.validated_data
    receivable = get_object_or_404(CustomerReceivable.objects.select_related('driver', 'customer'),
                                   pk=data['customer_receivable_id'], tenant=request.user.tenant)
    try:
        receivable, sale, record, old_totals = record_cylinder_return(
            receivable, data['quantity'], request.user, notes=data.get('notes', ''))
    except ReceivableOperationError as e:
        return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

    reports_changed(receivable.tenant_id)
    create_audit_log(request=request, action='CYLINDER_RETURN', model_name='CustomerReceivable',
                     object_id=receivable.id, object_name=receivable.customer_name,
                     changes={'metadata': _audit_metadata(receivable, quantity=data['quantity'], size=receivable.size,
                                                          remaining=receivable.quantity, sale_id=sale.id)})
    MessageService(receivable.tenant).notify_payment_received(
        receivable.customer, data['quantity'], 'cylinder', received_by=request.user.name)

    return Response(_collection_response(receivable, sale, record, old_totals, 'Cylinder return recorded successfully'))


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsTenantUser])
def receivables_validation(request):
    """Check customer receivables add up to each driver's totals"""
    return Response(validate_customer_receivables(request.user.tenant))


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsTenantUser])
def receivables_by_size(request):
    return Response(receivables_by_driver_size(request.user.tenant))


def _change_type(entry):
    if entry.action == 'CYLINDER_RETURN':
        return 'RETURN'
    if entry.action == 'UPDATE':
        old = entry.changes.get('old') or {}
        new = entry.changes.get('new') or {}
        if new.get('status') == CustomerReceivable.STATUS_PAID and old.get('status') != CustomerReceivable.STATUS_PAID:
            return 'PAID'
    return entry.action


def _as_float(value):
    return float(value) if value not in (None, '') else None


def _change_entry(entry):
    changes = entry.changes or {}
    metadata = changes.get('metadata') or {}
    snapshot = changes.get('new') or changes.get('old') or {}
    if entry.action == 'PAYMENT':
        amount, quantity = _as_float(metadata.get('amount')), None
    elif entry.action == 'CYLINDER_RETURN':
        amount, quantity = None, metadata.get('quantity')
    else:
        amount, quantity = _as_float(snapshot.get('amount')), snapshot.get('quantity')

    return {
        'timestamp': entry.created_at.isoformat(),
        'action': entry.action,
        'change_type': _change_type(entry),
        'receivable_id': entry.object_id,
        'driver_id': metadata.get('driver_id', snapshot.get('driver')),
        'driver_name': metadata.get('driver_name'),
        'customer_name': metadata.get('customer_name') or entry.object_name,
        'receivable_type': metadata.get('receivable_type', snapshot.get('receivable_type')),
        'amount': amount,
        'quantity': quantity,
        'user_name': entry.user.name if entry.user else None,
        'metadata': metadata,
    }


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsTenantUser])
def receivable_changes(request):
    """
    History of customer receivable changes, newest first.

    Query params: driver (id), page, limit (default 20, max 100).
    change_type is PAYMENT, RETURN, PAID (an edit that settled the receivable),
    or the plain CREATE / UPDATE / DELETE action.
    """
    queryset = AuditLog.objects.filter(
        tenant=request.user.tenant,
        model_name='CustomerReceivable',
        action__in=RECEIVABLE_CHANGE_ACTIONS,
    ).select_related('user').order_by('-created_at', '-id')

    driver_id = request.query_params.get('driver')
    if driver_id:
        try:
            driver_id = int(driver_id)
        except (TypeError, ValueError):
            return Response({'error': 'driver must be a driver id'}, status=status.HTTP_400_BAD_REQUEST)
        queryset = queryset.filter(changes__metadata__driver_id=driver_id)

    return Response(paginate(request, queryset, serialize=_change_entry))
