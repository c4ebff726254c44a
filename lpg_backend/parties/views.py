import logging
from decimal import Decimal

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db.models import Count, Sum, ProtectedError
from django.shortcuts import get_object_or_404

from lpg_backend.core.permissions import IsTenantUser, is_manager_or_admin
from lpg_backend.core.utils import create_audit_log, model_snapshot, parse_bool, paginate, today
from lpg_backend.receivables.services import current_totals
from lpg_backend.sales.models import Sale
from .filters import DriverFilter, CustomerFilter
from .models import Driver, Area, Customer
from .serializers import DriverSerializer, AreaSerializer, CustomerSerializer, CustomerSummarySerializer

logger = logging.getLogger(__name__)

DRIVER_AUDIT_FIELDS = ['name', 'phone', 'driver_type', 'status', 'route', 'joining_date', 'leaving_date']


def _forbidden():
    return Response({'error': 'Manager or admin access required.'}, status=status.HTTP_403_FORBIDDEN)


def driver_metrics(driver):
    """Latest receivables plus this month's sales for a driver"""
    cash, cylinders = current_totals(driver.tenant, driver)
    month_start = today().replace(day=1)
    month_sales = Sale.objects.filter(
        tenant=driver.tenant, driver=driver, sale_date__gte=month_start
    ).aggregate(count=Count('id'), value=Sum('net_value'))
    return {
        'cash_receivables': cash,
        'cylinder_receivables': cylinders,
        'month_sales_count': month_sales['count'] or 0,
        'month_sales_value': month_sales['value'] or Decimal('0.00'),
    }


# Driver views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsTenantUser])
def driver_list_create(request):
    """List the tenant's drivers (paginated) or create a new driver"""
    tenant = request.user.tenant
    if request.method == 'GET':
        queryset = Driver.objects.filter(tenant=tenant).order_by('name')
        filterset = DriverFilter(request.query_params, queryset=queryset)
        include_metrics = parse_bool(request.query_params.get('include_metrics'))

        def serialize(driver):
            data = DriverSerializer(driver).data
            if include_metrics:
                data['metrics'] = driver_metrics(driver)
            return data

        return Response(paginate(request, filterset.qs, serialize=serialize))
    else:
        if not is_manager_or_admin(request.user):
            return _forbidden()
        serializer = DriverSerializer(data=request.data, context={'request': request})
        if serializer.is_valid():
            driver = serializer.save(tenant=tenant)
            create_audit_log(request=request, action='CREATE', model_name='Driver', object_id=driver.id,
                             object_name=driver.name,
                             changes={'new': model_snapshot(driver, fields=DRIVER_AUDIT_FIELDS)})
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsTenantUser])
def driver_detail(request, pk):
    """Retrieve, update or delete (deactivate when it has sales) a driver"""
    driver = get_object_or_404(Driver, pk=pk, tenant=request.user.tenant)

    if request.method == 'GET':
        data = DriverSerializer(driver).data
        data['metrics'] = driver_metrics(driver)
        return Response(data)

    if not is_manager_or_admin(request.user):
        return _forbidden()

    if request.method in ('PUT', 'PATCH'):
        old = model_snapshot(driver, fields=DRIVER_AUDIT_FIELDS)
        serializer = DriverSerializer(driver, data=request.data, partial=request.method == 'PATCH',
                                      context={'request': request})
        if serializer.is_valid():
            serializer.save()
            create_audit_log(request=request, action='UPDATE', model_name='Driver', object_id=driver.id,
                             object_name=driver.name,
                             changes={'old': old, 'new': model_snapshot(driver, fields=DRIVER_AUDIT_FIELDS)})
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        if driver.sales.exists():
            driver.status = Driver.STATUS_INACTIVE
            driver.leaving_date = today()
            driver.save(update_fields=['status', 'leaving_date', 'updated_at'])
            logger.info(f"Driver {driver.id} has sales, deactivated instead of deleted")
            create_audit_log(request=request, action='UPDATE', model_name='Driver', object_id=driver.id,
                             object_name=driver.name,
                             changes={'new': {'status': driver.status}, 'metadata': {'reason': 'deactivated on delete'}})
            return Response({
                'message': 'Driver has sales history and was deactivated instead of deleted.',
                'driver': DriverSerializer(driver).data,
            })

        driver_id, driver_name = driver.id, driver.name
        try:
            driver.delete()
        except ProtectedError:
            return Response({'error': 'Driver is referenced by other records and cannot be deleted.'},
                            status=status.HTTP_400_BAD_REQUEST)
        create_audit_log(request=request, action='DELETE', model_name='Driver', object_id=driver_id,
                         object_name=driver_name)
        return Response(status=status.HTTP_204_NO_CONTENT)


# Area views
def _area_data(area, include_customers):
    data = AreaSerializer(area).data
    if include_customers:
        customers = area.customers.filter(is_active=True).order_by('name')
        data['customers'] = CustomerSummarySerializer(customers, many=True).data
    return data


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsTenantUser])
def area_list_create(request):
    """List areas (optionally with their active customers) or create one"""
    tenant = request.user.tenant
    if request.method == 'GET':
        areas = Area.objects.filter(tenant=tenant).annotate(customer_count=Count('customers'))
        if parse_bool(request.query_params.get('active_only')):
            areas = areas.filter(is_active=True)
        include_customers = parse_bool(request.query_params.get('include_customers'))
        return Response([_area_data(area, include_customers) for area in areas])
    else:
        if not is_manager_or_admin(request.user):
            return _forbidden()
        serializer = AreaSerializer(data=request.data, context={'request': request})
        if serializer.is_valid():
            serializer.save(tenant=tenant)
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsTenantUser])
def area_detail(request, pk):
    area = get_object_or_404(Area, pk=pk, tenant=request.user.tenant)

    if request.method == 'GET':
        return Response(_area_data(area, parse_bool(request.query_params.get('include_customers'))))

    if not is_manager_or_admin(request.user):
        return _forbidden()

    if request.method in ('PUT', 'PATCH'):
        serializer = AreaSerializer(area, data=request.data, partial=request.method == 'PATCH',
                                    context={'request': request})
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        try:
            area.delete()
        except ProtectedError:
            return Response({'error': 'Cannot delete an area that has customers.'},
                            status=status.HTTP_400_BAD_REQUEST)
        return Response(status=status.HTTP_204_NO_CONTENT)


# Customer views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsTenantUser])
def customer_list_create(request):
    """List customers (active only unless active_only=false) or create one"""
    tenant = request.user.tenant
    if request.method == 'GET':
        queryset = Customer.objects.filter(tenant=tenant).select_related('area', 'driver')
        if parse_bool(request.query_params.get('active_only'), default=True):
            queryset = queryset.filter(is_active=True)
        filterset = CustomerFilter(request.query_params, queryset=queryset)
        serializer = CustomerSerializer(filterset.qs, many=True)
        return Response(serializer.data)
    else:
        serializer = CustomerSerializer(data=request.data, context={'request': request})
        if serializer.is_valid():
            customer = serializer.save(tenant=tenant)
            create_audit_log(request=request, action='CREATE', model_name='Customer', object_id=customer.id,
                             object_name=customer.name)
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsTenantUser])
def customer_detail(request, pk):
    customer = get_object_or_404(Customer.objects.select_related('area', 'driver'),
                                 pk=pk, tenant=request.user.tenant)

    if request.method == 'GET':
        serializer = CustomerSerializer(customer)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = CustomerSerializer(customer, data=request.data, partial=request.method == 'PATCH',
                                        context={'request': request})
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        if not is_manager_or_admin(request.user):
            return _forbidden()
        customer_id, customer_name = customer.id, customer.name
        customer.delete()
        create_audit_log(request=request, action='DELETE', model_name='Customer', object_id=customer_id,
                         object_name=customer_name)
        return Response(status=status.HTTP_204_NO_CONTENT)
