import django_filters
from .models import Shipment, InventoryMovement


class ShipmentFilter(django_filters.FilterSet):
    status = django_filters.CharFilter(field_name='status', lookup_expr='iexact')
    shipment_type = django_filters.CharFilter(field_name='shipment_type', lookup_expr='iexact')
    product = django_filters.NumberFilter(field_name='product_id')
    date_from = django_filters.DateFilter(field_name='shipment_date', lookup_expr='gte')
    date_to = django_filters.DateFilter(field_name='shipment_date', lookup_expr='lte')

    class Meta:
        model = Shipment
        fields = ['status', 'shipment_type', 'product', 'date_from', 'date_to']


class MovementFilter(django_filters.FilterSet):
    product = django_filters.NumberFilter(field_name='product_id')
    driver = django_filters.NumberFilter(field_name='driver_id')
    movement_type = django_filters.CharFilter(field_name='movement_type', lookup_expr='iexact')
    date_from = django_filters.DateFilter(field_name='created_at', lookup_expr='date__gte')
    date_to = django_filters.DateFilter(field_name='created_at', lookup_expr='date__lte')

    class Meta:
        model = InventoryMovement
        fields = ['product', 'driver', 'movement_type', 'date_from', 'date_to']
