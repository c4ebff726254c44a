import django_filters
from .models import CustomerReceivable


class CustomerReceivableFilter(django_filters.FilterSet):
    driver = django_filters.NumberFilter(field_name='driver_id')
    status = django_filters.CharFilter(field_name='status', lookup_expr='iexact')
    receivable_type = django_filters.CharFilter(field_name='receivable_type', lookup_expr='iexact')

    class Meta:
        model = CustomerReceivable
        fields = ['driver', 'status', 'receivable_type']
