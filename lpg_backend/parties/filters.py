import django_filters
from django.db.models import Q
from .models import Driver, Customer


class DriverFilter(django_filters.FilterSet):
    search = django_filters.CharFilter(method='filter_search', label='Search')
    status = django_filters.CharFilter(field_name='status', lookup_expr='iexact')
    active = django_filters.CharFilter(method='filter_active', label='Active')
    driver_type = django_filters.CharFilter(field_name='driver_type', lookup_expr='iexact')
    route = django_filters.CharFilter(field_name='route', lookup_expr='icontains')

    class Meta:
        model = Driver
        fields = ['search', 'status', 'active', 'driver_type', 'route']

    def filter_active(self, queryset, name, value):
        if str(value).lower() == 'true':
            return queryset.filter(status=Driver.STATUS_ACTIVE)
        return queryset

    def filter_search(self, queryset, name, value):
        if not value:
            return queryset
        return queryset.filter(
            Q(name__icontains=value) | Q(phone__icontains=value) | Q(route__icontains=value)
        )


class CustomerFilter(django_filters.FilterSet):
    search = django_filters.CharFilter(method='filter_search', label='Search')
    area = django_filters.NumberFilter(field_name='area_id')
    driver = django_filters.NumberFilter(field_name='driver_id')
    customer_type = django_filters.CharFilter(field_name='customer_type', lookup_expr='iexact')

    class Meta:
        model = Customer
        fields = ['search', 'area', 'driver', 'customer_type']

    def filter_search(self, queryset, name, value):
        if not value:
            return queryset
        return queryset.filter(
            Q(name__icontains=value)
            | Q(phone__icontains=value)
            | Q(customer_code__icontains=value)
            | Q(address__icontains=value)
        )
