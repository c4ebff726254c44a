import django_filters
from django.db.models import Q
from .models import Sale


class SaleFilter(django_filters.FilterSet):
    driver = django_filters.NumberFilter(field_name='driver_id')
    product = django_filters.NumberFilter(field_name='product_id')
    sale_type = django_filters.CharFilter(field_name='sale_type', lookup_expr='iexact')
    date_from = django_filters.DateFilter(field_name='sale_date', lookup_expr='gte')
    date_to = django_filters.DateFilter(field_name='sale_date', lookup_expr='lte')
    search = django_filters.CharFilter(method='filter_search', label='Search')

    class Meta:
        model = Sale
        fields = ['driver', 'product', 'sale_type', 'date_from', 'date_to', 'search']

    def filter_search(self, queryset, name, value):
        if not value:
            return queryset
        return queryset.filter(Q(notes__icontains=value) | Q(driver__name__icontains=value))
