import django_filters
from django.db.models import Q
from .models import Product


class ProductFilter(django_filters.FilterSet):
    """Product list filters: company, active flag and free-text search"""
    search = django_filters.CharFilter(method='filter_search', label='Search')
    company = django_filters.NumberFilter(field_name='company_id', lookup_expr='exact')
    is_active = django_filters.BooleanFilter(field_name='is_active')
    size = django_filters.CharFilter(field_name='size', lookup_expr='iexact')

    class Meta:
        model = Product
        fields = ['search', 'company', 'is_active', 'size']

    def filter_search(self, queryset, name, value):
        """Every word must appear in the product, company or size name"""
        if not value or not value.strip():
            return queryset
        for word in value.split():
            queryset = queryset.filter(
                Q(name__icontains=word)
                | Q(company__name__icontains=word)
                | Q(size__icontains=word)
            )
        return queryset
