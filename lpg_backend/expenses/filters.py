import django_filters
from django.db.models import Q
from .models import Expense


class ExpenseFilter(django_filters.FilterSet):
    status = django_filters.CharFilter(method='filter_status', label='Status')
    date_from = django_filters.DateFilter(field_name='expense_date', lookup_expr='gte')
    date_to = django_filters.DateFilter(field_name='expense_date', lookup_expr='lte')
    category = django_filters.NumberFilter(field_name='category_id')
    user = django_filters.NumberFilter(field_name='user_id')
    search = django_filters.CharFilter(method='filter_search', label='Search')

    class Meta:
        model = Expense
        fields = ['status', 'date_from', 'date_to', 'category', 'user', 'search']

    def filter_status(self, queryset, name, value):
        value = (value or '').lower()
        if value == 'pending':
            return queryset.filter(is_approved=False)
        if value == 'approved':
            return queryset.filter(is_approved=True)
        return queryset

    def filter_search(self, queryset, name, value):
        if not value:
            return queryset
        return queryset.filter(
            Q(description__icontains=value) | Q(particulars__icontains=value) | Q(notes__icontains=value)
        )
