import django_filters
from django.db.models import Q
from .models import SentMessage


class SentMessageFilter(django_filters.FilterSet):
    trigger = django_filters.CharFilter(field_name='trigger', lookup_expr='iexact')
    status = django_filters.CharFilter(field_name='status', lookup_expr='iexact')
    recipient_type = django_filters.CharFilter(field_name='recipient_type', lookup_expr='iexact')
    search = django_filters.CharFilter(method='filter_search', label='Search')

    class Meta:
        model = SentMessage
        fields = ['trigger', 'status', 'recipient_type', 'search']

    def filter_search(self, queryset, name, value):
        if not value:
            return queryset
        return queryset.filter(
            Q(recipient_name__icontains=value) | Q(phone_number__icontains=value) | Q(message__icontains=value)
        )
