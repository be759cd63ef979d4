import django_filters
from django.db.models import Q

from .models import FraudDetectionLog, SystemLog


class SystemLogFilter(django_filters.FilterSet):
    level = django_filters.CharFilter(lookup_expr='iexact')
    logger = django_filters.CharFilter(lookup_expr='istartswith')
    date_from = django_filters.DateFilter(field_name='created_at', lookup_expr='date__gte')
    date_to = django_filters.DateFilter(field_name='created_at', lookup_expr='date__lte')
    search = django_filters.CharFilter(method='filter_search')

    class Meta:
        model = SystemLog
        fields = ['level', 'logger', 'date_from', 'date_to', 'search']

    def filter_search(self, queryset, name, value):
        if not value:
            return queryset
        return queryset.filter(Q(message__icontains=value) | Q(module__icontains=value))


class FraudLogFilter(django_filters.FilterSet):
    status = django_filters.CharFilter()
    min_score = django_filters.NumberFilter(field_name='risk_score', lookup_expr='gte')

    class Meta:
        model = FraudDetectionLog
        fields = ['status', 'min_score']
