import django_filters
from django.db.models import Q

from .models import PriceList


class PriceListFilter(django_filters.FilterSet):
    search = django_filters.CharFilter(method='filter_search')
    policy_type = django_filters.NumberFilter(field_name='policy_type_id')
    currency = django_filters.NumberFilter(field_name='currency_id')
    is_active = django_filters.BooleanFilter()
    valid_on = django_filters.DateFilter(method='filter_valid_on')

    class Meta:
        model = PriceList
        fields = ['search', 'policy_type', 'currency', 'is_active', 'valid_on']

    def filter_search(self, queryset, name, value):
        if not value:
            return queryset
        return queryset.filter(Q(name__icontains=value) | Q(description__icontains=value))

    def filter_valid_on(self, queryset, name, value):
        return queryset.filter(start_date__lte=value, end_date__gte=value)
