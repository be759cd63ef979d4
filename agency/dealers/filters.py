import django_filters
from django.db.models import Q

from .models import Dealer


class DealerFilter(django_filters.FilterSet):
    search = django_filters.CharFilter(method='filter_search')
    is_active = django_filters.BooleanFilter()

    class Meta:
        model = Dealer
        fields = ['search', 'is_active']

    def filter_search(self, queryset, name, value):
        if not value:
            return queryset
        return queryset.filter(
            Q(name__icontains=value) |
            Q(code__icontains=value) |
            Q(email__icontains=value) |
            Q(phone__icontains=value)
        )
