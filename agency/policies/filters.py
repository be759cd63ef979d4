import django_filters
from django.db.models import Q

from .models import Policy, PolicySeries


class PolicyFilter(django_filters.FilterSet):
    search = django_filters.CharFilter(method='filter_search')
    status = django_filters.CharFilter()
    dealer = django_filters.NumberFilter(field_name='dealer_id')
    customer = django_filters.NumberFilter(field_name='customer_id')
    vehicle = django_filters.NumberFilter(field_name='vehicle_id')
    policy_type = django_filters.NumberFilter(field_name='policy_type_id')
    start_date_from = django_filters.DateFilter(field_name='start_date', lookup_expr='gte')
    start_date_to = django_filters.DateFilter(field_name='start_date', lookup_expr='lte')

    class Meta:
        model = Policy
        fields = ['search', 'status', 'dealer', 'customer', 'vehicle', 'policy_type', 'start_date_from', 'start_date_to']

    def filter_search(self, queryset, name, value):
        if not value:
            return queryset
        return queryset.filter(
            Q(policy_number__icontains=value) |
            Q(customer__first_name__icontains=value) |
            Q(customer__last_name__icontains=value) |
            Q(vehicle__plate_number__icontains=value)
        )


class PolicySeriesFilter(django_filters.FilterSet):
    search = django_filters.CharFilter(field_name='series', lookup_expr='icontains')
    dealer = django_filters.NumberFilter(field_name='dealer_id')
    is_active = django_filters.BooleanFilter()

    class Meta:
        model = PolicySeries
        fields = ['search', 'dealer', 'is_active']
