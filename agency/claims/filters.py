import django_filters
from django.db.models import Q

from .models import Claim


class ClaimFilter(django_filters.FilterSet):
    search = django_filters.CharFilter(method='filter_search')
    status = django_filters.CharFilter()
    claim_type = django_filters.CharFilter()
    policy = django_filters.NumberFilter(field_name='policy_id')
    customer = django_filters.NumberFilter(field_name='customer_id')
    dealer = django_filters.NumberFilter(field_name='policy__dealer_id')

    class Meta:
        model = Claim
        fields = ['search', 'status', 'claim_type', 'policy', 'customer', 'dealer']

    def filter_search(self, queryset, name, value):
        if not value:
            return queryset
        return queryset.filter(
            Q(policy__policy_number__icontains=value) |
            Q(customer__first_name__icontains=value) |
            Q(customer__last_name__icontains=value) |
            Q(description__icontains=value)
        )
