import django_filters
from django.db.models import Q

from .models import Customer, Vehicle


class CustomerFilter(django_filters.FilterSet):
    search = django_filters.CharFilter(method='filter_search')
    dealer = django_filters.NumberFilter(field_name='dealer_id')
    is_active = django_filters.BooleanFilter()

    class Meta:
        model = Customer
        fields = ['search', 'dealer', 'is_active']

    def filter_search(self, queryset, name, value):
        if not value:
            return queryset
        return queryset.filter(
            Q(first_name__icontains=value) |
            Q(last_name__icontains=value) |
            Q(national_id__icontains=value) |
            Q(email__icontains=value) |
            Q(phone__icontains=value)
        )


class VehicleFilter(django_filters.FilterSet):
    search = django_filters.CharFilter(method='filter_search')
    customer = django_filters.NumberFilter(field_name='customer_id')
    dealer = django_filters.NumberFilter(field_name='customer__dealer_id')
    brand = django_filters.CharFilter(lookup_expr='iexact')
    is_active = django_filters.BooleanFilter()

    class Meta:
        model = Vehicle
        fields = ['search', 'customer', 'dealer', 'brand', 'is_active']

    def filter_search(self, queryset, name, value):
        if not value:
            return queryset
        return queryset.filter(
            Q(plate_number__icontains=value) |
            Q(brand__icontains=value) |
            Q(model__icontains=value) |
            Q(vin__icontains=value)
        )
