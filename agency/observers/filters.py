import django_filters
from django.db.models import Q

from .models import Observer, ObserverTask


class ObserverFilter(django_filters.FilterSet):
    search = django_filters.CharFilter(method='filter_search')
    is_active = django_filters.BooleanFilter()

    class Meta:
        model = Observer
        fields = ['search', 'is_active']

    def filter_search(self, queryset, name, value):
        if not value:
            return queryset
        return queryset.filter(Q(name__icontains=value) | Q(email__icontains=value) | Q(user__username__icontains=value))


class ObserverTaskFilter(django_filters.FilterSet):
    status = django_filters.CharFilter()
    priority = django_filters.CharFilter()
    observer = django_filters.NumberFilter(field_name='assigned_to_id')
    dealer = django_filters.NumberFilter(field_name='related_dealer_id')

    class Meta:
        model = ObserverTask
        fields = ['status', 'priority', 'observer', 'dealer']
