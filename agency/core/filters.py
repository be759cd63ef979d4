import django_filters
from django.db.models import Q

from .models import AuditLog, User


class UserFilter(django_filters.FilterSet):
    search = django_filters.CharFilter(method='filter_search')
    role = django_filters.CharFilter(field_name='groups__name')
    is_active = django_filters.BooleanFilter()

    class Meta:
        model = User
        fields = ['search', 'role', 'is_active']

    def filter_search(self, queryset, name, value):
        if not value:
            return queryset
        return queryset.filter(
            Q(username__icontains=value) |
            Q(email__icontains=value) |
            Q(first_name__icontains=value) |
            Q(last_name__icontains=value)
        )


class AuditLogFilter(django_filters.FilterSet):
    action = django_filters.CharFilter()
    model = django_filters.CharFilter(field_name='model_name', lookup_expr='iexact')
    user = django_filters.NumberFilter(field_name='user_id')
    date_from = django_filters.DateFilter(field_name='created_at', lookup_expr='date__gte')
    date_to = django_filters.DateFilter(field_name='created_at', lookup_expr='date__lte')
    search = django_filters.CharFilter(method='filter_search')

    class Meta:
        model = AuditLog
        fields = ['action', 'model', 'user', 'date_from', 'date_to', 'search']

    def filter_search(self, queryset, name, value):
        if not value:
            return queryset
        return queryset.filter(
            Q(object_name__icontains=value) |
            Q(object_id__iexact=value) |
            Q(user__username__icontains=value)
        )
