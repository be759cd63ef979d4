import django_filters
from django.db.models import Q

from .models import Ticket


class TicketFilter(django_filters.FilterSet):
    status = django_filters.CharFilter()
    priority = django_filters.CharFilter()
    category = django_filters.CharFilter()
    search = django_filters.CharFilter(method='filter_search')

    class Meta:
        model = Ticket
        fields = ['status', 'priority', 'category', 'search']

    def filter_search(self, queryset, name, value):
        if not value:
            return queryset
        return queryset.filter(Q(subject__icontains=value) | Q(message__icontains=value) | Q(user__username__icontains=value))
