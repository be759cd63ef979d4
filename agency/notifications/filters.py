import django_filters

from .models import Notification


class NotificationFilter(django_filters.FilterSet):
    is_read = django_filters.BooleanFilter()
    type = django_filters.ChoiceFilter(choices=Notification.TYPE_CHOICES)

    class Meta:
        model = Notification
        fields = ['is_read', 'type']
