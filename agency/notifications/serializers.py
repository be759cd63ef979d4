from rest_framework import serializers

from agency.core.roles import ALL_ROLES
from .models import Notification, NotificationSetting


class NotificationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Notification
        fields = ['id', 'title', 'message', 'type', 'link', 'is_read', 'read_at', 'created_at']
        read_only_fields = fields


class NotificationSettingSerializer(serializers.ModelSerializer):
    class Meta:
        model = NotificationSetting
        fields = ['email_enabled', 'push_enabled', 'sms_enabled', 'email_address', 'updated_at']
        read_only_fields = ['updated_at']


class BroadcastSerializer(serializers.Serializer):
    role = serializers.ChoiceField(choices=ALL_ROLES + ['all'])
    title = serializers.CharField(max_length=200)
    message = serializers.CharField()
    type = serializers.ChoiceField(choices=[choice[0] for choice in Notification.TYPE_CHOICES], default='info')
    link = serializers.CharField(max_length=500, required=False, allow_blank=True, default='')
