from django.utils import timezone
from rest_framework import serializers

from agency.core.roles import PORTALS
from .models import CookieConsent, FraudDetectionLog, MaintenanceWindow, SystemLog


class MaintenanceStatusSerializer(serializers.ModelSerializer):
    is_active = serializers.BooleanField(source='in_effect', read_only=True)

    class Meta:
        model = MaintenanceWindow
        fields = ['is_active', 'affected_portals', 'message', 'until', 'activated_at']


class MaintenanceActivateSerializer(serializers.Serializer):
    affected_portals = serializers.ListField(child=serializers.ChoiceField(choices=PORTALS), allow_empty=False)
    message = serializers.CharField()
    until = serializers.DateTimeField(required=False, allow_null=True)

    def validate_message(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('A maintenance message is required.')
        return value

    def validate_until(self, value):
        if value and value <= timezone.now():
            raise serializers.ValidationError('End time must be in the future.')
        return value


class CookieConsentSerializer(serializers.ModelSerializer):
    class Meta:
        model = CookieConsent
        fields = ['necessary', 'analytics', 'marketing', 'accepted_at']
        read_only_fields = ['necessary', 'accepted_at']


class SystemLogSerializer(serializers.ModelSerializer):
    class Meta:
        model = SystemLog
        fields = ['id', 'level', 'logger', 'message', 'module', 'created_at']


class FraudDetectionLogSerializer(serializers.ModelSerializer):
    reviewed_by_username = serializers.CharField(source='reviewed_by.username', read_only=True, default=None)

    class Meta:
        model = FraudDetectionLog
        fields = [
            'id', 'transaction_id', 'entity_name', 'entity_id', 'risk_score', 'reasons', 'status',
            'decision', 'review_notes', 'reviewed_by', 'reviewed_by_username', 'reviewed_at', 'created_at'
        ]


class FraudReviewSerializer(serializers.Serializer):
    decision = serializers.ChoiceField(choices=[choice[0] for choice in FraudDetectionLog.DECISION_CHOICES])
    notes = serializers.CharField(required=False, allow_blank=True, default='')
