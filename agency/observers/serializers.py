from django.utils import timezone
from rest_framework import serializers

from agency.dealers.models import Dealer
from agency.dealers.serializers import DealerSummarySerializer
from .models import Observer, ObserverTask


class ObserverSerializer(serializers.ModelSerializer):
    username = serializers.CharField(source='user.username', read_only=True, default=None)
    dealers = DealerSummarySerializer(many=True, read_only=True)

    class Meta:
        model = Observer
        fields = ['id', 'name', 'email', 'phone', 'user', 'username', 'dealers', 'is_active', 'created_at', 'updated_at']
        read_only_fields = ['user', 'is_active', 'created_at', 'updated_at']

    def validate_name(self, value):
        value = value.strip()
        if len(value) < 2:
            raise serializers.ValidationError('Name must be at least 2 characters.')
        return value


class DealerAssignSerializer(serializers.Serializer):
    dealer = serializers.PrimaryKeyRelatedField(queryset=Dealer.objects.all())


class ObserverTaskSerializer(serializers.ModelSerializer):
    observer_name = serializers.CharField(source='assigned_to.name', read_only=True)
    dealer_name = serializers.CharField(source='related_dealer.name', read_only=True, default=None)

    class Meta:
        model = ObserverTask
        fields = [
            'id', 'title', 'description', 'assigned_to', 'observer_name', 'related_dealer', 'dealer_name',
            'due_date', 'priority', 'status', 'completed_at', 'created_by', 'created_at', 'updated_at'
        ]
        read_only_fields = ['status', 'completed_at', 'created_by', 'created_at', 'updated_at']

    def validate_title(self, value):
        value = value.strip()
        if len(value) < 3:
            raise serializers.ValidationError('Title must be at least 3 characters.')
        return value

    def validate_description(self, value):
        value = value.strip()
        if len(value) < 10:
            raise serializers.ValidationError('Description must be at least 10 characters.')
        return value

    def validate_due_date(self, value):
        if value and self.instance is None and value < timezone.localdate():
            raise serializers.ValidationError('Due date cannot be in the past.')
        return value

    def validate(self, attrs):
        observer = attrs.get('assigned_to', getattr(self.instance, 'assigned_to', None))
        dealer = attrs.get('related_dealer', getattr(self.instance, 'related_dealer', None))
        if observer and dealer and not observer.dealers.filter(pk=dealer.pk).exists():
            raise serializers.ValidationError({'related_dealer': 'Dealer is not assigned to this observer.'})
        return attrs


class TaskStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=[choice[0] for choice in ObserverTask.STATUS_CHOICES])
