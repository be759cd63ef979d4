from rest_framework import serializers
from .models import Dealer


class DealerSerializer(serializers.ModelSerializer):
    username = serializers.CharField(source='user.username', read_only=True, default=None)
    customer_count = serializers.SerializerMethodField()

    class Meta:
        model = Dealer
        fields = [
            'id', 'name', 'code', 'email', 'phone', 'address', 'tax_number',
            'user', 'username', 'customer_count', 'is_active', 'created_at', 'updated_at'
        ]
        read_only_fields = ['user', 'is_active', 'created_at', 'updated_at']

    def get_customer_count(self, obj):
        annotated = getattr(obj, 'customer_count', None)
        if annotated is not None:
            return annotated
        return obj.customers.count()

    def validate_name(self, value):
        value = value.strip()
        if len(value) < 2:
            raise serializers.ValidationError('Name must be at least 2 characters.')
        return value

    def validate_code(self, value):
        value = value.strip().upper()
        if len(value) < 2:
            raise serializers.ValidationError('Code must be at least 2 characters.')
        queryset = Dealer.objects.filter(code__iexact=value)
        if self.instance:
            queryset = queryset.exclude(pk=self.instance.pk)
        if queryset.exists():
            raise serializers.ValidationError('A dealer with this code already exists.')
        return value


class DealerSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = Dealer
        fields = ['id', 'name', 'code', 'is_active']
