import re

from rest_framework import serializers

from agency.customers.models import Customer, Vehicle
from agency.dealers.models import Dealer
from .models import Policy, PolicySeries

SERIES_PATTERN = re.compile(r'^[A-Z0-9]{1,10}$')
MAX_BATCH_SIZE = 50


class PolicySeriesSerializer(serializers.ModelSerializer):
    dealer_name = serializers.CharField(source='dealer.name', read_only=True, default=None)
    total_numbers = serializers.IntegerField(read_only=True)
    used_numbers = serializers.IntegerField(read_only=True)
    remaining_numbers = serializers.IntegerField(read_only=True)
    is_near_depletion = serializers.BooleanField(read_only=True)
    is_exhausted = serializers.BooleanField(read_only=True)

    class Meta:
        model = PolicySeries
        fields = [
            'id', 'dealer', 'dealer_name', 'series', 'start_number', 'end_number', 'current_number',
            'blacklisted_numbers', 'is_active', 'total_numbers', 'used_numbers', 'remaining_numbers',
            'is_near_depletion', 'is_exhausted', 'created_at', 'updated_at'
        ]
        read_only_fields = ['current_number', 'created_at', 'updated_at']

    def validate_series(self, value):
        value = value.strip().upper()
        if not SERIES_PATTERN.match(value):
            raise serializers.ValidationError('Series must be 1-10 letters or digits.')
        return value

    def validate_start_number(self, value):
        if value < 1:
            raise serializers.ValidationError('Start number must be at least 1.')
        return value

    def validate_blacklisted_numbers(self, value):
        if value in (None, ''):
            return []
        if not isinstance(value, list) or not all(isinstance(n, int) and not isinstance(n, bool) for n in value):
            raise serializers.ValidationError('Blacklisted numbers must be a list of integers.')
        return sorted(set(value))

    def validate(self, attrs):
        def current(field):
            return attrs.get(field, getattr(self.instance, field, None))

        series, start, end = current('series'), current('start_number'), current('end_number')
        if start is not None and end is not None and end <= start:
            raise serializers.ValidationError({'end_number': 'End number must be greater than start number.'})

        blacklisted = current('blacklisted_numbers') or []
        outside = [n for n in blacklisted if n < start or n > end]
        if outside:
            raise serializers.ValidationError({'blacklisted_numbers': f'Numbers outside the range: {outside}'})

        if self.instance and self.instance.used_numbers > 0:
            if start != self.instance.start_number:
                raise serializers.ValidationError({'start_number': 'Start number cannot change after numbers were issued.'})
            if end < self.instance.current_number - 1:
                raise serializers.ValidationError({'end_number': 'End number cannot be below an issued number.'})

        overlapping = PolicySeries.objects.filter(series=series, start_number__lte=end, end_number__gte=start)
        if self.instance:
            overlapping = overlapping.exclude(pk=self.instance.pk)
        if overlapping.exists():
            raise serializers.ValidationError({'start_number': f'Range overlaps another {series} series.'})
        return attrs


class SeriesAssignDealerSerializer(serializers.Serializer):
    dealer = serializers.PrimaryKeyRelatedField(queryset=Dealer.objects.all())


class PolicySerializer(serializers.ModelSerializer):
    dealer_name = serializers.CharField(source='dealer.name', read_only=True)
    customer_name = serializers.CharField(source='customer.full_name', read_only=True)
    plate_number = serializers.CharField(source='vehicle.plate_number', read_only=True)
    policy_type_name = serializers.CharField(source='policy_type.name', read_only=True)
    policy_type_code = serializers.CharField(source='policy_type.code', read_only=True)
    currency_code = serializers.CharField(source='currency.code', read_only=True)
    series_code = serializers.CharField(source='series.series', read_only=True, default=None)
    approved_by_username = serializers.CharField(source='approved_by.username', read_only=True, default=None)
    created_by_username = serializers.CharField(source='created_by.username', read_only=True, default=None)
    duration_days = serializers.IntegerField(read_only=True)

    class Meta:
        model = Policy
        fields = [
            'id', 'policy_number', 'series', 'series_code', 'dealer', 'dealer_name', 'customer', 'customer_name',
            'vehicle', 'plate_number', 'policy_type', 'policy_type_name', 'policy_type_code', 'currency',
            'currency_code', 'price_list', 'start_date', 'end_date', 'duration_days', 'premium', 'tax', 'total',
            'dealer_commission', 'observer_commission', 'admin_commission', 'status', 'notes',
            'rejection_reason', 'cancellation_reason', 'submitted_at', 'approved_at', 'approved_by',
            'approved_by_username', 'cancelled_at', 'created_by', 'created_by_username', 'created_at', 'updated_at'
        ]
        read_only_fields = fields


class PolicyCreateSerializer(serializers.Serializer):
    dealer = serializers.PrimaryKeyRelatedField(queryset=Dealer.objects.all(), required=False)
    customer = serializers.PrimaryKeyRelatedField(queryset=Customer.objects.select_related('dealer'))
    vehicle = serializers.PrimaryKeyRelatedField(queryset=Vehicle.objects.all())
    policy_type = serializers.CharField()
    start_date = serializers.DateField()
    end_date = serializers.DateField()
    currency = serializers.CharField(required=False, allow_blank=True)
    premium = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, min_value=0)
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class PolicyBatchCreateSerializer(serializers.Serializer):
    policies = PolicyCreateSerializer(many=True, allow_empty=False)

    def validate_policies(self, value):
        if len(value) > MAX_BATCH_SIZE:
            raise serializers.ValidationError(f'At most {MAX_BATCH_SIZE} policies can be created at once.')
        return value


class PolicyUpdateSerializer(serializers.Serializer):
    vehicle = serializers.PrimaryKeyRelatedField(queryset=Vehicle.objects.all(), required=False)
    policy_type = serializers.CharField(required=False)
    start_date = serializers.DateField(required=False)
    end_date = serializers.DateField(required=False)
    premium = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, min_value=0)
    notes = serializers.CharField(required=False, allow_blank=True)


class RejectSerializer(serializers.Serializer):
    reason = serializers.CharField()


class CancelSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default='')
