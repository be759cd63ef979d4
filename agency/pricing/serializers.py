import re
from decimal import Decimal

from rest_framework import serializers

from .models import Currency, PolicyType, PriceList, TIER_DAYS

CURRENCY_CODE_PATTERN = re.compile(r'^[A-Z]{3}$')
TIER_FIELDS = [f'{kind}_{days}d' for days in TIER_DAYS for kind in ('price', 'min', 'max')]


class PolicyTypeSerializer(serializers.ModelSerializer):
    class Meta:
        model = PolicyType
        fields = ['id', 'code', 'name', 'description', 'is_active', 'created_at', 'updated_at']

    def validate_code(self, value):
        return value.strip().upper()


class CurrencySerializer(serializers.ModelSerializer):
    class Meta:
        model = Currency
        fields = ['id', 'code', 'name', 'symbol', 'is_default', 'is_active', 'created_at', 'updated_at']

    def validate_code(self, value):
        value = value.strip().upper()
        if not CURRENCY_CODE_PATTERN.match(value):
            raise serializers.ValidationError('Currency code must be 3 letters (ISO 4217).')
        return value

    def validate(self, attrs):
        if self.instance and self.instance.is_default and attrs.get('is_default') is False:
            raise serializers.ValidationError({'is_default': 'Set another currency as default instead.'})
        is_default = attrs.get('is_default', getattr(self.instance, 'is_default', False))
        is_active = attrs.get('is_active', getattr(self.instance, 'is_active', True))
        if is_default and not is_active:
            raise serializers.ValidationError({'is_active': 'The default currency must be active.'})
        return attrs


class PriceListSerializer(serializers.ModelSerializer):
    policy_type_name = serializers.CharField(source='policy_type.name', read_only=True)
    policy_type_code = serializers.CharField(source='policy_type.code', read_only=True)
    currency_code = serializers.CharField(source='currency.code', read_only=True)
    configured_tiers = serializers.SerializerMethodField()

    class Meta:
        model = PriceList
        fields = [
            'id', 'policy_type', 'policy_type_name', 'policy_type_code', 'currency', 'currency_code',
            'name', 'description', 'start_date', 'end_date',
        ] + TIER_FIELDS + [
            'configured_tiers', 'tax_rate', 'dealer_commission_rate', 'observer_commission_rate',
            'admin_commission_rate', 'is_active', 'priority', 'created_by', 'created_at', 'updated_at'
        ]
        read_only_fields = ['created_by', 'created_at', 'updated_at']

    def get_configured_tiers(self, obj):
        return obj.configured_tiers()

    def _rate(self, value, label):
        if value is not None and not (Decimal('0') <= value <= Decimal('1')):
            raise serializers.ValidationError(f'{label} must be between 0 and 1.')
        return value

    def validate_tax_rate(self, value):
        return self._rate(value, 'Tax rate')

    def validate_dealer_commission_rate(self, value):
        return self._rate(value, 'Dealer commission rate')

    def validate_observer_commission_rate(self, value):
        return self._rate(value, 'Observer commission rate')

    def validate_admin_commission_rate(self, value):
        return self._rate(value, 'Admin commission rate')

    def validate(self, attrs):
        def current(field):
            return attrs.get(field, getattr(self.instance, field, None))

        errors = {}
        start_date, end_date = current('start_date'), current('end_date')
        if start_date and end_date and end_date <= start_date:
            errors['end_date'] = 'End date must be after start date.'

        configured = 0
        for days in TIER_DAYS:
            price, min_price, max_price = current(f'price_{days}d'), current(f'min_{days}d'), current(f'max_{days}d')
            if price is None:
                continue
            configured += 1
            if price < 0:
                errors[f'price_{days}d'] = 'Price cannot be negative.'
            elif min_price is not None and min_price > price:
                errors[f'min_{days}d'] = f'Minimum must not exceed the {days}-day price.'
            elif max_price is not None and max_price < price:
                errors[f'max_{days}d'] = f'Maximum must not be below the {days}-day price.'
        if not configured:
            errors['price_1d'] = 'At least one duration tier must have a price.'

        if errors:
            raise serializers.ValidationError(errors)
        return attrs


class PremiumCalculationRequestSerializer(serializers.Serializer):
    customer = serializers.IntegerField(required=False)
    vehicle = serializers.IntegerField(required=False)
    policy_type = serializers.CharField()
    start_date = serializers.DateField()
    end_date = serializers.DateField(required=False)
    duration_days = serializers.IntegerField(required=False)
    currency = serializers.CharField(required=False, allow_blank=True)

    def validate(self, attrs):
        if attrs.get('end_date') is None and attrs.get('duration_days') is None:
            raise serializers.ValidationError({'end_date': 'Provide end_date or duration_days.'})
        return attrs


class PremiumCalculationSerializer(serializers.Serializer):
    price_list = serializers.IntegerField(source='price_list.id')
    price_list_name = serializers.CharField(source='price_list.name')
    duration_days = serializers.IntegerField()
    tier_days = serializers.IntegerField()
    base_premium = serializers.DecimalField(max_digits=12, decimal_places=2)
    min_premium = serializers.DecimalField(max_digits=12, decimal_places=2, allow_null=True)
    max_premium = serializers.DecimalField(max_digits=12, decimal_places=2, allow_null=True)
    tax_rate = serializers.DecimalField(max_digits=5, decimal_places=4)
    tax = serializers.DecimalField(max_digits=12, decimal_places=2)
    total = serializers.DecimalField(max_digits=12, decimal_places=2)
    currency = serializers.CharField()
    dealer_commission = serializers.DecimalField(max_digits=12, decimal_places=2)
    observer_commission = serializers.DecimalField(max_digits=12, decimal_places=2)
    admin_commission = serializers.DecimalField(max_digits=12, decimal_places=2)
