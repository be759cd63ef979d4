from rest_framework import serializers

from agency.core.validators import validate_upload
from .models import Customer, Vehicle, VehicleDocument
from .validators import (
    MIN_MODEL_YEAR, VIN_LENGTH, is_valid_national_id, is_valid_plate, max_model_year, normalize_plate,
)


class CustomerSerializer(serializers.ModelSerializer):
    dealer_name = serializers.CharField(source='dealer.name', read_only=True)
    full_name = serializers.CharField(read_only=True)
    username = serializers.CharField(source='user.username', read_only=True, default=None)
    vehicle_count = serializers.SerializerMethodField()
    create_account = serializers.BooleanField(write_only=True, required=False, default=False)

    class Meta:
        model = Customer
        fields = [
            'id', 'dealer', 'dealer_name', 'first_name', 'last_name', 'full_name', 'national_id',
            'email', 'phone', 'address', 'user', 'username', 'vehicle_count', 'is_active',
            'create_account', 'created_at', 'updated_at'
        ]
        read_only_fields = ['user', 'created_at', 'updated_at']
        extra_kwargs = {'dealer': {'required': False}}
        # Uniqueness per dealer is checked in validate() with the pinned dealer
        validators = []

    def get_vehicle_count(self, obj):
        return obj.vehicles.filter(is_active=True).count()

    def validate_first_name(self, value):
        value = value.strip()
        if len(value) < 2:
            raise serializers.ValidationError('First name must be at least 2 characters.')
        return value

    def validate_last_name(self, value):
        value = value.strip()
        if len(value) < 2:
            raise serializers.ValidationError('Last name must be at least 2 characters.')
        return value

    def validate_national_id(self, value):
        value = (value or '').strip()
        if not value:
            return None
        if not is_valid_national_id(value):
            raise serializers.ValidationError('National ID must be exactly 11 digits.')
        return value

    def validate(self, attrs):
        dealer = self.context.get('dealer') or attrs.get('dealer') or getattr(self.instance, 'dealer', None)
        if dealer is None:
            raise serializers.ValidationError({'dealer': 'This field is required.'})
        attrs['dealer'] = dealer

        national_id = attrs.get('national_id', getattr(self.instance, 'national_id', None))
        if national_id:
            queryset = Customer.objects.filter(dealer=dealer, national_id=national_id)
            if self.instance:
                queryset = queryset.exclude(pk=self.instance.pk)
            if queryset.exists():
                raise serializers.ValidationError({'national_id': 'A customer with this national ID already exists for this dealer.'})
        return attrs

    def create(self, validated_data):
        validated_data.pop('create_account', None)
        return super().create(validated_data)

    def update(self, instance, validated_data):
        validated_data.pop('create_account', None)
        return super().update(instance, validated_data)


class VehicleDocumentSerializer(serializers.ModelSerializer):
    uploaded_by_username = serializers.CharField(source='uploaded_by.username', read_only=True, default=None)

    class Meta:
        model = VehicleDocument
        fields = ['id', 'vehicle', 'file', 'document_type', 'uploaded_by', 'uploaded_by_username', 'uploaded_at']
        read_only_fields = ['vehicle', 'uploaded_by', 'uploaded_at']

    def validate_file(self, value):
        return validate_upload(value)


class VehicleSerializer(serializers.ModelSerializer):
    customer_name = serializers.CharField(source='customer.full_name', read_only=True)
    dealer = serializers.IntegerField(source='customer.dealer_id', read_only=True)
    documents = VehicleDocumentSerializer(many=True, read_only=True)

    class Meta:
        model = Vehicle
        fields = [
            'id', 'customer', 'customer_name', 'dealer', 'plate_number', 'brand', 'model', 'model_year',
            'vin', 'color', 'is_active', 'documents', 'created_at', 'updated_at'
        ]
        read_only_fields = ['created_at', 'updated_at']
        # Active-plate uniqueness is checked in validate()
        validators = []

    def validate_plate_number(self, value):
        value = normalize_plate(value)
        if not is_valid_plate(value):
            raise serializers.ValidationError('Invalid plate number. Expected format: 34 ABC 123.')
        return value

    def validate_model_year(self, value):
        upper = max_model_year()
        if value < MIN_MODEL_YEAR or value > upper:
            raise serializers.ValidationError(f'Model year must be between {MIN_MODEL_YEAR} and {upper}.')
        return value

    def validate_vin(self, value):
        value = (value or '').strip().upper()
        if not value:
            return None
        if len(value) != VIN_LENGTH:
            raise serializers.ValidationError(f'VIN must be exactly {VIN_LENGTH} characters.')
        return value

    def validate_brand(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError('Brand is required.')
        return value

    def validate(self, attrs):
        plate = attrs.get('plate_number', getattr(self.instance, 'plate_number', None))
        is_active = attrs.get('is_active', getattr(self.instance, 'is_active', True))
        if plate and is_active:
            queryset = Vehicle.objects.filter(plate_number=plate, is_active=True)
            if self.instance:
                queryset = queryset.exclude(pk=self.instance.pk)
            if queryset.exists():
                raise serializers.ValidationError({'plate_number': 'An active vehicle with this plate number already exists.'})
        return attrs
