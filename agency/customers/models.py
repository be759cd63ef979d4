from django.db import models
from django.db.models import Q
from agency.core.models import User
from agency.dealers.models import Dealer


class Customer(models.Model):
    """Policy holders, each owned by one dealer"""
    dealer = models.ForeignKey(Dealer, on_delete=models.PROTECT, related_name='customers')
    first_name = models.CharField(max_length=100)
    last_name = models.CharField(max_length=100)
    national_id = models.CharField(max_length=11, blank=True, null=True)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=20, blank=True)
    address = models.TextField(blank=True)
    user = models.OneToOneField(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='customer_profile')
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.full_name

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}"

    class Meta:
        db_table = 'customers'
        ordering = ['first_name', 'last_name']
        constraints = [
            models.UniqueConstraint(fields=['dealer', 'national_id'], name='unique_customer_national_id_per_dealer'),
        ]


class Vehicle(models.Model):
    """Insured vehicles"""
    customer = models.ForeignKey(Customer, on_delete=models.CASCADE, related_name='vehicles')
    plate_number = models.CharField(max_length=20)
    brand = models.CharField(max_length=100)
    model = models.CharField(max_length=100)
    model_year = models.PositiveIntegerField()
    vin = models.CharField(max_length=17, blank=True, null=True)
    color = models.CharField(max_length=50, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.plate_number} ({self.brand} {self.model})"

    class Meta:
        db_table = 'vehicles'
        ordering = ['plate_number']
        constraints = [
            models.UniqueConstraint(fields=['plate_number'], condition=Q(is_active=True), name='unique_active_plate_number'),
        ]


class VehicleDocument(models.Model):
    """Files attached to a vehicle (registration, inspection, photos)"""
    DOCUMENT_TYPE_CHOICES = [
        ('registration', 'Registration'),
        ('inspection', 'Inspection'),
        ('photo', 'Photo'),
        ('other', 'Other'),
    ]

    vehicle = models.ForeignKey(Vehicle, on_delete=models.CASCADE, related_name='documents')
    file = models.FileField(upload_to='vehicle_documents/%Y/%m/')
    document_type = models.CharField(max_length=20, choices=DOCUMENT_TYPE_CHOICES, default='other')
    uploaded_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='vehicle_documents')
    uploaded_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.vehicle.plate_number} - {self.document_type}"

    class Meta:
        db_table = 'vehicle_documents'
        ordering = ['-uploaded_at']
