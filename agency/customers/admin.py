from django.contrib import admin
from .models import Customer, Vehicle, VehicleDocument


class VehicleInline(admin.TabularInline):
    model = Vehicle
    extra = 0
    fields = ['plate_number', 'brand', 'model', 'model_year', 'is_active']


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ['first_name', 'last_name', 'national_id', 'dealer', 'email', 'phone', 'is_active', 'created_at']
    list_filter = ['is_active', 'dealer']
    search_fields = ['first_name', 'last_name', 'national_id', 'email', 'phone']
    raw_id_fields = ['user']
    inlines = [VehicleInline]


@admin.register(Vehicle)
class VehicleAdmin(admin.ModelAdmin):
    list_display = ['plate_number', 'brand', 'model', 'model_year', 'customer', 'is_active']
    list_filter = ['is_active', 'brand']
    search_fields = ['plate_number', 'vin', 'brand', 'model']


@admin.register(VehicleDocument)
class VehicleDocumentAdmin(admin.ModelAdmin):
    list_display = ['vehicle', 'document_type', 'uploaded_by', 'uploaded_at']
    list_filter = ['document_type']
