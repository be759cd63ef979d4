from django.contrib import admin
from .models import Dealer


@admin.register(Dealer)
class DealerAdmin(admin.ModelAdmin):
    list_display = ['code', 'name', 'email', 'phone', 'user', 'is_active', 'created_at']
    list_filter = ['is_active', 'created_at']
    search_fields = ['code', 'name', 'email', 'tax_number']
    ordering = ['name']
    raw_id_fields = ['user']
