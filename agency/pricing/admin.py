from django.contrib import admin
from .models import Currency, PolicyType, PriceList


@admin.register(PolicyType)
class PolicyTypeAdmin(admin.ModelAdmin):
    list_display = ['code', 'name', 'is_active', 'created_at']
    list_filter = ['is_active']
    search_fields = ['code', 'name']


@admin.register(Currency)
class CurrencyAdmin(admin.ModelAdmin):
    list_display = ['code', 'name', 'symbol', 'is_default', 'is_active']
    list_filter = ['is_active', 'is_default']


@admin.register(PriceList)
class PriceListAdmin(admin.ModelAdmin):
    list_display = ['name', 'policy_type', 'currency', 'start_date', 'end_date', 'priority', 'is_active']
    list_filter = ['is_active', 'policy_type', 'currency']
    search_fields = ['name', 'description']
    ordering = ['-priority', '-created_at']
