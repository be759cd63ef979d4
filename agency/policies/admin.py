from django.contrib import admin
from .models import Policy, PolicySeries


@admin.register(PolicySeries)
class PolicySeriesAdmin(admin.ModelAdmin):
    list_display = ['series', 'dealer', 'start_number', 'end_number', 'current_number', 'is_active']
    list_filter = ['is_active', 'dealer']
    search_fields = ['series', 'dealer__name', 'dealer__code']
    readonly_fields = ['current_number', 'created_at', 'updated_at']


@admin.register(Policy)
class PolicyAdmin(admin.ModelAdmin):
    list_display = ['policy_number', 'dealer', 'customer', 'policy_type', 'start_date', 'end_date', 'total', 'status']
    list_filter = ['status', 'policy_type', 'dealer']
    search_fields = ['policy_number', 'customer__first_name', 'customer__last_name', 'vehicle__plate_number']
    date_hierarchy = 'created_at'
    readonly_fields = ['policy_number', 'series', 'created_at', 'updated_at', 'submitted_at', 'approved_at', 'cancelled_at']
