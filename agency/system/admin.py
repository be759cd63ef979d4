from django.contrib import admin
from .models import CookieConsent, FraudDetectionLog, MaintenanceWindow, SystemLog


@admin.register(MaintenanceWindow)
class MaintenanceWindowAdmin(admin.ModelAdmin):
    list_display = ['is_active', 'affected_portals', 'until', 'activated_by', 'activated_at']


@admin.register(CookieConsent)
class CookieConsentAdmin(admin.ModelAdmin):
    list_display = ['user', 'necessary', 'analytics', 'marketing', 'accepted_at']
    search_fields = ['user__username']


@admin.register(SystemLog)
class SystemLogAdmin(admin.ModelAdmin):
    list_display = ['created_at', 'level', 'logger', 'module', 'message']
    list_filter = ['level']
    search_fields = ['message', 'logger']
    readonly_fields = ['level', 'logger', 'message', 'module', 'created_at']


@admin.register(FraudDetectionLog)
class FraudDetectionLogAdmin(admin.ModelAdmin):
    list_display = ['transaction_id', 'entity_name', 'risk_score', 'status', 'decision', 'created_at']
    list_filter = ['status', 'decision']
    search_fields = ['transaction_id', 'entity_id']
