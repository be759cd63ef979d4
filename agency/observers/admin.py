from django.contrib import admin
from .models import Observer, ObserverTask


@admin.register(Observer)
class ObserverAdmin(admin.ModelAdmin):
    list_display = ['name', 'email', 'user', 'is_active', 'created_at']
    list_filter = ['is_active']
    search_fields = ['name', 'email', 'user__username']
    filter_horizontal = ['dealers']


@admin.register(ObserverTask)
class ObserverTaskAdmin(admin.ModelAdmin):
    list_display = ['title', 'assigned_to', 'related_dealer', 'priority', 'status', 'due_date']
    list_filter = ['status', 'priority']
    search_fields = ['title', 'assigned_to__name']
