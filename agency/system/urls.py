from django.urls import path
from . import views

urlpatterns = [
    path('maintenance/status/', views.maintenance_status, name='maintenance-status'),
    path('maintenance/activate/', views.maintenance_activate, name='maintenance-activate'),
    path('maintenance/deactivate/', views.maintenance_deactivate, name='maintenance-deactivate'),
    path('gdpr/consent/', views.cookie_consent, name='cookie-consent'),
    path('system/logs/', views.system_log_list, name='system-log-list'),
    path('system/logs/export/', views.system_log_export, name='system-log-export'),
    path('system/usage/', views.system_usage, name='system-usage'),
    path('fraud/suspicious/', views.fraud_suspicious, name='fraud-suspicious'),
    path('fraud/<int:pk>/review/', views.fraud_review, name='fraud-review'),
]
