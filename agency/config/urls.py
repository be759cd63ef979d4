"""
URL configuration for the insurance agency backend.

Every app mounts its routes under ``/api/v1/``.
"""
from django.contrib import admin
from django.urls import path, include, re_path
from django.conf import settings
from django.views.static import serve

admin.site.site_header = "Insurance Agency Admin Panel"
admin.site.site_title = "Insurance Agency Admin Portal"
admin.site.index_title = "Welcome to the Insurance Agency Admin Portal"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('agency.core.urls')),
    path('api/v1/', include('agency.dealers.urls')),
    path('api/v1/', include('agency.observers.urls')),
    path('api/v1/', include('agency.customers.urls')),
    path('api/v1/', include('agency.pricing.urls')),
    path('api/v1/', include('agency.policies.urls')),
    path('api/v1/', include('agency.claims.urls')),
    path('api/v1/', include('agency.support.urls')),
    path('api/v1/', include('agency.notifications.urls')),
    path('api/v1/', include('agency.reports.urls')),
    path('api/v1/', include('agency.system.urls')),
    re_path(r'^media/(?P<path>.*)$', serve, {'document_root': settings.MEDIA_ROOT}),
]
