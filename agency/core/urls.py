from django.urls import path
from .views import (
    CustomTokenObtainPairView, CustomTokenRefreshView, user_me,
    change_password, forgot_password, reset_password, profile,
    two_factor_setup, two_factor_verify, two_factor_disable, two_factor_email_send, two_factor_email_verify,
    user_list_create, user_detail, user_activate, user_deactivate, user_roles, user_reset_password,
    role_list_create, role_detail, role_permissions, permission_list,
    setting_list_create, setting_detail, setting_test_email,
    audit_log_list, audit_log_detail, audit_log_export,
)

urlpatterns = [
    # Auth endpoints
    path('auth/login/', CustomTokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('auth/refresh/', CustomTokenRefreshView.as_view(), name='token_refresh'),
    path('auth/me/', user_me, name='user-me'),
    path('auth/change-password/', change_password, name='change-password'),
    path('auth/forgot-password/', forgot_password, name='forgot-password'),
    path('auth/reset-password/', reset_password, name='reset-password'),
    path('auth/two-factor/setup/', two_factor_setup, name='two-factor-setup'),
    path('auth/two-factor/verify/', two_factor_verify, name='two-factor-verify'),
    path('auth/two-factor/disable/', two_factor_disable, name='two-factor-disable'),
    path('auth/two-factor/email/send/', two_factor_email_send, name='two-factor-email-send'),
    path('auth/two-factor/email/verify/', two_factor_email_verify, name='two-factor-email-verify'),
    path('profile/', profile, name='profile'),

    # User endpoints
    path('users/', user_list_create, name='user-list-create'),
    path('users/<int:pk>/', user_detail, name='user-detail'),
    path('users/<int:pk>/activate/', user_activate, name='user-activate'),
    path('users/<int:pk>/deactivate/', user_deactivate, name='user-deactivate'),
    path('users/<int:pk>/roles/', user_roles, name='user-roles'),
    path('users/<int:pk>/reset-password/', user_reset_password, name='user-reset-password'),

    # Role endpoints
    path('roles/', role_list_create, name='role-list-create'),
    path('roles/<int:pk>/', role_detail, name='role-detail'),
    path('roles/<int:pk>/permissions/', role_permissions, name='role-permissions'),
    path('permissions/', permission_list, name='permission-list'),

    # Setting endpoints
    path('settings/', setting_list_create, name='setting-list-create'),
    path('settings/test-email/', setting_test_email, name='setting-test-email'),
    path('settings/<int:pk>/', setting_detail, name='setting-detail'),

    # AuditLog endpoints
    path('audit-logs/', audit_log_list, name='audit-log-list'),
    path('audit-logs/export/', audit_log_export, name='audit-log-export'),
    path('audit-logs/<int:pk>/', audit_log_detail, name='audit-log-detail'),
]
