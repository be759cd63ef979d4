from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    """Extended user model with additional fields"""
    phone = models.CharField(max_length=20, blank=True, null=True)
    must_change_password = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'users'


class Setting(models.Model):
    """System settings"""
    key = models.CharField(max_length=100, unique=True)
    value = models.TextField()
    description = models.TextField(blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.key

    class Meta:
        db_table = 'settings'


class AuditLog(models.Model):
    """Audit log for critical operations"""
    ACTION_CHOICES = [
        ('create', 'Create'),
        ('update', 'Update'),
        ('delete', 'Delete'),
        ('view', 'View'),
        ('login', 'Login'),
        ('password_change', 'Password Change'),
        ('password_reset', 'Password Reset'),
        ('activate', 'Activate'),
        ('deactivate', 'Deactivate'),
        ('role_change', 'Role Change'),
        ('policy_submit', 'Policy Submitted'),
        ('policy_approve', 'Policy Approved'),
        ('policy_reject', 'Policy Rejected'),
        ('policy_cancel', 'Policy Cancelled'),
        ('policy_expire', 'Policy Expired'),
        ('series_allocate', 'Series Number Allocated'),
        ('claim_status', 'Claim Status Changed'),
        ('ticket_status', 'Ticket Status Changed'),
        ('task_status', 'Task Status Changed'),
        ('maintenance_on', 'Maintenance Activated'),
        ('maintenance_off', 'Maintenance Deactivated'),
        ('fraud_review', 'Fraud Reviewed'),
        ('two_factor_enable', 'Two-Factor Enabled'),
        ('two_factor_disable', 'Two-Factor Disabled'),
    ]

    user = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='audit_logs')
    action = models.CharField(max_length=50, choices=ACTION_CHOICES)
    model_name = models.CharField(max_length=100)
    object_id = models.CharField(max_length=100)
    object_name = models.CharField(max_length=255, blank=True, null=True, help_text="Human-readable name of the object (e.g., policy number, dealer name)")
    changes = models.JSONField(default=dict, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['-created_at'], name='audit_logs_created_9f1c2e_idx'),
            models.Index(fields=['action'], name='audit_logs_action_4b7d1a_idx'),
            models.Index(fields=['model_name'], name='audit_logs_model_n_6e2f3b_idx'),
        ]


class TwoFactorDevice(models.Model):
    """TOTP secret and the pending e-mailed code of a user"""
    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='two_factor')
    secret = models.CharField(max_length=64, blank=True)
    is_enabled = models.BooleanField(default=False)
    confirmed_at = models.DateTimeField(null=True, blank=True)
    # Hashed with the password hashers; cleared once used
    email_code = models.CharField(max_length=128, blank=True)
    email_code_expires_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.user.username} ({'enabled' if self.is_enabled else 'disabled'})"

    class Meta:
        db_table = 'two_factor_devices'
