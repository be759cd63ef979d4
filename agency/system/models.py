from django.db import models
from django.utils import timezone
from agency.core.models import User


class MaintenanceWindow(models.Model):
    """Singleton row describing the current maintenance window"""
    SINGLETON_ID = 1

    is_active = models.BooleanField(default=False)
    affected_portals = models.JSONField(default=list, blank=True)
    message = models.TextField(blank=True)
    until = models.DateTimeField(null=True, blank=True)
    activated_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='maintenance_windows')
    activated_at = models.DateTimeField(null=True, blank=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return 'Maintenance (active)' if self.is_active else 'Maintenance (inactive)'

    @classmethod
    def load(cls):
        window, _ = cls.objects.get_or_create(pk=cls.SINGLETON_ID)
        return window

    def save(self, *args, **kwargs):
        self.pk = self.SINGLETON_ID
        super().save(*args, **kwargs)

    @property
    def in_effect(self):
        """Active and not past ``until``."""
        return self.is_active and (self.until is None or self.until > timezone.now())

    def affects(self, portal):
        return self.in_effect and portal in (self.affected_portals or [])

    class Meta:
        db_table = 'maintenance_windows'


class CookieConsent(models.Model):
    """Cookie consent choices of a user"""
    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name='cookie_consent')
    necessary = models.BooleanField(default=True)
    analytics = models.BooleanField(default=False)
    marketing = models.BooleanField(default=False)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    accepted_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Consent of {self.user.username}"

    class Meta:
        db_table = 'cookie_consents'


class SystemLog(models.Model):
    """Warnings and errors written by the application loggers"""
    level = models.CharField(max_length=20)
    logger = models.CharField(max_length=200)
    message = models.TextField()
    module = models.CharField(max_length=200, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"[{self.level}] {self.logger}: {self.message[:50]}"

    class Meta:
        db_table = 'system_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['-created_at'], name='system_logs_created_idx'),
            models.Index(fields=['level'], name='system_logs_level_idx'),
        ]


class FraudDetectionLog(models.Model):
    """Risk assessment recorded for a suspicious transaction"""
    STATUS_NEW = 'New'
    STATUS_SUSPICIOUS = 'Suspicious'
    STATUS_REVIEWED = 'Reviewed'

    STATUS_CHOICES = [
        (STATUS_NEW, 'New'),
        (STATUS_SUSPICIOUS, 'Suspicious'),
        (STATUS_REVIEWED, 'Reviewed'),
    ]

    DECISION_CHOICES = [
        ('approve', 'Approve'),
        ('reject', 'Reject'),
    ]

    transaction_id = models.CharField(max_length=100)
    entity_name = models.CharField(max_length=100)
    entity_id = models.CharField(max_length=100)
    risk_score = models.PositiveSmallIntegerField()
    reasons = models.JSONField(default=list, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_NEW)
    decision = models.CharField(max_length=20, choices=DECISION_CHOICES, blank=True)
    review_notes = models.TextField(blank=True)
    reviewed_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='fraud_reviews')
    reviewed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.entity_name} {self.transaction_id} ({self.risk_score})"

    class Meta:
        db_table = 'fraud_detection_logs'
        ordering = ['-created_at']
