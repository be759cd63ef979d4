from decimal import Decimal

from django.db import models
from agency.core.models import User
from agency.customers.models import Customer
from agency.policies.models import Policy

MAX_ATTACHMENTS = 10


class Claim(models.Model):
    """Damage or loss reported by a customer against a policy"""
    TYPE_CHOICES = [
        ('Accident', 'Accident'),
        ('Theft', 'Theft'),
        ('Fire', 'Fire'),
        ('Glass', 'Glass'),
        ('NaturalDisaster', 'Natural Disaster'),
        ('Other', 'Other'),
    ]

    STATUS_PENDING = 'Pending'
    STATUS_IN_REVIEW = 'InReview'
    STATUS_APPROVED = 'Approved'
    STATUS_REJECTED = 'Rejected'
    STATUS_CLOSED = 'Closed'

    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_IN_REVIEW, 'In Review'),
        (STATUS_APPROVED, 'Approved'),
        (STATUS_REJECTED, 'Rejected'),
        (STATUS_CLOSED, 'Closed'),
    ]

    # Allowed status moves
    TRANSITIONS = {
        STATUS_PENDING: [STATUS_IN_REVIEW],
        STATUS_IN_REVIEW: [STATUS_APPROVED, STATUS_REJECTED],
        STATUS_APPROVED: [STATUS_CLOSED],
        STATUS_REJECTED: [STATUS_CLOSED],
        STATUS_CLOSED: [],
    }

    policy = models.ForeignKey(Policy, on_delete=models.PROTECT, related_name='claims')
    customer = models.ForeignKey(Customer, on_delete=models.PROTECT, related_name='claims')
    claim_type = models.CharField(max_length=20, choices=TYPE_CHOICES)
    description = models.TextField()
    claim_date = models.DateField()
    incident_location = models.CharField(max_length=255, blank=True)
    estimated_damage = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='claims')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"Claim #{self.id} on {self.policy.policy_number}"

    def can_transition_to(self, status):
        return status in self.TRANSITIONS.get(self.status, [])

    class Meta:
        db_table = 'claims'
        ordering = ['-created_at']


class ClaimAttachment(models.Model):
    """Photos and documents supporting a claim"""
    claim = models.ForeignKey(Claim, on_delete=models.CASCADE, related_name='attachments')
    file = models.FileField(upload_to='claim_attachments/%Y/%m/')
    uploaded_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='claim_attachments')
    uploaded_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'claim_attachments'
        ordering = ['uploaded_at']


class ClaimNote(models.Model):
    """Staff notes on a claim; internal notes are hidden from the customer"""
    claim = models.ForeignKey(Claim, on_delete=models.CASCADE, related_name='notes')
    author = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, related_name='claim_notes')
    note = models.TextField()
    is_internal = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'claim_notes'
        ordering = ['created_at']
