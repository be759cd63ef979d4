from decimal import Decimal

from django.db import models
from agency.core.models import User
from agency.customers.models import Customer, Vehicle
from agency.dealers.models import Dealer
from agency.pricing.models import Currency, PolicyType, PriceList

NEAR_DEPLETION_RATIO = Decimal('0.10')
NEAR_DEPLETION_COUNT = 50


class PolicySeries(models.Model):
    """Range of policy numbers issued to a dealer"""
    dealer = models.ForeignKey(Dealer, on_delete=models.PROTECT, null=True, blank=True, related_name='policy_series')
    series = models.CharField(max_length=10)
    start_number = models.PositiveIntegerField()
    end_number = models.PositiveIntegerField()
    current_number = models.PositiveIntegerField(help_text="Next number to issue")
    blacklisted_numbers = models.JSONField(default=list, blank=True)
    is_active = models.BooleanField(default=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='policy_series')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.series} {self.start_number}-{self.end_number}"

    def save(self, *args, **kwargs):
        if self.current_number is None:
            self.current_number = self.start_number
        super().save(*args, **kwargs)

    @property
    def total_numbers(self):
        return self.end_number - self.start_number + 1

    @property
    def used_numbers(self):
        return self.current_number - self.start_number

    @property
    def remaining_numbers(self):
        if self.current_number > self.end_number:
            return 0
        blacklisted_ahead = {n for n in self.blacklisted_numbers if self.current_number <= n <= self.end_number}
        return self.end_number - self.current_number + 1 - len(blacklisted_ahead)

    @property
    def is_exhausted(self):
        return self.remaining_numbers <= 0

    @property
    def is_near_depletion(self):
        remaining = self.remaining_numbers
        return remaining <= NEAR_DEPLETION_COUNT or Decimal(remaining) <= Decimal(self.total_numbers) * NEAR_DEPLETION_RATIO

    def format_number(self, number):
        """``SERIES-000123`` with the number padded to the width of ``end_number``."""
        return f"{self.series}-{str(number).zfill(len(str(self.end_number)))}"

    class Meta:
        db_table = 'policy_series'
        ordering = ['series', 'start_number']
        verbose_name_plural = 'policy series'


class Policy(models.Model):
    """Insurance policies and their approval workflow state"""
    STATUS_DRAFT = 'Draft'
    STATUS_PENDING = 'PendingApproval'
    STATUS_APPROVED = 'Approved'
    STATUS_ACTIVE = 'Active'
    STATUS_REJECTED = 'Rejected'
    STATUS_CANCELLED = 'Cancelled'
    STATUS_EXPIRED = 'Expired'

    STATUS_CHOICES = [
        (STATUS_DRAFT, 'Draft'),
        (STATUS_PENDING, 'Pending Approval'),
        (STATUS_APPROVED, 'Approved'),
        (STATUS_ACTIVE, 'Active'),
        (STATUS_REJECTED, 'Rejected'),
        (STATUS_CANCELLED, 'Cancelled'),
        (STATUS_EXPIRED, 'Expired'),
    ]

    # Statuses that count as sold business
    LIVE_STATUSES = [STATUS_APPROVED, STATUS_ACTIVE, STATUS_EXPIRED]

    policy_number = models.CharField(max_length=30, unique=True)
    series = models.ForeignKey(PolicySeries, on_delete=models.PROTECT, null=True, blank=True, related_name='policies')
    dealer = models.ForeignKey(Dealer, on_delete=models.PROTECT, related_name='policies')
    customer = models.ForeignKey(Customer, on_delete=models.PROTECT, related_name='policies')
    vehicle = models.ForeignKey(Vehicle, on_delete=models.PROTECT, related_name='policies')
    policy_type = models.ForeignKey(PolicyType, on_delete=models.PROTECT, related_name='policies')
    currency = models.ForeignKey(Currency, on_delete=models.PROTECT, related_name='policies')
    price_list = models.ForeignKey(PriceList, on_delete=models.PROTECT, null=True, blank=True, related_name='policies')
    start_date = models.DateField()
    end_date = models.DateField()
    premium = models.DecimalField(max_digits=12, decimal_places=2)
    tax = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    total = models.DecimalField(max_digits=12, decimal_places=2)
    dealer_commission = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    observer_commission = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    admin_commission = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_DRAFT)
    notes = models.TextField(blank=True)
    rejection_reason = models.TextField(blank=True)
    cancellation_reason = models.TextField(blank=True)
    submitted_at = models.DateTimeField(null=True, blank=True)
    approved_at = models.DateTimeField(null=True, blank=True)
    approved_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='approved_policies')
    cancelled_at = models.DateTimeField(null=True, blank=True)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='created_policies')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.policy_number

    @property
    def duration_days(self):
        return (self.end_date - self.start_date).days

    class Meta:
        db_table = 'policies'
        ordering = ['-created_at']
        verbose_name_plural = 'policies'
        indexes = [
            models.Index(fields=['status'], name='policies_status_idx'),
            models.Index(fields=['dealer', 'status'], name='policies_dealer_status_idx'),
            models.Index(fields=['start_date', 'end_date'], name='policies_dates_idx'),
        ]
