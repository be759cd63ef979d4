from decimal import Decimal

from django.db import models, transaction
from agency.core.models import User

# Duration tiers (days) a price list can price
TIER_DAYS = (1, 15, 30, 90, 365)


class PolicyType(models.Model):
    """Insurance products (traffic, comprehensive, ...)"""
    code = models.CharField(max_length=50, unique=True)
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'policy_types'
        ordering = ['name']


class Currency(models.Model):
    """Currencies premiums are priced in; exactly one is the default"""
    code = models.CharField(max_length=3, unique=True)
    name = models.CharField(max_length=100)
    symbol = models.CharField(max_length=10, blank=True)
    is_default = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.code

    def save(self, *args, **kwargs):
        with transaction.atomic():
            if not self.is_default and not Currency.objects.exclude(pk=self.pk).filter(is_default=True).exists():
                self.is_default = True
            super().save(*args, **kwargs)
            if self.is_default:
                Currency.objects.exclude(pk=self.pk).filter(is_default=True).update(is_default=False)

    class Meta:
        db_table = 'currencies'
        ordering = ['code']
        verbose_name_plural = 'currencies'


def _money_field(**kwargs):
    return models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True, **kwargs)


def _rate_field(**kwargs):
    return models.DecimalField(max_digits=5, decimal_places=4, **kwargs)


class PriceList(models.Model):
    """Premium table for a policy type and currency over a validity window"""
    policy_type = models.ForeignKey(PolicyType, on_delete=models.PROTECT, related_name='price_lists')
    currency = models.ForeignKey(Currency, on_delete=models.PROTECT, related_name='price_lists')
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    start_date = models.DateField()
    end_date = models.DateField()

    price_1d = _money_field()
    min_1d = _money_field()
    max_1d = _money_field()
    price_15d = _money_field()
    min_15d = _money_field()
    max_15d = _money_field()
    price_30d = _money_field()
    min_30d = _money_field()
    max_30d = _money_field()
    price_90d = _money_field()
    min_90d = _money_field()
    max_90d = _money_field()
    price_365d = _money_field()
    min_365d = _money_field()
    max_365d = _money_field()

    tax_rate = _rate_field(default=Decimal('0.0000'))
    dealer_commission_rate = _rate_field(null=True, blank=True)
    observer_commission_rate = _rate_field(null=True, blank=True)
    admin_commission_rate = _rate_field(null=True, blank=True)

    is_active = models.BooleanField(default=True)
    priority = models.PositiveIntegerField(default=0)
    created_by = models.ForeignKey(User, on_delete=models.SET_NULL, null=True, blank=True, related_name='price_lists')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    def get_tier(self, days):
        """Return ``(price, min, max)`` for a tier, or None when its price is not configured."""
        price = getattr(self, f'price_{days}d')
        if price is None:
            return None
        return price, getattr(self, f'min_{days}d'), getattr(self, f'max_{days}d')

    def configured_tiers(self):
        return [days for days in TIER_DAYS if getattr(self, f'price_{days}d') is not None]

    class Meta:
        db_table = 'price_lists'
        ordering = ['-priority', '-created_at']
        indexes = [
            models.Index(fields=['policy_type', 'is_active', 'start_date', 'end_date'], name='price_list_lookup_idx'),
        ]
