"""
Premium calculation from price lists
"""
import logging
from decimal import Decimal, ROUND_HALF_UP

from django.db.models import Q
from rest_framework import status

from agency.core.exceptions import DomainError
from .models import Currency, PolicyType, PriceList, TIER_DAYS

logger = logging.getLogger('agency.pricing')

CENT = Decimal('0.01')
MIN_DURATION_DAYS = 1
MAX_DURATION_DAYS = max(TIER_DAYS)


def quantize_money(value):
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def resolve_policy_type(value):
    """Find an active policy type by id or code."""
    if isinstance(value, PolicyType):
        policy_type = value if value.is_active else None
    else:
        lookup = Q(code__iexact=str(value))
        if str(value).isdigit():
            lookup |= Q(pk=int(value))
        policy_type = PolicyType.objects.filter(lookup, is_active=True).first() if value not in (None, '') else None
    if policy_type is None:
        raise DomainError(f'Policy type not found: {value}', code='POLICY_TYPE_NOT_FOUND')
    return policy_type


def resolve_currency(value):
    """Find an active currency by id or code; None when no value is given."""
    if value in (None, ''):
        return None
    if isinstance(value, Currency):
        return value
    lookup = Q(code__iexact=str(value))
    if str(value).isdigit():
        lookup |= Q(pk=int(value))
    currency = Currency.objects.filter(lookup, is_active=True).first()
    if currency is None:
        raise DomainError(f'Currency not found: {value}', code='CURRENCY_NOT_FOUND')
    return currency


def get_active_price_list(policy_type, on_date, currency=None):
    """
    The active price list of ``policy_type`` whose window contains ``on_date``.

    Highest ``priority`` wins; the newest list wins on ties. Returns None when
    no list applies.
    """
    queryset = PriceList.objects.select_related('policy_type', 'currency').filter(
        policy_type=policy_type,
        is_active=True,
        start_date__lte=on_date,
        end_date__gte=on_date,
    )
    if currency is not None:
        queryset = queryset.filter(currency=currency)
    return queryset.order_by('-priority', '-created_at', '-id').first()


def get_duration_days(start_date, end_date=None, duration_days=None):
    if duration_days is not None:
        return int(duration_days)
    if end_date is None:
        raise DomainError('end_date or duration_days is required.', code='INVALID_DURATION')
    return (end_date - start_date).days


def select_tier(price_list, duration):
    """Smallest configured tier covering ``duration`` days."""
    for days in TIER_DAYS:
        if days >= duration and price_list.get_tier(days) is not None:
            return days
    raise DomainError(
        f'Price list "{price_list.name}" has no tier configured for {duration} days.',
        code='TIER_NOT_CONFIGURED',
    )


def _commission(base, rate):
    if rate is None:
        return Decimal('0.00')
    return quantize_money(base * rate)


def calculate_premium(policy_type, start_date, end_date=None, duration_days=None, currency=None):
    """
    Price a policy.

    Returns a dict with the chosen ``price_list`` instance, the tier and every
    money amount as a ``Decimal`` quantised to cents.

    Raises:
        DomainError: ``INVALID_DURATION``, ``PRICE_LIST_NOT_FOUND`` or ``TIER_NOT_CONFIGURED``
    """
    duration = get_duration_days(start_date, end_date, duration_days)
    if duration < MIN_DURATION_DAYS or duration > MAX_DURATION_DAYS:
        raise DomainError(
            f'Duration must be between {MIN_DURATION_DAYS} and {MAX_DURATION_DAYS} days (got {duration}).',
            code='INVALID_DURATION',
        )

    price_list = get_active_price_list(policy_type, start_date, currency)
    if price_list is None:
        raise DomainError(
            f'No active price list for {policy_type.code} on {start_date.isoformat()}.',
            code='PRICE_LIST_NOT_FOUND', status_code=status.HTTP_404_NOT_FOUND,
        )

    tier_days = select_tier(price_list, duration)
    price, min_price, max_price = price_list.get_tier(tier_days)

    base = quantize_money(price)
    tax = quantize_money(base * price_list.tax_rate)
    result = {
        'price_list': price_list,
        'duration_days': duration,
        'tier_days': tier_days,
        'base_premium': base,
        'min_premium': quantize_money(min_price) if min_price is not None else None,
        'max_premium': quantize_money(max_price) if max_price is not None else None,
        'tax_rate': price_list.tax_rate,
        'tax': tax,
        'total': base + tax,
        'currency': price_list.currency.code,
        'dealer_commission': _commission(base, price_list.dealer_commission_rate),
        'observer_commission': _commission(base, price_list.observer_commission_rate),
        'admin_commission': _commission(base, price_list.admin_commission_rate),
    }
    logger.debug(f"Priced {policy_type.code} for {duration} days with list {price_list.id}: {base}")
    return result


def price_with_premium(calculation, premium):
    """
    Re-price ``calculation`` for a premium chosen within the tier range.

    Raises:
        DomainError: ``PREMIUM_OUT_OF_RANGE`` when the premium is outside min/max
    """
    premium = quantize_money(premium)
    min_premium, max_premium = calculation['min_premium'], calculation['max_premium']
    if (min_premium is not None and premium < min_premium) or (max_premium is not None and premium > max_premium):
        raise DomainError(
            f'Premium {premium} is outside the allowed range {min_premium} - {max_premium}.',
            code='PREMIUM_OUT_OF_RANGE',
        )
    price_list = calculation['price_list']
    tax = quantize_money(premium * price_list.tax_rate)
    return dict(
        calculation,
        base_premium=premium,
        tax=tax,
        total=premium + tax,
        dealer_commission=_commission(premium, price_list.dealer_commission_rate),
        observer_commission=_commission(premium, price_list.observer_commission_rate),
        admin_commission=_commission(premium, price_list.admin_commission_rate),
    )
