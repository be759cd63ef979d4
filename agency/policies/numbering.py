"""
Policy number reservation from dealer series
"""
import logging

from django.db import transaction
from rest_framework import status

from agency.core.exceptions import ConflictError, DomainError
from .models import PolicySeries

logger = logging.getLogger('agency.policies')


def reserve_number(series_id):
    """
    Reserve the next free number of a series.

    The series row is locked for the duration of the reservation; blacklisted
    numbers are skipped. Returns ``(series, number)``.

    Raises:
        ConflictError: ``SERIES_EXHAUSTED`` when no number is left
    """
    with transaction.atomic():
        series = PolicySeries.objects.select_for_update().get(pk=series_id)
        if not series.is_active:
            raise DomainError(f'Series {series.series} is not active.', code='SERIES_INACTIVE',
                              status_code=status.HTTP_409_CONFLICT)

        blacklisted = set(series.blacklisted_numbers or [])
        number = series.current_number
        while number <= series.end_number and number in blacklisted:
            number += 1
        if number > series.end_number:
            raise ConflictError(f'Series {series.series} is exhausted.', code='SERIES_EXHAUSTED')

        series.current_number = number + 1
        series.save(update_fields=['current_number', 'updated_at'])

    logger.info(f"Reserved number {number} from series {series.series} (id={series.id})")
    return series, number


def reserve_policy_number(series_id):
    """Reserve a number and format it, e.g. ``TRF-000042``."""
    series, number = reserve_number(series_id)
    return series, number, series.format_number(number)


def active_series_for_dealer(dealer):
    """Active series of ``dealer`` that still have numbers, oldest first."""
    candidates = PolicySeries.objects.filter(dealer=dealer, is_active=True).order_by('created_at', 'id')
    return [series for series in candidates if not series.is_exhausted]


def reserve_for_dealer(dealer):
    """
    Reserve a policy number from the first usable series of ``dealer``.

    Raises:
        ConflictError: ``NO_ACTIVE_SERIES`` when the dealer has no usable series
    """
    for series in active_series_for_dealer(dealer):
        try:
            return reserve_policy_number(series.id)
        except ConflictError:
            continue
    raise ConflictError(f'Dealer {dealer.code} has no active policy series with free numbers.', code='NO_ACTIVE_SERIES')
