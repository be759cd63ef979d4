"""
Cache invalidation signals
Dashboard and report payloads are dropped when the underlying rows change
"""
import logging

from django.db import transaction
from django.db.models.signals import m2m_changed, post_delete, post_save
from django.dispatch import receiver

from agency.claims.models import Claim
from agency.core.cache_utils import invalidate_dashboard_cache
from agency.customers.models import Customer
from agency.dealers.models import Dealer
from agency.observers.models import Observer, ObserverTask
from agency.policies.models import Policy
from agency.support.models import Ticket

logger = logging.getLogger('agency.reports')

DASHBOARD_SOURCES = (Policy, Claim, Ticket, Customer, Dealer, ObserverTask)


def _schedule_invalidation(sender):
    try:
        transaction.on_commit(invalidate_dashboard_cache)
    except Exception as e:
        logger.warning(f"Error scheduling dashboard cache invalidation for {sender.__name__}: {e}")


@receiver([post_save, post_delete])
def invalidate_dashboards(sender, instance, **kwargs):
    """Invalidate dashboard caches after the change is committed"""
    if sender in DASHBOARD_SOURCES:
        _schedule_invalidation(sender)


@receiver(m2m_changed, sender=Observer.dealers.through)
def invalidate_on_assignment(sender, instance, action, **kwargs):
    # Observer scopes follow their dealer assignments
    if action in ('post_add', 'post_remove', 'post_clear'):
        _schedule_invalidation(Observer)
