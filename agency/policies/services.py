"""
Policy creation, editing and the approval workflow
"""
import logging

from django.db import transaction
from django.utils import timezone

from agency.core.exceptions import DomainError, InvalidTransition
from agency.core.utils import create_audit_log
from agency.notifications.services import notify
from agency.pricing.services import calculate_premium, price_with_premium, resolve_policy_type
from agency.system.fraud import evaluate_policy
from .models import Policy
from .numbering import reserve_for_dealer

logger = logging.getLogger('agency.policies')

# Statuses each workflow action may start from
TRANSITIONS = {
    'submit': [Policy.STATUS_DRAFT],
    'approve': [Policy.STATUS_PENDING],
    'reject': [Policy.STATUS_PENDING],
    'cancel': [Policy.STATUS_APPROVED, Policy.STATUS_ACTIVE],
    'activate': [Policy.STATUS_APPROVED],
    'expire': [Policy.STATUS_ACTIVE],
}

EDITABLE_STATUSES = [Policy.STATUS_DRAFT]
DELETABLE_STATUSES = [Policy.STATUS_DRAFT, Policy.STATUS_REJECTED]


def _check_transition(policy, action):
    allowed = TRANSITIONS[action]
    if policy.status not in allowed:
        raise InvalidTransition(
            f'Cannot {action} a policy in status {policy.status}; expected {" or ".join(allowed)}.'
        )


def _validate_parties(dealer, customer, vehicle, start_date, end_date):
    if customer.dealer_id != dealer.id:
        raise DomainError('Customer does not belong to this dealer.', code='CUSTOMER_DEALER_MISMATCH')
    if vehicle.customer_id != customer.id:
        raise DomainError('Vehicle does not belong to this customer.', code='VEHICLE_CUSTOMER_MISMATCH')
    if not vehicle.is_active:
        raise DomainError('Vehicle is not active.', code='VEHICLE_INACTIVE')
    if end_date <= start_date:
        raise DomainError('End date must be after start date.', code='INVALID_DATES')


def _price(policy_type, start_date, end_date, currency=None, premium=None):
    calculation = calculate_premium(policy_type, start_date, end_date=end_date, currency=currency)
    list_price = calculation['base_premium']
    if premium is not None:
        calculation = price_with_premium(calculation, premium)
    return calculation, list_price


def _apply_price(policy, calculation):
    price_list = calculation['price_list']
    policy.price_list = price_list
    policy.currency = price_list.currency
    policy.premium = calculation['base_premium']
    policy.tax = calculation['tax']
    policy.total = calculation['total']
    policy.dealer_commission = calculation['dealer_commission']
    policy.observer_commission = calculation['observer_commission']
    policy.admin_commission = calculation['admin_commission']


def _recipients(policy):
    users = []
    if policy.dealer.user_id:
        users.append(policy.dealer.user)
    if policy.customer.user_id:
        users.append(policy.customer.user)
    return users


def _notify_parties(policy, title, message, type='info'):
    for user in _recipients(policy):
        notify(user, title, message, type=type, link=f'/policies/{policy.id}')


def create_policy(*, dealer, customer, vehicle, policy_type, start_date, end_date,
                  currency=None, premium=None, notes='', user=None, request=None):
    """
    Create a draft policy.

    Everything happens in one transaction: validation, pricing, number
    reservation from the dealer's series and fraud scoring.

    Raises:
        DomainError: ``POLICY_TYPE_NOT_FOUND``, ``NO_ACTIVE_SERIES``,
            ``PREMIUM_OUT_OF_RANGE`` and the pricing errors
    """
    _validate_parties(dealer, customer, vehicle, start_date, end_date)
    policy_type = resolve_policy_type(policy_type)

    with transaction.atomic():
        calculation, list_price = _price(policy_type, start_date, end_date, currency, premium)
        series, _, policy_number = reserve_for_dealer(dealer)

        policy = Policy(
            policy_number=policy_number,
            series=series,
            dealer=dealer,
            customer=customer,
            vehicle=vehicle,
            policy_type=policy_type,
            start_date=start_date,
            end_date=end_date,
            notes=notes or '',
            status=Policy.STATUS_DRAFT,
            created_by=user,
        )
        _apply_price(policy, calculation)
        policy.save()

        create_audit_log(request=request, user=user, action='series_allocate', model_name='PolicySeries',
                         object_id=series.id, object_name=policy_number)
        create_audit_log(request=request, user=user, action='create', model_name='Policy',
                         object_id=policy.id, object_name=policy_number,
                         changes={'premium': str(policy.premium), 'total': str(policy.total)})
        evaluate_policy(policy, list_price=list_price)

    logger.info(f"Policy {policy_number} created for dealer {dealer.code}")
    return policy


def create_policies(items, *, user=None, request=None):
    """
    Create one draft policy per ``create_policy`` kwargs dict in ``items``.

    All or nothing: a failing item rolls back the policies, numbers and audit
    rows of the whole batch. Its ``DomainError`` message is prefixed with the
    item position.
    """
    policies = []
    with transaction.atomic():
        for position, kwargs in enumerate(items, start=1):
            try:
                policies.append(create_policy(**kwargs, user=user, request=request))
            except DomainError as e:
                e.message = f'Policy {position}: {e.message}'
                raise
    logger.info(f"Batch of {len(policies)} policies created")
    return policies


def update_policy(policy, *, user=None, request=None, **changes):
    """
    Edit a draft policy; the price is recalculated.

    Accepts ``start_date``, ``end_date``, ``policy_type``, ``vehicle``, ``premium`` and ``notes``.
    """
    if policy.status not in EDITABLE_STATUSES:
        raise InvalidTransition(f'Only draft policies can be edited (status is {policy.status}).')

    start_date = changes.get('start_date', policy.start_date)
    end_date = changes.get('end_date', policy.end_date)
    vehicle = changes.get('vehicle', policy.vehicle)
    policy_type = resolve_policy_type(changes.get('policy_type', policy.policy_type))
    _validate_parties(policy.dealer, policy.customer, vehicle, start_date, end_date)

    premium = changes.get('premium')
    with transaction.atomic():
        calculation, _ = _price(policy_type, start_date, end_date, policy.currency, premium)
        policy.start_date = start_date
        policy.end_date = end_date
        policy.vehicle = vehicle
        policy.policy_type = policy_type
        if 'notes' in changes:
            policy.notes = changes['notes'] or ''
        _apply_price(policy, calculation)
        policy.save()
        create_audit_log(request=request, user=user, action='update', model_name='Policy',
                         object_id=policy.id, object_name=policy.policy_number,
                         changes={key: str(value) for key, value in changes.items()})
    return policy


def delete_policy(policy, *, user=None, request=None):
    if policy.status not in DELETABLE_STATUSES:
        raise InvalidTransition(f'Only draft or rejected policies can be deleted (status is {policy.status}).')
    policy_id, number = policy.id, policy.policy_number
    policy.delete()
    create_audit_log(request=request, user=user, action='delete', model_name='Policy',
                     object_id=policy_id, object_name=number)


def submit_policy(policy, *, user=None, request=None):
    """Draft -> PendingApproval"""
    with transaction.atomic():
        policy = Policy.objects.select_for_update().get(pk=policy.pk)
        _check_transition(policy, 'submit')
        policy.status = Policy.STATUS_PENDING
        policy.submitted_at = timezone.now()
        policy.save(update_fields=['status', 'submitted_at', 'updated_at'])
        create_audit_log(request=request, user=user, action='policy_submit', model_name='Policy',
                         object_id=policy.id, object_name=policy.policy_number)
    _notify_parties(policy, 'Policy submitted', f'Policy {policy.policy_number} was submitted for approval.')
    return policy


def approve_policy(policy, *, user=None, request=None):
    """PendingApproval -> Active (start reached) or Approved"""
    today = timezone.localdate()
    with transaction.atomic():
        policy = Policy.objects.select_for_update().get(pk=policy.pk)
        _check_transition(policy, 'approve')
        policy.status = Policy.STATUS_ACTIVE if policy.start_date <= today else Policy.STATUS_APPROVED
        policy.approved_at = timezone.now()
        policy.approved_by = user
        policy.save(update_fields=['status', 'approved_at', 'approved_by', 'updated_at'])
        create_audit_log(request=request, user=user, action='policy_approve', model_name='Policy',
                         object_id=policy.id, object_name=policy.policy_number, changes={'status': policy.status})
    _notify_parties(policy, 'Policy approved', f'Policy {policy.policy_number} was approved.', type='success')
    return policy


def reject_policy(policy, reason, *, user=None, request=None):
    """PendingApproval -> Rejected; a reason is required"""
    reason = (reason or '').strip()
    if not reason:
        raise DomainError('A rejection reason is required.', code='REASON_REQUIRED')
    with transaction.atomic():
        policy = Policy.objects.select_for_update().get(pk=policy.pk)
        _check_transition(policy, 'reject')
        policy.status = Policy.STATUS_REJECTED
        policy.rejection_reason = reason
        policy.save(update_fields=['status', 'rejection_reason', 'updated_at'])
        create_audit_log(request=request, user=user, action='policy_reject', model_name='Policy',
                         object_id=policy.id, object_name=policy.policy_number, changes={'reason': reason})
    _notify_parties(policy, 'Policy rejected', f'Policy {policy.policy_number} was rejected: {reason}', type='error')
    return policy


def cancel_policy(policy, reason='', *, user=None, request=None):
    """Approved or Active -> Cancelled"""
    with transaction.atomic():
        policy = Policy.objects.select_for_update().get(pk=policy.pk)
        _check_transition(policy, 'cancel')
        policy.status = Policy.STATUS_CANCELLED
        policy.cancellation_reason = (reason or '').strip()
        policy.cancelled_at = timezone.now()
        policy.save(update_fields=['status', 'cancellation_reason', 'cancelled_at', 'updated_at'])
        create_audit_log(request=request, user=user, action='policy_cancel', model_name='Policy',
                         object_id=policy.id, object_name=policy.policy_number,
                         changes={'reason': policy.cancellation_reason})
    _notify_parties(policy, 'Policy cancelled', f'Policy {policy.policy_number} was cancelled.', type='warning')
    return policy


def refresh_policy_statuses(today=None):
    """
    Apply the date-driven moves: Approved -> Active once the start date is
    reached, Active -> Expired once the end date has passed.

    Returns ``(activated, expired)`` counts.
    """
    today = today or timezone.localdate()
    activated = 0
    expired = 0

    with transaction.atomic():
        for policy in Policy.objects.select_for_update().filter(status=Policy.STATUS_APPROVED, start_date__lte=today):
            policy.status = Policy.STATUS_ACTIVE
            policy.save(update_fields=['status', 'updated_at'])
            activated += 1

        for policy in Policy.objects.select_for_update().filter(status=Policy.STATUS_ACTIVE, end_date__lt=today):
            policy.status = Policy.STATUS_EXPIRED
            policy.save(update_fields=['status', 'updated_at'])
            create_audit_log(action='policy_expire', model_name='Policy',
                             object_id=policy.id, object_name=policy.policy_number)
            expired += 1

    logger.info(f"Policy status refresh: {activated} activated, {expired} expired")
    return activated, expired
