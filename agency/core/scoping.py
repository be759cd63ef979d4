"""Row-level scoping of querysets by role"""
from django.core.exceptions import ObjectDoesNotExist

from .roles import ADMIN_ROLES, CUSTOMER, DEALER, OBSERVER, has_role


def get_dealer_profile(user):
    try:
        return user.dealer_profile
    except (AttributeError, ObjectDoesNotExist):
        return None


def get_observer_profile(user):
    try:
        return user.observer_profile
    except (AttributeError, ObjectDoesNotExist):
        return None


def get_customer_profile(user):
    try:
        return user.customer_profile
    except (AttributeError, ObjectDoesNotExist):
        return None


def scope_queryset(user, queryset, dealer_field='dealer', customer_field='customer'):
    """
    Restrict ``queryset`` to the rows ``user`` may see.

    Admins see everything, dealers their own dealer's rows, observers the rows
    of their assigned dealers and customers their own rows. ``dealer_field`` and
    ``customer_field`` are lookup paths from the queried model; pass ``None``
    when the model has no such relation.
    """
    if has_role(user, *ADMIN_ROLES):
        return queryset

    if has_role(user, DEALER) and dealer_field:
        dealer = get_dealer_profile(user)
        if dealer is not None:
            return queryset.filter(**{dealer_field: dealer.pk})

    if has_role(user, OBSERVER) and dealer_field:
        observer = get_observer_profile(user)
        if observer is not None:
            return queryset.filter(**{f'{dealer_field}__in': observer.dealers.values_list('pk', flat=True)})

    if has_role(user, CUSTOMER) and customer_field:
        customer = get_customer_profile(user)
        if customer is not None:
            return queryset.filter(**{customer_field: customer.pk})

    return queryset.none()
