"""
Aggregations behind the dashboards and reports

Builders take a ``scope`` tuple instead of a user so their results can be
cached per scope and parameters.
"""
from datetime import date, timedelta
from decimal import Decimal

from django.db.models import Count, DecimalField, Exists, OuterRef, Q, Sum, Value
from django.db.models.functions import Coalesce, TruncDate, TruncMonth

from agency.claims.models import Claim
from agency.core.cache_utils import (
    DASHBOARD_CACHE_TTL, DASHBOARD_PREFIX, REPORTS_CACHE_TTL, REPORTS_PREFIX, cached_query,
)
from agency.core.roles import ADMIN_ROLES, CUSTOMER, DEALER, OBSERVER, has_role
from agency.core.scoping import get_customer_profile, get_dealer_profile, get_observer_profile
from agency.customers.models import Customer
from agency.dealers.models import Dealer
from agency.observers.models import ObserverTask
from agency.policies.models import Policy
from agency.support.models import Ticket

ZERO = Value(Decimal('0.00'), output_field=DecimalField(max_digits=14, decimal_places=2))
LIVE = Q(status__in=Policy.LIVE_STATUSES)


def money(value):
    return float(value or 0)


def scope_for(user):
    """Cache-friendly description of the rows ``user`` may report on."""
    if has_role(user, *ADMIN_ROLES):
        return ('all', None)
    if has_role(user, DEALER):
        dealer = get_dealer_profile(user)
        if dealer is not None:
            return ('dealer', dealer.pk)
    if has_role(user, OBSERVER):
        observer = get_observer_profile(user)
        if observer is not None:
            return ('observer', observer.pk)
    if has_role(user, CUSTOMER):
        customer = get_customer_profile(user)
        if customer is not None:
            return ('customer', customer.pk)
    return ('none', None)


def scoped_policies(scope):
    kind, pk = scope
    queryset = Policy.objects.all()
    if kind == 'all':
        return queryset
    if kind == 'dealer':
        return queryset.filter(dealer_id=pk)
    if kind == 'observer':
        return queryset.filter(dealer__observers__id=pk)
    if kind == 'customer':
        return queryset.filter(customer_id=pk)
    return queryset.none()


def scoped_dealers(scope):
    kind, pk = scope
    queryset = Dealer.objects.all()
    if kind == 'all':
        return queryset
    if kind == 'dealer':
        return queryset.filter(pk=pk)
    if kind == 'observer':
        return queryset.filter(observers__id=pk)
    return queryset.none()


def month_start(day, months_back=0):
    year, month = day.year, day.month - months_back
    while month <= 0:
        month += 12
        year -= 1
    return date(year, month, 1)


def _period(date_from, date_to):
    return {'from': date_from.isoformat(), 'to': date_to.isoformat()}


def _in_range(queryset, date_from, date_to):
    return queryset.filter(created_at__date__gte=date_from, created_at__date__lte=date_to)


def renewal_rate(policies, today):
    """Percent of policies ended in the last year whose vehicle got a later live policy."""
    ended = policies.filter(end_date__lt=today, end_date__gte=today - timedelta(days=365), status__in=Policy.LIVE_STATUSES)
    total = ended.count()
    if not total:
        return 0.0
    later = Policy.objects.filter(
        vehicle_id=OuterRef('vehicle_id'), start_date__gt=OuterRef('start_date'), status__in=Policy.LIVE_STATUSES,
    )
    renewed = ended.filter(Exists(later)).count()
    return round(renewed * 100 / total, 1)


# Dashboards

@cached_query(cache_ttl=DASHBOARD_CACHE_TTL, key_prefix=DASHBOARD_PREFIX)
def build_admin_dashboard(today):
    policies = Policy.objects.all()
    premium = policies.aggregate(
        total=Coalesce(Sum('premium', filter=LIVE), ZERO),
        month=Coalesce(Sum('premium', filter=LIVE & Q(created_at__date__gte=month_start(today))), ZERO),
    )
    return {
        'dealers': Dealer.objects.count(),
        'active_dealers': Dealer.objects.filter(is_active=True).count(),
        'customers': Customer.objects.count(),
        'policies': policies.count(),
        'active_policies': policies.filter(status=Policy.STATUS_ACTIVE).count(),
        'pending_approvals': policies.filter(status=Policy.STATUS_PENDING).count(),
        'total_premium': money(premium['total']),
        'month_premium': money(premium['month']),
        'open_tickets': Ticket.objects.filter(status__in=[Ticket.STATUS_OPEN, Ticket.STATUS_IN_PROGRESS]).count(),
        'pending_claims': Claim.objects.filter(status__in=[Claim.STATUS_PENDING, Claim.STATUS_IN_REVIEW]).count(),
    }


@cached_query(cache_ttl=DASHBOARD_CACHE_TTL, key_prefix=DASHBOARD_PREFIX)
def build_dealer_dashboard(dealer_id, today):
    policies = Policy.objects.filter(dealer_id=dealer_id)
    this_month = Q(created_at__date__gte=month_start(today))
    totals = policies.aggregate(
        revenue=Coalesce(Sum('premium', filter=LIVE), ZERO),
        month_commission=Coalesce(Sum('dealer_commission', filter=LIVE & this_month), ZERO),
    )
    return {
        'customers': Customer.objects.filter(dealer_id=dealer_id).count(),
        'active_policies': policies.filter(status=Policy.STATUS_ACTIVE).count(),
        'total_policies': policies.count(),
        'expiring_soon': policies.filter(
            status=Policy.STATUS_ACTIVE, end_date__gte=today, end_date__lte=today + timedelta(days=30),
        ).count(),
        'total_revenue': money(totals['revenue']),
        'month_commission': money(totals['month_commission']),
        'pending_tasks': ObserverTask.objects.filter(related_dealer_id=dealer_id).exclude(
            status=ObserverTask.STATUS_COMPLETED).count(),
        'month_policies': policies.filter(this_month).count(),
        'renewal_rate': renewal_rate(policies, today),
    }


@cached_query(cache_ttl=DASHBOARD_CACHE_TTL, key_prefix=DASHBOARD_PREFIX)
def build_charts(scope, today):
    policies = scoped_policies(scope)
    first_month = month_start(today, months_back=11)

    monthly = {
        (row['month'].year, row['month'].month): row
        for row in policies.filter(created_at__date__gte=first_month)
        .annotate(month=TruncMonth('created_at'))
        .values('month')
        .annotate(count=Count('id'), premium=Coalesce(Sum('premium', filter=LIVE), ZERO))
    }
    months = []
    for back in range(11, -1, -1):
        start = month_start(today, months_back=back)
        row = monthly.get((start.year, start.month), {})
        months.append({
            'month': start.strftime('%Y-%m'),
            'policies': row.get('count', 0),
            'premium': money(row.get('premium')),
        })

    return {
        'monthly': months,
        'status_distribution': list(policies.values('status').annotate(count=Count('id')).order_by('status')),
        'policy_type_distribution': list(
            policies.values('policy_type__code', 'policy_type__name').annotate(count=Count('id')).order_by('-count')
        ),
    }


# Reports

@cached_query(cache_ttl=REPORTS_CACHE_TTL, key_prefix=REPORTS_PREFIX)
def build_policy_report(scope, date_from, date_to):
    policies = _in_range(scoped_policies(scope), date_from, date_to)
    daily = (
        policies.annotate(date=TruncDate('created_at'))
        .values('date')
        .annotate(count=Count('id'))
        .order_by('date')
    )
    return {
        'period': _period(date_from, date_to),
        'summary': {
            'total': policies.count(),
            'by_status': {row['status']: row['count'] for row in policies.values('status').annotate(count=Count('id'))},
        },
        'by_policy_type': [
            {'code': row['policy_type__code'], 'name': row['policy_type__name'],
             'count': row['count'], 'premium': money(row['premium'])}
            for row in policies.values('policy_type__code', 'policy_type__name').annotate(
                count=Count('id'), premium=Coalesce(Sum('premium', filter=LIVE), ZERO)).order_by('-count')
        ],
        'daily_breakdown': [{'date': row['date'].isoformat(), 'count': row['count']} for row in daily],
    }


@cached_query(cache_ttl=REPORTS_CACHE_TTL, key_prefix=REPORTS_PREFIX)
def build_financial_report(scope, date_from, date_to):
    policies = _in_range(scoped_policies(scope), date_from, date_to).filter(LIVE)
    sums = dict(
        premium=Coalesce(Sum('premium'), ZERO),
        tax=Coalesce(Sum('tax'), ZERO),
        total=Coalesce(Sum('total'), ZERO),
        dealer_commission=Coalesce(Sum('dealer_commission'), ZERO),
        observer_commission=Coalesce(Sum('observer_commission'), ZERO),
        admin_commission=Coalesce(Sum('admin_commission'), ZERO),
    )
    totals = policies.aggregate(count=Count('id'), **sums)
    monthly = (
        policies.annotate(month=TruncMonth('created_at'))
        .values('month')
        .annotate(count=Count('id'), **sums)
        .order_by('month')
    )
    by_currency = policies.values('currency__code').annotate(count=Count('id'), **sums).order_by('currency__code')

    def _row(row):
        return {key: money(row[key]) for key in sums}

    return {
        'period': _period(date_from, date_to),
        'summary': {'policies': totals['count'], **_row(totals)},
        'by_currency': [{'currency': row['currency__code'], 'policies': row['count'], **_row(row)} for row in by_currency],
        'monthly_breakdown': [
            {'month': row['month'].strftime('%Y-%m'), 'policies': row['count'], **_row(row)} for row in monthly
        ],
    }


@cached_query(cache_ttl=REPORTS_CACHE_TTL, key_prefix=REPORTS_PREFIX)
def build_dealer_performance(scope, date_from, date_to):
    in_range = Q(policies__created_at__date__gte=date_from, policies__created_at__date__lte=date_to)
    live = in_range & Q(policies__status__in=Policy.LIVE_STATUSES)
    dealers = scoped_dealers(scope).annotate(
        policy_count=Count('policies', filter=in_range, distinct=True),
        live_count=Count('policies', filter=live, distinct=True),
        premium=Coalesce(Sum('policies__premium', filter=live), ZERO),
        commission=Coalesce(Sum('policies__dealer_commission', filter=live), ZERO),
    ).order_by('-premium', 'name')
    return {
        'period': _period(date_from, date_to),
        'dealers': [
            {
                'dealer_id': dealer.id,
                'dealer_name': dealer.name,
                'dealer_code': dealer.code,
                'is_active': dealer.is_active,
                'policies': dealer.policy_count,
                'live_policies': dealer.live_count,
                'premium': money(dealer.premium),
                'commission': money(dealer.commission),
            }
            for dealer in dealers
        ],
    }


@cached_query(cache_ttl=REPORTS_CACHE_TTL, key_prefix=REPORTS_PREFIX)
def build_dealer_detail_performance(dealer_id, today):
    policies = Policy.objects.filter(dealer_id=dealer_id)
    totals = policies.aggregate(
        premium=Coalesce(Sum('premium', filter=LIVE), ZERO),
        commission=Coalesce(Sum('dealer_commission', filter=LIVE), ZERO),
    )
    since = today - timedelta(days=29)
    trend = {
        row['date']: row
        for row in policies.filter(created_at__date__gte=since)
        .annotate(date=TruncDate('created_at'))
        .values('date')
        .annotate(count=Count('id'), premium=Coalesce(Sum('premium', filter=LIVE), ZERO))
    }
    return {
        'dealer_id': dealer_id,
        'policies_by_status': {row['status']: row['count'] for row in policies.values('status').annotate(count=Count('id'))},
        'total_policies': policies.count(),
        'premium': money(totals['premium']),
        'commission': money(totals['commission']),
        'customers': Customer.objects.filter(dealer_id=dealer_id).count(),
        'trend': [
            {
                'date': (since + timedelta(days=offset)).isoformat(),
                'policies': trend.get(since + timedelta(days=offset), {}).get('count', 0),
                'premium': money(trend.get(since + timedelta(days=offset), {}).get('premium')),
            }
            for offset in range(30)
        ],
    }


@cached_query(cache_ttl=REPORTS_CACHE_TTL, key_prefix=REPORTS_PREFIX)
def build_customer_report(customer_id, date_from, date_to):
    policies = Policy.objects.filter(customer_id=customer_id)
    claims = Claim.objects.filter(customer_id=customer_id)
    in_range = _in_range(policies, date_from, date_to)
    return {
        'period': _period(date_from, date_to),
        'policies': {
            'total': policies.count(),
            'active': policies.filter(status=Policy.STATUS_ACTIVE).count(),
            'in_period': in_range.count(),
            'premium_in_period': money(in_range.filter(LIVE).aggregate(total=Coalesce(Sum('total'), ZERO))['total']),
            'by_status': {row['status']: row['count'] for row in policies.values('status').annotate(count=Count('id'))},
        },
        'claims': {
            'total': claims.count(),
            'open': claims.filter(status__in=[Claim.STATUS_PENDING, Claim.STATUS_IN_REVIEW]).count(),
            'estimated_damage': money(claims.aggregate(total=Coalesce(Sum('estimated_damage'), ZERO))['total']),
            'by_status': {row['status']: row['count'] for row in claims.values('status').annotate(count=Count('id'))},
        },
    }
