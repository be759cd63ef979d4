import logging

from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from agency.core.permissions import IsAdminRole, IsCustomer, IsDealer, RolePermission
from agency.core.roles import ADMIN_ROLES, DEALER, OBSERVER
from agency.core.scoping import get_customer_profile, get_dealer_profile, scope_queryset
from agency.core.utils import csv_response, get_date_range
from agency.dealers.models import Dealer
from . import services

logger = logging.getLogger('agency.reports')

EXPORTABLE_REPORTS = ('policies', 'financial', 'dealer-performance')


class CanViewReports(RolePermission):
    roles = tuple(ADMIN_ROLES) + (DEALER, OBSERVER)


# Dashboard views

@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def admin_dashboard(request):
    """Headline KPIs for administrators"""
    return Response(services.build_admin_dashboard(timezone.localdate()))


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsDealer])
def dealer_dashboard(request):
    """Headline KPIs for the logged-in dealer"""
    dealer = get_dealer_profile(request.user)
    if dealer is None:
        return Response({'error': 'No dealer is linked to this account.'}, status=status.HTTP_404_NOT_FOUND)
    return Response(services.build_dealer_dashboard(dealer.pk, timezone.localdate()))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def dashboard_charts(request):
    """Monthly volume and distributions over the rows the user can see"""
    return Response(services.build_charts(services.scope_for(request.user), timezone.localdate()))


# Report views

@api_view(['GET'])
@permission_classes([IsAuthenticated, CanViewReports])
def policy_report(request):
    date_from, date_to = get_date_range(request)
    return Response(services.build_policy_report(services.scope_for(request.user), date_from, date_to))


@api_view(['GET'])
@permission_classes([IsAuthenticated, CanViewReports])
def financial_report(request):
    date_from, date_to = get_date_range(request)
    return Response(services.build_financial_report(services.scope_for(request.user), date_from, date_to))


@api_view(['GET'])
@permission_classes([IsAuthenticated, CanViewReports])
def dealer_performance_report(request):
    date_from, date_to = get_date_range(request)
    return Response(services.build_dealer_performance(services.scope_for(request.user), date_from, date_to))


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsCustomer])
def customer_report(request):
    """Summary of the customer's own policies and claims"""
    customer = get_customer_profile(request.user)
    if customer is None:
        return Response({'error': 'No customer is linked to this account.'}, status=status.HTTP_404_NOT_FOUND)
    date_from, date_to = get_date_range(request)
    return Response(services.build_customer_report(customer.pk, date_from, date_to))


@api_view(['GET'])
@permission_classes([IsAuthenticated, CanViewReports])
def dealer_performance(request, dealer_id):
    """Performance of one dealer: status counts, revenue and a 30 day trend"""
    dealers = scope_queryset(request.user, Dealer.objects.all(), dealer_field='pk', customer_field=None)
    dealer = get_object_or_404(dealers, pk=dealer_id)
    data = services.build_dealer_detail_performance(dealer.pk, timezone.localdate())
    return Response({**data, 'dealer_name': dealer.name})


@api_view(['GET'])
@permission_classes([IsAuthenticated, CanViewReports])
def report_export(request):
    """Download a report as CSV"""
    report = request.query_params.get('report', 'policies')
    if report not in EXPORTABLE_REPORTS:
        return Response({'error': f"Unknown report '{report}'. Use one of: {', '.join(EXPORTABLE_REPORTS)}."},
                        status=status.HTTP_400_BAD_REQUEST)

    scope = services.scope_for(request.user)
    date_from, date_to = get_date_range(request)
    filename = f'{report}_{date_from.isoformat()}_{date_to.isoformat()}.csv'
    logger.info(f"Report export '{report}' by {request.user.username} ({date_from} - {date_to})")

    if report == 'policies':
        policies = services.scoped_policies(scope).filter(
            created_at__date__gte=date_from, created_at__date__lte=date_to,
        ).select_related('dealer', 'customer', 'vehicle', 'policy_type', 'currency').order_by('created_at')
        rows = (
            [p.policy_number, p.dealer.name, p.customer.full_name, p.vehicle.plate_number, p.policy_type.code,
             p.status, p.start_date.isoformat(), p.end_date.isoformat(), p.premium, p.tax, p.total, p.currency.code]
            for p in policies.iterator()
        )
        header = ['Policy Number', 'Dealer', 'Customer', 'Plate', 'Type', 'Status', 'Start', 'End',
                  'Premium', 'Tax', 'Total', 'Currency']
        return csv_response(filename, header, rows)

    if report == 'financial':
        data = services.build_financial_report(scope, date_from, date_to)
        header = ['Month', 'Policies', 'Premium', 'Tax', 'Total', 'Dealer Commission',
                  'Observer Commission', 'Admin Commission']
        rows = (
            [row['month'], row['policies'], row['premium'], row['tax'], row['total'],
             row['dealer_commission'], row['observer_commission'], row['admin_commission']]
            for row in data['monthly_breakdown']
        )
        return csv_response(filename, header, rows)

    data = services.build_dealer_performance(scope, date_from, date_to)
    header = ['Dealer', 'Code', 'Active', 'Policies', 'Live Policies', 'Premium', 'Commission']
    rows = (
        [row['dealer_name'], row['dealer_code'], row['is_active'], row['policies'], row['live_policies'],
         row['premium'], row['commission']]
        for row in data['dealers']
    )
    return csv_response(filename, header, rows)
