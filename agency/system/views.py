import logging
from datetime import timedelta

from django.contrib.auth.models import Group
from django.db.models import Count, Q
from django.db.models.functions import TruncDate
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response

from agency.claims.models import Claim
from agency.core.models import User
from agency.core.permissions import IsAdminRole
from agency.core.roles import ALL_ROLES
from agency.core.utils import create_audit_log, csv_response, get_client_ip, paginate
from agency.customers.models import Customer, Vehicle
from agency.dealers.models import Dealer
from agency.policies.models import Policy
from agency.support.models import Ticket
from .filters import FraudLogFilter, SystemLogFilter
from .models import CookieConsent, FraudDetectionLog, MaintenanceWindow, SystemLog
from .serializers import (
    CookieConsentSerializer, FraudDetectionLogSerializer, FraudReviewSerializer,
    MaintenanceActivateSerializer, MaintenanceStatusSerializer, SystemLogSerializer,
)

logger = logging.getLogger('agency.system')


# Maintenance views

@api_view(['GET'])
@permission_classes([AllowAny])
def maintenance_status(request):
    """Current maintenance window; an expired window reads as inactive"""
    window = MaintenanceWindow.load()
    return Response(MaintenanceStatusSerializer(window).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def maintenance_activate(request):
    serializer = MaintenanceActivateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    window = MaintenanceWindow.load()
    window.is_active = True
    window.affected_portals = sorted(set(serializer.validated_data['affected_portals']))
    window.message = serializer.validated_data['message']
    window.until = serializer.validated_data.get('until')
    window.activated_by = request.user
    window.activated_at = timezone.now()
    window.save()

    create_audit_log(request=request, action='maintenance_on', model_name='MaintenanceWindow', object_id=window.pk,
                     object_name='Maintenance', changes={'portals': window.affected_portals,
                                                         'until': window.until.isoformat() if window.until else None})
    logger.warning(f"Maintenance activated by {request.user.username} for {', '.join(window.affected_portals)}")
    return Response(MaintenanceStatusSerializer(window).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def maintenance_deactivate(request):
    window = MaintenanceWindow.load()
    window.is_active = False
    window.save()
    create_audit_log(request=request, action='maintenance_off', model_name='MaintenanceWindow',
                     object_id=window.pk, object_name='Maintenance')
    logger.info(f"Maintenance deactivated by {request.user.username}")
    return Response(MaintenanceStatusSerializer(window).data)


# GDPR views

@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def cookie_consent(request):
    """Read or record the cookie consent of the current user"""
    if request.method == 'GET':
        consent = CookieConsent.objects.filter(user=request.user).first()
        if consent is None:
            return Response({'necessary': True, 'analytics': False, 'marketing': False, 'accepted_at': None})
        return Response(CookieConsentSerializer(consent).data)

    consent = CookieConsent.objects.filter(user=request.user).first()
    serializer = CookieConsentSerializer(consent, data=request.data, partial=consent is not None)
    if serializer.is_valid():
        consent = serializer.save(user=request.user, necessary=True, ip_address=get_client_ip(request))
        return Response(CookieConsentSerializer(consent).data)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


# System log views

@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def system_log_list(request):
    queryset = SystemLogFilter(request.query_params, queryset=SystemLog.objects.all()).qs
    return paginate(request, queryset, SystemLogSerializer)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def system_log_export(request):
    """Download filtered system logs as CSV"""
    queryset = SystemLogFilter(request.query_params, queryset=SystemLog.objects.all()).qs
    rows = (
        [log.created_at.isoformat(), log.level, log.logger, log.module, log.message]
        for log in queryset.iterator()
    )
    return csv_response('system_logs.csv', ['Time', 'Level', 'Logger', 'Module', 'Message'], rows)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def system_usage(request):
    """Users by role, recent activity, entity counts and daily policy volume"""
    now = timezone.now()
    since = timezone.localdate() - timedelta(days=29)

    role_counts = dict(
        Group.objects.filter(name__in=ALL_ROLES).annotate(total=Count('user')).values_list('name', 'total')
    )
    users = User.objects.aggregate(
        total=Count('id'),
        active_24h=Count('id', filter=Q(last_login__gte=now - timedelta(hours=24))),
        active_7d=Count('id', filter=Q(last_login__gte=now - timedelta(days=7))),
    )
    per_day = (
        Policy.objects.filter(created_at__date__gte=since)
        .annotate(day=TruncDate('created_at'))
        .values('day')
        .annotate(count=Count('id'))
        .order_by('day')
    )

    return Response({
        'users_by_role': {role: role_counts.get(role, 0) for role in ALL_ROLES},
        'users': users,
        'entities': {
            'dealers': Dealer.objects.count(),
            'customers': Customer.objects.count(),
            'vehicles': Vehicle.objects.count(),
            'policies': Policy.objects.count(),
            'claims': Claim.objects.count(),
            'tickets': Ticket.objects.count(),
        },
        'policies_per_day': [{'date': row['day'], 'count': row['count']} for row in per_day],
    })


# Fraud views

@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def fraud_suspicious(request):
    """Fraud logs awaiting review, highest risk first"""
    queryset = FraudDetectionLog.objects.select_related('reviewed_by')
    if 'status' not in request.query_params:
        queryset = queryset.exclude(status=FraudDetectionLog.STATUS_REVIEWED)
    queryset = FraudLogFilter(request.query_params, queryset=queryset.order_by('-risk_score', '-created_at')).qs
    return paginate(request, queryset, FraudDetectionLogSerializer)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def fraud_review(request, pk):
    log = get_object_or_404(FraudDetectionLog, pk=pk)
    serializer = FraudReviewSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    log.decision = serializer.validated_data['decision']
    log.review_notes = serializer.validated_data['notes']
    log.status = FraudDetectionLog.STATUS_REVIEWED
    log.reviewed_by = request.user
    log.reviewed_at = timezone.now()
    log.save()
    create_audit_log(request=request, action='fraud_review', model_name='FraudDetectionLog', object_id=log.id,
                     object_name=log.transaction_id, changes={'decision': log.decision})
    return Response(FraudDetectionLogSerializer(log).data)
