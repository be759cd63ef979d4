import logging

from django.contrib.auth import get_user_model
from django.db import transaction
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from agency.core.permissions import IsAdminRole
from agency.core.utils import create_audit_log, paginate
from .filters import NotificationFilter
from .models import Notification, NotificationSetting
from .serializers import BroadcastSerializer, NotificationSerializer, NotificationSettingSerializer
from .services import notify_many

logger = logging.getLogger('agency.notifications')

User = get_user_model()


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def notification_list(request):
    """List the current user's notifications"""
    queryset = Notification.objects.filter(user=request.user).order_by('-created_at')
    queryset = NotificationFilter(request.query_params, queryset=queryset).qs
    return paginate(request, queryset, NotificationSerializer)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def unread_count(request):
    count = Notification.objects.filter(user=request.user, is_read=False).count()
    return Response({'count': count})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def mark_read(request, pk):
    """Mark one notification as read"""
    notification = get_object_or_404(Notification, pk=pk, user=request.user)
    if not notification.is_read:
        notification.is_read = True
        notification.read_at = timezone.now()
        notification.save(update_fields=['is_read', 'read_at'])
    return Response(NotificationSerializer(notification).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def mark_all_read(request):
    """Mark every unread notification of the current user as read"""
    updated = Notification.objects.filter(user=request.user, is_read=False).update(
        is_read=True, read_at=timezone.now()
    )
    return Response({'updated': updated})


@api_view(['GET', 'PUT', 'PATCH'])
@permission_classes([IsAuthenticated])
def notification_settings(request):
    """Read or update the current user's delivery preferences"""
    setting, _ = NotificationSetting.objects.get_or_create(
        user=request.user, defaults={'email_address': request.user.email or ''}
    )
    if request.method == 'GET':
        return Response(NotificationSettingSerializer(setting).data)
    serializer = NotificationSettingSerializer(setting, data=request.data, partial=True)
    if serializer.is_valid():
        serializer.save()
        return Response(serializer.data)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def broadcast(request):
    """Send a notification to every active user of a role"""
    serializer = BroadcastSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = serializer.validated_data

    users = User.objects.filter(is_active=True)
    if data['role'] != 'all':
        users = users.filter(groups__name=data['role'])

    with transaction.atomic():
        sent = notify_many(users.distinct(), data['title'], data['message'], type=data['type'], link=data['link'])

    create_audit_log(request=request, action='create', model_name='Notification', object_id='broadcast',
                     object_name=data['title'], changes={'role': data['role'], 'recipients': sent})
    logger.info(f"Broadcast '{data['title']}' sent to {sent} users with role {data['role']}")
    return Response({'sent': sent}, status=status.HTTP_201_CREATED)
