import logging

from django.db import transaction
from django.db.models import Count, DecimalField, Q, Sum, Value
from django.db.models.functions import Coalesce
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from agency.core.accounts import create_account, reset_temporary_password
from agency.core.exceptions import InvalidTransition
from agency.core.filters import AuditLogFilter
from agency.core.models import AuditLog
from agency.core.permissions import IsAdminRole, IsObserver
from agency.core.roles import OBSERVER
from agency.core.scoping import get_observer_profile
from agency.core.serializers import AuditLogSerializer
from agency.core.utils import create_audit_log, get_date_range, paginate
from agency.dealers.serializers import DealerSerializer
from agency.notifications.services import notify
from agency.policies.models import Policy
from .filters import ObserverFilter, ObserverTaskFilter
from .models import Observer, ObserverTask
from .serializers import DealerAssignSerializer, ObserverSerializer, ObserverTaskSerializer, TaskStatusSerializer

logger = logging.getLogger('agency.observers')

ZERO = Value(0, output_field=DecimalField(max_digits=14, decimal_places=2))


def _current_observer(request):
    observer = get_observer_profile(request.user)
    if observer is None:
        return None, Response({'error': 'No observer is linked to this account.'}, status=status.HTTP_404_NOT_FOUND)
    return observer, None


# Observer administration

@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def observer_list_create(request):
    """List observers or create an observer together with its login"""
    if request.method == 'GET':
        queryset = Observer.objects.select_related('user').prefetch_related('dealers')
        queryset = ObserverFilter(request.query_params, queryset=queryset).qs
        return paginate(request, queryset, ObserverSerializer)

    serializer = ObserverSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    with transaction.atomic():
        observer = serializer.save()
        email = observer.email
        user, temporary_password = create_account(
            username=email.split('@')[0] if email else observer.name.replace(' ', '.'),
            role=OBSERVER, email=email, first_name=observer.name[:150], phone=observer.phone or None,
        )
        observer.user = user
        observer.save(update_fields=['user'])

    create_audit_log(request=request, action='create', model_name='Observer',
                     object_id=observer.id, object_name=observer.name)
    logger.info(f"Observer {observer.name} created by {request.user.username}")
    data = ObserverSerializer(observer).data
    data['temporary_password'] = temporary_password
    return Response(data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsAdminRole])
def observer_detail(request, pk):
    observer = get_object_or_404(Observer.objects.select_related('user'), pk=pk)

    if request.method == 'GET':
        return Response(ObserverSerializer(observer).data)

    if request.method in ('PUT', 'PATCH'):
        serializer = ObserverSerializer(observer, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            create_audit_log(request=request, action='update', model_name='Observer',
                             object_id=observer.id, object_name=observer.name, changes=request.data)
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    # DELETE
    with transaction.atomic():
        user = observer.user
        observer_id, observer_name = observer.id, observer.name
        observer.delete()
        if user is not None:
            user.delete()
    create_audit_log(request=request, action='delete', model_name='Observer',
                     object_id=observer_id, object_name=observer_name)
    return Response(status=status.HTTP_204_NO_CONTENT)


def _set_observer_active(request, pk, is_active):
    observer = get_object_or_404(Observer, pk=pk)
    with transaction.atomic():
        observer.is_active = is_active
        observer.save(update_fields=['is_active', 'updated_at'])
        if observer.user is not None:
            observer.user.is_active = is_active
            observer.user.save(update_fields=['is_active'])
    create_audit_log(request=request, action='activate' if is_active else 'deactivate',
                     model_name='Observer', object_id=observer.id, object_name=observer.name)
    return Response(ObserverSerializer(observer).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def observer_activate(request, pk):
    return _set_observer_active(request, pk, True)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def observer_deactivate(request, pk):
    return _set_observer_active(request, pk, False)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def observer_reset_password(request, pk):
    observer = get_object_or_404(Observer, pk=pk)
    if observer.user is None:
        return Response({'error': 'Observer has no login account.', 'code': 'NO_ACCOUNT'},
                        status=status.HTTP_400_BAD_REQUEST)
    password = reset_temporary_password(observer.user)
    create_audit_log(request=request, action='password_reset', model_name='Observer',
                     object_id=observer.id, object_name=observer.name)
    return Response({'username': observer.user.username, 'temporary_password': password})


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def observer_dealers(request, pk):
    """List or assign the dealers an observer monitors"""
    observer = get_object_or_404(Observer, pk=pk)

    if request.method == 'GET':
        return Response(DealerSerializer(observer.dealers.select_related('user'), many=True).data)

    serializer = DealerAssignSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    dealer = serializer.validated_data['dealer']
    observer.dealers.add(dealer)
    create_audit_log(request=request, action='assign_dealer', model_name='Observer', object_id=observer.id,
                     object_name=observer.name, changes={'dealer': dealer.id})
    return Response(ObserverSerializer(observer).data, status=status.HTTP_201_CREATED)


@api_view(['DELETE'])
@permission_classes([IsAuthenticated, IsAdminRole])
def observer_dealer_remove(request, pk, dealer_id):
    observer = get_object_or_404(Observer, pk=pk)
    dealer = get_object_or_404(observer.dealers.all(), pk=dealer_id)
    observer.dealers.remove(dealer)
    create_audit_log(request=request, action='unassign_dealer', model_name='Observer', object_id=observer.id,
                     object_name=observer.name, changes={'dealer': dealer.id})
    return Response(status=status.HTTP_204_NO_CONTENT)


# Task views

@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def task_list_create(request):
    """List observer tasks or assign a new one"""
    if request.method == 'GET':
        queryset = ObserverTask.objects.select_related('assigned_to', 'related_dealer')
        queryset = ObserverTaskFilter(request.query_params, queryset=queryset).qs
        return paginate(request, queryset, ObserverTaskSerializer)

    serializer = ObserverTaskSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    task = serializer.save(created_by=request.user)
    create_audit_log(request=request, action='create', model_name='ObserverTask',
                     object_id=task.id, object_name=task.title)
    if task.assigned_to.user_id:
        notify(task.assigned_to.user, 'New task assigned', task.title, link=f'/observer/tasks/{task.id}')
    return Response(ObserverTaskSerializer(task).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsAdminRole])
def task_detail(request, pk):
    task = get_object_or_404(ObserverTask.objects.select_related('assigned_to', 'related_dealer'), pk=pk)

    if request.method == 'GET':
        return Response(ObserverTaskSerializer(task).data)

    if request.method in ('PUT', 'PATCH'):
        serializer = ObserverTaskSerializer(task, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            create_audit_log(request=request, action='update', model_name='ObserverTask',
                             object_id=task.id, object_name=task.title, changes=request.data)
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    # DELETE
    task_id, task_title = task.id, task.title
    task.delete()
    create_audit_log(request=request, action='delete', model_name='ObserverTask',
                     object_id=task_id, object_name=task_title)
    return Response(status=status.HTTP_204_NO_CONTENT)


# Observer portal

@api_view(['GET'])
@permission_classes([IsAuthenticated, IsObserver])
def observer_dashboard(request):
    """Headline figures for the logged-in observer"""
    observer, error = _current_observer(request)
    if error:
        return error

    dealers = observer.dealers.all()
    policies = Policy.objects.filter(dealer__in=dealers)
    totals = policies.aggregate(
        total_policies=Count('id'),
        active_policies=Count('id', filter=Q(status=Policy.STATUS_ACTIVE)),
        pending_approvals=Count('id', filter=Q(status=Policy.STATUS_PENDING)),
        total_premium=Coalesce(Sum('premium', filter=Q(status__in=Policy.LIVE_STATUSES)), ZERO),
    )
    return Response({
        'observed_dealers': dealers.count(),
        'active_dealers': dealers.filter(is_active=True).count(),
        **totals,
        'pending_tasks': observer.tasks.exclude(status=ObserverTask.STATUS_COMPLETED).count(),
    })


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsObserver])
def observer_dealer_list(request):
    observer, error = _current_observer(request)
    if error:
        return error
    queryset = observer.dealers.select_related('user').annotate(customer_count=Count('customers', distinct=True))
    return paginate(request, queryset, DealerSerializer)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsObserver])
def observer_dealer_detail(request, pk):
    observer, error = _current_observer(request)
    if error:
        return error
    dealer = get_object_or_404(observer.dealers.select_related('user'), pk=pk)
    return Response(DealerSerializer(dealer).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsObserver])
def observer_task_list(request):
    observer, error = _current_observer(request)
    if error:
        return error
    queryset = observer.tasks.select_related('assigned_to', 'related_dealer')
    queryset = ObserverTaskFilter(request.query_params, queryset=queryset).qs
    return paginate(request, queryset, ObserverTaskSerializer)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsObserver])
def observer_task_status(request, pk):
    """Move an own task forward; completed tasks stay completed"""
    observer, error = _current_observer(request)
    if error:
        return error
    task = get_object_or_404(observer.tasks.all(), pk=pk)

    serializer = TaskStatusSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    new_status = serializer.validated_data['status']
    if task.status == ObserverTask.STATUS_COMPLETED and new_status != ObserverTask.STATUS_COMPLETED:
        raise InvalidTransition('Completed tasks cannot be reopened.')

    previous = task.status
    task.status = new_status
    if new_status == ObserverTask.STATUS_COMPLETED and task.completed_at is None:
        task.completed_at = timezone.now()
    task.save(update_fields=['status', 'completed_at', 'updated_at'])
    create_audit_log(request=request, action='task_status', model_name='ObserverTask', object_id=task.id,
                     object_name=task.title, changes={'from': previous, 'to': new_status})

    if task.created_by_id and previous != new_status:
        notify(task.created_by, 'Task status updated', f'{observer.name} set "{task.title}" to {task.get_status_display()}.',
               type='success' if new_status == ObserverTask.STATUS_COMPLETED else 'info')
    return Response(ObserverTaskSerializer(task).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsObserver])
def observer_activity_logs(request):
    """Audit trail produced by the logins of observed dealers"""
    observer, error = _current_observer(request)
    if error:
        return error
    user_ids = observer.dealers.exclude(user__isnull=True).values_list('user_id', flat=True)
    queryset = AuditLog.objects.select_related('user').filter(user_id__in=user_ids)
    queryset = AuditLogFilter(request.query_params, queryset=queryset).qs
    return paginate(request, queryset, AuditLogSerializer)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsObserver])
def observer_reports(request):
    """Policies, premium and commission per observed dealer in a date range"""
    observer, error = _current_observer(request)
    if error:
        return error
    date_from, date_to = get_date_range(request)
    in_range = Q(policies__created_at__date__gte=date_from, policies__created_at__date__lte=date_to)
    live = in_range & Q(policies__status__in=Policy.LIVE_STATUSES)

    rows = observer.dealers.annotate(
        policy_count=Count('policies', filter=in_range),
        premium=Coalesce(Sum('policies__premium', filter=live), ZERO),
        dealer_commission=Coalesce(Sum('policies__dealer_commission', filter=live), ZERO),
        observer_commission=Coalesce(Sum('policies__observer_commission', filter=live), ZERO),
    ).order_by('name')

    return Response({
        'date_from': date_from,
        'date_to': date_to,
        'dealers': [
            {
                'dealer_id': dealer.id,
                'dealer_name': dealer.name,
                'policy_count': dealer.policy_count,
                'premium': dealer.premium,
                'dealer_commission': dealer.dealer_commission,
                'observer_commission': dealer.observer_commission,
            }
            for dealer in rows
        ],
    })
