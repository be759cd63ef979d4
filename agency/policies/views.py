import logging

from django.db.models import ProtectedError
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from agency.core.permissions import IsAdminOrDealer, IsAdminRole
from agency.core.roles import is_admin_user
from agency.core.scoping import get_dealer_profile, scope_queryset
from agency.core.utils import create_audit_log, paginate
from agency.customers.views import visible_customers, visible_vehicles
from agency.dealers.models import Dealer
from agency.pricing.services import resolve_currency
from . import services
from .filters import PolicyFilter, PolicySeriesFilter
from .models import Policy, PolicySeries
from .numbering import active_series_for_dealer, reserve_number, reserve_policy_number
from .serializers import (
    CancelSerializer, PolicyBatchCreateSerializer, PolicyCreateSerializer, PolicySerializer, PolicySeriesSerializer,
    PolicyUpdateSerializer, RejectSerializer, SeriesAssignDealerSerializer,
)

logger = logging.getLogger('agency.policies')


def visible_series(user):
    return scope_queryset(user, PolicySeries.objects.select_related('dealer'), dealer_field='dealer', customer_field=None)


def visible_policies(user):
    queryset = Policy.objects.select_related(
        'dealer', 'customer', 'vehicle', 'policy_type', 'currency', 'series', 'approved_by', 'created_by'
    )
    return scope_queryset(user, queryset, dealer_field='dealer', customer_field='customer')


def _forbidden(message):
    return Response({'error': message}, status=status.HTTP_403_FORBIDDEN)


def _owns_series(user, series):
    if is_admin_user(user):
        return True
    dealer = get_dealer_profile(user)
    return dealer is not None and series.dealer_id == dealer.id


# PolicySeries views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def series_list_create(request):
    """List policy series or create a new series"""
    if request.method == 'GET':
        queryset = PolicySeriesFilter(request.query_params, queryset=visible_series(request.user)).qs
        return paginate(request, queryset, PolicySeriesSerializer)

    if not is_admin_user(request.user):
        return _forbidden('Only administrators can create policy series.')
    serializer = PolicySeriesSerializer(data=request.data)
    if serializer.is_valid():
        series = serializer.save(created_by=request.user)
        create_audit_log(request=request, action='create', model_name='PolicySeries',
                         object_id=series.id, object_name=str(series))
        return Response(PolicySeriesSerializer(series).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def series_detail(request, pk):
    """Retrieve, update or delete a policy series"""
    series = get_object_or_404(visible_series(request.user), pk=pk)
    if request.method == 'GET':
        return Response(PolicySeriesSerializer(series).data)

    if not is_admin_user(request.user):
        return _forbidden('Only administrators can modify policy series.')
    if request.method in ('PUT', 'PATCH'):
        serializer = PolicySeriesSerializer(series, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            create_audit_log(request=request, action='update', model_name='PolicySeries',
                             object_id=series.id, object_name=str(series), changes=request.data)
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    try:
        series.delete()
    except ProtectedError:
        return Response({'error': 'Series has issued policies and cannot be deleted. Deactivate it instead.',
                         'code': 'SERIES_IN_USE'}, status=status.HTTP_409_CONFLICT)
    create_audit_log(request=request, action='delete', model_name='PolicySeries', object_id=pk, object_name=str(series))
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def dealer_policy_series(request, dealer_id):
    """All series of a dealer"""
    queryset = visible_series(request.user).filter(dealer_id=dealer_id)
    return Response(PolicySeriesSerializer(queryset, many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def dealer_active_series(request, dealer_id):
    """Active series of a dealer that still have free numbers"""
    dealers = scope_queryset(request.user, Dealer.objects.all(), dealer_field='pk', customer_field=None)
    dealer = get_object_or_404(dealers, pk=dealer_id)
    return Response(PolicySeriesSerializer(active_series_for_dealer(dealer), many=True).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminOrDealer])
def series_next_number(request, pk):
    """Reserve the next number of a series"""
    series = get_object_or_404(PolicySeries, pk=pk)
    if not _owns_series(request.user, series):
        return _forbidden('You can only use your own series.')
    series, number = reserve_number(series.id)
    create_audit_log(request=request, action='series_allocate', model_name='PolicySeries',
                     object_id=series.id, object_name=str(number))
    return Response({'series': series.series, 'number': number})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminOrDealer])
def series_full_number(request, pk):
    """Reserve the next number of a series and return the formatted policy number"""
    series = get_object_or_404(PolicySeries, pk=pk)
    if not _owns_series(request.user, series):
        return _forbidden('You can only use your own series.')
    series, number, policy_number = reserve_policy_number(series.id)
    create_audit_log(request=request, action='series_allocate', model_name='PolicySeries',
                     object_id=series.id, object_name=policy_number)
    return Response({'series': series.series, 'number': number, 'policy_number': policy_number})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def series_statistics(request, pk):
    """Usage statistics of a series"""
    series = get_object_or_404(visible_series(request.user), pk=pk)
    total = series.total_numbers
    used = series.used_numbers
    return Response({
        'id': series.id,
        'series': series.series,
        'total': total,
        'used': used,
        'remaining': series.remaining_numbers,
        'usage_percent': round(used * 100 / total, 2) if total else 0,
        'is_near_depletion': series.is_near_depletion,
        'is_exhausted': series.is_exhausted,
        'blacklisted_count': len(series.blacklisted_numbers or []),
        'policies_issued': series.policies.count(),
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def series_assign_dealer(request, pk):
    """Assign a series to a dealer"""
    series = get_object_or_404(PolicySeries, pk=pk)
    serializer = SeriesAssignDealerSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    previous = series.dealer_id
    series.dealer = serializer.validated_data['dealer']
    series.save(update_fields=['dealer', 'updated_at'])
    create_audit_log(request=request, action='update', model_name='PolicySeries', object_id=series.id,
                     object_name=str(series), changes={'dealer': {'from': previous, 'to': series.dealer_id}})
    return Response(PolicySeriesSerializer(series).data)


# Policy views
def _creating_dealer(user):
    """The caller's dealer, ``None`` for administrators"""
    if is_admin_user(user):
        return None
    return get_dealer_profile(user)


def _creation_kwargs(request, data, own_dealer):
    """
    Check that the caller may see the customer and vehicle and resolve the dealer.

    Returns ``(kwargs, errors)``; ``kwargs`` feeds ``services.create_policy``.
    """
    customer = data['customer']
    vehicle = data['vehicle']
    if not visible_customers(request.user).filter(pk=customer.pk).exists():
        return None, {'customer': ['Customer not found.']}
    if not visible_vehicles(request.user).filter(pk=vehicle.pk).exists():
        return None, {'vehicle': ['Vehicle not found.']}

    return {
        'dealer': own_dealer or data.get('dealer') or customer.dealer,
        'customer': customer,
        'vehicle': vehicle,
        'policy_type': data['policy_type'],
        'start_date': data['start_date'],
        'end_date': data['end_date'],
        'currency': resolve_currency(data.get('currency')),
        'premium': data.get('premium'),
        'notes': data.get('notes', ''),
    }, None


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def policy_list_create(request):
    """List policies visible to the user or create a draft policy"""
    if request.method == 'GET':
        queryset = PolicyFilter(request.query_params, queryset=visible_policies(request.user).order_by('-created_at')).qs
        return paginate(request, queryset, PolicySerializer)

    if not IsAdminOrDealer().has_permission(request, None):
        return _forbidden('Only administrators and dealers can create policies.')

    serializer = PolicyCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    own_dealer = _creating_dealer(request.user)
    if own_dealer is None and not is_admin_user(request.user):
        return _forbidden('No dealer is linked to this account.')

    kwargs, errors = _creation_kwargs(request, serializer.validated_data, own_dealer)
    if errors:
        return Response(errors, status=status.HTTP_400_BAD_REQUEST)

    policy = services.create_policy(**kwargs, user=request.user, request=request)
    return Response(PolicySerializer(policy).data, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAdminOrDealer])
def policy_batch_create(request):
    """Create several draft policies; one failing item rolls back the whole batch"""
    serializer = PolicyBatchCreateSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    own_dealer = _creating_dealer(request.user)
    if own_dealer is None and not is_admin_user(request.user):
        return _forbidden('No dealer is linked to this account.')

    items = []
    for index, data in enumerate(serializer.validated_data['policies']):
        kwargs, errors = _creation_kwargs(request, data, own_dealer)
        if errors:
            return Response({'index': index, 'errors': errors}, status=status.HTTP_400_BAD_REQUEST)
        items.append(kwargs)

    policies = services.create_policies(items, user=request.user, request=request)
    return Response(PolicySerializer(policies, many=True).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def policy_detail(request, pk):
    """Retrieve, edit (draft only) or delete (draft/rejected only) a policy"""
    policy = get_object_or_404(visible_policies(request.user), pk=pk)
    if request.method == 'GET':
        return Response(PolicySerializer(policy).data)

    if not IsAdminOrDealer().has_permission(request, None):
        return _forbidden('Only administrators and dealers can modify policies.')

    if request.method in ('PUT', 'PATCH'):
        serializer = PolicyUpdateSerializer(data=request.data, partial=request.method == 'PATCH')
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        policy = services.update_policy(policy, user=request.user, request=request, **serializer.validated_data)
        return Response(PolicySerializer(policy).data)

    services.delete_policy(policy, user=request.user, request=request)
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminOrDealer])
def policy_submit(request, pk):
    """Send a draft policy for approval"""
    policy = get_object_or_404(visible_policies(request.user), pk=pk)
    policy = services.submit_policy(policy, user=request.user, request=request)
    return Response(PolicySerializer(policy).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def policy_approve(request, pk):
    """Approve a pending policy"""
    policy = get_object_or_404(Policy, pk=pk)
    policy = services.approve_policy(policy, user=request.user, request=request)
    return Response(PolicySerializer(policy).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def policy_reject(request, pk):
    """Reject a pending policy with a reason"""
    policy = get_object_or_404(Policy, pk=pk)
    serializer = RejectSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    policy = services.reject_policy(policy, serializer.validated_data['reason'], user=request.user, request=request)
    return Response(PolicySerializer(policy).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def policy_cancel(request, pk):
    """Cancel an approved or active policy"""
    policy = get_object_or_404(Policy, pk=pk)
    serializer = CancelSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    policy = services.cancel_policy(policy, serializer.validated_data['reason'], user=request.user, request=request)
    return Response(PolicySerializer(policy).data)
