import logging

from django.db import transaction
from django.db.models import Count, ProtectedError
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from agency.core.accounts import create_account, reset_temporary_password
from agency.core.permissions import IsAdminRole, IsDealer, RolePermission
from agency.core.roles import ADMIN_ROLES, DEALER, OBSERVER
from agency.core.scoping import get_dealer_profile, scope_queryset
from agency.core.utils import create_audit_log, paginate
from .filters import DealerFilter
from .models import Dealer
from .serializers import DealerSerializer

logger = logging.getLogger('agency.dealers')


class CanViewDealers(RolePermission):
    roles = tuple(ADMIN_ROLES) + (OBSERVER,)


def _visible_dealers(user):
    queryset = Dealer.objects.select_related('user').annotate(customer_count=Count('customers', distinct=True))
    return scope_queryset(user, queryset, dealer_field='pk', customer_field=None)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, CanViewDealers])
def dealer_list_create(request):
    """List dealers or create a dealer together with its login"""
    if request.method == 'GET':
        queryset = DealerFilter(request.query_params, queryset=_visible_dealers(request.user).order_by('name')).qs
        return paginate(request, queryset, DealerSerializer)

    if not IsAdminRole().has_permission(request, None):
        return Response({'error': 'Only administrators can create dealers.'}, status=status.HTTP_403_FORBIDDEN)

    serializer = DealerSerializer(data=request.data)
    if not serializer.is_valid():
        logger.info(f"Dealer creation validation failed: {serializer.errors}")
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    with transaction.atomic():
        dealer = serializer.save()
        user, temporary_password = create_account(
            username=dealer.code.lower(), role=DEALER, email=dealer.email,
            first_name=dealer.name[:150], phone=dealer.phone or None,
        )
        dealer.user = user
        dealer.save(update_fields=['user'])

    create_audit_log(request=request, action='create', model_name='Dealer',
                     object_id=dealer.id, object_name=dealer.name)
    logger.info(f"Dealer {dealer.code} created by {request.user.username}")
    data = DealerSerializer(dealer).data
    data['temporary_password'] = temporary_password
    return Response(data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, CanViewDealers])
def dealer_detail(request, pk):
    """Retrieve, update or delete a dealer"""
    dealer = get_object_or_404(_visible_dealers(request.user), pk=pk)

    if request.method == 'GET':
        return Response(DealerSerializer(dealer).data)

    if not IsAdminRole().has_permission(request, None):
        return Response({'error': 'Only administrators can modify dealers.'}, status=status.HTTP_403_FORBIDDEN)

    if request.method in ('PUT', 'PATCH'):
        serializer = DealerSerializer(dealer, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            create_audit_log(request=request, action='update', model_name='Dealer',
                             object_id=dealer.id, object_name=dealer.name, changes=request.data)
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    # DELETE
    try:
        with transaction.atomic():
            user = dealer.user
            dealer_id, dealer_name = dealer.id, dealer.name
            dealer.delete()
            if user is not None:
                user.delete()
    except ProtectedError:
        return Response({'error': 'Dealer has customers, policies or series and cannot be deleted. Deactivate it instead.',
                         'code': 'DEALER_IN_USE'}, status=status.HTTP_409_CONFLICT)
    create_audit_log(request=request, action='delete', model_name='Dealer',
                     object_id=dealer_id, object_name=dealer_name)
    return Response(status=status.HTTP_204_NO_CONTENT)


def _set_dealer_active(request, pk, is_active):
    dealer = get_object_or_404(Dealer, pk=pk)
    with transaction.atomic():
        dealer.is_active = is_active
        dealer.save(update_fields=['is_active', 'updated_at'])
        if dealer.user is not None:
            dealer.user.is_active = is_active
            dealer.user.save(update_fields=['is_active'])
    create_audit_log(request=request, action='activate' if is_active else 'deactivate',
                     model_name='Dealer', object_id=dealer.id, object_name=dealer.name)
    return Response(DealerSerializer(dealer).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def dealer_activate(request, pk):
    """Activate a dealer and its login"""
    return _set_dealer_active(request, pk, True)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def dealer_deactivate(request, pk):
    """Deactivate a dealer and its login"""
    return _set_dealer_active(request, pk, False)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def dealer_reset_password(request, pk):
    """Issue a new temporary password for the dealer's login"""
    dealer = get_object_or_404(Dealer, pk=pk)
    if dealer.user is None:
        return Response({'error': 'Dealer has no login account.', 'code': 'NO_ACCOUNT'},
                        status=status.HTTP_400_BAD_REQUEST)
    password = reset_temporary_password(dealer.user)
    create_audit_log(request=request, action='password_reset', model_name='Dealer',
                     object_id=dealer.id, object_name=dealer.name)
    return Response({'username': dealer.user.username, 'temporary_password': password})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsDealer])
def dealer_me(request):
    """The dealer record of the logged-in dealer user"""
    dealer = get_dealer_profile(request.user)
    if dealer is None:
        return Response({'error': 'No dealer is linked to this account.'}, status=status.HTTP_404_NOT_FOUND)
    return Response(DealerSerializer(dealer).data)
