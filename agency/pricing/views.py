import logging

from django.db.models import ProtectedError
from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from agency.core.permissions import IsAdminRole
from agency.core.utils import create_audit_log, paginate, parse_date
from .filters import PriceListFilter
from .models import Currency, PolicyType, PriceList
from .serializers import (
    CurrencySerializer, PolicyTypeSerializer, PremiumCalculationRequestSerializer,
    PremiumCalculationSerializer, PriceListSerializer,
)
from .services import calculate_premium, get_active_price_list, resolve_currency, resolve_policy_type

logger = logging.getLogger('agency.pricing')


def _admin_only(request):
    if IsAdminRole().has_permission(request, None):
        return None
    return Response({'error': 'Only administrators can modify pricing.'}, status=status.HTTP_403_FORBIDDEN)


def _in_use(name):
    return Response({'error': f'{name} is referenced by price lists or policies and cannot be deleted. Deactivate it instead.',
                     'code': 'IN_USE'}, status=status.HTTP_409_CONFLICT)


# PolicyType views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def policy_type_list_create(request):
    """List all policy types or create a new one"""
    if request.method == 'GET':
        policy_types = PolicyType.objects.order_by('name')
        serializer = PolicyTypeSerializer(policy_types, many=True)
        return Response(serializer.data)

    denied = _admin_only(request)
    if denied:
        return denied
    serializer = PolicyTypeSerializer(data=request.data)
    if serializer.is_valid():
        policy_type = serializer.save()
        create_audit_log(request=request, action='create', model_name='PolicyType',
                         object_id=policy_type.id, object_name=policy_type.code)
        return Response(serializer.data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def policy_type_active(request):
    """Active policy types"""
    serializer = PolicyTypeSerializer(PolicyType.objects.filter(is_active=True).order_by('name'), many=True)
    return Response(serializer.data)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def policy_type_detail(request, pk):
    """Retrieve, update or delete a policy type"""
    policy_type = get_object_or_404(PolicyType, pk=pk)
    if request.method == 'GET':
        return Response(PolicyTypeSerializer(policy_type).data)

    denied = _admin_only(request)
    if denied:
        return denied
    if request.method in ('PUT', 'PATCH'):
        serializer = PolicyTypeSerializer(policy_type, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            create_audit_log(request=request, action='update', model_name='PolicyType',
                             object_id=policy_type.id, object_name=policy_type.code, changes=request.data)
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    try:
        policy_type.delete()
    except ProtectedError:
        return _in_use('Policy type')
    create_audit_log(request=request, action='delete', model_name='PolicyType', object_id=pk, object_name=policy_type.code)
    return Response(status=status.HTTP_204_NO_CONTENT)


# Currency views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def currency_list_create(request):
    """List all currencies or create a new one"""
    if request.method == 'GET':
        return Response(CurrencySerializer(Currency.objects.order_by('code'), many=True).data)

    denied = _admin_only(request)
    if denied:
        return denied
    serializer = CurrencySerializer(data=request.data)
    if serializer.is_valid():
        currency = serializer.save()
        create_audit_log(request=request, action='create', model_name='Currency',
                         object_id=currency.id, object_name=currency.code)
        return Response(CurrencySerializer(currency).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def currency_active(request):
    """Active currencies"""
    return Response(CurrencySerializer(Currency.objects.filter(is_active=True).order_by('code'), many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def currency_default(request):
    """The default currency"""
    currency = Currency.objects.filter(is_default=True).first()
    if currency is None:
        return Response({'error': 'No default currency configured.'}, status=status.HTTP_404_NOT_FOUND)
    return Response(CurrencySerializer(currency).data)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def currency_detail(request, pk):
    """Retrieve, update or delete a currency"""
    currency = get_object_or_404(Currency, pk=pk)
    if request.method == 'GET':
        return Response(CurrencySerializer(currency).data)

    denied = _admin_only(request)
    if denied:
        return denied
    if request.method in ('PUT', 'PATCH'):
        serializer = CurrencySerializer(currency, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            create_audit_log(request=request, action='update', model_name='Currency',
                             object_id=currency.id, object_name=currency.code, changes=request.data)
            return Response(CurrencySerializer(currency).data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    if currency.is_default:
        return Response({'error': 'The default currency cannot be deleted.', 'code': 'DEFAULT_CURRENCY'},
                        status=status.HTTP_409_CONFLICT)
    try:
        currency.delete()
    except ProtectedError:
        return _in_use('Currency')
    create_audit_log(request=request, action='delete', model_name='Currency', object_id=pk, object_name=currency.code)
    return Response(status=status.HTTP_204_NO_CONTENT)


# PriceList views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def price_list_list_create(request):
    """List price lists or create a new one"""
    if request.method == 'GET':
        queryset = PriceList.objects.select_related('policy_type', 'currency').order_by('-priority', '-created_at')
        queryset = PriceListFilter(request.query_params, queryset=queryset).qs
        return paginate(request, queryset, PriceListSerializer)

    denied = _admin_only(request)
    if denied:
        return denied
    serializer = PriceListSerializer(data=request.data)
    if serializer.is_valid():
        price_list = serializer.save(created_by=request.user)
        create_audit_log(request=request, action='create', model_name='PriceList',
                         object_id=price_list.id, object_name=price_list.name)
        logger.info(f"Price list '{price_list.name}' created by {request.user.username}")
        return Response(PriceListSerializer(price_list).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def price_list_detail(request, pk):
    """Retrieve, update or delete a price list"""
    price_list = get_object_or_404(PriceList.objects.select_related('policy_type', 'currency'), pk=pk)
    if request.method == 'GET':
        return Response(PriceListSerializer(price_list).data)

    denied = _admin_only(request)
    if denied:
        return denied
    if request.method in ('PUT', 'PATCH'):
        serializer = PriceListSerializer(price_list, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            create_audit_log(request=request, action='update', model_name='PriceList',
                             object_id=price_list.id, object_name=price_list.name, changes=request.data)
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    try:
        price_list.delete()
    except ProtectedError:
        return _in_use('Price list')
    create_audit_log(request=request, action='delete', model_name='PriceList', object_id=pk, object_name=price_list.name)
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def price_list_active(request):
    """The price list that applies to a policy type on a date"""
    policy_type_param = request.query_params.get('policy_type')
    if not policy_type_param:
        return Response({'error': 'policy_type is required'}, status=status.HTTP_400_BAD_REQUEST)
    policy_type = resolve_policy_type(policy_type_param)
    currency = resolve_currency(request.query_params.get('currency'))
    on_date = parse_date(request.query_params.get('date'), timezone.localdate())

    price_list = get_active_price_list(policy_type, on_date, currency)
    if price_list is None:
        return Response({'error': f'No active price list for {policy_type.code} on {on_date.isoformat()}.',
                         'code': 'PRICE_LIST_NOT_FOUND'}, status=status.HTTP_404_NOT_FOUND)
    return Response(PriceListSerializer(price_list).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def calculate(request):
    """Calculate the premium of a policy"""
    request_serializer = PremiumCalculationRequestSerializer(data=request.data)
    if not request_serializer.is_valid():
        return Response(request_serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    data = request_serializer.validated_data

    calculation = calculate_premium(
        resolve_policy_type(data['policy_type']),
        data['start_date'],
        end_date=data.get('end_date'),
        duration_days=data.get('duration_days'),
        currency=resolve_currency(data.get('currency')),
    )
    return Response(PremiumCalculationSerializer(calculation).data)
