import logging

from django.db import transaction
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.decorators import api_view, parser_classes, permission_classes
from rest_framework.parsers import FormParser, JSONParser, MultiPartParser
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from agency.core.accounts import create_account
from agency.core.permissions import IsAdminOrDealer
from agency.core.roles import CUSTOMER, DEALER, has_role, is_admin_user
from agency.core.scoping import get_dealer_profile, scope_queryset
from agency.core.utils import create_audit_log, paginate
from .filters import CustomerFilter, VehicleFilter
from .models import Customer, Vehicle
from .serializers import CustomerSerializer, VehicleDocumentSerializer, VehicleSerializer

logger = logging.getLogger('agency.customers')


def visible_customers(user):
    queryset = Customer.objects.select_related('dealer', 'user')
    return scope_queryset(user, queryset, dealer_field='dealer', customer_field='pk')


def visible_vehicles(user):
    queryset = Vehicle.objects.select_related('customer', 'customer__dealer').prefetch_related('documents')
    return scope_queryset(user, queryset, dealer_field='customer__dealer', customer_field='customer')


def _can_write(request):
    return IsAdminOrDealer().has_permission(request, None)


def _forbidden(message='Only administrators and dealers can modify customers.'):
    return Response({'error': message}, status=status.HTTP_403_FORBIDDEN)


def _has_live_policies(queryset):
    return queryset.exclude(status='Draft').exists()


# Customer views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def customer_list_create(request):
    """List customers visible to the user or create a customer"""
    if request.method == 'GET':
        queryset = CustomerFilter(request.query_params, queryset=visible_customers(request.user).order_by('-created_at')).qs
        return paginate(request, queryset, CustomerSerializer)

    if not _can_write(request):
        return _forbidden()

    context = {'request': request}
    if not is_admin_user(request.user):
        dealer = get_dealer_profile(request.user)
        if dealer is None:
            return _forbidden('No dealer is linked to this account.')
        # Dealers always create customers for their own agency
        context['dealer'] = dealer

    serializer = CustomerSerializer(data=request.data, context=context)
    if not serializer.is_valid():
        logger.info(f"Customer creation validation failed: {serializer.errors}")
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    temporary_password = None
    with transaction.atomic():
        customer = serializer.save()
        if serializer.validated_data.get('create_account'):
            username = customer.email.split('@')[0] if customer.email else f"{customer.first_name}.{customer.last_name}"
            user, temporary_password = create_account(
                username=username, role=CUSTOMER, email=customer.email,
                first_name=customer.first_name, last_name=customer.last_name, phone=customer.phone or None,
            )
            customer.user = user
            customer.save(update_fields=['user'])

    create_audit_log(request=request, action='create', model_name='Customer',
                     object_id=customer.id, object_name=customer.full_name)
    data = CustomerSerializer(customer).data
    if temporary_password:
        data['temporary_password'] = temporary_password
    return Response(data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def customer_detail(request, pk):
    """Retrieve, update or delete a customer"""
    customer = get_object_or_404(visible_customers(request.user), pk=pk)

    if request.method == 'GET':
        return Response(CustomerSerializer(customer).data)

    if not _can_write(request):
        return _forbidden()

    if request.method in ('PUT', 'PATCH'):
        context = {'request': request}
        if not is_admin_user(request.user):
            context['dealer'] = customer.dealer
        serializer = CustomerSerializer(customer, data=request.data, partial=request.method == 'PATCH', context=context)
        if serializer.is_valid():
            serializer.save()
            create_audit_log(request=request, action='update', model_name='Customer',
                             object_id=customer.id, object_name=customer.full_name, changes=request.data)
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    # DELETE
    if _has_live_policies(customer.policies.all()):
        return Response({'error': 'Customer has policies beyond draft and cannot be deleted.',
                         'code': 'CUSTOMER_HAS_POLICIES'}, status=status.HTTP_409_CONFLICT)
    with transaction.atomic():
        customer.policies.all().delete()
        user = customer.user
        customer_id, customer_name = customer.id, customer.full_name
        customer.delete()
        if user is not None:
            user.delete()
    create_audit_log(request=request, action='delete', model_name='Customer',
                     object_id=customer_id, object_name=customer_name)
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def dealer_customers(request, dealer_id):
    """Customers of one dealer"""
    queryset = visible_customers(request.user).filter(dealer_id=dealer_id).order_by('first_name', 'last_name')
    queryset = CustomerFilter(request.query_params, queryset=queryset).qs
    return paginate(request, queryset, CustomerSerializer)


# Vehicle views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def vehicle_list_create(request):
    """List vehicles visible to the user or register a vehicle"""
    if request.method == 'GET':
        queryset = VehicleFilter(request.query_params, queryset=visible_vehicles(request.user).order_by('-created_at')).qs
        return paginate(request, queryset, VehicleSerializer)

    if not _can_write(request):
        return _forbidden('Only administrators and dealers can register vehicles.')

    serializer = VehicleSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    customer = serializer.validated_data['customer']
    if not visible_customers(request.user).filter(pk=customer.pk).exists():
        return Response({'customer': ['Customer not found.']}, status=status.HTTP_400_BAD_REQUEST)

    vehicle = serializer.save()
    create_audit_log(request=request, action='create', model_name='Vehicle',
                     object_id=vehicle.id, object_name=vehicle.plate_number)
    return Response(VehicleSerializer(vehicle).data, status=status.HTTP_201_CREATED)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def vehicle_detail(request, pk):
    """Retrieve, update or delete a vehicle"""
    vehicle = get_object_or_404(visible_vehicles(request.user), pk=pk)

    if request.method == 'GET':
        return Response(VehicleSerializer(vehicle).data)

    if not _can_write(request):
        return _forbidden('Only administrators and dealers can modify vehicles.')

    if request.method in ('PUT', 'PATCH'):
        serializer = VehicleSerializer(vehicle, data=request.data, partial=request.method == 'PATCH')
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        customer = serializer.validated_data.get('customer')
        if customer and not visible_customers(request.user).filter(pk=customer.pk).exists():
            return Response({'customer': ['Customer not found.']}, status=status.HTTP_400_BAD_REQUEST)
        serializer.save()
        create_audit_log(request=request, action='update', model_name='Vehicle',
                         object_id=vehicle.id, object_name=vehicle.plate_number, changes=request.data)
        return Response(serializer.data)

    # DELETE
    if _has_live_policies(vehicle.policies.all()):
        return Response({'error': 'Vehicle has policies beyond draft and cannot be deleted.',
                         'code': 'VEHICLE_HAS_POLICIES'}, status=status.HTTP_409_CONFLICT)
    with transaction.atomic():
        vehicle.policies.all().delete()
        vehicle_id, plate = vehicle.id, vehicle.plate_number
        vehicle.delete()
    create_audit_log(request=request, action='delete', model_name='Vehicle', object_id=vehicle_id, object_name=plate)
    return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def customer_vehicles(request, pk):
    """Vehicles of one customer"""
    customer = get_object_or_404(visible_customers(request.user), pk=pk)
    vehicles = customer.vehicles.prefetch_related('documents').order_by('plate_number')
    return Response(VehicleSerializer(vehicles, many=True).data)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
@parser_classes([MultiPartParser, FormParser, JSONParser])
def vehicle_documents(request, pk):
    """List or upload documents of a vehicle"""
    vehicle = get_object_or_404(visible_vehicles(request.user), pk=pk)

    if request.method == 'GET':
        return Response(VehicleDocumentSerializer(vehicle.documents.all(), many=True).data)

    if not has_role(request.user, DEALER) and not is_admin_user(request.user):
        return _forbidden('Only administrators and dealers can upload vehicle documents.')

    serializer = VehicleDocumentSerializer(data=request.data)
    if serializer.is_valid():
        document = serializer.save(vehicle=vehicle, uploaded_by=request.user)
        create_audit_log(request=request, action='create', model_name='VehicleDocument',
                         object_id=document.id, object_name=vehicle.plate_number)
        return Response(VehicleDocumentSerializer(document).data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def vehicle_brands(request):
    """Distinct brands of registered vehicles"""
    brands = (Vehicle.objects.filter(is_active=True)
              .order_by('brand').values_list('brand', flat=True).distinct())
    return Response(list(brands))


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def vehicle_models(request):
    """Distinct models, optionally for one brand"""
    queryset = Vehicle.objects.filter(is_active=True)
    brand = request.query_params.get('brand')
    if brand:
        queryset = queryset.filter(brand__iexact=brand)
    models = queryset.order_by('model').values_list('model', flat=True).distinct()
    return Response(list(models))
