import logging

from django.conf import settings as django_settings
from django.contrib.auth import authenticate, get_user_model
from django.contrib.auth.models import Group, Permission
from django.contrib.auth.tokens import default_token_generator
from django.core.exceptions import ObjectDoesNotExist
from django.core.mail import send_mail
from django.db import transaction
from django.shortcuts import get_object_or_404
from django.utils.encoding import force_bytes, force_str
from django.utils.http import urlsafe_base64_decode, urlsafe_base64_encode
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework_simplejwt.exceptions import AuthenticationFailed, InvalidToken, TokenError
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer, TokenRefreshSerializer
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from . import two_factor
from .accounts import reset_temporary_password, set_user_roles
from .filters import AuditLogFilter, UserFilter
from .models import AuditLog, Setting
from .permissions import IsAdminRole, IsSuperAdmin
from .roles import ALL_ROLES, ADMIN_ROLES, CUSTOMER, DEALER, OBSERVER, get_user_roles, has_role
from .scoping import get_customer_profile, get_dealer_profile, get_observer_profile
from .serializers import (
    AuditLogSerializer, ChangePasswordSerializer, ForgotPasswordSerializer, PermissionSerializer,
    ProfileSerializer, ResetPasswordSerializer, RolePermissionsSerializer, RoleSerializer,
    RolesAssignSerializer, SettingSerializer, TwoFactorCodeSerializer, TwoFactorCredentialsSerializer,
    TwoFactorDisableSerializer, UserCreateSerializer, UserSerializer,
)
from .utils import create_audit_log, csv_response, paginate

logger = logging.getLogger('agency.core')

User = get_user_model()


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    def validate(self, attrs):
        # ModelBackend rejects inactive users before super() can tell them apart
        user = User.objects.filter(**{User.USERNAME_FIELD: attrs.get(self.username_field)}).first()
        if user is not None and not user.is_active and user.check_password(attrs.get('password')):
            raise AuthenticationFailed('User account is disabled.', code='account_disabled')
        data = super().validate(attrs)
        two_factor.check_login_code(self.user, self.initial_data.get('otp_code'))
        data['user'] = UserSerializer(self.user).data
        data['requires_password_change'] = self.user.must_change_password
        return data

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['username'] = user.username
        # Include roles in token
        token['roles'] = get_user_roles(user)
        return token


class CustomTokenObtainPairView(TokenObtainPairView):
    serializer_class = CustomTokenObtainPairSerializer

    def post(self, request, *args, **kwargs):
        response = super().post(request, *args, **kwargs)
        if response.status_code == status.HTTP_200_OK:
            user_data = response.data.get('user', {})
            create_audit_log(
                request=request, action='login', model_name='User',
                object_id=user_data.get('id'), object_name=user_data.get('username'),
                user=User.objects.filter(pk=user_data.get('id')).first(),
            )
            logger.info(f"User {user_data.get('username')} logged in")
        return response


class CustomTokenRefreshSerializer(TokenRefreshSerializer):
    """Custom token refresh serializer that handles deleted users gracefully"""
    def validate(self, attrs):
        try:
            return super().validate(attrs)
        except (InvalidToken, TokenError):
            raise InvalidToken('Token is invalid or expired.')
        except ObjectDoesNotExist:
            # User referenced in token doesn't exist anymore
            raise InvalidToken('Token is invalid. User no longer exists.')


class CustomTokenRefreshView(TokenRefreshView):
    """Custom token refresh view that handles deleted users gracefully"""
    serializer_class = CustomTokenRefreshSerializer


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def user_me(request):
    """Get current user with roles and portal access flags"""
    user = request.user
    user_data = UserSerializer(user).data
    roles = user_data['roles']

    is_admin = has_role(user, *ADMIN_ROLES)
    user_data['is_admin'] = is_admin
    user_data['can_access_admin'] = is_admin
    user_data['can_access_dealer'] = DEALER in roles
    user_data['can_access_observer'] = OBSERVER in roles
    user_data['can_access_customer'] = CUSTOMER in roles
    user_data['can_manage_roles'] = 'SuperAdmin' in roles
    user_data['two_factor_enabled'] = two_factor.is_enabled(user)

    dealer = get_dealer_profile(user)
    if dealer is not None:
        user_data['dealer'] = {'id': dealer.id, 'name': dealer.name, 'code': dealer.code}
    customer = get_customer_profile(user)
    if customer is not None:
        user_data['customer'] = {'id': customer.id, 'dealer': customer.dealer_id}
    observer = get_observer_profile(user)
    if observer is not None:
        user_data['observer'] = {'id': observer.id, 'name': observer.name}

    return Response(user_data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def change_password(request):
    """Change the current user's password"""
    serializer = ChangePasswordSerializer(data=request.data, context={'request': request})
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    user = request.user
    user.set_password(serializer.validated_data['new_password'])
    user.must_change_password = False
    user.save(update_fields=['password', 'must_change_password'])
    create_audit_log(request=request, action='password_change', model_name='User',
                     object_id=user.id, object_name=user.username)
    return Response({'message': 'Password changed successfully.'})


@api_view(['POST'])
@permission_classes([AllowAny])
def forgot_password(request):
    """Mail a reset link; the response never reveals whether the address exists"""
    serializer = ForgotPasswordSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    email = serializer.validated_data['email']
    for user in User.objects.filter(email__iexact=email, is_active=True):
        uid = urlsafe_base64_encode(force_bytes(user.pk))
        token = default_token_generator.make_token(user)
        link = f"{django_settings.FRONTEND_URL}/reset-password?uid={uid}&token={token}"
        try:
            send_mail(
                subject='Password reset',
                message=f"Hello {user.get_full_name() or user.username},\n\nUse the link below to reset your password:\n{link}\n",
                from_email=django_settings.DEFAULT_FROM_EMAIL,
                recipient_list=[user.email],
                fail_silently=False,
            )
            logger.info(f"Password reset link sent to user {user.username}")
        except Exception as e:
            # Same response as for unknown addresses
            logger.error(f"Failed to send password reset link to {user.username}: {str(e)}", exc_info=True)

    return Response({'message': 'If the address is registered, a reset link has been sent.'})


# Two-factor authentication views
@api_view(['POST'])
@permission_classes([IsAuthenticated])
def two_factor_setup(request):
    """Start authenticator-app enrolment and return the provisioning URI"""
    return Response(two_factor.begin_setup(request.user))


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def two_factor_verify(request):
    """Confirm enrolment with a code from the authenticator app"""
    serializer = TwoFactorCodeSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    two_factor.confirm_setup(request.user, serializer.validated_data['code'])
    create_audit_log(request=request, action='two_factor_enable', model_name='User',
                     object_id=request.user.id, object_name=request.user.username)
    return Response({'success': True, 'is_enabled': True})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def two_factor_disable(request):
    serializer = TwoFactorDisableSerializer(data=request.data, context={'request': request})
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    two_factor.disable(request.user)
    create_audit_log(request=request, action='two_factor_disable', model_name='User',
                     object_id=request.user.id, object_name=request.user.username)
    return Response({'success': True, 'is_enabled': False})


@api_view(['POST'])
@permission_classes([AllowAny])
def two_factor_email_send(request):
    """
    E-mail a one-time code.

    Signed-in users get a code for themselves. Before login the caller
    identifies with username and password, so the code can complete a login.
    """
    user = request.user
    if not user.is_authenticated:
        serializer = TwoFactorCredentialsSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
        user = authenticate(request, username=serializer.validated_data['username'],
                            password=serializer.validated_data['password'])
        if user is None:
            return Response({'error': 'Invalid credentials.'}, status=status.HTTP_401_UNAUTHORIZED)

    expires_at = two_factor.send_email_code(user)
    return Response({'success': True, 'expires_at': expires_at})


@api_view(['POST'])
@permission_classes([IsAuthenticated])
def two_factor_email_verify(request):
    serializer = TwoFactorCodeSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    if not two_factor.verify_email_code(request.user, serializer.validated_data['code']):
        return Response({'error': 'Invalid or expired code.', 'code': 'INVALID_CODE'},
                        status=status.HTTP_400_BAD_REQUEST)
    return Response({'success': True})


@api_view(['POST'])
@permission_classes([AllowAny])
def reset_password(request):
    """Set a new password from an e-mailed uid/token pair"""
    serializer = ResetPasswordSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    data = serializer.validated_data
    try:
        user = User.objects.get(pk=force_str(urlsafe_base64_decode(data['uid'])))
    except (TypeError, ValueError, OverflowError, User.DoesNotExist):
        user = None

    if user is None or not default_token_generator.check_token(user, data['token']):
        return Response({'error': 'Reset link is invalid or has expired.', 'code': 'INVALID_RESET_TOKEN'},
                        status=status.HTTP_400_BAD_REQUEST)

    from django.contrib.auth.password_validation import validate_password
    from django.core.exceptions import ValidationError as DjangoValidationError
    try:
        validate_password(data['new_password'], user)
    except DjangoValidationError as e:
        return Response({'new_password': list(e.messages)}, status=status.HTTP_400_BAD_REQUEST)

    user.set_password(data['new_password'])
    user.must_change_password = False
    user.save(update_fields=['password', 'must_change_password'])
    create_audit_log(request=request, action='password_reset', model_name='User',
                     object_id=user.id, object_name=user.username, user=user)
    return Response({'message': 'Password has been reset.'})


# Profile views
@api_view(['GET', 'PUT', 'PATCH'])
@permission_classes([IsAuthenticated])
def profile(request):
    """Retrieve or update the current user's profile"""
    if request.method == 'GET':
        return Response(ProfileSerializer(request.user).data)
    serializer = ProfileSerializer(request.user, data=request.data, partial=request.method == 'PATCH')
    if serializer.is_valid():
        serializer.save()
        return Response(serializer.data)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


# User views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def user_list_create(request):
    """List all users or create a new user"""
    if request.method == 'GET':
        queryset = User.objects.prefetch_related('groups').order_by('username')
        queryset = UserFilter(request.query_params, queryset=queryset).qs.distinct()
        return paginate(request, queryset, UserSerializer)
    else:
        serializer = UserCreateSerializer(data=request.data)
        if serializer.is_valid():
            with transaction.atomic():
                user = serializer.save()
            create_audit_log(request=request, action='create', model_name='User',
                             object_id=user.id, object_name=user.username)
            return Response(UserSerializer(user).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsAdminRole])
def user_detail(request, pk):
    """Retrieve, update or delete a user"""
    user = get_object_or_404(User, pk=pk)

    if request.method == 'GET':
        serializer = UserSerializer(user)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = UserSerializer(user, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            create_audit_log(request=request, action='update', model_name='User',
                             object_id=user.id, object_name=user.username, changes=request.data)
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        if user.pk == request.user.pk:
            return Response({'error': 'You cannot delete your own account.'}, status=status.HTTP_400_BAD_REQUEST)
        create_audit_log(request=request, action='delete', model_name='User',
                         object_id=user.id, object_name=user.username)
        user.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


def _set_user_active(request, pk, is_active):
    user = get_object_or_404(User, pk=pk)
    if user.pk == request.user.pk and not is_active:
        return Response({'error': 'You cannot deactivate your own account.'}, status=status.HTTP_400_BAD_REQUEST)
    user.is_active = is_active
    user.save(update_fields=['is_active'])
    create_audit_log(request=request, action='activate' if is_active else 'deactivate',
                     model_name='User', object_id=user.id, object_name=user.username)
    return Response(UserSerializer(user).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def user_activate(request, pk):
    """Activate a user account"""
    return _set_user_active(request, pk, True)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def user_deactivate(request, pk):
    """Deactivate a user account"""
    return _set_user_active(request, pk, False)


@api_view(['GET', 'PUT'])
@permission_classes([IsAuthenticated, IsAdminRole])
def user_roles(request, pk):
    """Read or replace a user's roles"""
    user = get_object_or_404(User, pk=pk)
    if request.method == 'GET':
        return Response({'roles': get_user_roles(user)})

    serializer = RolesAssignSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    roles = serializer.validated_data['roles']
    if 'SuperAdmin' in roles and not has_role(request.user, 'SuperAdmin'):
        return Response({'error': 'Only super administrators can grant the SuperAdmin role.'},
                        status=status.HTTP_403_FORBIDDEN)
    previous = get_user_roles(user)
    set_user_roles(user, roles)
    create_audit_log(request=request, action='role_change', model_name='User', object_id=user.id,
                     object_name=user.username, changes={'from': previous, 'to': roles})
    return Response({'roles': get_user_roles(user)})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def user_reset_password(request, pk):
    """Issue a temporary password for a user"""
    user = get_object_or_404(User, pk=pk)
    password = reset_temporary_password(user)
    create_audit_log(request=request, action='password_reset', model_name='User',
                     object_id=user.id, object_name=user.username)
    return Response({'username': user.username, 'temporary_password': password})


# Role views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsSuperAdmin])
def role_list_create(request):
    """List all roles or create a new role"""
    if request.method == 'GET':
        serializer = RoleSerializer(Group.objects.order_by('name'), many=True)
        return Response(serializer.data)
    serializer = RoleSerializer(data=request.data)
    if serializer.is_valid():
        role = serializer.save()
        create_audit_log(request=request, action='create', model_name='Role',
                         object_id=role.id, object_name=role.name)
        return Response(serializer.data, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsSuperAdmin])
def role_detail(request, pk):
    """Retrieve, update or delete a role"""
    role = get_object_or_404(Group, pk=pk)
    if request.method == 'GET':
        return Response(RoleSerializer(role).data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = RoleSerializer(role, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        if role.name in ALL_ROLES:
            return Response({'error': 'Built-in roles cannot be deleted.', 'code': 'SYSTEM_ROLE'},
                            status=status.HTTP_400_BAD_REQUEST)
        create_audit_log(request=request, action='delete', model_name='Role',
                         object_id=role.id, object_name=role.name)
        role.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET', 'PUT'])
@permission_classes([IsAuthenticated, IsSuperAdmin])
def role_permissions(request, pk):
    """Read or replace the permissions granted to a role"""
    role = get_object_or_404(Group, pk=pk)
    if request.method == 'GET':
        serializer = PermissionSerializer(role.permissions.select_related('content_type'), many=True)
        return Response(serializer.data)
    serializer = RolePermissionsSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    role.permissions.set(serializer.validated_data['permissions'])
    create_audit_log(request=request, action='update', model_name='Role', object_id=role.id,
                     object_name=role.name, changes={'permissions': [p.codename for p in serializer.validated_data['permissions']]})
    return Response(PermissionSerializer(role.permissions.select_related('content_type'), many=True).data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsSuperAdmin])
def permission_list(request):
    """List all model permissions"""
    permissions = Permission.objects.select_related('content_type').order_by('content_type__app_label', 'codename')
    return Response(PermissionSerializer(permissions, many=True).data)


# Setting views
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def setting_list_create(request):
    """List all settings or create a new setting"""
    if request.method == 'GET':
        settings = Setting.objects.order_by('key')
        serializer = SettingSerializer(settings, many=True)
        return Response(serializer.data)
    else:
        serializer = SettingSerializer(data=request.data)
        if serializer.is_valid():
            setting = serializer.save()
            create_audit_log(request=request, action='create', model_name='Setting',
                             object_id=setting.id, object_name=setting.key)
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsAdminRole])
def setting_detail(request, pk):
    """Retrieve, update or delete a setting"""
    setting = get_object_or_404(Setting, pk=pk)

    if request.method == 'GET':
        serializer = SettingSerializer(setting)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = SettingSerializer(setting, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            create_audit_log(request=request, action='update', model_name='Setting',
                             object_id=setting.id, object_name=setting.key, changes=request.data)
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        create_audit_log(request=request, action='delete', model_name='Setting',
                         object_id=setting.id, object_name=setting.key)
        setting.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsAdminRole])
def setting_test_email(request):
    """Send a test e-mail through the configured mail backend"""
    recipient = (request.data.get('email') or request.user.email or '').strip()
    if not recipient:
        return Response({'error': 'email is required'}, status=status.HTTP_400_BAD_REQUEST)
    try:
        send_mail(
            subject='Test e-mail',
            message='This is a test message from the insurance agency system.',
            from_email=django_settings.DEFAULT_FROM_EMAIL,
            recipient_list=[recipient],
            fail_silently=False,
        )
    except Exception as e:
        logger.error(f"Test e-mail to {recipient} failed: {str(e)}", exc_info=True)
        return Response({'error': f'Sending failed: {e}', 'code': 'EMAIL_FAILED'}, status=status.HTTP_502_BAD_GATEWAY)
    return Response({'message': f'Test e-mail sent to {recipient}.'})


# AuditLog views (read-only)
def _filtered_audit_logs(request):
    queryset = AuditLog.objects.select_related('user').order_by('-created_at')
    return AuditLogFilter(request.query_params, queryset=queryset).qs


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def audit_log_list(request):
    """List audit logs with filtering"""
    return paginate(request, _filtered_audit_logs(request), AuditLogSerializer)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def audit_log_detail(request, pk):
    """Retrieve an audit log"""
    audit_log = get_object_or_404(AuditLog, pk=pk)
    serializer = AuditLogSerializer(audit_log)
    return Response(serializer.data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsAdminRole])
def audit_log_export(request):
    """Export the filtered audit logs as CSV"""
    rows = (
        [log.created_at.isoformat(), log.user.username if log.user else '', log.action,
         log.model_name, log.object_id, log.object_name or '', log.ip_address or '']
        for log in _filtered_audit_logs(request).iterator()
    )
    return csv_response('audit-logs.csv',
                        ['created_at', 'user', 'action', 'model', 'object_id', 'object_name', 'ip_address'],
                        rows)
