"""
Test suite for the core module
Tests: authentication, two-factor codes, profile, user and role administration, settings, audit log and scoping
"""
import re
import time
from datetime import timedelta

import pyotp
from django.contrib.auth.models import Group
from django.contrib.auth.tokens import default_token_generator
from django.core import mail
from django.core.mail.backends.base import BaseEmailBackend
from django.test import TestCase, override_settings
from django.utils import timezone
from django.utils.encoding import force_bytes
from django.utils.http import urlsafe_base64_encode
from rest_framework import status

from agency.core.models import AuditLog, Setting, TwoFactorDevice
from agency.core.roles import ADMIN, DEALER, SUPERADMIN, get_portal, get_user_roles
from agency.core.scoping import scope_queryset
from agency.core.test_utils import AuthenticatedAPIClient, TestDataFactory
from agency.customers.models import Customer


class UnreachableEmailBackend(BaseEmailBackend):
    def send_messages(self, email_messages):
        raise ConnectionRefusedError('SMTP server unreachable')


class AuthTests(TestCase):
    """Test login, token refresh and password flows"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.user = TestDataFactory.create_admin(username='alice', email='alice@test.com')

    def test_login_returns_tokens_and_user(self):
        """Login returns a token pair, the user and the password-change flag"""
        response = self.client.post('/api/v1/auth/login/', {'username': 'alice', 'password': 'testpass123'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)
        self.assertEqual(response.data['user']['username'], 'alice')
        self.assertEqual(response.data['user']['roles'], [ADMIN])
        self.assertFalse(response.data['requires_password_change'])
        self.assertTrue(AuditLog.objects.filter(action='login', object_id=str(self.user.id)).exists())

    def test_login_wrong_password(self):
        response = self.client.post('/api/v1/auth/login/', {'username': 'alice', 'password': 'wrong'})
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_login_disabled_user(self):
        """Disabled accounts cannot log in"""
        self.user.is_active = False
        self.user.save()
        response = self.client.post('/api/v1/auth/login/', {'username': 'alice', 'password': 'testpass123'})
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data['error'], 'User account is disabled.')

        # A wrong password does not reveal the account state
        response = self.client.post('/api/v1/auth/login/', {'username': 'alice', 'password': 'wrong'})
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertNotIn('disabled', response.data['error'])

    def test_refresh_token(self):
        login = self.client.post('/api/v1/auth/login/', {'username': 'alice', 'password': 'testpass123'})
        response = self.client.post('/api/v1/auth/refresh/', {'refresh': login.data['refresh']})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)

    def test_refresh_with_garbage_token(self):
        response = self.client.post('/api/v1/auth/refresh/', {'refresh': 'not-a-token'})
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me_requires_authentication(self):
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me_for_dealer(self):
        """The dealer portal flags and dealer info are returned"""
        dealer = TestDataFactory.create_dealer(code='DLR01')
        self.client.authenticate_user(dealer.user)
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['can_access_dealer'])
        self.assertFalse(response.data['is_admin'])
        self.assertEqual(response.data['portal'], 'dealer')
        self.assertEqual(response.data['dealer']['code'], 'DLR01')

    def test_change_password(self):
        self.user.must_change_password = True
        self.user.save()
        self.client.authenticate_user(self.user)
        response = self.client.post('/api/v1/auth/change-password/', {
            'current_password': 'testpass123',
            'new_password': 'N3w-Secure-Pass!',
            'new_password_confirm': 'N3w-Secure-Pass!',
        })
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password('N3w-Secure-Pass!'))
        self.assertFalse(self.user.must_change_password)

    def test_change_password_wrong_current(self):
        self.client.authenticate_user(self.user)
        response = self.client.post('/api/v1/auth/change-password/', {
            'current_password': 'nope',
            'new_password': 'N3w-Secure-Pass!',
            'new_password_confirm': 'N3w-Secure-Pass!',
        })
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('current_password', response.data)

    def test_forgot_password_sends_mail(self):
        response = self.client.post('/api/v1/auth/forgot-password/', {'email': 'alice@test.com'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(mail.outbox), 1)
        self.assertIn('reset-password?uid=', mail.outbox[0].body)

    def test_forgot_password_unknown_address(self):
        """Unknown addresses get the same answer and no mail"""
        response = self.client.post('/api/v1/auth/forgot-password/', {'email': 'nobody@test.com'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(mail.outbox), 0)

    @override_settings(EMAIL_BACKEND='agency.core.tests.UnreachableEmailBackend')
    def test_forgot_password_survives_mail_failure(self):
        """Registered and unknown addresses get the same answer when mail is down"""
        for email in ('alice@test.com', 'nobody@test.com'):
            response = self.client.post('/api/v1/auth/forgot-password/', {'email': email})
            self.assertEqual(response.status_code, status.HTTP_200_OK)
            self.assertEqual(response.data['message'], 'If the address is registered, a reset link has been sent.')

    def test_reset_password_with_token(self):
        uid = urlsafe_base64_encode(force_bytes(self.user.pk))
        token = default_token_generator.make_token(self.user)
        response = self.client.post('/api/v1/auth/reset-password/', {
            'uid': uid, 'token': token,
            'new_password': 'Another-Pass-42', 'new_password_confirm': 'Another-Pass-42',
        })
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.user.refresh_from_db()
        self.assertTrue(self.user.check_password('Another-Pass-42'))

    def test_reset_password_invalid_token(self):
        uid = urlsafe_base64_encode(force_bytes(self.user.pk))
        response = self.client.post('/api/v1/auth/reset-password/', {
            'uid': uid, 'token': 'bad-token',
            'new_password': 'Another-Pass-42', 'new_password_confirm': 'Another-Pass-42',
        })
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'INVALID_RESET_TOKEN')

    def test_profile_update(self):
        self.client.authenticate_user(self.user)
        response = self.client.patch('/api/v1/profile/', {'first_name': 'Alice', 'phone': '5550001122'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['first_name'], 'Alice')


class RoleHelperTests(TestCase):
    """Test role resolution"""

    def test_superuser_without_groups_is_superadmin(self):
        user = TestDataFactory.create_user(is_superuser=True, is_staff=True)
        self.assertEqual(get_user_roles(user), [SUPERADMIN])
        self.assertEqual(get_portal(user), 'admin')

    def test_plain_user_has_no_portal(self):
        user = TestDataFactory.create_user()
        self.assertEqual(get_user_roles(user), [])
        self.assertIsNone(get_portal(user))


class UserAdministrationTests(TestCase):
    """Test user, role and permission management"""

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.superadmin = TestDataFactory.create_superadmin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_list_users_paginated(self):
        """User list uses the standard pagination envelope"""
        response = self.client.get('/api/v1/users/?page_size=1')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        for key in ('results', 'count', 'next', 'previous', 'page', 'page_size', 'total_pages'):
            self.assertIn(key, response.data)
        self.assertEqual(len(response.data['results']), 1)
        self.assertEqual(response.data['count'], 2)

    def test_out_of_range_page_returns_last_page(self):
        response = self.client.get('/api/v1/users/?page_size=1&page=999')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['total_pages'], 2)
        self.assertEqual(response.data['page'], 2)
        self.assertEqual(len(response.data['results']), 1)
        self.assertIsNone(response.data['next'])
        self.assertEqual(response.data['previous'], 1)

    def test_page_size_is_capped(self):
        response = self.client.get('/api/v1/users/?page_size=1000')
        self.assertEqual(response.data['page_size'], 200)
        self.assertEqual(len(response.data['results']), 2)

    def test_limit_is_page_size_alias(self):
        response = self.client.get('/api/v1/users/?limit=1')
        self.assertEqual(response.data['page_size'], 1)
        self.assertEqual(response.data['total_pages'], 2)
        self.assertEqual(len(response.data['results']), 1)

    def test_filter_users_by_role(self):
        response = self.client.get(f'/api/v1/users/?role={SUPERADMIN}')
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['id'], self.superadmin.id)

    def test_non_admin_cannot_list_users(self):
        dealer = TestDataFactory.create_dealer()
        self.client.authenticate_user(dealer.user)
        response = self.client.get('/api/v1/users/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_create_user_with_roles(self):
        response = self.client.post('/api/v1/users/', {
            'username': 'newuser', 'email': 'new@test.com',
            'password': 'Str0ng-Password!', 'password_confirm': 'Str0ng-Password!',
            'roles': [DEALER],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['roles'], [DEALER])

    def test_create_user_password_mismatch(self):
        response = self.client.post('/api/v1/users/', {
            'username': 'newuser', 'password': 'Str0ng-Password!', 'password_confirm': 'other',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_cannot_deactivate_self(self):
        response = self.client.post(f'/api/v1/users/{self.admin.id}/deactivate/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_deactivate_and_activate_user(self):
        user = TestDataFactory.create_user()
        response = self.client.post(f'/api/v1/users/{user.id}/deactivate/')
        self.assertFalse(response.data['is_active'])
        response = self.client.post(f'/api/v1/users/{user.id}/activate/')
        self.assertTrue(response.data['is_active'])

    def test_admin_cannot_grant_superadmin(self):
        user = TestDataFactory.create_user()
        response = self.client.put(f'/api/v1/users/{user.id}/roles/', {'roles': [SUPERADMIN]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_superadmin_replaces_roles(self):
        user = TestDataFactory.create_user(role=DEALER)
        self.client.authenticate_user(self.superadmin)
        response = self.client.put(f'/api/v1/users/{user.id}/roles/', {'roles': [ADMIN]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['roles'], [ADMIN])
        self.assertTrue(AuditLog.objects.filter(action='role_change', object_id=str(user.id)).exists())

    def test_reset_password_issues_temporary_password(self):
        user = TestDataFactory.create_user()
        response = self.client.post(f'/api/v1/users/{user.id}/reset-password/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        user.refresh_from_db()
        self.assertTrue(user.must_change_password)
        self.assertTrue(user.check_password(response.data['temporary_password']))

    def test_roles_require_superadmin(self):
        response = self.client.get('/api/v1/roles/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_builtin_role_cannot_be_deleted(self):
        self.client.authenticate_user(self.superadmin)
        role = Group.objects.get(name=ADMIN)
        response = self.client.delete(f'/api/v1/roles/{role.id}/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'SYSTEM_ROLE')

    def test_custom_role_lifecycle(self):
        self.client.authenticate_user(self.superadmin)
        response = self.client.post('/api/v1/roles/', {'name': 'Auditor'})
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertFalse(response.data['is_system'])
        response = self.client.delete(f"/api/v1/roles/{response.data['id']}/")
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)


class SettingAndAuditTests(TestCase):
    """Test system settings and the audit log endpoints"""

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_create_and_update_setting(self):
        response = self.client.post('/api/v1/settings/', {'key': 'company_name', 'value': 'Acme Sigorta'})
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        response = self.client.patch(f"/api/v1/settings/{response.data['id']}/", {'value': 'Acme'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(Setting.objects.get(key='company_name').value, 'Acme')

    def test_test_email(self):
        response = self.client.post('/api/v1/settings/test-email/', {'email': 'ops@test.com'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(mail.outbox[0].to, ['ops@test.com'])

    def test_audit_log_list_filter_and_export(self):
        self.client.post('/api/v1/settings/', {'key': 'k1', 'value': 'v1'})
        response = self.client.get('/api/v1/audit-logs/?action=create&model=Setting')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)

        response = self.client.get('/api/v1/audit-logs/export/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response['Content-Type'].startswith('text/csv'))
        self.assertIn('k1', response.content.decode())


class ScopingTests(TestCase):
    """Test row-level scoping per role"""

    def setUp(self):
        self.dealer = TestDataFactory.create_dealer()
        self.other_dealer = TestDataFactory.create_dealer()
        self.customer = TestDataFactory.create_customer(dealer=self.dealer, with_account=True)
        self.other_customer = TestDataFactory.create_customer(dealer=self.other_dealer)

    def test_admin_sees_everything(self):
        admin = TestDataFactory.create_admin()
        self.assertEqual(scope_queryset(admin, Customer.objects.all(), customer_field='pk').count(), 2)

    def test_dealer_sees_own_rows(self):
        rows = scope_queryset(self.dealer.user, Customer.objects.all(), customer_field='pk')
        self.assertEqual(list(rows), [self.customer])

    def test_observer_sees_assigned_dealers(self):
        observer = TestDataFactory.create_observer(dealers=[self.other_dealer])
        rows = scope_queryset(observer.user, Customer.objects.all(), customer_field='pk')
        self.assertEqual(list(rows), [self.other_customer])

    def test_customer_sees_itself(self):
        rows = scope_queryset(self.customer.user, Customer.objects.all(), customer_field='pk')
        self.assertEqual(list(rows), [self.customer])

    def test_user_without_profile_sees_nothing(self):
        user = TestDataFactory.create_user(role=DEALER)
        self.assertFalse(scope_queryset(user, Customer.objects.all(), customer_field='pk').exists())


class TwoFactorTests(TestCase):
    """Test authenticator-app and e-mail code second factors"""

    def setUp(self):
        self.user = TestDataFactory.create_admin(username='alice', email='alice@test.com')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.anonymous = AuthenticatedAPIClient()

    def _enable(self):
        device = TwoFactorDevice.objects.create(user=self.user, secret=pyotp.random_base32(), is_enabled=True)
        return pyotp.TOTP(device.secret)

    def _wrong_code(self, totp):
        valid = {totp.at(time.time() + offset) for offset in (-30, 0, 30)}
        return next(code for code in ('000000', '111111', '222222', '333333') if code not in valid)

    def _login(self, **extra):
        return self.anonymous.post('/api/v1/auth/login/',
                                   {'username': 'alice', 'password': 'testpass123', **extra})

    def _mailed_code(self):
        return re.search(r'\b(\d{6})\b', mail.outbox[-1].body).group(1)

    def test_setup_and_verify(self):
        response = self.client.post('/api/v1/auth/two-factor/setup/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['is_enabled'])
        self.assertTrue(response.data['qr_code_url'].startswith('otpauth://totp/'))
        totp = pyotp.TOTP(response.data['manual_entry_key'])

        response = self.client.post('/api/v1/auth/two-factor/verify/', {'code': self._wrong_code(totp)})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'INVALID_CODE')

        response = self.client.post('/api/v1/auth/two-factor/verify/', {'code': totp.now()})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(TwoFactorDevice.objects.get(user=self.user).is_enabled)
        self.assertTrue(AuditLog.objects.filter(action='two_factor_enable').exists())
        self.assertTrue(self.client.get('/api/v1/auth/me/').data['two_factor_enabled'])

        response = self.client.post('/api/v1/auth/two-factor/setup/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['code'], 'TWO_FACTOR_ENABLED')

    def test_verify_without_setup(self):
        response = self.client.post('/api/v1/auth/two-factor/verify/', {'code': '123456'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'TWO_FACTOR_NOT_SET_UP')

    def test_verify_rejects_malformed_code(self):
        response = self.client.post('/api/v1/auth/two-factor/verify/', {'code': 'abc'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('code', response.data)

    def test_login_requires_totp_code(self):
        totp = self._enable()

        response = self._login()
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data['code'], 'TWO_FACTOR_REQUIRED')

        response = self._login(otp_code=self._wrong_code(totp))
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(response.data['code'], 'INVALID_TWO_FACTOR_CODE')

        response = self._login(otp_code=totp.now())
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)

    def test_login_without_two_factor_ignores_code(self):
        self.assertEqual(self._login().status_code, status.HTTP_200_OK)

    def test_login_with_emailed_code(self):
        """An e-mailed code requested with credentials completes the login once"""
        self._enable()
        response = self.anonymous.post('/api/v1/auth/two-factor/email/send/',
                                       {'username': 'alice', 'password': 'testpass123'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(mail.outbox[0].to, ['alice@test.com'])
        code = self._mailed_code()

        self.assertEqual(self._login(otp_code=code).status_code, status.HTTP_200_OK)
        self.assertEqual(self._login(otp_code=code).status_code, status.HTTP_401_UNAUTHORIZED)

    def test_email_send_with_bad_credentials(self):
        response = self.anonymous.post('/api/v1/auth/two-factor/email/send/',
                                       {'username': 'alice', 'password': 'wrong'})
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(len(mail.outbox), 0)

    def test_email_verify(self):
        self.client.post('/api/v1/auth/two-factor/email/send/')
        code = self._mailed_code()
        wrong = '000000' if code != '000000' else '111111'

        response = self.client.post('/api/v1/auth/two-factor/email/verify/', {'code': wrong})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'INVALID_CODE')

        response = self.client.post('/api/v1/auth/two-factor/email/verify/', {'code': code})
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        response = self.client.post('/api/v1/auth/two-factor/email/verify/', {'code': code})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_expired_email_code(self):
        self.client.post('/api/v1/auth/two-factor/email/send/')
        code = self._mailed_code()
        TwoFactorDevice.objects.filter(user=self.user).update(
            email_code_expires_at=timezone.now() - timedelta(seconds=1))
        response = self.client.post('/api/v1/auth/two-factor/email/verify/', {'code': code})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    @override_settings(EMAIL_BACKEND='agency.core.tests.UnreachableEmailBackend')
    def test_email_send_failure(self):
        response = self.client.post('/api/v1/auth/two-factor/email/send/')
        self.assertEqual(response.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)
        self.assertEqual(response.data['code'], 'EMAIL_SEND_FAILED')

    def test_disable(self):
        self._enable()
        response = self.client.post('/api/v1/auth/two-factor/disable/', {'password': 'wrong'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('password', response.data)

        response = self.client.post('/api/v1/auth/two-factor/disable/', {'password': 'testpass123'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(TwoFactorDevice.objects.exists())
        self.assertTrue(AuditLog.objects.filter(action='two_factor_disable').exists())

        response = self.client.post('/api/v1/auth/two-factor/disable/', {'password': 'testpass123'})
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['code'], 'TWO_FACTOR_NOT_ENABLED')
