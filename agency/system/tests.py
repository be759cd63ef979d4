"""
Test suite for the system module
Tests: maintenance mode, cookie consent, system logs, usage statistics and fraud review
"""
import logging
from datetime import timedelta
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from agency.core.models import AuditLog
from agency.core.test_utils import AuthenticatedAPIClient, TestDataFactory
from agency.policies.models import Policy
from agency.system.fraud import MAX_SCORE, evaluate_policy, score_policy
from agency.system.logging_handlers import DatabaseLogHandler
from agency.system.models import FraudDetectionLog, MaintenanceWindow, SystemLog


class MaintenanceTests(TestCase):
    """Test maintenance mode"""

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.dealer = TestDataFactory.create_dealer()
        self.customer = TestDataFactory.create_customer(dealer=self.dealer, with_account=True)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def _activate(self, **overrides):
        payload = {'affected_portals': ['dealer'], 'message': 'Database upgrade in progress'}
        payload.update(overrides)
        return self.client.post('/api/v1/maintenance/activate/', payload, format='json')

    def test_activate_blocks_affected_portal(self):
        response = self._activate()
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['is_active'])
        self.assertTrue(AuditLog.objects.filter(action='maintenance_on').exists())

        self.client.authenticate_user(self.dealer.user)
        response = self.client.get('/api/v1/customers/')
        self.assertEqual(response.status_code, status.HTTP_503_SERVICE_UNAVAILABLE)
        self.assertEqual(response.json()['code'], 'MAINTENANCE')
        self.assertEqual(response.json()['message'], 'Database upgrade in progress')

        # Auth and maintenance endpoints stay reachable
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        response = self.client.get('/api/v1/maintenance/status/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_other_portals_and_admins_pass(self):
        self._activate()
        response = self.client.get('/api/v1/customers/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        self.client.authenticate_user(self.customer.user)
        response = self.client.get('/api/v1/policies/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_anonymous_requests_reach_the_view(self):
        self._activate(affected_portals=['dealer', 'customer'])
        self.client.logout()
        response = self.client.get('/api/v1/customers/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_status_is_public(self):
        self.client.logout()
        response = self.client.get('/api/v1/maintenance/status/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertFalse(response.data['is_active'])

    def test_expired_window_is_inactive(self):
        window = MaintenanceWindow.load()
        window.is_active = True
        window.affected_portals = ['dealer']
        window.until = timezone.now() - timedelta(minutes=1)
        window.save()

        self.client.authenticate_user(self.dealer.user)
        response = self.client.get('/api/v1/customers/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        response = self.client.get('/api/v1/maintenance/status/')
        self.assertFalse(response.data['is_active'])

    def test_deactivate(self):
        self._activate()
        response = self.client.post('/api/v1/maintenance/deactivate/')
        self.assertFalse(response.data['is_active'])

        self.client.authenticate_user(self.dealer.user)
        response = self.client.get('/api/v1/customers/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_activate_validation(self):
        response = self._activate(affected_portals=['partners'])
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        response = self._activate(until=(timezone.now() - timedelta(hours=1)).isoformat())
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('until', response.data)

    def test_only_admins_activate(self):
        self.client.authenticate_user(self.dealer.user)
        response = self._activate()
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class CookieConsentTests(TestCase):
    """Test cookie consent"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_defaults_without_record(self):
        response = self.client.get('/api/v1/gdpr/consent/')
        self.assertEqual(response.data, {'necessary': True, 'analytics': False, 'marketing': False, 'accepted_at': None})

    def test_record_and_update_consent(self):
        response = self.client.post('/api/v1/gdpr/consent/', {'analytics': True, 'marketing': False}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['analytics'])
        self.assertTrue(response.data['necessary'])

        response = self.client.post('/api/v1/gdpr/consent/', {'marketing': True}, format='json')
        self.assertTrue(response.data['analytics'])
        self.assertTrue(response.data['marketing'])
        self.assertEqual(self.user.cookie_consent.ip_address, '127.0.0.1')


class SystemLogTests(TestCase):
    """Test persisted system logs"""

    def setUp(self):
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(TestDataFactory.create_admin())

    def _log(self, level, message, name='agency.policies'):
        record = logging.LogRecord(name, level, __file__, 1, message, None, None)
        DatabaseLogHandler().emit(record)

    def test_handler_persists_records(self):
        self._log(logging.WARNING, 'Series TRF is near depletion')
        log = SystemLog.objects.get()
        self.assertEqual(log.level, 'WARNING')
        self.assertEqual(log.logger, 'agency.policies')

    def test_list_filters_and_export(self):
        self._log(logging.WARNING, 'Series TRF is near depletion')
        self._log(logging.ERROR, 'Mail backend unreachable', name='agency.notifications')

        response = self.client.get('/api/v1/system/logs/?level=error')
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['logger'], 'agency.notifications')

        response = self.client.get('/api/v1/system/logs/?search=depletion')
        self.assertEqual(response.data['count'], 1)

        response = self.client.get('/api/v1/system/logs/export/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.content.decode('utf-8').strip().splitlines()), 3)

    def test_usage(self):
        TestDataFactory.create_dealer()
        response = self.client.get('/api/v1/system/usage/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['users_by_role']['Admin'], 1)
        self.assertEqual(response.data['users_by_role']['Dealer'], 1)
        self.assertEqual(response.data['users']['total'], 2)
        self.assertEqual(response.data['entities']['dealers'], 1)


class FraudScoringTests(TestCase):
    """Test fraud rules"""

    def setUp(self):
        self.dealer = TestDataFactory.create_dealer()
        self.customer = TestDataFactory.create_customer(dealer=self.dealer)
        self.vehicle = TestDataFactory.create_vehicle(customer=self.customer)
        self.policy_type = TestDataFactory.create_policy_type()

    def _policy(self, **kwargs):
        kwargs.setdefault('vehicle', TestDataFactory.create_vehicle(customer=self.customer))
        return TestDataFactory.create_policy(dealer=self.dealer, customer=self.customer,
                                             policy_type=self.policy_type, **kwargs)

    def test_clean_policy_scores_zero(self):
        policy = self._policy()
        self.assertEqual(score_policy(policy, list_price=Decimal('1000.00')), (0, []))
        self.assertFalse(FraudDetectionLog.objects.exists())

    def test_backdated_policy(self):
        policy = self._policy(start_date=timezone.localdate() - timedelta(days=10))
        score, reasons = score_policy(policy)
        self.assertEqual(score, 20)
        self.assertEqual(len(reasons), 1)

    def test_combined_rules_are_capped(self):
        self._policy(vehicle=self.vehicle, status=Policy.STATUS_ACTIVE)
        self._policy()
        policy = self._policy(vehicle=self.vehicle)

        score, reasons = score_policy(policy, list_price=Decimal('2000.00'))
        self.assertEqual(score, MAX_SCORE)
        self.assertEqual(len(reasons), 3)

        log = evaluate_policy(policy, list_price=Decimal('2000.00'))
        self.assertEqual(log.status, FraudDetectionLog.STATUS_SUSPICIOUS)
        self.assertEqual(log.transaction_id, policy.policy_number)


class FraudReviewTests(TestCase):
    """Test the fraud review endpoints"""

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)
        self.high = FraudDetectionLog.objects.create(transaction_id='TRF-0001', entity_name='Policy', entity_id='1',
                                                     risk_score=80, status=FraudDetectionLog.STATUS_SUSPICIOUS)
        self.low = FraudDetectionLog.objects.create(transaction_id='TRF-0002', entity_name='Policy', entity_id='2',
                                                    risk_score=30)
        FraudDetectionLog.objects.create(transaction_id='TRF-0003', entity_name='Policy', entity_id='3',
                                         risk_score=90, status=FraudDetectionLog.STATUS_REVIEWED)

    def test_suspicious_list(self):
        response = self.client.get('/api/v1/fraud/suspicious/')
        self.assertEqual([row['id'] for row in response.data['results']], [self.high.id, self.low.id])

        response = self.client.get('/api/v1/fraud/suspicious/?status=Reviewed')
        self.assertEqual(response.data['count'], 1)

        response = self.client.get('/api/v1/fraud/suspicious/?min_score=50')
        self.assertEqual(response.data['count'], 1)

    def test_review(self):
        response = self.client.post(f'/api/v1/fraud/{self.high.id}/review/', {'decision': 'reject', 'notes': 'Duplicate cover'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], FraudDetectionLog.STATUS_REVIEWED)
        self.assertEqual(response.data['reviewed_by'], self.admin.id)
        self.assertTrue(AuditLog.objects.filter(action='fraud_review', object_name='TRF-0001').exists())

        response = self.client.post(f'/api/v1/fraud/{self.low.id}/review/', {'decision': 'maybe'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_dealer_cannot_review(self):
        dealer = TestDataFactory.create_dealer()
        self.client.authenticate_user(dealer.user)
        response = self.client.get('/api/v1/fraud/suspicious/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
