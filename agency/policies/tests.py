"""
Test suite for the policies module
Tests: series numbering, policy creation, approval workflow and status refresh
"""
from datetime import timedelta
from io import StringIO

from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from agency.core.exceptions import ConflictError
from agency.core.models import AuditLog
from agency.core.test_utils import AuthenticatedAPIClient, TestDataFactory
from agency.notifications.models import Notification
from agency.policies.models import Policy
from agency.policies.numbering import reserve_for_dealer, reserve_number, reserve_policy_number
from agency.policies.services import refresh_policy_statuses


class SeriesNumberingTests(TestCase):
    """Test policy number reservation"""

    def setUp(self):
        self.dealer = TestDataFactory.create_dealer()

    def test_numbers_are_sequential_and_padded(self):
        series = TestDataFactory.create_series(dealer=self.dealer, series='TRF', start_number=1, end_number=1000)
        self.assertEqual(reserve_policy_number(series.id)[2], 'TRF-0001')
        self.assertEqual(reserve_policy_number(series.id)[2], 'TRF-0002')
        series.refresh_from_db()
        self.assertEqual(series.current_number, 3)
        self.assertEqual(series.used_numbers, 2)

    def test_blacklisted_numbers_are_skipped(self):
        series = TestDataFactory.create_series(dealer=self.dealer, start_number=1, end_number=10,
                                               blacklisted_numbers=[1, 2, 4])
        self.assertEqual(reserve_number(series.id)[1], 3)
        self.assertEqual(reserve_number(series.id)[1], 5)

    def test_exhausted_series(self):
        series = TestDataFactory.create_series(dealer=self.dealer, start_number=1, end_number=2,
                                               blacklisted_numbers=[2])
        reserve_number(series.id)
        with self.assertRaises(ConflictError) as ctx:
            reserve_number(series.id)
        self.assertEqual(ctx.exception.code, 'SERIES_EXHAUSTED')
        series.refresh_from_db()
        self.assertTrue(series.is_exhausted)

    def test_dealer_falls_through_to_next_series(self):
        TestDataFactory.create_series(dealer=self.dealer, series='AAA', start_number=1, end_number=2)
        TestDataFactory.create_series(dealer=self.dealer, series='BBB', start_number=1, end_number=5)
        numbers = [reserve_for_dealer(self.dealer)[2] for _ in range(3)]
        self.assertEqual(numbers, ['AAA-1', 'AAA-2', 'BBB-1'])

    def test_dealer_without_series(self):
        with self.assertRaises(ConflictError) as ctx:
            reserve_for_dealer(self.dealer)
        self.assertEqual(ctx.exception.code, 'NO_ACTIVE_SERIES')


class SeriesApiTests(TestCase):
    """Test policy series endpoints"""

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.dealer = TestDataFactory.create_dealer()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_create_series(self):
        response = self.client.post('/api/v1/policy-series/', {
            'dealer': self.dealer.id, 'series': 'ksk', 'start_number': 100, 'end_number': 199,
            'blacklisted_numbers': [150, 120, 150],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['series'], 'KSK')
        self.assertEqual(response.data['current_number'], 100)
        self.assertEqual(response.data['blacklisted_numbers'], [120, 150])
        self.assertEqual(response.data['remaining_numbers'], 98)

    def test_series_validation(self):
        TestDataFactory.create_series(series='KSK', start_number=1, end_number=100)
        response = self.client.post('/api/v1/policy-series/', {
            'series': 'KSK', 'start_number': 50, 'end_number': 150,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('start_number', response.data)

        response = self.client.post('/api/v1/policy-series/', {
            'series': 'NEW', 'start_number': 10, 'end_number': 20, 'blacklisted_numbers': [25],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('blacklisted_numbers', response.data)

    def test_statistics(self):
        series = TestDataFactory.create_series(dealer=self.dealer, start_number=1, end_number=40)
        reserve_number(series.id)
        response = self.client.get(f'/api/v1/policy-series/{series.id}/statistics/')
        self.assertEqual(response.data['used'], 1)
        self.assertEqual(response.data['remaining'], 39)
        self.assertTrue(response.data['is_near_depletion'])

    def test_dealer_uses_only_own_series(self):
        own = TestDataFactory.create_series(dealer=self.dealer, series='OWN')
        other = TestDataFactory.create_series(dealer=TestDataFactory.create_dealer(), series='OTH')
        self.client.authenticate_user(self.dealer.user)

        response = self.client.post(f'/api/v1/policy-series/{own.id}/full-number/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['policy_number'], 'OWN-0001')

        response = self.client.post(f'/api/v1/policy-series/{other.id}/next-number/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        response = self.client.get('/api/v1/policy-series/')
        self.assertEqual([row['id'] for row in response.data['results']], [own.id])

    def test_assign_dealer(self):
        series = TestDataFactory.create_series()
        response = self.client.post(f'/api/v1/policy-series/{series.id}/assign-dealer/', {'dealer': self.dealer.id})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        response = self.client.get(f'/api/v1/dealers/{self.dealer.id}/active-series/')
        self.assertEqual([row['id'] for row in response.data], [series.id])


class PolicyApiTests(TestCase):
    """Test policy creation and the approval workflow"""

    def setUp(self):
        self.today = timezone.localdate()
        self.admin = TestDataFactory.create_admin()
        self.dealer = TestDataFactory.create_dealer()
        self.customer = TestDataFactory.create_customer(dealer=self.dealer, with_account=True)
        self.vehicle = TestDataFactory.create_vehicle(customer=self.customer)
        self.policy_type = TestDataFactory.create_policy_type(code='TRAFFIC')
        TestDataFactory.create_price_list(policy_type=self.policy_type)
        TestDataFactory.create_series(dealer=self.dealer, series='TRF')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.dealer.user)

    def _create(self, **overrides):
        payload = {
            'customer': self.customer.id, 'vehicle': self.vehicle.id, 'policy_type': 'TRAFFIC',
            'start_date': self.today.isoformat(), 'end_date': (self.today + timedelta(days=365)).isoformat(),
        }
        payload.update(overrides)
        return self.client.post('/api/v1/policies/', payload, format='json')

    def test_dealer_creates_priced_draft(self):
        response = self._create()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], Policy.STATUS_DRAFT)
        self.assertEqual(response.data['policy_number'], 'TRF-0001')
        self.assertEqual(response.data['premium'], '1000.00')
        self.assertEqual(response.data['total'], '1180.00')
        self.assertEqual(response.data['dealer'], self.dealer.id)
        self.assertTrue(AuditLog.objects.filter(action='series_allocate', object_name='TRF-0001').exists())

    def test_create_with_premium_out_of_range(self):
        response = self._create(premium='2000.00')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'PREMIUM_OUT_OF_RANGE')
        self.assertFalse(Policy.objects.exists())

    def test_create_for_foreign_customer(self):
        foreign = TestDataFactory.create_customer(dealer=TestDataFactory.create_dealer())
        response = self._create(customer=foreign.id, vehicle=TestDataFactory.create_vehicle(customer=foreign).id)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('customer', response.data)

    def test_vehicle_must_belong_to_customer(self):
        other_customer = TestDataFactory.create_customer(dealer=self.dealer)
        response = self._create(vehicle=TestDataFactory.create_vehicle(customer=other_customer).id)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'VEHICLE_CUSTOMER_MISMATCH')

    def test_customer_cannot_create(self):
        self.client.authenticate_user(self.customer.user)
        response = self._create()
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def _batch_item(self, **overrides):
        item = {
            'customer': self.customer.id, 'vehicle': self.vehicle.id, 'policy_type': 'TRAFFIC',
            'start_date': self.today.isoformat(), 'end_date': (self.today + timedelta(days=30)).isoformat(),
        }
        item.update(overrides)
        return item

    def test_batch_create(self):
        second_vehicle = TestDataFactory.create_vehicle(customer=self.customer)
        response = self.client.post('/api/v1/policies/batch/', {'policies': [
            self._batch_item(),
            self._batch_item(vehicle=second_vehicle.id),
        ]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual([item['policy_number'] for item in response.data], ['TRF-0001', 'TRF-0002'])
        self.assertEqual(Policy.objects.filter(status=Policy.STATUS_DRAFT).count(), 2)

    def test_batch_rolls_back_on_failing_item(self):
        """A failing item leaves no policies, numbers or audit rows behind"""
        response = self.client.post('/api/v1/policies/batch/', {'policies': [
            self._batch_item(),
            self._batch_item(premium='2000.00'),
        ]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'PREMIUM_OUT_OF_RANGE')
        self.assertTrue(response.data['error'].startswith('Policy 2:'))
        self.assertFalse(Policy.objects.exists())
        self.assertFalse(AuditLog.objects.filter(action='series_allocate').exists())

        # The reserved number was released with the rollback
        self.assertEqual(self._create().data['policy_number'], 'TRF-0001')

    def test_batch_rejects_foreign_customer(self):
        foreign = TestDataFactory.create_customer(dealer=TestDataFactory.create_dealer())
        response = self.client.post('/api/v1/policies/batch/', {'policies': [
            self._batch_item(),
            self._batch_item(customer=foreign.id, vehicle=TestDataFactory.create_vehicle(customer=foreign).id),
        ]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['index'], 1)
        self.assertIn('customer', response.data['errors'])
        self.assertFalse(Policy.objects.exists())

    def test_batch_requires_items(self):
        response = self.client.post('/api/v1/policies/batch/', {'policies': []}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('policies', response.data)

    def test_customer_cannot_batch_create(self):
        self.client.authenticate_user(self.customer.user)
        response = self.client.post('/api/v1/policies/batch/', {'policies': [self._batch_item()]}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_full_workflow(self):
        policy_id = self._create().data['id']

        response = self.client.post(f'/api/v1/policies/{policy_id}/submit/')
        self.assertEqual(response.data['status'], Policy.STATUS_PENDING)

        response = self.client.post(f'/api/v1/policies/{policy_id}/approve/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.admin)
        response = self.client.post(f'/api/v1/policies/{policy_id}/approve/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], Policy.STATUS_ACTIVE)
        self.assertEqual(response.data['approved_by'], self.admin.id)
        self.assertTrue(Notification.objects.filter(user=self.customer.user, title='Policy approved').exists())

        response = self.client.post(f'/api/v1/policies/{policy_id}/cancel/', {'reason': 'Vehicle sold'})
        self.assertEqual(response.data['status'], Policy.STATUS_CANCELLED)
        self.assertEqual(response.data['cancellation_reason'], 'Vehicle sold')

    def test_future_start_is_approved_not_active(self):
        start = self.today + timedelta(days=10)
        policy = TestDataFactory.create_policy(dealer=self.dealer, customer=self.customer, vehicle=self.vehicle,
                                               policy_type=self.policy_type, start_date=start,
                                               status=Policy.STATUS_PENDING)
        self.client.authenticate_user(self.admin)
        response = self.client.post(f'/api/v1/policies/{policy.id}/approve/')
        self.assertEqual(response.data['status'], Policy.STATUS_APPROVED)

    def test_reject_requires_reason(self):
        policy = TestDataFactory.create_policy(dealer=self.dealer, customer=self.customer, vehicle=self.vehicle,
                                               policy_type=self.policy_type, status=Policy.STATUS_PENDING)
        self.client.authenticate_user(self.admin)
        response = self.client.post(f'/api/v1/policies/{policy.id}/reject/', {})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post(f'/api/v1/policies/{policy.id}/reject/', {'reason': 'Missing documents'})
        self.assertEqual(response.data['status'], Policy.STATUS_REJECTED)
        self.assertEqual(response.data['rejection_reason'], 'Missing documents')

    def test_invalid_transition(self):
        policy = TestDataFactory.create_policy(dealer=self.dealer, customer=self.customer, vehicle=self.vehicle,
                                               policy_type=self.policy_type)
        self.client.authenticate_user(self.admin)
        response = self.client.post(f'/api/v1/policies/{policy.id}/approve/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['code'], 'INVALID_TRANSITION')
        policy.refresh_from_db()
        self.assertEqual(policy.status, Policy.STATUS_DRAFT)

    def test_edit_draft_reprices(self):
        policy_id = self._create().data['id']
        response = self.client.patch(f'/api/v1/policies/{policy_id}/', {
            'end_date': (self.today + timedelta(days=30)).isoformat(),
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['premium'], '500.00')

    def test_only_drafts_are_editable_or_deletable(self):
        policy = TestDataFactory.create_policy(dealer=self.dealer, customer=self.customer, vehicle=self.vehicle,
                                               policy_type=self.policy_type, status=Policy.STATUS_ACTIVE)
        response = self.client.patch(f'/api/v1/policies/{policy.id}/', {'notes': 'x'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        response = self.client.delete(f'/api/v1/policies/{policy.id}/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_scoping(self):
        own = TestDataFactory.create_policy(dealer=self.dealer, customer=self.customer, vehicle=self.vehicle,
                                            policy_type=self.policy_type)
        TestDataFactory.create_policy()

        response = self.client.get('/api/v1/policies/')
        self.assertEqual([row['id'] for row in response.data['results']], [own.id])

        self.client.authenticate_user(self.customer.user)
        response = self.client.get('/api/v1/policies/')
        self.assertEqual(response.data['count'], 1)

        self.client.authenticate_user(self.admin)
        response = self.client.get('/api/v1/policies/')
        self.assertEqual(response.data['count'], 2)

    def test_overlapping_policy_is_flagged(self):
        from agency.system.models import FraudDetectionLog

        TestDataFactory.create_policy(dealer=self.dealer, customer=self.customer, vehicle=self.vehicle,
                                      policy_type=self.policy_type, status=Policy.STATUS_ACTIVE)
        response = self._create(premium='800.00')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        log = FraudDetectionLog.objects.get(entity_id=str(response.data['id']))
        self.assertGreaterEqual(log.risk_score, 50)


class RefreshStatusesTests(TestCase):
    """Test date-driven status moves"""

    def setUp(self):
        self.today = timezone.localdate()

    def test_refresh(self):
        starting = TestDataFactory.create_policy(start_date=self.today, status=Policy.STATUS_APPROVED)
        future = TestDataFactory.create_policy(start_date=self.today + timedelta(days=5), status=Policy.STATUS_APPROVED)
        ended = TestDataFactory.create_policy(start_date=self.today - timedelta(days=40), days=30,
                                              status=Policy.STATUS_ACTIVE)

        activated, expired = refresh_policy_statuses(self.today)
        self.assertEqual((activated, expired), (1, 1))
        for policy, expected in ((starting, Policy.STATUS_ACTIVE), (future, Policy.STATUS_APPROVED),
                                 (ended, Policy.STATUS_EXPIRED)):
            policy.refresh_from_db()
            self.assertEqual(policy.status, expected)

    def test_command(self):
        TestDataFactory.create_policy(start_date=self.today, status=Policy.STATUS_APPROVED)
        out = StringIO()
        call_command('refresh_policy_statuses', stdout=out)
        self.assertIn('1 policies activated', out.getvalue())
