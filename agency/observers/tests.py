"""
Test suite for the observers module
Tests: observer administration, dealer assignment, tasks and the observer portal
"""
from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from agency.core.models import AuditLog
from agency.core.roles import OBSERVER, get_user_roles
from agency.core.test_utils import AuthenticatedAPIClient, TestDataFactory
from agency.core.utils import create_audit_log
from agency.notifications.models import Notification
from agency.observers.models import Observer, ObserverTask
from agency.policies.models import Policy

User = get_user_model()


class ObserverAdminTests(TestCase):
    """Test observer administration endpoints"""

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_create_observer_with_login(self):
        response = self.client.post('/api/v1/observers/', {'name': 'Regional Auditor', 'email': 'auditor@agency.test'})
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['username'], 'auditor')
        self.assertTrue(response.data['temporary_password'])

        user = User.objects.get(username='auditor')
        self.assertEqual(get_user_roles(user), [OBSERVER])
        self.assertTrue(user.must_change_password)

    def test_non_admin_is_forbidden(self):
        dealer = TestDataFactory.create_dealer()
        self.client.authenticate_user(dealer.user)
        response = self.client.get('/api/v1/observers/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_deactivate_disables_login(self):
        observer = TestDataFactory.create_observer()
        response = self.client.post(f'/api/v1/observers/{observer.id}/deactivate/')
        self.assertFalse(response.data['is_active'])
        observer.user.refresh_from_db()
        self.assertFalse(observer.user.is_active)

    def test_reset_password(self):
        observer = TestDataFactory.create_observer()
        response = self.client.post(f'/api/v1/observers/{observer.id}/reset-password/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        observer.user.refresh_from_db()
        self.assertTrue(observer.user.check_password(response.data['temporary_password']))

        no_login = Observer.objects.create(name='Paper Only')
        response = self.client.post(f'/api/v1/observers/{no_login.id}/reset-password/')
        self.assertEqual(response.data['code'], 'NO_ACCOUNT')

    def test_delete_removes_login(self):
        observer = TestDataFactory.create_observer()
        user_id = observer.user_id
        response = self.client.delete(f'/api/v1/observers/{observer.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(User.objects.filter(pk=user_id).exists())

    def test_assign_and_remove_dealer(self):
        observer = TestDataFactory.create_observer()
        dealer = TestDataFactory.create_dealer()
        response = self.client.post(f'/api/v1/observers/{observer.id}/dealers/', {'dealer': dealer.id})
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual([row['id'] for row in response.data['dealers']], [dealer.id])
        self.assertTrue(AuditLog.objects.filter(action='assign_dealer', object_id=str(observer.id)).exists())

        response = self.client.delete(f'/api/v1/observers/{observer.id}/dealers/{dealer.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(observer.dealers.exists())

        response = self.client.delete(f'/api/v1/observers/{observer.id}/dealers/{dealer.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class TaskTests(TestCase):
    """Test observer task assignment and progress"""

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.dealer = TestDataFactory.create_dealer()
        self.observer = TestDataFactory.create_observer(dealers=[self.dealer])
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def _payload(self, **overrides):
        payload = {
            'title': 'Quarterly audit', 'description': 'Review the pending approvals of the dealer.',
            'assigned_to': self.observer.id, 'related_dealer': self.dealer.id,
            'due_date': (timezone.localdate() + timedelta(days=7)).isoformat(), 'priority': 'High',
        }
        payload.update(overrides)
        return payload

    def _task(self, **kwargs):
        return ObserverTask.objects.create(title='Check files', description='Check the customer files.',
                                           assigned_to=self.observer, created_by=self.admin, **kwargs)

    def test_assign_task_notifies_observer(self):
        response = self.client.post('/api/v1/tasks/', self._payload())
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], ObserverTask.STATUS_PENDING)
        self.assertEqual(response.data['created_by'], self.admin.id)
        self.assertTrue(Notification.objects.filter(user=self.observer.user, title='New task assigned').exists())

    def test_task_validation(self):
        yesterday = timezone.localdate() - timedelta(days=1)
        response = self.client.post('/api/v1/tasks/', self._payload(title='x', due_date=yesterday.isoformat()))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('title', response.data)
        self.assertIn('due_date', response.data)

    def test_related_dealer_must_be_observed(self):
        other = TestDataFactory.create_dealer()
        response = self.client.post('/api/v1/tasks/', self._payload(related_dealer=other.id))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('related_dealer', response.data)

    def test_observer_progresses_own_task(self):
        task = self._task()
        self.client.authenticate_user(self.observer.user)

        response = self.client.get('/api/v1/observer/tasks/')
        self.assertEqual(response.data['count'], 1)

        response = self.client.post(f'/api/v1/observer/tasks/{task.id}/status/', {'status': ObserverTask.STATUS_COMPLETED})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIsNotNone(response.data['completed_at'])
        self.assertTrue(Notification.objects.filter(user=self.admin, title='Task status updated').exists())

        response = self.client.post(f'/api/v1/observer/tasks/{task.id}/status/', {'status': ObserverTask.STATUS_PENDING})
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['code'], 'INVALID_TRANSITION')

    def test_observer_cannot_touch_foreign_task(self):
        other = TestDataFactory.create_observer()
        task = ObserverTask.objects.create(title='Other', description='Somebody else task.', assigned_to=other)
        self.client.authenticate_user(self.observer.user)
        response = self.client.post(f'/api/v1/observer/tasks/{task.id}/status/', {'status': ObserverTask.STATUS_IN_PROGRESS})
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)


class ObserverPortalTests(TestCase):
    """Test the observer portal"""

    def setUp(self):
        self.dealer = TestDataFactory.create_dealer(name='Kadikoy Agency')
        self.unobserved = TestDataFactory.create_dealer()
        self.observer = TestDataFactory.create_observer(dealers=[self.dealer])
        TestDataFactory.create_policy(dealer=self.dealer, status=Policy.STATUS_ACTIVE)
        TestDataFactory.create_policy(dealer=self.dealer, status=Policy.STATUS_PENDING)
        TestDataFactory.create_policy(dealer=self.unobserved, status=Policy.STATUS_ACTIVE)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.observer.user)

    def test_dashboard(self):
        ObserverTask.objects.create(title='Audit', description='Audit the dealer files.', assigned_to=self.observer)
        response = self.client.get('/api/v1/observer/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['observed_dealers'], 1)
        self.assertEqual(response.data['total_policies'], 2)
        self.assertEqual(response.data['active_policies'], 1)
        self.assertEqual(response.data['pending_approvals'], 1)
        self.assertEqual(response.data['total_premium'], Decimal('1000.00'))
        self.assertEqual(response.data['pending_tasks'], 1)

    def test_dealers_are_limited_to_assignment(self):
        response = self.client.get('/api/v1/observer/dealers/')
        self.assertEqual([row['id'] for row in response.data['results']], [self.dealer.id])
        response = self.client.get(f'/api/v1/observer/dealers/{self.unobserved.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_activity_logs(self):
        create_audit_log(user=self.dealer.user, action='update', model_name='Customer', object_id=1)
        create_audit_log(user=self.unobserved.user, action='update', model_name='Customer', object_id=2)
        response = self.client.get('/api/v1/observer/activity-logs/')
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['username'], self.dealer.user.username)

    def test_reports(self):
        response = self.client.get('/api/v1/observer/reports/')
        self.assertEqual(len(response.data['dealers']), 1)
        row = response.data['dealers'][0]
        self.assertEqual(row['dealer_name'], 'Kadikoy Agency')
        self.assertEqual(row['policy_count'], 2)
        self.assertEqual(row['premium'], Decimal('1000.00'))
        self.assertEqual(row['observer_commission'], Decimal('20.00'))

    def test_other_roles_are_forbidden(self):
        self.client.authenticate_user(self.dealer.user)
        response = self.client.get('/api/v1/observer/dashboard/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
