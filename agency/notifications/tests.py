"""
Test suite for the notifications module
Tests: notify service, inbox endpoints, delivery settings and broadcasts
"""
from django.core import mail
from django.test import TestCase
from rest_framework import status

from agency.core.roles import DEALER
from agency.core.test_utils import AuthenticatedAPIClient, TestDataFactory
from agency.notifications.models import Notification, NotificationSetting
from agency.notifications.services import notify


class NotifyServiceTests(TestCase):
    """Test the notify helper"""

    def setUp(self):
        self.user = TestDataFactory.create_user(email='user@test.com')

    def test_creates_notification_without_mail_by_default(self):
        notification = notify(self.user, 'Hello', 'Welcome aboard')
        self.assertEqual(notification.user, self.user)
        self.assertFalse(notification.is_read)
        self.assertEqual(len(mail.outbox), 0)

    def test_sends_mail_when_enabled(self):
        NotificationSetting.objects.create(user=self.user, email_enabled=True, email_address='alt@test.com')
        notify(self.user, 'Policy approved', 'Your policy was approved', type='success')
        self.assertEqual(len(mail.outbox), 1)
        self.assertEqual(mail.outbox[0].to, ['alt@test.com'])

    def test_no_mail_when_disabled(self):
        NotificationSetting.objects.create(user=self.user, email_enabled=False)
        notify(self.user, 'Quiet', 'No mail please')
        self.assertEqual(len(mail.outbox), 0)

    def test_none_user_is_ignored(self):
        self.assertIsNone(notify(None, 'x', 'y'))


class NotificationApiTests(TestCase):
    """Test the notification inbox endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.other = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)
        self.first = notify(self.user, 'First', 'one')
        self.second = notify(self.user, 'Second', 'two', type='warning')
        notify(self.other, 'Other', 'not yours')

    def test_list_own_notifications(self):
        response = self.client.get('/api/v1/notifications/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 2)

    def test_filter_by_type(self):
        response = self.client.get('/api/v1/notifications/?type=warning')
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['title'], 'Second')

    def test_unread_count_and_mark_read(self):
        response = self.client.get('/api/v1/notifications/unread-count/')
        self.assertEqual(response.data['count'], 2)

        response = self.client.post(f'/api/v1/notifications/{self.first.id}/read/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['is_read'])
        self.assertIsNotNone(response.data['read_at'])

        response = self.client.get('/api/v1/notifications/?is_read=false')
        self.assertEqual(response.data['count'], 1)

    def test_cannot_mark_someone_elses_notification(self):
        foreign = Notification.objects.get(user=self.other)
        response = self.client.post(f'/api/v1/notifications/{foreign.id}/read/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_mark_all_read(self):
        response = self.client.post('/api/v1/notifications/read-all/')
        self.assertEqual(response.data['updated'], 2)
        self.assertEqual(Notification.objects.filter(user=self.user, is_read=False).count(), 0)
        self.assertEqual(Notification.objects.filter(user=self.other, is_read=False).count(), 1)

    def test_settings_get_and_update(self):
        response = self.client.get('/api/v1/notifications/settings/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['email_enabled'])
        self.assertFalse(response.data['sms_enabled'])

        response = self.client.put('/api/v1/notifications/settings/', {'sms_enabled': True}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(NotificationSetting.objects.get(user=self.user).sms_enabled)


class BroadcastTests(TestCase):
    """Test admin broadcasts"""

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_broadcast_to_role(self):
        TestDataFactory.create_dealer()
        TestDataFactory.create_dealer()
        TestDataFactory.create_user()
        response = self.client.post('/api/v1/notifications/broadcast/', {
            'role': DEALER, 'title': 'Maintenance tonight', 'message': 'The system is down at 22:00.',
        })
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['sent'], 2)
        self.assertEqual(Notification.objects.filter(title='Maintenance tonight').count(), 2)

    def test_broadcast_requires_admin(self):
        dealer = TestDataFactory.create_dealer()
        self.client.authenticate_user(dealer.user)
        response = self.client.post('/api/v1/notifications/broadcast/', {
            'role': 'all', 'title': 'x', 'message': 'y',
        })
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
