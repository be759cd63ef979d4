"""
Test suite for the support module
Tests: ticket lifecycle, replies and visibility
"""
from django.test import TestCase
from rest_framework import status

from agency.core.models import AuditLog
from agency.core.test_utils import AuthenticatedAPIClient, TestDataFactory
from agency.notifications.models import Notification
from agency.support.models import Ticket


class TicketTests(TestCase):
    """Test support tickets"""

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.dealer = TestDataFactory.create_dealer()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.dealer.user)

    def _open_ticket(self, user=None):
        return Ticket.objects.create(user=user or self.dealer.user, subject='Cannot print policy',
                                     message='The print button returns an error page.')

    def test_open_ticket(self):
        response = self.client.post('/api/v1/support/tickets/', {
            'subject': 'Login issue', 'message': 'I cannot log in since this morning.',
            'priority': 'High', 'category': 'technical',
        })
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], Ticket.STATUS_OPEN)
        self.assertEqual(response.data['user'], self.dealer.user.id)

    def test_ticket_validation(self):
        response = self.client.post('/api/v1/support/tickets/', {'subject': 'Hi', 'message': 'Help'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('subject', response.data)
        self.assertIn('message', response.data)

    def test_users_see_only_own_tickets(self):
        own = self._open_ticket()
        other = self._open_ticket(user=TestDataFactory.create_user())
        response = self.client.get('/api/v1/support/tickets/')
        self.assertEqual([row['id'] for row in response.data['results']], [own.id])
        response = self.client.get(f'/api/v1/support/tickets/{other.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

        self.client.authenticate_user(self.admin)
        response = self.client.get('/api/v1/support/tickets/?status=Open')
        self.assertEqual(response.data['count'], 2)

    def test_staff_reply_starts_work(self):
        ticket = self._open_ticket()
        self.client.authenticate_user(self.admin)
        response = self.client.post(f'/api/v1/support/tickets/{ticket.id}/replies/', {'message': 'Looking into it.'})
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertFalse(response.data['is_from_customer'])

        ticket.refresh_from_db()
        self.assertEqual(ticket.status, Ticket.STATUS_IN_PROGRESS)
        self.assertTrue(Notification.objects.filter(user=self.dealer.user, title='New reply to your ticket').exists())

    def test_owner_reply_keeps_status(self):
        ticket = self._open_ticket()
        response = self.client.post(f'/api/v1/support/tickets/{ticket.id}/replies/', {'message': 'Any update?'})
        self.assertTrue(response.data['is_from_customer'])
        ticket.refresh_from_db()
        self.assertEqual(ticket.status, Ticket.STATUS_OPEN)

        response = self.client.get(f'/api/v1/support/tickets/{ticket.id}/')
        self.assertEqual(len(response.data['replies']), 1)

    def test_closed_ticket_rejects_replies(self):
        ticket = self._open_ticket()
        response = self.client.post(f'/api/v1/support/tickets/{ticket.id}/close/')
        self.assertEqual(response.data['status'], Ticket.STATUS_CLOSED)

        response = self.client.post(f'/api/v1/support/tickets/{ticket.id}/replies/', {'message': 'One more thing'})
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['code'], 'TICKET_CLOSED')

        response = self.client.post(f'/api/v1/support/tickets/{ticket.id}/close/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_admin_sets_status(self):
        ticket = self._open_ticket()
        response = self.client.post(f'/api/v1/support/tickets/{ticket.id}/status/', {'status': Ticket.STATUS_RESOLVED})
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

        self.client.authenticate_user(self.admin)
        response = self.client.post(f'/api/v1/support/tickets/{ticket.id}/status/', {'status': Ticket.STATUS_RESOLVED})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIsNotNone(response.data['resolved_at'])
        self.assertTrue(AuditLog.objects.filter(action='ticket_status', object_id=str(ticket.id)).exists())
        self.assertTrue(Notification.objects.filter(user=self.dealer.user, title='Ticket status updated').exists())
