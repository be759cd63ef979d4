"""
Test suite for the dealers module
Tests: dealer CRUD with login accounts, activation, scoping and the dealer's own record
"""
from django.contrib.auth import get_user_model
from django.test import TestCase
from rest_framework import status

from agency.core.roles import DEALER, get_user_roles
from agency.core.test_utils import AuthenticatedAPIClient, TestDataFactory
from agency.dealers.models import Dealer

User = get_user_model()


class DealerAdminTests(TestCase):
    """Test dealer administration endpoints"""

    def setUp(self):
        self.admin = TestDataFactory.create_admin()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def test_create_dealer_creates_login(self):
        """Creating a dealer returns a temporary password for its new login"""
        response = self.client.post('/api/v1/dealers/', {'name': 'Bosphorus Agency', 'code': 'bos01', 'email': 'b@x.com'})
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['code'], 'BOS01')
        self.assertTrue(response.data['temporary_password'])

        dealer = Dealer.objects.get(code='BOS01')
        self.assertEqual(dealer.user.username, 'bos01')
        self.assertTrue(dealer.user.must_change_password)
        self.assertEqual(get_user_roles(dealer.user), [DEALER])
        self.assertTrue(dealer.user.check_password(response.data['temporary_password']))

    def test_duplicate_code_is_rejected_case_insensitively(self):
        TestDataFactory.create_dealer(code='ANK01')
        response = self.client.post('/api/v1/dealers/', {'name': 'Another', 'code': 'ank01'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('code', response.data)

    def test_short_name_is_rejected(self):
        response = self.client.post('/api/v1/dealers/', {'name': 'A', 'code': 'XY01'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_and_search(self):
        TestDataFactory.create_dealer(name='Izmir Motors', code='IZM01')
        TestDataFactory.create_dealer(name='Ankara Auto', code='ANK02')
        response = self.client.get('/api/v1/dealers/?search=izmir')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['code'], 'IZM01')

    def test_customer_count(self):
        dealer = TestDataFactory.create_dealer()
        TestDataFactory.create_customer(dealer=dealer)
        TestDataFactory.create_customer(dealer=dealer)
        response = self.client.get(f'/api/v1/dealers/{dealer.id}/')
        self.assertEqual(response.data['customer_count'], 2)

    def test_deactivate_toggles_login(self):
        dealer = TestDataFactory.create_dealer()
        response = self.client.post(f'/api/v1/dealers/{dealer.id}/deactivate/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        dealer.refresh_from_db()
        dealer.user.refresh_from_db()
        self.assertFalse(dealer.is_active)
        self.assertFalse(dealer.user.is_active)

        self.client.post(f'/api/v1/dealers/{dealer.id}/activate/')
        dealer.user.refresh_from_db()
        self.assertTrue(dealer.user.is_active)

    def test_delete_dealer_removes_login(self):
        dealer = TestDataFactory.create_dealer()
        user_id = dealer.user_id
        response = self.client.delete(f'/api/v1/dealers/{dealer.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(User.objects.filter(pk=user_id).exists())

    def test_delete_dealer_with_customers_conflicts(self):
        dealer = TestDataFactory.create_dealer()
        TestDataFactory.create_customer(dealer=dealer)
        response = self.client.delete(f'/api/v1/dealers/{dealer.id}/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['code'], 'DEALER_IN_USE')
        self.assertTrue(Dealer.objects.filter(pk=dealer.pk).exists())

    def test_reset_password(self):
        dealer = TestDataFactory.create_dealer()
        response = self.client.post(f'/api/v1/dealers/{dealer.id}/reset-password/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        dealer.user.refresh_from_db()
        self.assertTrue(dealer.user.check_password(response.data['temporary_password']))

    def test_reset_password_without_account(self):
        dealer = TestDataFactory.create_dealer(with_account=False)
        response = self.client.post(f'/api/v1/dealers/{dealer.id}/reset-password/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'NO_ACCOUNT')


class DealerAccessTests(TestCase):
    """Test dealer visibility for observers and dealers"""

    def setUp(self):
        self.dealer = TestDataFactory.create_dealer()
        self.other_dealer = TestDataFactory.create_dealer()
        self.client = AuthenticatedAPIClient()

    def test_observer_sees_assigned_dealers_only(self):
        observer = TestDataFactory.create_observer(dealers=[self.dealer])
        self.client.authenticate_user(observer.user)
        response = self.client.get('/api/v1/dealers/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row['id'] for row in response.data['results']], [self.dealer.id])

        response = self.client.get(f'/api/v1/dealers/{self.other_dealer.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_observer_cannot_create_dealer(self):
        observer = TestDataFactory.create_observer()
        self.client.authenticate_user(observer.user)
        response = self.client.post('/api/v1/dealers/', {'name': 'Nope', 'code': 'NOPE'})
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_dealer_cannot_list_dealers(self):
        self.client.authenticate_user(self.dealer.user)
        response = self.client.get('/api/v1/dealers/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_dealer_me(self):
        self.client.authenticate_user(self.dealer.user)
        response = self.client.get('/api/v1/dealers/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['id'], self.dealer.id)

    def test_dealer_me_without_record(self):
        user = TestDataFactory.create_user(role=DEALER)
        self.client.authenticate_user(user)
        response = self.client.get('/api/v1/dealers/me/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
