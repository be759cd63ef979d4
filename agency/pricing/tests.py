"""
Test suite for the pricing module
Tests: price list selection, tier pricing, premium ranges and currency defaults
"""
from datetime import timedelta
from decimal import Decimal

from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from agency.core.exceptions import DomainError
from agency.core.test_utils import AuthenticatedAPIClient, TestDataFactory
from agency.pricing.models import Currency
from agency.pricing.services import calculate_premium, get_active_price_list, price_with_premium


class PremiumCalculationTests(TestCase):
    """Test premium calculation"""

    def setUp(self):
        self.today = timezone.localdate()
        self.policy_type = TestDataFactory.create_policy_type(code='TRAFFIC')
        self.price_list = TestDataFactory.create_price_list(policy_type=self.policy_type)

    def test_smallest_covering_tier_is_used(self):
        result = calculate_premium(self.policy_type, self.today, duration_days=20)
        self.assertEqual(result['tier_days'], 30)
        self.assertEqual(result['base_premium'], Decimal('500.00'))

    def test_amounts(self):
        result = calculate_premium(self.policy_type, self.today, end_date=self.today + timedelta(days=365))
        self.assertEqual(result['base_premium'], Decimal('1000.00'))
        self.assertEqual(result['tax'], Decimal('180.00'))
        self.assertEqual(result['total'], Decimal('1180.00'))
        self.assertEqual(result['dealer_commission'], Decimal('100.00'))
        self.assertEqual(result['observer_commission'], Decimal('20.00'))
        self.assertEqual(result['admin_commission'], Decimal('50.00'))
        self.assertEqual(result['min_premium'], Decimal('800.00'))
        self.assertEqual(result['max_premium'], Decimal('1200.00'))

    def test_duration_out_of_bounds(self):
        for days in (0, 366):
            with self.assertRaises(DomainError) as ctx:
                calculate_premium(self.policy_type, self.today, duration_days=days)
            self.assertEqual(ctx.exception.code, 'INVALID_DURATION')

    def test_missing_tier(self):
        policy_type = TestDataFactory.create_policy_type()
        TestDataFactory.create_price_list(policy_type=policy_type, price_15d=None, price_30d=None,
                                          price_90d=None, price_365d=None)
        with self.assertRaises(DomainError) as ctx:
            calculate_premium(policy_type, self.today, duration_days=10)
        self.assertEqual(ctx.exception.code, 'TIER_NOT_CONFIGURED')

    def test_no_price_list_for_date(self):
        with self.assertRaises(DomainError) as ctx:
            calculate_premium(self.policy_type, self.today + timedelta(days=400), duration_days=30)
        self.assertEqual(ctx.exception.code, 'PRICE_LIST_NOT_FOUND')
        self.assertEqual(ctx.exception.status_code, status.HTTP_404_NOT_FOUND)

    def test_highest_priority_wins(self):
        preferred = TestDataFactory.create_price_list(policy_type=self.policy_type, priority=5,
                                                      price_30d=Decimal('450.00'))
        self.assertEqual(get_active_price_list(self.policy_type, self.today), preferred)
        result = calculate_premium(self.policy_type, self.today, duration_days=30)
        self.assertEqual(result['base_premium'], Decimal('450.00'))

    def test_inactive_list_is_ignored(self):
        self.price_list.is_active = False
        self.price_list.save()
        self.assertIsNone(get_active_price_list(self.policy_type, self.today))

    def test_chosen_premium_within_range(self):
        calculation = calculate_premium(self.policy_type, self.today, duration_days=365)
        result = price_with_premium(calculation, Decimal('1100'))
        self.assertEqual(result['base_premium'], Decimal('1100.00'))
        self.assertEqual(result['tax'], Decimal('198.00'))
        self.assertEqual(result['dealer_commission'], Decimal('110.00'))

    def test_chosen_premium_out_of_range(self):
        calculation = calculate_premium(self.policy_type, self.today, duration_days=365)
        with self.assertRaises(DomainError) as ctx:
            price_with_premium(calculation, Decimal('1300'))
        self.assertEqual(ctx.exception.code, 'PREMIUM_OUT_OF_RANGE')


class CurrencyTests(TestCase):
    """Test the single default currency"""

    def test_first_currency_becomes_default(self):
        currency = Currency.objects.create(code='TRY', name='Turkish Lira')
        self.assertTrue(currency.is_default)

    def test_new_default_replaces_old(self):
        old = Currency.objects.create(code='TRY', name='Turkish Lira')
        new = Currency.objects.create(code='EUR', name='Euro', is_default=True)
        old.refresh_from_db()
        self.assertFalse(old.is_default)
        self.assertTrue(new.is_default)
        self.assertEqual(Currency.objects.filter(is_default=True).count(), 1)

    def test_default_currency_cannot_be_deleted(self):
        currency = Currency.objects.create(code='TRY', name='Turkish Lira')
        client = AuthenticatedAPIClient()
        client.authenticate_user(TestDataFactory.create_admin())
        response = client.delete(f'/api/v1/currencies/{currency.id}/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['code'], 'DEFAULT_CURRENCY')

        response = client.get('/api/v1/currencies/default/')
        self.assertEqual(response.data['code'], 'TRY')


class PricingApiTests(TestCase):
    """Test pricing endpoints"""

    def setUp(self):
        self.today = timezone.localdate()
        self.admin = TestDataFactory.create_admin()
        self.policy_type = TestDataFactory.create_policy_type(code='TRAFFIC')
        self.currency = TestDataFactory.create_currency()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.admin)

    def _price_list_payload(self, **overrides):
        payload = {
            'policy_type': self.policy_type.id, 'currency': self.currency.id, 'name': 'Traffic 2026',
            'start_date': self.today.isoformat(), 'end_date': (self.today + timedelta(days=365)).isoformat(),
            'price_30d': '500.00', 'min_30d': '450.00', 'max_30d': '600.00', 'tax_rate': '0.1800',
        }
        payload.update(overrides)
        return payload

    def test_create_price_list(self):
        response = self.client.post('/api/v1/price-lists/', self._price_list_payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['configured_tiers'], [30])
        self.assertEqual(response.data['created_by'], self.admin.id)

    def test_price_list_validation(self):
        response = self.client.post('/api/v1/price-lists/', self._price_list_payload(
            end_date=self.today.isoformat(), min_30d='550.00', tax_rate='1.5'), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('tax_rate', response.data)

        response = self.client.post('/api/v1/price-lists/', self._price_list_payload(
            end_date=self.today.isoformat(), min_30d='550.00'), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('end_date', response.data)
        self.assertIn('min_30d', response.data)

    def test_price_list_needs_a_tier(self):
        payload = self._price_list_payload()
        for key in ('price_30d', 'min_30d', 'max_30d'):
            payload.pop(key)
        response = self.client.post('/api/v1/price-lists/', payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('price_1d', response.data)

    def test_dealer_cannot_modify_pricing(self):
        dealer = TestDataFactory.create_dealer()
        self.client.authenticate_user(dealer.user)
        response = self.client.post('/api/v1/price-lists/', self._price_list_payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
        response = self.client.get('/api/v1/price-lists/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_calculate_endpoint(self):
        TestDataFactory.create_price_list(policy_type=self.policy_type, currency=self.currency)
        response = self.client.post('/api/v1/pricing/calculate/', {
            'policy_type': 'traffic', 'start_date': self.today.isoformat(), 'duration_days': 365,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['base_premium'], '1000.00')
        self.assertEqual(response.data['total'], '1180.00')
        self.assertEqual(response.data['currency'], 'TRY')

    def test_calculate_requires_duration(self):
        response = self.client.post('/api/v1/pricing/calculate/', {
            'policy_type': 'TRAFFIC', 'start_date': self.today.isoformat(),
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_calculate_unknown_policy_type(self):
        response = self.client.post('/api/v1/pricing/calculate/', {
            'policy_type': 'NOPE', 'start_date': self.today.isoformat(), 'duration_days': 30,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'POLICY_TYPE_NOT_FOUND')

    def test_active_price_list_lookup(self):
        response = self.client.get('/api/v1/price-lists/active/?policy_type=TRAFFIC')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        price_list = TestDataFactory.create_price_list(policy_type=self.policy_type, currency=self.currency)
        response = self.client.get('/api/v1/price-lists/active/?policy_type=TRAFFIC')
        self.assertEqual(response.data['id'], price_list.id)
