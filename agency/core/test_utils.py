"""
Test utilities and factories for creating test data
"""
import itertools
import random
import string
from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.utils import timezone
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from agency.core.accounts import set_user_roles
from agency.core.roles import ADMIN, CUSTOMER, DEALER, OBSERVER, SUPERADMIN
from agency.customers.models import Customer, Vehicle
from agency.dealers.models import Dealer
from agency.observers.models import Observer
from agency.policies.models import Policy, PolicySeries
from agency.policies.services import create_policy
from agency.pricing.models import Currency, PolicyType, PriceList

User = get_user_model()

_plate_numbers = itertools.count(100)


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def random_code(length=6):
        return ''.join(random.choices(string.ascii_uppercase, k=length))

    @staticmethod
    def create_user(username=None, email=None, password='testpass123', role=None, is_staff=False, is_superuser=False):
        """Create a test user, optionally in a role group"""
        if not username:
            username = f'testuser_{TestDataFactory.random_string(6).lower()}'
        if not email:
            email = f'{username}@test.com'
        user = User.objects.create_user(
            username=username,
            email=email,
            password=password,
            is_staff=is_staff,
            is_superuser=is_superuser
        )
        if role:
            set_user_roles(user, [role])
        return user

    @staticmethod
    def create_admin(**kwargs):
        return TestDataFactory.create_user(role=ADMIN, **kwargs)

    @staticmethod
    def create_superadmin(**kwargs):
        return TestDataFactory.create_user(role=SUPERADMIN, **kwargs)

    @staticmethod
    def create_dealer(name=None, code=None, with_account=True):
        """Create a test dealer, with a Dealer login by default"""
        code = code or f'D{TestDataFactory.random_code(5)}'
        dealer = Dealer.objects.create(
            name=name or f'Dealer {code}',
            code=code,
            email=f'{code.lower()}@dealer.test',
            phone='5551234567'
        )
        if with_account:
            dealer.user = TestDataFactory.create_user(username=f'dealer_{code.lower()}', role=DEALER)
            dealer.save(update_fields=['user'])
        return dealer

    @staticmethod
    def create_observer(name=None, dealers=None):
        """Create a test observer with a login, assigned to ``dealers``"""
        name = name or f'Observer {TestDataFactory.random_code(4)}'
        user = TestDataFactory.create_user(role=OBSERVER)
        observer = Observer.objects.create(name=name, email=user.email, user=user)
        if dealers:
            observer.dealers.add(*dealers)
        return observer

    @staticmethod
    def create_customer(dealer=None, first_name='Ayse', last_name=None, national_id=None, with_account=False):
        """Create a test customer"""
        if dealer is None:
            dealer = TestDataFactory.create_dealer()
        customer = Customer.objects.create(
            dealer=dealer,
            first_name=first_name,
            last_name=last_name or f'Yilmaz{TestDataFactory.random_code(3).lower()}',
            national_id=national_id,
            email=f'{TestDataFactory.random_string(6).lower()}@customer.test',
            phone='5559876543'
        )
        if with_account:
            customer.user = TestDataFactory.create_user(role=CUSTOMER)
            customer.save(update_fields=['user'])
        return customer

    @staticmethod
    def create_vehicle(customer=None, plate_number=None, brand='Toyota', model='Corolla', model_year=2020):
        """Create a test vehicle with a unique plate"""
        if customer is None:
            customer = TestDataFactory.create_customer()
        if not plate_number:
            plate_number = f'34 ABC {next(_plate_numbers)}'
        return Vehicle.objects.create(
            customer=customer,
            plate_number=plate_number,
            brand=brand,
            model=model,
            model_year=model_year
        )

    @staticmethod
    def create_policy_type(code=None, name=None):
        code = code or f'T{TestDataFactory.random_code(4)}'
        return PolicyType.objects.create(code=code, name=name or f'Policy type {code}')

    @staticmethod
    def create_currency(code='TRY', name='Turkish Lira', symbol='TL', is_default=False):
        currency = Currency.objects.filter(code=code).first()
        if currency:
            return currency
        return Currency.objects.create(code=code, name=name, symbol=symbol, is_default=is_default)

    @staticmethod
    def create_price_list(policy_type=None, currency=None, start_date=None, end_date=None, priority=0, **tiers):
        """
        Create an active price list valid a year either side of today.

        Every tier is configured with a +/-20% premium band unless overridden.
        """
        today = timezone.localdate()
        defaults = {
            'price_1d': Decimal('50.00'),
            'price_15d': Decimal('300.00'),
            'price_30d': Decimal('500.00'),
            'price_90d': Decimal('800.00'),
            'price_365d': Decimal('1000.00'),
        }
        defaults.update(tiers)
        for days in (1, 15, 30, 90, 365):
            price = defaults.get(f'price_{days}d')
            if price is not None:
                defaults.setdefault(f'min_{days}d', (price * Decimal('0.80')).quantize(Decimal('0.01')))
                defaults.setdefault(f'max_{days}d', (price * Decimal('1.20')).quantize(Decimal('0.01')))
        defaults.setdefault('tax_rate', Decimal('0.1800'))
        defaults.setdefault('dealer_commission_rate', Decimal('0.1000'))
        defaults.setdefault('observer_commission_rate', Decimal('0.0200'))
        defaults.setdefault('admin_commission_rate', Decimal('0.0500'))

        return PriceList.objects.create(
            policy_type=policy_type or TestDataFactory.create_policy_type(),
            currency=currency or TestDataFactory.create_currency(),
            name=f'Price list {TestDataFactory.random_code(4)}',
            start_date=start_date or today - timedelta(days=365),
            end_date=end_date or today + timedelta(days=365),
            priority=priority,
            **defaults
        )

    @staticmethod
    def create_series(dealer=None, series='TRF', start_number=1, end_number=1000, blacklisted_numbers=None):
        return PolicySeries.objects.create(
            dealer=dealer,
            series=series,
            start_number=start_number,
            end_number=end_number,
            blacklisted_numbers=blacklisted_numbers or []
        )

    @staticmethod
    def create_policy(dealer=None, customer=None, vehicle=None, policy_type=None, start_date=None,
                      days=365, status=None, premium=None, user=None):
        """
        Create a policy through the normal creation path, then force ``status``.

        A price list and a series are created when the dealer or type lack them.
        """
        if customer is None and vehicle is not None:
            customer = vehicle.customer
        if dealer is None:
            dealer = customer.dealer if customer else TestDataFactory.create_dealer()
        if customer is None:
            customer = vehicle.customer if vehicle else TestDataFactory.create_customer(dealer=dealer)
        if vehicle is None:
            vehicle = TestDataFactory.create_vehicle(customer=customer)
        if policy_type is None:
            policy_type = TestDataFactory.create_policy_type()
        if not PriceList.objects.filter(policy_type=policy_type, is_active=True).exists():
            TestDataFactory.create_price_list(policy_type=policy_type)
        if not PolicySeries.objects.filter(dealer=dealer, is_active=True).exists():
            TestDataFactory.create_series(dealer=dealer, series=f'S{dealer.pk}')

        start_date = start_date or timezone.localdate()
        policy = create_policy(
            dealer=dealer,
            customer=customer,
            vehicle=vehicle,
            policy_type=policy_type,
            start_date=start_date,
            end_date=start_date + timedelta(days=days),
            premium=premium,
            user=user,
        )
        if status and status != Policy.STATUS_DRAFT:
            Policy.objects.filter(pk=policy.pk).update(status=status)
            policy.refresh_from_db()
        return policy


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()
