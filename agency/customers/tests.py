"""
Test suite for the customers module
Tests: customer CRUD and scoping, identity validation, vehicles, plates and documents
"""
import shutil
import tempfile

from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase, override_settings
from rest_framework import status

from agency.core.roles import CUSTOMER, get_user_roles
from agency.core.test_utils import AuthenticatedAPIClient, TestDataFactory
from agency.customers.models import Customer, Vehicle
from agency.customers.validators import is_valid_plate, normalize_plate
from agency.policies.models import Policy
from agency.system.models import SystemLog


class ValidatorTests(TestCase):
    """Test plate normalisation and validation"""

    def test_normalize_plate(self):
        self.assertEqual(normalize_plate('  34   abc 123 '), '34 ABC 123')

    def test_valid_plates(self):
        for plate in ('34 ABC 123', '06 A 1234', '81AB12'):
            self.assertTrue(is_valid_plate(plate), plate)

    def test_invalid_plates(self):
        for plate in ('00 ABC 123', '82 AB 12', '34 ABCD 123', 'XYZ'):
            self.assertFalse(is_valid_plate(plate), plate)


class CustomerApiTests(TestCase):
    """Test customer endpoints"""

    def setUp(self):
        self.dealer = TestDataFactory.create_dealer()
        self.other_dealer = TestDataFactory.create_dealer()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.dealer.user)

    def test_dealer_creates_customer_for_itself(self):
        """The dealer field is pinned to the dealer of the logged-in user"""
        response = self.client.post('/api/v1/customers/', {
            'dealer': self.other_dealer.id, 'first_name': 'Mehmet', 'last_name': 'Demir',
            'national_id': '12345678901',
        })
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['dealer'], self.dealer.id)
        self.assertNotIn('temporary_password', response.data)

    def test_create_customer_with_account(self):
        response = self.client.post('/api/v1/customers/', {
            'first_name': 'Zeynep', 'last_name': 'Kaya', 'email': 'zeynep@test.com', 'create_account': True,
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(response.data['temporary_password'])
        customer = Customer.objects.get(pk=response.data['id'])
        self.assertEqual(customer.user.username, 'zeynep')
        self.assertEqual(get_user_roles(customer.user), [CUSTOMER])

    def test_admin_must_choose_dealer(self):
        self.client.authenticate_user(TestDataFactory.create_admin())
        response = self.client.post('/api/v1/customers/', {'first_name': 'Ali', 'last_name': 'Veli'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('dealer', response.data)

    def test_invalid_national_id(self):
        response = self.client.post('/api/v1/customers/', {
            'first_name': 'Ali', 'last_name': 'Veli', 'national_id': '12345',
        })
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('national_id', response.data)

    def test_invalid_form_is_not_persisted_as_system_log(self):
        """Rejected forms are routine and stay out of the system log"""
        response = self.client.post('/api/v1/customers/', {'first_name': 'A', 'last_name': 'Veli'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(SystemLog.objects.exists())

    def test_national_id_unique_per_dealer(self):
        TestDataFactory.create_customer(dealer=self.dealer, national_id='11111111111')
        TestDataFactory.create_customer(dealer=self.other_dealer, national_id='22222222222')
        response = self.client.post('/api/v1/customers/', {
            'first_name': 'Ali', 'last_name': 'Veli', 'national_id': '11111111111',
        })
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post('/api/v1/customers/', {
            'first_name': 'Ali', 'last_name': 'Veli', 'national_id': '22222222222',
        })
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_dealer_sees_own_customers_only(self):
        own = TestDataFactory.create_customer(dealer=self.dealer)
        foreign = TestDataFactory.create_customer(dealer=self.other_dealer)
        response = self.client.get('/api/v1/customers/')
        self.assertEqual([row['id'] for row in response.data['results']], [own.id])

        response = self.client.get(f'/api/v1/customers/{foreign.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

        response = self.client.get(f'/api/v1/dealers/{self.other_dealer.id}/customers/')
        self.assertEqual(response.data['count'], 0)

    def test_customer_reads_itself_but_cannot_write(self):
        customer = TestDataFactory.create_customer(dealer=self.dealer, with_account=True)
        self.client.authenticate_user(customer.user)
        response = self.client.get(f'/api/v1/customers/{customer.id}/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)

        response = self.client.patch(f'/api/v1/customers/{customer.id}/', {'phone': '5550000000'})
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_search(self):
        TestDataFactory.create_customer(dealer=self.dealer, first_name='Selin')
        TestDataFactory.create_customer(dealer=self.dealer, first_name='Burak')
        response = self.client.get('/api/v1/customers/?search=seli')
        self.assertEqual(response.data['count'], 1)

    def test_delete_customer_with_draft_policy(self):
        """Draft policies go away with the customer"""
        customer = TestDataFactory.create_customer(dealer=self.dealer)
        policy = TestDataFactory.create_policy(customer=customer)
        response = self.client.delete(f'/api/v1/customers/{customer.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Policy.objects.filter(pk=policy.pk).exists())

    def test_delete_customer_with_active_policy_conflicts(self):
        customer = TestDataFactory.create_customer(dealer=self.dealer)
        TestDataFactory.create_policy(customer=customer, status=Policy.STATUS_ACTIVE)
        response = self.client.delete(f'/api/v1/customers/{customer.id}/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['code'], 'CUSTOMER_HAS_POLICIES')


class VehicleApiTests(TestCase):
    """Test vehicle endpoints"""

    def setUp(self):
        self.dealer = TestDataFactory.create_dealer()
        self.customer = TestDataFactory.create_customer(dealer=self.dealer)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.dealer.user)

    def _payload(self, **overrides):
        payload = {
            'customer': self.customer.id, 'plate_number': '34 abc 987', 'brand': 'Renault',
            'model': 'Clio', 'model_year': 2019,
        }
        payload.update(overrides)
        return payload

    def test_register_vehicle_normalizes_plate(self):
        response = self.client.post('/api/v1/vehicles/', self._payload())
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['plate_number'], '34 ABC 987')

    def test_invalid_plate(self):
        response = self.client.post('/api/v1/vehicles/', self._payload(plate_number='99 ZZ 1'))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('plate_number', response.data)

    def test_invalid_vin_and_year(self):
        response = self.client.post('/api/v1/vehicles/', self._payload(vin='SHORT', model_year=1850))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('vin', response.data)
        self.assertIn('model_year', response.data)

    def test_active_plate_must_be_unique(self):
        TestDataFactory.create_vehicle(customer=self.customer, plate_number='34 ABC 987')
        response = self.client.post('/api/v1/vehicles/', self._payload())
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_plate_of_inactive_vehicle_can_be_reused(self):
        old = TestDataFactory.create_vehicle(customer=self.customer, plate_number='34 ABC 987')
        old.is_active = False
        old.save()
        response = self.client.post('/api/v1/vehicles/', self._payload())
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

    def test_cannot_register_for_foreign_customer(self):
        foreign = TestDataFactory.create_customer(dealer=TestDataFactory.create_dealer())
        response = self.client.post('/api/v1/vehicles/', self._payload(customer=foreign.id))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_customer_vehicles_and_brands(self):
        TestDataFactory.create_vehicle(customer=self.customer, brand='Fiat', model='Egea')
        TestDataFactory.create_vehicle(customer=self.customer, brand='Fiat', model='Doblo')
        response = self.client.get(f'/api/v1/customers/{self.customer.id}/vehicles/')
        self.assertEqual(len(response.data), 2)

        response = self.client.get('/api/v1/vehicles/brands/')
        self.assertEqual(response.data, ['Fiat'])
        response = self.client.get('/api/v1/vehicles/models/?brand=fiat')
        self.assertEqual(response.data, ['Doblo', 'Egea'])

    def test_delete_vehicle_with_live_policy_conflicts(self):
        vehicle = TestDataFactory.create_vehicle(customer=self.customer)
        TestDataFactory.create_policy(vehicle=vehicle, status=Policy.STATUS_PENDING)
        response = self.client.delete(f'/api/v1/vehicles/{vehicle.id}/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['code'], 'VEHICLE_HAS_POLICIES')
        self.assertTrue(Vehicle.objects.filter(pk=vehicle.pk).exists())


class VehicleDocumentTests(TestCase):
    """Test vehicle document uploads"""

    def setUp(self):
        self.media_root = tempfile.mkdtemp()
        self.override = override_settings(MEDIA_ROOT=self.media_root)
        self.override.enable()
        self.dealer = TestDataFactory.create_dealer()
        self.vehicle = TestDataFactory.create_vehicle(customer=TestDataFactory.create_customer(dealer=self.dealer))
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.dealer.user)

    def tearDown(self):
        self.override.disable()
        shutil.rmtree(self.media_root, ignore_errors=True)

    def test_upload_pdf(self):
        upload = SimpleUploadedFile('registration.pdf', b'%PDF-1.4 test', content_type='application/pdf')
        response = self.client.post(f'/api/v1/vehicles/{self.vehicle.id}/documents/',
                                    {'file': upload, 'document_type': 'registration'}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(self.vehicle.documents.count(), 1)

    def test_reject_executable(self):
        upload = SimpleUploadedFile('virus.exe', b'MZ', content_type='application/octet-stream')
        response = self.client.post(f'/api/v1/vehicles/{self.vehicle.id}/documents/',
                                    {'file': upload, 'document_type': 'other'}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    @override_settings(MAX_UPLOAD_SIZE=10)
    def test_reject_oversized_file(self):
        upload = SimpleUploadedFile('photo.png', b'x' * 100, content_type='image/png')
        response = self.client.post(f'/api/v1/vehicles/{self.vehicle.id}/documents/',
                                    {'file': upload, 'document_type': 'photo'}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
