"""
Test suite for the claims module
Tests: filing claims, notes visibility, attachments and the status workflow
"""
import shutil
import tempfile
from datetime import timedelta

from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework import status

from agency.claims.models import Claim, ClaimAttachment, MAX_ATTACHMENTS
from agency.core.models import AuditLog
from agency.core.test_utils import AuthenticatedAPIClient, TestDataFactory
from agency.notifications.models import Notification
from agency.policies.models import Policy


class ClaimTestCase(TestCase):

    def setUp(self):
        self.today = timezone.localdate()
        self.admin = TestDataFactory.create_admin()
        self.dealer = TestDataFactory.create_dealer()
        self.customer = TestDataFactory.create_customer(dealer=self.dealer, with_account=True)
        self.policy = TestDataFactory.create_policy(dealer=self.dealer, customer=self.customer,
                                                    start_date=self.today - timedelta(days=30),
                                                    status=Policy.STATUS_ACTIVE)
        self.client = AuthenticatedAPIClient()

    def _payload(self, **overrides):
        payload = {
            'policy': self.policy.id, 'claim_type': 'Accident',
            'description': 'Rear-ended at a traffic light', 'claim_date': self.today.isoformat(),
            'estimated_damage': '2500.00',
        }
        payload.update(overrides)
        return payload

    def _claim(self, status_value=Claim.STATUS_PENDING):
        return Claim.objects.create(policy=self.policy, customer=self.customer, claim_type='Glass',
                                    description='Cracked windscreen', claim_date=self.today,
                                    status=status_value)


class FileClaimTests(ClaimTestCase):
    """Test filing claims"""

    def test_customer_files_claim(self):
        self.client.authenticate_user(self.customer.user)
        response = self.client.post('/api/v1/claims/', self._payload())
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['status'], Claim.STATUS_PENDING)
        self.assertEqual(response.data['customer'], self.customer.id)
        self.assertEqual(response.data['policy_number'], self.policy.policy_number)
        self.assertTrue(Notification.objects.filter(user=self.dealer.user, title='New claim').exists())
        self.assertTrue(AuditLog.objects.filter(action='create', model_name='Claim').exists())

    def test_claim_requires_active_policy(self):
        draft = TestDataFactory.create_policy(dealer=self.dealer, customer=self.customer)
        self.client.authenticate_user(self.customer.user)
        response = self.client.post('/api/v1/claims/', self._payload(policy=draft.id))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('policy', response.data)

    def test_claim_date_rules(self):
        self.client.authenticate_user(self.customer.user)
        tomorrow = self.today + timedelta(days=1)
        response = self.client.post('/api/v1/claims/', self._payload(claim_date=tomorrow.isoformat()))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('claim_date', response.data)

        before_cover = self.policy.start_date - timedelta(days=1)
        response = self.client.post('/api/v1/claims/', self._payload(claim_date=before_cover.isoformat()))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('claim_date', response.data)

    def test_field_validation(self):
        self.client.authenticate_user(self.customer.user)
        response = self.client.post('/api/v1/claims/', self._payload(description='short', estimated_damage='-1'))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('description', response.data)
        self.assertIn('estimated_damage', response.data)

    def test_cannot_claim_on_foreign_policy(self):
        foreign = TestDataFactory.create_policy(start_date=self.today - timedelta(days=5), status=Policy.STATUS_ACTIVE)
        self.client.authenticate_user(self.customer.user)
        response = self.client.post('/api/v1/claims/', self._payload(policy=foreign.id))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(Claim.objects.exists())

    def test_observer_cannot_file(self):
        observer = TestDataFactory.create_observer(dealers=[self.dealer])
        self.client.authenticate_user(observer.user)
        response = self.client.post('/api/v1/claims/', self._payload())
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_scoping(self):
        claim = self._claim()
        other_customer = TestDataFactory.create_customer(dealer=self.dealer, with_account=True)
        self.client.authenticate_user(other_customer.user)
        response = self.client.get(f'/api/v1/claims/{claim.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

        self.client.authenticate_user(self.dealer.user)
        response = self.client.get('/api/v1/claims/')
        self.assertEqual(response.data['count'], 1)


class ClaimNoteTests(ClaimTestCase):
    """Test claim notes"""

    def test_internal_notes_hidden_from_customer(self):
        claim = self._claim()
        self.client.authenticate_user(self.dealer.user)
        response = self.client.post(f'/api/v1/claims/{claim.id}/notes/', {'note': 'Check the garage invoice', 'is_internal': True})
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        response = self.client.post(f'/api/v1/claims/{claim.id}/notes/', {'note': 'Expert visit scheduled'})
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)

        response = self.client.get(f'/api/v1/claims/{claim.id}/')
        self.assertEqual(len(response.data['notes']), 2)

        self.client.authenticate_user(self.customer.user)
        response = self.client.get(f'/api/v1/claims/{claim.id}/')
        self.assertEqual([note['note'] for note in response.data['notes']], ['Expert visit scheduled'])
        self.assertEqual(Notification.objects.filter(user=self.customer.user, title='Claim update').count(), 1)

    def test_customer_cannot_add_notes(self):
        claim = self._claim()
        self.client.authenticate_user(self.customer.user)
        response = self.client.post(f'/api/v1/claims/{claim.id}/notes/', {'note': 'Any news?'})
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_empty_note(self):
        claim = self._claim()
        self.client.authenticate_user(self.admin)
        response = self.client.post(f'/api/v1/claims/{claim.id}/notes/', {'note': '   '})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)


class ClaimAttachmentTests(ClaimTestCase):
    """Test claim attachments"""

    def setUp(self):
        super().setUp()
        self.media_root = tempfile.mkdtemp()
        self.override = override_settings(MEDIA_ROOT=self.media_root)
        self.override.enable()
        self.client.authenticate_user(self.customer.user)

    def tearDown(self):
        self.override.disable()
        shutil.rmtree(self.media_root, ignore_errors=True)

    def _upload(self, claim, name='damage.jpg', content_type='image/jpeg'):
        upload = SimpleUploadedFile(name, b'\xff\xd8\xff\xe0 image', content_type=content_type)
        return self.client.post(f'/api/v1/claims/{claim.id}/attachments/', {'file': upload}, format='multipart')

    def test_upload(self):
        claim = self._claim()
        response = self._upload(claim)
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['uploaded_by'], self.customer.user.id)

    def test_rejects_disallowed_type(self):
        response = self._upload(self._claim(), name='notes.txt', content_type='text/plain')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_closed_claim(self):
        response = self._upload(self._claim(Claim.STATUS_CLOSED))
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'CLAIM_CLOSED')

    def test_attachment_limit(self):
        claim = self._claim()
        for index in range(MAX_ATTACHMENTS):
            ClaimAttachment.objects.create(claim=claim, file=f'claim_attachments/{index}.jpg')
        response = self._upload(claim)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['code'], 'ATTACHMENT_LIMIT')


class ClaimStatusTests(ClaimTestCase):
    """Test the claim status workflow"""

    def setUp(self):
        super().setUp()
        self.client.authenticate_user(self.admin)

    def test_workflow(self):
        claim = self._claim()
        for new_status in (Claim.STATUS_IN_REVIEW, Claim.STATUS_APPROVED, Claim.STATUS_CLOSED):
            response = self.client.post(f'/api/v1/claims/{claim.id}/status/', {'status': new_status})
            self.assertEqual(response.status_code, status.HTTP_200_OK)
            self.assertEqual(response.data['status'], new_status)
        self.assertEqual(AuditLog.objects.filter(action='claim_status', object_id=str(claim.id)).count(), 3)
        self.assertEqual(Notification.objects.filter(user=self.customer.user, title='Claim status updated').count(), 3)

    def test_status_note_is_visible(self):
        claim = self._claim()
        response = self.client.post(f'/api/v1/claims/{claim.id}/status/',
                                    {'status': Claim.STATUS_IN_REVIEW, 'note': 'An expert has been assigned'})
        self.assertEqual(response.data['notes'][0]['note'], 'An expert has been assigned')

    def test_invalid_transition(self):
        claim = self._claim()
        response = self.client.post(f'/api/v1/claims/{claim.id}/status/', {'status': Claim.STATUS_APPROVED})
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(response.data['code'], 'INVALID_TRANSITION')

        closed = self._claim(Claim.STATUS_CLOSED)
        response = self.client.post(f'/api/v1/claims/{closed.id}/status/', {'status': Claim.STATUS_IN_REVIEW})
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_dealer_cannot_change_status(self):
        claim = self._claim()
        self.client.authenticate_user(self.dealer.user)
        response = self.client.post(f'/api/v1/claims/{claim.id}/status/', {'status': Claim.STATUS_IN_REVIEW})
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
