"""
Test suite for the reports module
Tests: dashboards, scoped reports, CSV export and cache invalidation
"""
import csv
import io
from datetime import timedelta

from django.core.cache import cache
from django.test import TestCase
from django.utils import timezone
from rest_framework import status

from agency.claims.models import Claim
from agency.core.test_utils import AuthenticatedAPIClient, TestDataFactory
from agency.policies.models import Policy
from agency.reports.services import build_admin_dashboard, month_start, renewal_rate
from agency.support.models import Ticket


class ReportTestCase(TestCase):

    def setUp(self):
        cache.clear()
        self.today = timezone.localdate()
        self.admin = TestDataFactory.create_admin()
        self.dealer = TestDataFactory.create_dealer(name='Besiktas Agency')
        self.other_dealer = TestDataFactory.create_dealer(name='Uskudar Agency')
        self.customer = TestDataFactory.create_customer(dealer=self.dealer, with_account=True)
        self.active = TestDataFactory.create_policy(dealer=self.dealer, customer=self.customer,
                                                    status=Policy.STATUS_ACTIVE)
        self.pending = TestDataFactory.create_policy(dealer=self.dealer, customer=self.customer,
                                                     status=Policy.STATUS_PENDING)
        self.foreign = TestDataFactory.create_policy(dealer=self.other_dealer, status=Policy.STATUS_ACTIVE)
        self.client = AuthenticatedAPIClient()

    def tearDown(self):
        cache.clear()


class HelperTests(TestCase):
    """Test report helpers"""

    def test_month_start(self):
        day = timezone.localdate().replace(year=2026, month=2, day=14)
        self.assertEqual(month_start(day).isoformat(), '2026-02-01')
        self.assertEqual(month_start(day, months_back=3).isoformat(), '2025-11-01')

    def test_renewal_rate(self):
        today = timezone.localdate()
        policy_type = TestDataFactory.create_policy_type()
        TestDataFactory.create_price_list(policy_type=policy_type, start_date=today - timedelta(days=800))
        dealer = TestDataFactory.create_dealer()
        renewed = TestDataFactory.create_policy(dealer=dealer, policy_type=policy_type,
                                                start_date=today - timedelta(days=400), status=Policy.STATUS_EXPIRED)
        TestDataFactory.create_policy(dealer=dealer, vehicle=renewed.vehicle, policy_type=policy_type,
                                      start_date=today - timedelta(days=34), status=Policy.STATUS_ACTIVE)
        TestDataFactory.create_policy(dealer=dealer, policy_type=policy_type, start_date=today - timedelta(days=390),
                                      days=300, status=Policy.STATUS_EXPIRED)

        self.assertEqual(renewal_rate(Policy.objects.filter(dealer=dealer), today), 50.0)
        self.assertEqual(renewal_rate(Policy.objects.none(), today), 0.0)


class DashboardTests(ReportTestCase):
    """Test dashboards"""

    def test_admin_dashboard(self):
        Ticket.objects.create(user=self.dealer.user, subject='Question', message='How do I renew a policy?')
        Claim.objects.create(policy=self.active, customer=self.customer, claim_type='Glass',
                             description='Cracked windscreen', claim_date=self.today)
        self.client.authenticate_user(self.admin)
        response = self.client.get('/api/v1/dashboard/admin/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        data = response.data
        self.assertEqual(data['dealers'], 2)
        self.assertEqual(data['policies'], 3)
        self.assertEqual(data['active_policies'], 2)
        self.assertEqual(data['pending_approvals'], 1)
        self.assertEqual(data['total_premium'], 2000.0)
        self.assertEqual(data['open_tickets'], 1)
        self.assertEqual(data['pending_claims'], 1)

    def test_admin_dashboard_is_admin_only(self):
        self.client.authenticate_user(self.dealer.user)
        response = self.client.get('/api/v1/dashboard/admin/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_dealer_dashboard(self):
        self.client.authenticate_user(self.dealer.user)
        response = self.client.get('/api/v1/dashboard/dealer/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['customers'], 1)
        self.assertEqual(response.data['total_policies'], 2)
        self.assertEqual(response.data['active_policies'], 1)
        self.assertEqual(response.data['total_revenue'], 1000.0)
        self.assertEqual(response.data['month_commission'], 100.0)
        self.assertEqual(response.data['month_policies'], 2)

    def test_charts_are_scoped(self):
        self.client.authenticate_user(self.dealer.user)
        response = self.client.get('/api/v1/dashboard/charts/')
        self.assertEqual(len(response.data['monthly']), 12)
        self.assertEqual(response.data['monthly'][-1]['month'], self.today.strftime('%Y-%m'))
        self.assertEqual(response.data['monthly'][-1]['policies'], 2)
        statuses = {row['status']: row['count'] for row in response.data['status_distribution']}
        self.assertEqual(statuses, {Policy.STATUS_ACTIVE: 1, Policy.STATUS_PENDING: 1})

    def test_cache_is_dropped_after_commit(self):
        first = build_admin_dashboard(self.today)
        self.assertEqual(first['dealers'], 2)
        with self.captureOnCommitCallbacks(execute=True):
            TestDataFactory.create_dealer(with_account=False)
        self.assertEqual(build_admin_dashboard(self.today)['dealers'], 3)


class ReportTests(ReportTestCase):
    """Test reports and exports"""

    def test_policy_report_scoped_to_dealer(self):
        self.client.authenticate_user(self.dealer.user)
        response = self.client.get('/api/v1/reports/policies/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['summary']['total'], 2)
        self.assertEqual(response.data['summary']['by_status'], {Policy.STATUS_ACTIVE: 1, Policy.STATUS_PENDING: 1})
        self.assertEqual(response.data['period']['to'], self.today.isoformat())

    def test_financial_report_counts_live_policies(self):
        self.client.authenticate_user(self.admin)
        response = self.client.get('/api/v1/reports/financial/')
        summary = response.data['summary']
        self.assertEqual(summary['policies'], 2)
        self.assertEqual(summary['premium'], 2000.0)
        self.assertEqual(summary['tax'], 360.0)
        self.assertEqual(summary['dealer_commission'], 200.0)
        self.assertEqual(response.data['by_currency'][0]['currency'], 'TRY')
        self.assertEqual(len(response.data['monthly_breakdown']), 1)

    def test_dealer_performance_for_observer(self):
        observer = TestDataFactory.create_observer(dealers=[self.dealer])
        self.client.authenticate_user(observer.user)
        response = self.client.get('/api/v1/reports/dealer-performance/')
        rows = response.data['dealers']
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]['dealer_name'], 'Besiktas Agency')
        self.assertEqual(rows[0]['policies'], 2)
        self.assertEqual(rows[0]['live_policies'], 1)
        self.assertEqual(rows[0]['commission'], 100.0)

    def test_single_dealer_performance(self):
        self.client.authenticate_user(self.dealer.user)
        response = self.client.get(f'/api/v1/dealers/{self.dealer.id}/performance/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['dealer_name'], 'Besiktas Agency')
        self.assertEqual(len(response.data['trend']), 30)
        self.assertEqual(response.data['trend'][-1]['policies'], 2)

        response = self.client.get(f'/api/v1/dealers/{self.other_dealer.id}/performance/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_customer_report(self):
        self.client.authenticate_user(self.customer.user)
        response = self.client.get('/api/v1/reports/customer/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['policies']['total'], 2)
        self.assertEqual(response.data['policies']['premium_in_period'], 1180.0)
        self.assertEqual(response.data['claims']['total'], 0)

        response = self.client.get('/api/v1/reports/policies/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_export_policies_csv(self):
        self.client.authenticate_user(self.dealer.user)
        response = self.client.get('/api/v1/reports/export/?report=policies')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response['Content-Type'].startswith('text/csv'))
        rows = list(csv.reader(io.StringIO(response.content.decode('utf-8'))))
        self.assertEqual(rows[0][0], 'Policy Number')
        self.assertEqual(sorted(row[0] for row in rows[1:]),
                         sorted([self.active.policy_number, self.pending.policy_number]))

    def test_export_dealer_performance_csv(self):
        self.client.authenticate_user(self.admin)
        response = self.client.get('/api/v1/reports/export/?report=dealer-performance')
        rows = list(csv.reader(io.StringIO(response.content.decode('utf-8'))))
        self.assertEqual(len(rows), 3)

    def test_export_unknown_report(self):
        self.client.authenticate_user(self.admin)
        response = self.client.get('/api/v1/reports/export/?report=salaries')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
