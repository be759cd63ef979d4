from django.core.management.base import BaseCommand

from agency.core.utils import parse_date
from agency.policies.services import refresh_policy_statuses


class Command(BaseCommand):
    help = 'Activate approved policies whose start date has come and expire active policies past their end date'

    def add_arguments(self, parser):
        parser.add_argument('--date', help='Run as of this date (YYYY-MM-DD); defaults to today')

    def handle(self, *args, **options):
        today = parse_date(options.get('date'))
        activated, expired = refresh_policy_statuses(today)
        self.stdout.write(self.style.SUCCESS(f'✓ {activated} policies activated, {expired} policies expired'))
