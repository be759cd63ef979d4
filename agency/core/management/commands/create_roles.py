from django.core.management.base import BaseCommand
from django.contrib.auth.models import Group, Permission

from agency.core.roles import ADMIN, CUSTOMER, DEALER, OBSERVER, SUPERADMIN


class Command(BaseCommand):
    help = 'Create the role groups: SuperAdmin, Admin, Dealer, Observer, Customer'

    def handle(self, *args, **options):
        groups_config = [
            {
                'name': SUPERADMIN,
                'description': 'System owners - full access including role management',
                'permissions': '*',
            },
            {
                'name': ADMIN,
                'description': 'Agency staff - full access to all portals and approvals',
                'permissions': '*',
            },
            {
                'name': DEALER,
                'description': 'Dealers - manage customers, vehicles, policies and claims of their own agency',
                'permissions': [
                    ('customers', ['add', 'change', 'view', 'delete'], ['customer', 'vehicle', 'vehicledocument']),
                    ('policies', ['add', 'change', 'view'], ['policy']),
                    ('policies', ['view'], ['policyseries']),
                    ('claims', ['view', 'change'], ['claim', 'claimnote', 'claimattachment']),
                    ('pricing', ['view'], ['policytype', 'currency', 'pricelist']),
                    ('support', ['add', 'view'], ['ticket', 'ticketreply']),
                ],
            },
            {
                'name': OBSERVER,
                'description': 'Observers - read-only view of assigned dealers, own tasks',
                'permissions': [
                    ('dealers', ['view'], ['dealer']),
                    ('customers', ['view'], ['customer', 'vehicle']),
                    ('policies', ['view'], ['policy', 'policyseries']),
                    ('observers', ['view', 'change'], ['observertask']),
                ],
            },
            {
                'name': CUSTOMER,
                'description': 'Customers - own policies, claims and support tickets',
                'permissions': [
                    ('policies', ['view'], ['policy']),
                    ('claims', ['add', 'view'], ['claim', 'claimattachment']),
                    ('support', ['add', 'view'], ['ticket', 'ticketreply']),
                ],
            },
        ]

        created_count = 0
        updated_count = 0

        for group_config in groups_config:
            group, created = Group.objects.get_or_create(name=group_config['name'])

            if created:
                self.stdout.write(self.style.SUCCESS(f'✓ Created group: {group_config["name"]}'))
                created_count += 1
            else:
                self.stdout.write(f'  Group already exists: {group_config["name"]}')
                updated_count += 1

            if group_config['permissions'] == '*':
                group.permissions.set(Permission.objects.all())
                self.stdout.write(f'  → Assigned all permissions to {group.name}')
                continue

            permissions = []
            for app_label, actions, models in group_config['permissions']:
                codenames = [f'{action}_{model}' for action in actions for model in models]
                found = Permission.objects.filter(content_type__app_label=app_label, codename__in=codenames)
                missing = set(codenames) - set(found.values_list('codename', flat=True))
                for codename in sorted(missing):
                    self.stdout.write(self.style.WARNING(f'  Permission not found: {app_label}.{codename}'))
                permissions.extend(found)
            group.permissions.set(permissions)
            self.stdout.write(f'  → Assigned {len(permissions)} permissions to {group.name}')

        self.stdout.write(self.style.SUCCESS(
            f'\nCompleted: {created_count} groups created, {updated_count} groups already existed'
        ))
