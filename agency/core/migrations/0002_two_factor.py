import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('core', '0001_initial'),
    ]

    operations = [
        migrations.AlterField(
            model_name='auditlog',
            name='action',
            field=models.CharField(choices=[('create', 'Create'), ('update', 'Update'), ('delete', 'Delete'), ('view', 'View'), ('login', 'Login'), ('password_change', 'Password Change'), ('password_reset', 'Password Reset'), ('activate', 'Activate'), ('deactivate', 'Deactivate'), ('role_change', 'Role Change'), ('policy_submit', 'Policy Submitted'), ('policy_approve', 'Policy Approved'), ('policy_reject', 'Policy Rejected'), ('policy_cancel', 'Policy Cancelled'), ('policy_expire', 'Policy Expired'), ('series_allocate', 'Series Number Allocated'), ('claim_status', 'Claim Status Changed'), ('ticket_status', 'Ticket Status Changed'), ('task_status', 'Task Status Changed'), ('maintenance_on', 'Maintenance Activated'), ('maintenance_off', 'Maintenance Deactivated'), ('fraud_review', 'Fraud Reviewed'), ('two_factor_enable', 'Two-Factor Enabled'), ('two_factor_disable', 'Two-Factor Disabled')], max_length=50),
        ),
        migrations.CreateModel(
            name='TwoFactorDevice',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('secret', models.CharField(blank=True, max_length=64)),
                ('is_enabled', models.BooleanField(default=False)),
                ('confirmed_at', models.DateTimeField(blank=True, null=True)),
                ('email_code', models.CharField(blank=True, max_length=128)),
                ('email_code_expires_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('user', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='two_factor', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'two_factor_devices',
            },
        ),
    ]
