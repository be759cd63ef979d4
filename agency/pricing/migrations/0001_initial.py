import django.db.models.deletion
from decimal import Decimal
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='PolicyType',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('code', models.CharField(max_length=50, unique=True)),
                ('name', models.CharField(max_length=200)),
                ('description', models.TextField(blank=True)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'db_table': 'policy_types',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='Currency',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('code', models.CharField(max_length=3, unique=True)),
                ('name', models.CharField(max_length=100)),
                ('symbol', models.CharField(blank=True, max_length=10)),
                ('is_default', models.BooleanField(default=False)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'db_table': 'currencies',
                'ordering': ['code'],
                'verbose_name_plural': 'currencies',
            },
        ),
        migrations.CreateModel(
            name='PriceList',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=200)),
                ('description', models.TextField(blank=True)),
                ('start_date', models.DateField()),
                ('end_date', models.DateField()),
                ('price_1d', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('min_1d', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('max_1d', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('price_15d', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('min_15d', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('max_15d', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('price_30d', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('min_30d', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('max_30d', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('price_90d', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('min_90d', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('max_90d', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('price_365d', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('min_365d', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('max_365d', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('tax_rate', models.DecimalField(decimal_places=4, default=Decimal('0.0000'), max_digits=5)),
                ('dealer_commission_rate', models.DecimalField(blank=True, decimal_places=4, max_digits=5, null=True)),
                ('observer_commission_rate', models.DecimalField(blank=True, decimal_places=4, max_digits=5, null=True)),
                ('admin_commission_rate', models.DecimalField(blank=True, decimal_places=4, max_digits=5, null=True)),
                ('is_active', models.BooleanField(default=True)),
                ('priority', models.PositiveIntegerField(default=0)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='price_lists', to=settings.AUTH_USER_MODEL)),
                ('currency', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='price_lists', to='pricing.currency')),
                ('policy_type', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='price_lists', to='pricing.policytype')),
            ],
            options={
                'db_table': 'price_lists',
                'ordering': ['-priority', '-created_at'],
                'indexes': [models.Index(fields=['policy_type', 'is_active', 'start_date', 'end_date'], name='price_list_lookup_idx')],
            },
        ),
    ]
