# Generated manually for driver receivable records and customer receivables

import django.db.models.deletion
from decimal import Decimal
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('core', '0001_initial'),
        ('parties', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='ReceivableRecord',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('date', models.DateField(db_index=True)),
                ('cash_receivables_change', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=14)),
                ('cylinder_receivables_change', models.IntegerField(default=0)),
                ('total_cash_receivables', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=14)),
                ('total_cylinder_receivables', models.IntegerField(default=0)),
                ('onboarding_cash_receivables', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=14)),
                ('onboarding_cylinder_receivables', models.IntegerField(default=0)),
                ('calculated_at', models.DateTimeField(auto_now=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('driver', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='receivable_records', to='parties.driver')),
                ('tenant', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='receivable_records', to='core.tenant')),
            ],
            options={
                'db_table': 'receivable_records',
                'ordering': ['-date'],
                'unique_together': {('tenant', 'driver', 'date')},
                'indexes': [models.Index(fields=['tenant', 'driver', 'date'], name='idx_recv_tenant_driver_date')],
            },
        ),
        migrations.CreateModel(
            name='CustomerReceivable',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('customer_name', models.CharField(max_length=200)),
                ('receivable_type', models.CharField(choices=[('CASH', 'Cash'), ('CYLINDER', 'Cylinder')], max_length=20)),
                ('amount', models.DecimalField(decimal_places=2, default=Decimal('0.00'), max_digits=14)),
                ('quantity', models.IntegerField(default=0)),
                ('size', models.CharField(blank=True, max_length=20)),
                ('due_date', models.DateField(blank=True, null=True)),
                ('status', models.CharField(choices=[('CURRENT', 'Current'), ('PAID', 'Paid'), ('OVERDUE', 'Overdue')], default='CURRENT', max_length=20)),
                ('notes', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('customer', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='receivables', to='parties.customer')),
                ('driver', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='customer_receivables', to='parties.driver')),
                ('tenant', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='customer_receivables', to='core.tenant')),
            ],
            options={
                'db_table': 'customer_receivables',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['tenant', 'driver'], name='idx_custrecv_tenant_driver'),
                    models.Index(fields=['tenant', 'status'], name='idx_custrecv_tenant_status'),
                ],
            },
        ),
    ]
