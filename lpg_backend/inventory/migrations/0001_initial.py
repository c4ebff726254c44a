# Generated manually for shipments, movements and daily inventory snapshots

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('core', '0001_initial'),
        ('catalog', '0001_initial'),
        ('parties', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Shipment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('shipment_type', models.CharField(choices=[('INCOMING_FULL', 'Incoming Full'), ('INCOMING_EMPTY', 'Incoming Empty'), ('OUTGOING_FULL', 'Outgoing Full'), ('OUTGOING_EMPTY', 'Outgoing Empty')], max_length=20)),
                ('status', models.CharField(choices=[('PENDING', 'Pending'), ('COMPLETED', 'Completed'), ('CANCELLED', 'Cancelled')], default='PENDING', max_length=20)),
                ('quantity', models.PositiveIntegerField()),
                ('unit_cost', models.DecimalField(blank=True, decimal_places=2, max_digits=12, null=True)),
                ('total_cost', models.DecimalField(blank=True, decimal_places=2, max_digits=14, null=True)),
                ('shipment_date', models.DateField(db_index=True, default=django.utils.timezone.localdate)),
                ('invoice_number', models.CharField(blank=True, max_length=100)),
                ('notes', models.TextField(blank=True)),
                ('movement_recorded', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('created_by', models.ForeignKey(null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='shipments', to=settings.AUTH_USER_MODEL)),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='shipments', to='catalog.product')),
                ('tenant', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='shipments', to='core.tenant')),
            ],
            options={
                'db_table': 'shipments',
                'ordering': ['-shipment_date', '-created_at'],
                'indexes': [
                    models.Index(fields=['tenant', 'shipment_date'], name='idx_shipment_tenant_date'),
                    models.Index(fields=['tenant', 'status'], name='idx_shipment_tenant_status'),
                ],
            },
        ),
        migrations.CreateModel(
            name='InventoryMovement',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('movement_type', models.CharField(choices=[('SALE_PACKAGE', 'Package Sale'), ('SALE_REFILL', 'Refill Sale'), ('PURCHASE', 'Purchase'), ('SHIPMENT_IN', 'Shipment In'), ('SHIPMENT_OUT', 'Shipment Out'), ('EMPTY_IN', 'Empty Cylinders In'), ('EMPTY_OUT', 'Empty Cylinders Out'), ('ADJUSTMENT', 'Adjustment')], max_length=20)),
                ('quantity', models.IntegerField()),
                ('description', models.CharField(blank=True, max_length=255)),
                ('reference', models.CharField(blank=True, db_index=True, help_text='Sale or shipment id that produced the movement', max_length=100)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('driver', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='movements', to='parties.driver')),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='movements', to='catalog.product')),
                ('tenant', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='inventory_movements', to='core.tenant')),
            ],
            options={
                'db_table': 'inventory_movements',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['tenant', 'created_at'], name='idx_movement_tenant_created'),
                    models.Index(fields=['tenant', 'product'], name='idx_movement_tenant_product'),
                ],
            },
        ),
        migrations.CreateModel(
            name='InventoryRecord',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('date', models.DateField(db_index=True)),
                ('cylinder_size', models.CharField(max_length=20)),
                ('package_sales', models.IntegerField(default=0)),
                ('refill_sales', models.IntegerField(default=0)),
                ('total_sales', models.IntegerField(default=0)),
                ('package_purchase', models.IntegerField(default=0)),
                ('refill_purchase', models.IntegerField(default=0)),
                ('empty_cylinders_buy_sell', models.IntegerField(default=0)),
                ('full_cylinders', models.IntegerField(default=0)),
                ('empty_cylinders', models.IntegerField(default=0)),
                ('total_cylinders', models.IntegerField(default=0)),
                ('empty_cylinder_receivables', models.IntegerField(default=0)),
                ('is_onboarding_baseline', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('product', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='inventory_records', to='catalog.product')),
                ('tenant', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='inventory_records', to='core.tenant')),
            ],
            options={
                'db_table': 'inventory_records',
                'ordering': ['-date'],
                'unique_together': {('tenant', 'date', 'product', 'cylinder_size')},
            },
        ),
        migrations.CreateModel(
            name='EmptyCylinderRecord',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('date', models.DateField(db_index=True)),
                ('cylinder_size', models.CharField(max_length=20)),
                ('quantity', models.IntegerField(default=0)),
                ('quantity_with_drivers', models.IntegerField(default=0)),
                ('notes', models.TextField(blank=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('tenant', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='empty_cylinder_records', to='core.tenant')),
            ],
            options={
                'db_table': 'empty_cylinder_records',
                'ordering': ['-date', 'cylinder_size'],
                'unique_together': {('tenant', 'date', 'cylinder_size')},
            },
        ),
        migrations.CreateModel(
            name='DriverCylinderSizeBaseline',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('cylinder_size', models.CharField(max_length=20)),
                ('baseline_quantity', models.IntegerField(default=0)),
                ('source', models.CharField(choices=[('ONBOARDING', 'Onboarding'), ('MANUAL', 'Manual')], default='ONBOARDING', max_length=20)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('driver', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='size_baselines', to='parties.driver')),
                ('tenant', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='driver_size_baselines', to='core.tenant')),
            ],
            options={
                'db_table': 'driver_cylinder_size_baselines',
                'unique_together': {('tenant', 'driver', 'cylinder_size')},
            },
        ),
    ]
