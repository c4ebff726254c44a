# Generated manually for providers, settings, templates and the sent message log

import django.db.models.deletion
from django.db import migrations, models

TRIGGER_CHOICES = [('RECEIVABLES_CHANGE', 'Receivables Change'), ('PAYMENT_RECEIVED', 'Payment Received'), ('OVERDUE_REMINDER', 'Overdue Reminder'), ('DAILY_SUMMARY', 'Daily Summary'), ('MANUAL', 'Manual')]
MESSAGE_TYPE_CHOICES = [('WHATSAPP', 'WhatsApp'), ('SMS', 'SMS')]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('core', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='MessageProvider',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=100)),
                ('provider_type', models.CharField(choices=[('WHATSAPP_BUSINESS', 'WhatsApp Business'), ('SMS_PROVIDER', 'SMS Provider')], default='WHATSAPP_BUSINESS', max_length=30)),
                ('config', models.JSONField(blank=True, default=dict)),
                ('is_active', models.BooleanField(default=True)),
                ('is_default', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('tenant', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='message_providers', to='core.tenant')),
            ],
            options={
                'db_table': 'message_providers',
            },
        ),
        migrations.CreateModel(
            name='MessagingSettings',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('whatsapp_enabled', models.BooleanField(default=True)),
                ('sms_enabled', models.BooleanField(default=False)),
                ('email_enabled', models.BooleanField(default=False)),
                ('receivables_notifications_enabled', models.BooleanField(default=True)),
                ('payment_notifications_enabled', models.BooleanField(default=True)),
                ('overdue_reminders_enabled', models.BooleanField(default=True)),
                ('overdue_days_threshold', models.PositiveIntegerField(default=7)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('tenant', models.OneToOneField(on_delete=django.db.models.deletion.CASCADE, related_name='messaging_settings', to='core.tenant')),
            ],
            options={
                'db_table': 'messaging_settings',
                'verbose_name_plural': 'messaging settings',
            },
        ),
        migrations.CreateModel(
            name='MessageTemplate',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=200)),
                ('trigger', models.CharField(choices=TRIGGER_CHOICES, max_length=30)),
                ('message_type', models.CharField(choices=MESSAGE_TYPE_CHOICES, default='WHATSAPP', max_length=20)),
                ('template', models.TextField()),
                ('variables', models.JSONField(blank=True, default=dict)),
                ('language', models.CharField(default='bn', max_length=5)),
                ('is_active', models.BooleanField(default=True)),
                ('is_default', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('provider', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='templates', to='messaging.messageprovider')),
                ('tenant', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='message_templates', to='core.tenant')),
            ],
            options={
                'db_table': 'message_templates',
                'ordering': ['trigger', 'name'],
                'unique_together': {('tenant', 'trigger', 'message_type')},
            },
        ),
        migrations.CreateModel(
            name='SentMessage',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('recipient_type', models.CharField(choices=[('CUSTOMER', 'Customer'), ('DRIVER', 'Driver'), ('USER', 'User')], max_length=20)),
                ('recipient_id', models.CharField(blank=True, max_length=100)),
                ('recipient_name', models.CharField(blank=True, max_length=200)),
                ('phone_number', models.CharField(max_length=20)),
                ('message', models.TextField()),
                ('trigger', models.CharField(choices=TRIGGER_CHOICES, max_length=30)),
                ('message_type', models.CharField(choices=MESSAGE_TYPE_CHOICES, max_length=20)),
                ('metadata', models.JSONField(blank=True, default=dict)),
                ('status', models.CharField(choices=[('PENDING', 'Pending'), ('SENT', 'Sent'), ('DELIVERED', 'Delivered'), ('FAILED', 'Failed')], default='PENDING', max_length=20)),
                ('provider_message_id', models.CharField(blank=True, db_index=True, max_length=200)),
                ('retry_count', models.PositiveIntegerField(default=0)),
                ('error_message', models.TextField(blank=True, null=True)),
                ('sent_at', models.DateTimeField(blank=True, null=True)),
                ('delivered_at', models.DateTimeField(blank=True, null=True)),
                ('failed_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('provider', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='sent_messages', to='messaging.messageprovider')),
                ('template', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='sent_messages', to='messaging.messagetemplate')),
                ('tenant', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='sent_messages', to='core.tenant')),
            ],
            options={
                'db_table': 'sent_messages',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['tenant', 'created_at'], name='idx_sentmsg_tenant_created'),
                    models.Index(fields=['tenant', 'status'], name='idx_sentmsg_tenant_status'),
                ],
            },
        ),
    ]
