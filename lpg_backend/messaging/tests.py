"""
Test suite for the messaging module
Tests: template rendering, tenant provisioning, delivery through Evolution, retry queue, webhooks, metrics
"""
from datetime import timedelta
from decimal import Decimal
from unittest import mock
from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APIClient
from lpg_backend.core.models import User
from lpg_backend.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from lpg_backend.messaging.evolution import EvolutionProvider, format_phone_number
from lpg_backend.messaging.models import MessageProvider, MessagingSettings, MessageTemplate, SentMessage
from lpg_backend.messaging.service import (
    MessageService, ensure_tenant_messaging, format_currency, render_template, process_queue,
)
from lpg_backend.receivables.models import CustomerReceivable

EVOLUTION_POST = 'lpg_backend.messaging.evolution.requests.post'
EVOLUTION_GET = 'lpg_backend.messaging.evolution.requests.get'


def evolution_response(status_code=201, payload=None):
    response = mock.Mock()
    response.status_code = status_code
    response.ok = status_code < 400
    response.json.return_value = payload if payload is not None else {}
    return response


def sent_ok(message_id='ABC123'):
    return evolution_response(201, {'key': {'id': message_id, 'fromMe': True}})


class FormattingTests(TestCase):

    def test_render_template(self):
        text = render_template('Hello {{name}}, you owe {{amount}} {{unknown}}', {'name': 'Karim', 'amount': '৳500'})
        self.assertEqual(text, 'Hello Karim, you owe ৳500 {{unknown}}')

    def test_format_currency(self):
        self.assertEqual(format_currency(Decimal('1250')), '৳1,250')
        self.assertEqual(format_currency(Decimal('1250.5')), '৳1,250.50')
        self.assertEqual(format_currency(None), '৳0')

    def test_format_phone_number(self):
        self.assertEqual(format_phone_number('01711-111111'), '+8801711111111')
        self.assertEqual(format_phone_number('8801711111111'), '+8801711111111')
        self.assertEqual(format_phone_number('+8801711111111'), '+8801711111111')


class ProvisioningTests(TestCase):

    def setUp(self):
        self.tenant = TestDataFactory.create_tenant()

    def test_first_use_creates_provider_settings_and_templates(self):
        provider = ensure_tenant_messaging(self.tenant)
        self.assertEqual(provider.provider_type, MessageProvider.WHATSAPP_BUSINESS)
        self.assertTrue(MessagingSettings.objects.filter(tenant=self.tenant).exists())
        triggers = set(MessageTemplate.objects.filter(tenant=self.tenant).values_list('trigger', flat=True))
        self.assertEqual(triggers, {
            MessageTemplate.TRIGGER_RECEIVABLES_CHANGE,
            MessageTemplate.TRIGGER_PAYMENT_RECEIVED,
            MessageTemplate.TRIGGER_OVERDUE_REMINDER,
        })

    def test_provisioning_is_idempotent(self):
        first = ensure_tenant_messaging(self.tenant)
        second = ensure_tenant_messaging(self.tenant)
        self.assertEqual(first.id, second.id)
        self.assertEqual(MessageTemplate.objects.filter(tenant=self.tenant).count(), 3)


@override_settings(EVOLUTION_API_URL='http://evolution.test')
class DeliveryTests(TestCase):

    def setUp(self):
        self.tenant = TestDataFactory.create_tenant(name='Rahim Gas')
        self.driver = TestDataFactory.create_driver(self.tenant, name='Karim', phone='01711111111')
        self.customer = TestDataFactory.create_customer(self.tenant, driver=self.driver, name='Rahima Store')
        self.service = MessageService(self.tenant)

    def test_payment_confirmation_sent(self):
        with mock.patch(EVOLUTION_POST, return_value=sent_ok('MSG1')) as post:
            message = self.service.notify_payment_received(self.customer, Decimal('1500'), 'cash',
                                                           received_by='Admin')
        self.assertEqual(message.status, SentMessage.STATUS_SENT)
        self.assertEqual(message.provider_message_id, 'MSG1')
        self.assertIn('৳1,500', message.message)
        self.assertIn('Rahim Gas', message.message)
        url = post.call_args[0][0]
        self.assertEqual(url, 'http://evolution.test/message/sendText/lpgapp')

    def test_provider_error_marks_failed(self):
        with mock.patch(EVOLUTION_POST, return_value=evolution_response(400, {'message': ['bad number']})):
            message = self.service.notify_payment_received(self.customer, Decimal('100'), 'cash')
        self.assertEqual(message.status, SentMessage.STATUS_FAILED)
        self.assertEqual(message.error_message, 'bad number')

    def test_small_changes_are_not_notified(self):
        with mock.patch(EVOLUTION_POST) as post:
            result = self.service.notify_driver_receivable_change(
                self.driver, Decimal('100.00'), Decimal('100.50'), 2, 2)
        self.assertIsNone(result)
        post.assert_not_called()

    def test_disabled_trigger_skips_send(self):
        ensure_tenant_messaging(self.tenant)
        MessagingSettings.objects.filter(tenant=self.tenant).update(payment_notifications_enabled=False)
        with mock.patch(EVOLUTION_POST) as post:
            result = self.service.notify_payment_received(self.customer, Decimal('100'), 'cash')
        self.assertIsNone(result)
        post.assert_not_called()

    @override_settings(MESSAGING_SEND_IMMEDIATELY=False)
    def test_queued_message_is_retried(self):
        message = self.service.notify_driver_receivable_change(
            self.driver, Decimal('0'), Decimal('1200'), 0, 1, 'Sale recorded')
        self.assertEqual(message.status, SentMessage.STATUS_PENDING)

        with mock.patch(EVOLUTION_POST, return_value=evolution_response(500)):
            self.assertEqual(process_queue(self.tenant), (1, 0))
        message.refresh_from_db()
        self.assertEqual(message.status, SentMessage.STATUS_PENDING)
        self.assertEqual(message.retry_count, 1)

        with mock.patch(EVOLUTION_POST, return_value=sent_ok()):
            self.assertEqual(process_queue(self.tenant), (1, 1))
        message.refresh_from_db()
        self.assertEqual(message.status, SentMessage.STATUS_SENT)

    @override_settings(MESSAGING_SEND_IMMEDIATELY=False)
    def test_message_fails_after_max_retries(self):
        message = self.service.notify_driver_receivable_change(self.driver, Decimal('0'), Decimal('500'), 0, 0)
        message.retry_count = SentMessage.MAX_RETRIES - 1
        message.save()
        with mock.patch(EVOLUTION_POST, return_value=evolution_response(500)):
            process_queue(self.tenant)
        message.refresh_from_db()
        self.assertEqual(message.status, SentMessage.STATUS_FAILED)
        self.assertEqual(process_queue(self.tenant), (0, 0))

    def test_overdue_reminders(self):
        old_due = timezone.localdate() - timedelta(days=30)
        receivable = TestDataFactory.create_customer_receivable(
            self.tenant, self.driver, customer=self.customer, amount=Decimal('900.00'), due_date=old_due)
        TestDataFactory.create_customer_receivable(
            self.tenant, self.driver, customer=self.customer, amount=Decimal('100.00'), due_date=old_due)

        with mock.patch(EVOLUTION_POST, return_value=sent_ok()):
            sent = self.service.send_overdue_reminders()
        self.assertEqual(sent, 1)
        receivable.refresh_from_db()
        self.assertEqual(receivable.status, CustomerReceivable.STATUS_OVERDUE)
        reminder = SentMessage.objects.get(trigger=MessageTemplate.TRIGGER_OVERDUE_REMINDER)
        self.assertIn('৳1,000', reminder.message)


class WebhookTests(TestCase):

    def setUp(self):
        self.tenant = TestDataFactory.create_tenant()
        self.message = SentMessage.objects.create(
            tenant=self.tenant, recipient_type='CUSTOMER', phone_number='01711111111', message='hi',
            trigger=MessageTemplate.TRIGGER_MANUAL, message_type=MessageTemplate.TYPE_WHATSAPP,
            status=SentMessage.STATUS_SENT, provider_message_id='WAMID-1',
        )
        self.client = APIClient()

    def test_delivery_update(self):
        response = self.client.post('/api/v1/messaging/evolution/webhook/', {
            'event': 'messages.update',
            'data': {'key': {'id': 'WAMID-1'}, 'update': {'status': 3}},
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['updated'], 1)
        self.message.refresh_from_db()
        self.assertEqual(self.message.status, SentMessage.STATUS_DELIVERED)
        self.assertIsNotNone(self.message.delivered_at)

    def test_upsert_marks_pending_outgoing_message_sent(self):
        SentMessage.objects.filter(pk=self.message.pk).update(status=SentMessage.STATUS_PENDING)
        response = self.client.post('/api/v1/messaging/evolution/webhook/', {
            'event': 'messages.upsert',
            'data': {'key': {'id': 'WAMID-1', 'fromMe': True}, 'message': {'conversation': 'hi'}},
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['updated'], 1)
        self.message.refresh_from_db()
        self.assertEqual(self.message.status, SentMessage.STATUS_SENT)
        self.assertIsNotNone(self.message.sent_at)

    def test_upsert_ignores_incoming_messages(self):
        SentMessage.objects.filter(pk=self.message.pk).update(status=SentMessage.STATUS_PENDING)
        response = self.client.post('/api/v1/messaging/evolution/webhook/', {
            'event': 'messages.upsert',
            'data': {'key': {'id': 'WAMID-1', 'fromMe': False}},
        }, format='json')
        self.assertEqual(response.data['updated'], 0)
        self.message.refresh_from_db()
        self.assertEqual(self.message.status, SentMessage.STATUS_PENDING)

    def test_late_upsert_keeps_delivered_status(self):
        SentMessage.objects.filter(pk=self.message.pk).update(status=SentMessage.STATUS_DELIVERED)
        response = self.client.post('/api/v1/messaging/evolution/webhook/', {
            'event': 'messages.upsert',
            'data': {'messages': [{'key': {'id': 'WAMID-1', 'fromMe': True}}]},
        }, format='json')
        self.assertEqual(response.data['updated'], 0)
        self.message.refresh_from_db()
        self.assertEqual(self.message.status, SentMessage.STATUS_DELIVERED)

    def test_unknown_message_ignored(self):
        response = self.client.post('/api/v1/messaging/evolution/webhook/', {
            'event': 'messages.update',
            'data': {'messages': [{'key': {'id': 'OTHER'}, 'update': {'status': 5}}]},
        }, format='json')
        self.assertEqual(response.data['updated'], 0)

    def test_connection_event(self):
        response = self.client.post('/api/v1/messaging/evolution/webhook/', {
            'event': 'connection.update', 'data': {'state': 'open'},
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)


class MessagingApiTests(TestCase):

    def setUp(self):
        self.admin = TestDataFactory.create_user()
        self.tenant = self.admin.tenant
        self.client = AuthenticatedAPIClient().authenticate_user(self.admin)

    def test_template_list_provisions_defaults(self):
        response = self.client.get('/api/v1/messaging/templates/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 3)

    def test_duplicate_trigger_rejected(self):
        ensure_tenant_messaging(self.tenant)
        response = self.client.post('/api/v1/messaging/templates/', {
            'name': 'Another', 'trigger': MessageTemplate.TRIGGER_PAYMENT_RECEIVED,
            'message_type': MessageTemplate.TYPE_WHATSAPP, 'template': 'Thanks {{customerName}}',
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_driver_cannot_edit_settings(self):
        driver_user = TestDataFactory.create_user(tenant=self.tenant, role=User.ROLE_DRIVER)
        client = AuthenticatedAPIClient().authenticate_user(driver_user)
        response = client.patch('/api/v1/messaging/settings/', {'whatsapp_enabled': False}, format='json')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)

    def test_settings_update(self):
        response = self.client.patch('/api/v1/messaging/settings/', {'overdue_days_threshold': 14}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['overdue_days_threshold'], 14)

    def test_metrics(self):
        for message_status in (SentMessage.STATUS_SENT, SentMessage.STATUS_DELIVERED, SentMessage.STATUS_FAILED,
                               SentMessage.STATUS_SENT):
            SentMessage.objects.create(
                tenant=self.tenant, recipient_type='CUSTOMER', phone_number='017', message='x',
                trigger=MessageTemplate.TRIGGER_PAYMENT_RECEIVED, message_type=MessageTemplate.TYPE_WHATSAPP,
                status=message_status,
            )
        response = self.client.get('/api/v1/messaging/metrics/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['current_month'], 4)
        self.assertEqual(response.data['success_rate'], 75.0)
        self.assertEqual(response.data['growth_percentage'], 100.0)
        self.assertEqual(response.data['by_status'][SentMessage.STATUS_SENT], 2)

    @override_settings(EVOLUTION_API_URL='http://evolution.test')
    def test_send_test_message(self):
        with mock.patch(EVOLUTION_POST, return_value=sent_ok()):
            response = self.client.post('/api/v1/messaging/send-test/', {
                'phone': '01711111111', 'message': 'Connection check',
            }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertTrue(response.data['success'])

    def test_send_test_requires_text_or_template(self):
        response = self.client.post('/api/v1/messaging/send-test/', {'phone': '01711111111'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_evolution_setup(self):
        created = evolution_response(201, {'instance': {'instanceName': 'rahim'}})
        connect = evolution_response(200, {'base64': 'data:image/png;base64,AAA'})
        with mock.patch(EVOLUTION_POST, return_value=created), mock.patch(EVOLUTION_GET, return_value=connect):
            response = self.client.post('/api/v1/messaging/evolution/setup/', {
                'api_url': 'http://evolution.test', 'api_key': 'secret', 'instance_name': 'rahim',
            }, format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['qr_code'], 'data:image/png;base64,AAA')
        provider = MessageProvider.objects.get(tenant=self.tenant, provider_type=MessageProvider.WHATSAPP_BUSINESS)
        self.assertEqual(provider.config['instance_name'], 'rahim')

    def test_evolution_setup_failure(self):
        with mock.patch(EVOLUTION_POST, return_value=evolution_response(500, {'error': 'down'})):
            response = self.client.post('/api/v1/messaging/evolution/setup/', {
                'api_url': 'http://evolution.test', 'instance_name': 'rahim',
            }, format='json')
        self.assertEqual(response.status_code, status.HTTP_502_BAD_GATEWAY)

    def test_instance_status(self):
        client = EvolutionProvider('http://evolution.test', 'key', 'lpgapp')
        instances = evolution_response(200, [{'instance': {'instanceName': 'lpgapp', 'state': 'open'}}])
        with mock.patch(EVOLUTION_GET, return_value=instances):
            self.assertTrue(client.get_instance_status())
