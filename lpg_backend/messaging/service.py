"""
Messaging service: template rendering, sending through the tenant's provider,
customer/driver notifications, overdue reminders and the retry queue.

Notification helpers never raise into the calling request; every attempt is
recorded as a SentMessage.
"""
import re
import logging
from datetime import timedelta
from decimal import Decimal

from django.conf import settings
from django.db import transaction
from django.db.models import Sum
from django.utils import timezone

from .evolution import EvolutionProvider, default_provider_config
from .models import MessageProvider, MessagingSettings, MessageTemplate, SentMessage

logger = logging.getLogger(__name__)

TEMPLATE_VARIABLE_RE = re.compile(r'\{\{(\w+)\}\}')

DEFAULT_TEMPLATES = [
    {
        'name': 'Customer Receivables Change',
        'trigger': MessageTemplate.TRIGGER_RECEIVABLES_CHANGE,
        'template': (
            "🔔 *বকেয়া আপডেট*\n\n"
            "প্রিয় {{customerName}},\n\n"
            "আপনার বকেয়া তথ্য আপডেট হয়েছে:\n\n"
            "পুরাতন বকেয়া: {{oldAmount}}\n"
            "নতুন বকেয়া: {{newAmount}}\n"
            "পরিবর্তন: {{change}} ({{changeType}})\n\n"
            "নগদ বকেয়া: {{cashAmount}}\n"
            "সিলিন্ডার বকেয়া: {{cylinderAmount}} টি\n\n"
            "এলাকা: {{areaName}}\n"
            "সময়: {{date}} {{time}}\n"
            "কারণ: {{changeReason}}\n\n"
            "*{{companyName}}*"
        ),
        'variables': {
            'customerName': 'গ্রাহকের নাম',
            'oldAmount': 'পুরাতন বকেয়া',
            'newAmount': 'নতুন বকেয়া',
            'change': 'পরিবর্তন',
            'changeType': 'বৃদ্ধি/হ্রাস',
            'cashAmount': 'নগদ বকেয়া',
            'cylinderAmount': 'সিলিন্ডার বকেয়া',
            'areaName': 'এলাকার নাম',
            'date': 'তারিখ',
            'time': 'সময়',
            'changeReason': 'কারণ',
            'companyName': 'কোম্পানির নাম',
        },
    },
    {
        'name': 'Payment Received Confirmation',
        'trigger': MessageTemplate.TRIGGER_PAYMENT_RECEIVED,
        'template': (
            "✅ *পেমেন্ট নিশ্চিতকরণ*\n\n"
            "প্রিয় {{customerName}},\n\n"
            "আপনার {{amount}} এর {{paymentType}} পেমেন্ট সফলভাবে গ্রহণ করা হয়েছে।\n\n"
            "গ্রহণকারী: {{receivedBy}}\n"
            "সময়: {{date}} {{time}}\n\n"
            "ধন্যবাদ!\n\n"
            "*{{companyName}}*"
        ),
        'variables': {
            'customerName': 'গ্রাহকের নাম',
            'amount': 'পরিমাণ',
            'paymentType': 'পেমেন্ট প্রকার',
            'receivedBy': 'গ্রহণকারী',
            'date': 'তারিখ',
            'time': 'সময়',
            'companyName': 'কোম্পানির নাম',
        },
    },
    {
        'name': 'Overdue Reminder',
        'trigger': MessageTemplate.TRIGGER_OVERDUE_REMINDER,
        'template': (
            "⚠️ *বকেয়া মনে করিয়ে দিন*\n\n"
            "প্রিয় {{customerName}},\n\n"
            "আপনার মোট বকেয়া {{amount}}।\n"
            "বকেয়ার মেয়াদ: {{daysOverdue}} দিন\n\n"
            "নগদ বকেয়া: {{cashAmount}}\n"
            "সিলিন্ডার বকেয়া: {{cylinderAmount}} টি\n\n"
            "অনুগ্রহ করে যত তাড়াতাড়ি সম্ভব পরিশোধ করুন।\n"
            "যোগাযোগ: {{contactNumber}}\n\n"
            "*{{companyName}}*"
        ),
        'variables': {
            'customerName': 'গ্রাহকের নাম',
            'amount': 'মোট বকেয়া',
            'daysOverdue': 'বকেয়ার দিন',
            'cashAmount': 'নগদ বকেয়া',
            'cylinderAmount': 'সিলিন্ডার বকেয়া',
            'contactNumber': 'যোগাযোগ নম্বর',
            'companyName': 'কোম্পানির নাম',
        },
    },
]

# Which settings toggle gates each trigger
TRIGGER_TOGGLES = {
    MessageTemplate.TRIGGER_RECEIVABLES_CHANGE: 'receivables_notifications_enabled',
    MessageTemplate.TRIGGER_PAYMENT_RECEIVED: 'payment_notifications_enabled',
    MessageTemplate.TRIGGER_OVERDUE_REMINDER: 'overdue_reminders_enabled',
}

# Evolution webhook message status codes
WEBHOOK_STATUS_MAP = {
    1: SentMessage.STATUS_PENDING,
    2: SentMessage.STATUS_SENT,
    3: SentMessage.STATUS_DELIVERED,
    4: SentMessage.STATUS_DELIVERED,
    5: SentMessage.STATUS_FAILED,
}


def format_currency(amount):
    """৳ with thousands separators, no decimals for whole amounts: ৳1,250"""
    value = Decimal(str(amount or 0))
    if value == value.to_integral_value():
        return f"৳{int(value):,}"
    return f"৳{value:,.2f}"


def render_template(template, variables):
    """Replace {{key}} placeholders; unknown placeholders are left untouched"""
    variables = variables or {}

    def replace(match):
        key = match.group(1)
        if key in variables:
            return str(variables[key])
        return match.group(0)

    return TEMPLATE_VARIABLE_RE.sub(replace, template or '')


def _now_variables():
    now = timezone.localtime()
    return {
        'date': now.strftime('%d/%m/%Y'),
        'time': now.strftime('%I:%M %p'),
    }


def customer_outstanding(customer):
    """Open (CURRENT/OVERDUE) cash and cylinder receivables of a customer"""
    from lpg_backend.receivables.models import CustomerReceivable

    open_receivables = CustomerReceivable.objects.filter(
        customer=customer,
        status__in=[CustomerReceivable.STATUS_CURRENT, CustomerReceivable.STATUS_OVERDUE],
    )
    cash = open_receivables.filter(receivable_type=CustomerReceivable.TYPE_CASH).aggregate(
        total=Sum('amount'))['total'] or Decimal('0.00')
    cylinders = open_receivables.filter(receivable_type=CustomerReceivable.TYPE_CYLINDER).aggregate(
        total=Sum('quantity'))['total'] or 0
    return cash, cylinders


def ensure_tenant_messaging(tenant):
    """
    Provision provider, settings and default templates for a tenant on first use.
    Returns the tenant's active WhatsApp provider.
    """
    provider = MessageProvider.objects.filter(
        tenant=tenant,
        is_active=True,
        provider_type=MessageProvider.WHATSAPP_BUSINESS,
    ).order_by('-is_default', '-created_at').first()

    created = False
    with transaction.atomic():
        if provider is None:
            provider = MessageProvider.objects.create(
                tenant=tenant,
                name='Evolution API',
                provider_type=MessageProvider.WHATSAPP_BUSINESS,
                config=default_provider_config(),
                is_active=True,
                is_default=True,
            )
            created = True
        MessagingSettings.objects.get_or_create(tenant=tenant)
        if created:
            create_default_templates(tenant, provider)

    if created:
        logger.info(f"Messaging setup completed for tenant {tenant.id}")
    return provider


def create_default_templates(tenant, provider):
    """Upsert the Bengali WhatsApp templates by (tenant, trigger, message_type)"""
    for data in DEFAULT_TEMPLATES:
        MessageTemplate.objects.update_or_create(
            tenant=tenant,
            trigger=data['trigger'],
            message_type=MessageTemplate.TYPE_WHATSAPP,
            defaults={
                'provider': provider,
                'name': data['name'],
                'template': data['template'],
                'variables': data['variables'],
                'language': 'bn',
                'is_active': True,
                'is_default': True,
            },
        )


class MessageService:
    """Sends templated messages for one tenant"""

    def __init__(self, tenant):
        self.tenant = tenant
        self._provider = None

    @property
    def provider(self):
        if self._provider is None:
            self._provider = ensure_tenant_messaging(self.tenant)
        return self._provider

    @property
    def settings(self):
        messaging_settings, _ = MessagingSettings.objects.get_or_create(tenant=self.tenant)
        return messaging_settings

    def find_template(self, trigger):
        return MessageTemplate.objects.filter(
            tenant=self.tenant, trigger=trigger, is_active=True,
        ).order_by('-created_at').first()

    def is_enabled(self, trigger, message_type):
        messaging_settings = self.settings
        toggle = TRIGGER_TOGGLES.get(trigger)
        if toggle and not getattr(messaging_settings, toggle):
            return False
        if message_type == MessageTemplate.TYPE_WHATSAPP and not messaging_settings.whatsapp_enabled:
            return False
        if message_type == MessageTemplate.TYPE_SMS and not messaging_settings.sms_enabled:
            return False
        return True

    def send(self, trigger, recipient_type, phone, variables, recipient_id='', recipient_name=''):
        """
        Render the newest active template for the trigger and send it.
        Returns the SentMessage, or None when messaging is disabled or no template exists.
        """
        provider = self.provider
        template = self.find_template(trigger)
        if template is None:
            logger.info(f"No template found for trigger {trigger} (tenant {self.tenant.id})")
            return None

        if not self.is_enabled(trigger, template.message_type):
            logger.info(f"Messaging disabled for trigger {trigger} (tenant {self.tenant.id})")
            return None

        message = SentMessage(
            tenant=self.tenant,
            template=template,
            provider=template.provider or provider,
            recipient_type=recipient_type,
            recipient_id=str(recipient_id or ''),
            recipient_name=recipient_name or '',
            phone_number=phone,
            message=render_template(template.template, variables),
            trigger=trigger,
            message_type=template.message_type,
            metadata={k: str(v) for k, v in (variables or {}).items()},
        )

        if not getattr(settings, 'MESSAGING_SEND_IMMEDIATELY', True):
            message.save()
            return message

        return deliver(message)

    def send_text(self, phone, text, recipient_name=''):
        """Send a free-form (manual) message, e.g. a connection test"""
        message = SentMessage(
            tenant=self.tenant,
            provider=self.provider,
            recipient_type='USER',
            recipient_name=recipient_name,
            phone_number=phone,
            message=text,
            trigger=MessageTemplate.TRIGGER_MANUAL,
            message_type=MessageTemplate.TYPE_WHATSAPP,
        )
        return deliver(message)

    # Notifications

    def notify_customer_receivable_change(self, customer, old_cash, new_cash, old_cylinders,
                                          new_cylinders, change_reason=''):
        if customer is None or not customer.phone:
            return None

        cash_change = Decimal(str(new_cash)) - Decimal(str(old_cash))
        cylinder_change = int(new_cylinders) - int(old_cylinders)
        total_change = cash_change + cylinder_change
        if abs(total_change) < 1:
            return None

        variables = {
            'customerName': customer.name,
            'customerCode': customer.customer_code or 'N/A',
            'driverName': customer.driver.name if customer.driver_id else 'No Driver',
            'areaName': customer.area.name if customer.area_id else '',
            'companyName': self.tenant.name,
            'oldAmount': format_currency(old_cash),
            'newAmount': format_currency(new_cash),
            'change': format_currency(abs(cash_change)) if cash_change else f"{abs(cylinder_change)}",
            'changeType': 'বৃদ্ধি' if total_change > 0 else 'হ্রাস',
            'cashAmount': format_currency(new_cash),
            'cylinderAmount': new_cylinders,
            'changeReason': change_reason,
            **_now_variables(),
        }
        return self._safe_send(
            MessageTemplate.TRIGGER_RECEIVABLES_CHANGE, 'CUSTOMER', customer.phone, variables,
            recipient_id=customer.id, recipient_name=customer.name,
        )

    def notify_payment_received(self, customer, amount, payment_type, received_by=''):
        """payment_type is 'cash' or 'cylinder'"""
        if customer is None or not customer.phone:
            return None

        if payment_type == 'cash':
            amount_text = format_currency(amount)
        else:
            amount_text = f"{amount} টি সিলিন্ডার"

        variables = {
            'customerName': customer.name,
            'customerCode': customer.customer_code or 'N/A',
            'driverName': customer.driver.name if customer.driver_id else 'No Driver',
            'areaName': customer.area.name if customer.area_id else '',
            'companyName': self.tenant.name,
            'amount': amount_text,
            'paymentType': 'নগদ' if payment_type == 'cash' else 'সিলিন্ডার',
            'receivedBy': received_by or (customer.driver.name if customer.driver_id else 'Admin'),
            **_now_variables(),
        }
        return self._safe_send(
            MessageTemplate.TRIGGER_PAYMENT_RECEIVED, 'CUSTOMER', customer.phone, variables,
            recipient_id=customer.id, recipient_name=customer.name,
        )

    def notify_driver_receivable_change(self, driver, old_cash, new_cash, old_cylinders,
                                        new_cylinders, change_reason=''):
        if driver is None or not driver.phone:
            return None

        cash_change = Decimal(str(new_cash)) - Decimal(str(old_cash))
        cylinder_change = int(new_cylinders) - int(old_cylinders)
        total_change = cash_change + cylinder_change
        if abs(total_change) < 1:
            return None

        variables = {
            'customerName': driver.name,
            'driverName': driver.name,
            'areaName': driver.route or '',
            'companyName': self.tenant.name,
            'oldAmount': format_currency(old_cash),
            'newAmount': format_currency(new_cash),
            'change': format_currency(abs(cash_change)) if cash_change else f"{abs(cylinder_change)}",
            'changeType': 'বৃদ্ধি' if total_change > 0 else 'হ্রাস',
            'cashAmount': format_currency(new_cash),
            'cylinderAmount': new_cylinders,
            'changeReason': change_reason,
            **_now_variables(),
        }
        return self._safe_send(
            MessageTemplate.TRIGGER_RECEIVABLES_CHANGE, 'DRIVER', driver.phone, variables,
            recipient_id=driver.id, recipient_name=driver.name,
        )

    def send_overdue_reminders(self):
        """
        Flag CURRENT receivables older than the threshold as OVERDUE and send
        one reminder per customer. Returns the number of reminders sent.
        """
        from lpg_backend.receivables.models import CustomerReceivable

        messaging_settings = self.settings
        if not messaging_settings.overdue_reminders_enabled:
            return 0

        today = timezone.localdate()
        cutoff = today - timedelta(days=messaging_settings.overdue_days_threshold)

        newly_overdue = CustomerReceivable.objects.filter(
            tenant=self.tenant,
            status=CustomerReceivable.STATUS_CURRENT,
            due_date__isnull=False,
            due_date__lt=cutoff,
        )
        flagged = newly_overdue.update(status=CustomerReceivable.STATUS_OVERDUE)
        if flagged:
            logger.info(f"Marked {flagged} receivables overdue for tenant {self.tenant.id}")

        overdue = CustomerReceivable.objects.filter(
            tenant=self.tenant,
            status=CustomerReceivable.STATUS_OVERDUE,
            customer__isnull=False,
        ).select_related('customer', 'customer__area', 'driver').order_by('due_date')

        sent = 0
        seen = set()
        for receivable in overdue:
            customer = receivable.customer
            if customer.id in seen or not customer.phone:
                continue
            seen.add(customer.id)

            cash, cylinders = customer_outstanding(customer)
            oldest_due = receivable.due_date or today
            variables = {
                'customerName': customer.name,
                'customerCode': customer.customer_code or 'N/A',
                'areaName': customer.area.name if customer.area_id else '',
                'driverName': receivable.driver.name,
                'companyName': self.tenant.name,
                'amount': format_currency(cash),
                'cashAmount': format_currency(cash),
                'cylinderAmount': cylinders,
                'daysOverdue': (today - oldest_due).days,
                'contactNumber': receivable.driver.phone or 'অফিসে যোগাযোগ করুন',
                **_now_variables(),
            }
            if self._safe_send(MessageTemplate.TRIGGER_OVERDUE_REMINDER, 'CUSTOMER', customer.phone,
                               variables, recipient_id=customer.id, recipient_name=customer.name):
                sent += 1

        logger.info(f"Overdue reminders sent to {sent} customers (tenant {self.tenant.id})")
        return sent

    def _safe_send(self, *args, **kwargs):
        try:
            return self.send(*args, **kwargs)
        except Exception as e:
            logger.error(f"Error sending message for tenant {self.tenant.id}: {str(e)}", exc_info=True)
            return None


def deliver(message):
    """Push a SentMessage through its provider and persist the outcome"""
    provider_model = message.provider
    try:
        if provider_model is None:
            raise ValueError('WhatsApp provider not found')
        client = EvolutionProvider.from_config(provider_model.config)
        result = client.send_message(message.phone_number, message.message)
    except Exception as e:
        logger.error(f"Error sending message to {message.phone_number}: {str(e)}")
        result = {'success': False, 'message_id': None, 'error': str(e)}

    now = timezone.now()
    if result.get('success'):
        message.status = SentMessage.STATUS_SENT
        message.sent_at = now
        message.provider_message_id = result.get('message_id') or ''
        message.error_message = None
    else:
        message.status = SentMessage.STATUS_FAILED
        message.failed_at = now
        message.error_message = result.get('error') or 'Unknown error'
    message.save()
    return message


def process_queue(tenant=None, limit=100):
    """
    Retry PENDING messages that still have attempts left.
    Returns (attempted, sent).
    """
    pending = SentMessage.objects.filter(
        status=SentMessage.STATUS_PENDING,
        retry_count__lt=SentMessage.MAX_RETRIES,
    ).select_related('provider').order_by('created_at')
    if tenant is not None:
        pending = pending.filter(tenant=tenant)

    attempted = 0
    sent = 0
    for message in pending[:limit]:
        attempted += 1
        message.retry_count += 1
        if message.provider is None:
            message.provider = ensure_tenant_messaging(message.tenant)
        deliver(message)
        if message.status == SentMessage.STATUS_SENT:
            sent += 1
        elif message.retry_count < SentMessage.MAX_RETRIES:
            # keep it queued for the next run
            message.status = SentMessage.STATUS_PENDING
            message.save(update_fields=['status', 'updated_at'])

    logger.info(f"Processed message queue: {attempted} attempted, {sent} sent")
    return attempted, sent


def handle_webhook(payload):
    """Apply an Evolution webhook event. Returns the number of messages updated."""
    event = (payload or {}).get('event')
    data = (payload or {}).get('data') or {}

    if event == 'messages.upsert':
        return _handle_message_upsert(data)
    if event == 'messages.update':
        return _handle_message_update(data)
    if event == 'connection.update':
        logger.info(f"Evolution instance {data.get('instance') or payload.get('instance')} connection state: {data.get('state')}")
        return 0

    logger.info(f"Unhandled Evolution webhook event: {event}")
    return 0


def _webhook_messages(data):
    messages = data.get('messages')
    if isinstance(messages, list):
        return messages
    # single-message payloads
    if data.get('key'):
        return [data]
    return []


def _handle_message_upsert(data):
    updated = 0
    for message in _webhook_messages(data):
        key = message.get('key') or {}
        if not key.get('fromMe') or not key.get('id'):
            continue
        # late upserts must not downgrade DELIVERED or FAILED messages
        updated += SentMessage.objects.filter(
            provider_message_id=key['id'], status=SentMessage.STATUS_PENDING,
        ).update(
            status=SentMessage.STATUS_SENT,
            sent_at=timezone.now(),
            updated_at=timezone.now(),
        )
    return updated


def _handle_message_update(data):
    updated = 0
    for message in _webhook_messages(data):
        message_id = (message.get('key') or {}).get('id')
        status_code = (message.get('update') or {}).get('status')
        if not message_id or not status_code:
            continue

        new_status = WEBHOOK_STATUS_MAP.get(status_code, SentMessage.STATUS_SENT)
        fields = {'status': new_status, 'updated_at': timezone.now()}
        if new_status == SentMessage.STATUS_DELIVERED:
            fields['delivered_at'] = timezone.now()
        elif new_status == SentMessage.STATUS_FAILED:
            fields['failed_at'] = timezone.now()

        count = SentMessage.objects.filter(provider_message_id=message_id).update(**fields)
        logger.info(f"Updated message status for Evolution message {message_id}: {new_status}")
        updated += count
    return updated
