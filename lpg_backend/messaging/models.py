from django.db import models


class MessageProvider(models.Model):
    """Gateway credentials for a tenant (Evolution API for WhatsApp)"""
    WHATSAPP_BUSINESS = 'WHATSAPP_BUSINESS'
    SMS_PROVIDER = 'SMS_PROVIDER'
    PROVIDER_TYPE_CHOICES = [
        (WHATSAPP_BUSINESS, 'WhatsApp Business'),
        (SMS_PROVIDER, 'SMS Provider'),
    ]

    tenant = models.ForeignKey('core.Tenant', on_delete=models.CASCADE, related_name='message_providers')
    name = models.CharField(max_length=100)
    provider_type = models.CharField(max_length=30, choices=PROVIDER_TYPE_CHOICES, default=WHATSAPP_BUSINESS)
    config = models.JSONField(default=dict, blank=True)
    is_active = models.BooleanField(default=True)
    is_default = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.name} ({self.provider_type})"

    class Meta:
        db_table = 'message_providers'


class MessagingSettings(models.Model):
    """Per-tenant notification switches"""
    tenant = models.OneToOneField('core.Tenant', on_delete=models.CASCADE, related_name='messaging_settings')
    whatsapp_enabled = models.BooleanField(default=True)
    sms_enabled = models.BooleanField(default=False)
    email_enabled = models.BooleanField(default=False)
    receivables_notifications_enabled = models.BooleanField(default=True)
    payment_notifications_enabled = models.BooleanField(default=True)
    overdue_reminders_enabled = models.BooleanField(default=True)
    overdue_days_threshold = models.PositiveIntegerField(default=7)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'messaging_settings'
        verbose_name_plural = 'messaging settings'


class MessageTemplate(models.Model):
    """Message body with {{variable}} placeholders"""
    TRIGGER_RECEIVABLES_CHANGE = 'RECEIVABLES_CHANGE'
    TRIGGER_PAYMENT_RECEIVED = 'PAYMENT_RECEIVED'
    TRIGGER_OVERDUE_REMINDER = 'OVERDUE_REMINDER'
    TRIGGER_DAILY_SUMMARY = 'DAILY_SUMMARY'
    TRIGGER_MANUAL = 'MANUAL'
    TRIGGER_CHOICES = [
        (TRIGGER_RECEIVABLES_CHANGE, 'Receivables Change'),
        (TRIGGER_PAYMENT_RECEIVED, 'Payment Received'),
        (TRIGGER_OVERDUE_REMINDER, 'Overdue Reminder'),
        (TRIGGER_DAILY_SUMMARY, 'Daily Summary'),
        (TRIGGER_MANUAL, 'Manual'),
    ]

    TYPE_WHATSAPP = 'WHATSAPP'
    TYPE_SMS = 'SMS'
    MESSAGE_TYPE_CHOICES = [
        (TYPE_WHATSAPP, 'WhatsApp'),
        (TYPE_SMS, 'SMS'),
    ]

    tenant = models.ForeignKey('core.Tenant', on_delete=models.CASCADE, related_name='message_templates')
    provider = models.ForeignKey(MessageProvider, on_delete=models.SET_NULL, null=True, blank=True, related_name='templates')
    name = models.CharField(max_length=200)
    trigger = models.CharField(max_length=30, choices=TRIGGER_CHOICES)
    message_type = models.CharField(max_length=20, choices=MESSAGE_TYPE_CHOICES, default=TYPE_WHATSAPP)
    template = models.TextField()
    variables = models.JSONField(default=dict, blank=True)
    language = models.CharField(max_length=5, default='bn')
    is_active = models.BooleanField(default=True)
    is_default = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'message_templates'
        ordering = ['trigger', 'name']
        unique_together = [['tenant', 'trigger', 'message_type']]


class SentMessage(models.Model):
    """Every outbound message attempt, successful or not"""
    STATUS_PENDING = 'PENDING'
    STATUS_SENT = 'SENT'
    STATUS_DELIVERED = 'DELIVERED'
    STATUS_FAILED = 'FAILED'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_SENT, 'Sent'),
        (STATUS_DELIVERED, 'Delivered'),
        (STATUS_FAILED, 'Failed'),
    ]

    RECIPIENT_TYPE_CHOICES = [
        ('CUSTOMER', 'Customer'),
        ('DRIVER', 'Driver'),
        ('USER', 'User'),
    ]

    MAX_RETRIES = 3

    tenant = models.ForeignKey('core.Tenant', on_delete=models.CASCADE, related_name='sent_messages')
    template = models.ForeignKey(MessageTemplate, on_delete=models.SET_NULL, null=True, blank=True, related_name='sent_messages')
    provider = models.ForeignKey(MessageProvider, on_delete=models.SET_NULL, null=True, blank=True, related_name='sent_messages')
    recipient_type = models.CharField(max_length=20, choices=RECIPIENT_TYPE_CHOICES)
    recipient_id = models.CharField(max_length=100, blank=True)
    recipient_name = models.CharField(max_length=200, blank=True)
    phone_number = models.CharField(max_length=20)
    message = models.TextField()
    trigger = models.CharField(max_length=30, choices=MessageTemplate.TRIGGER_CHOICES)
    message_type = models.CharField(max_length=20, choices=MessageTemplate.MESSAGE_TYPE_CHOICES)
    metadata = models.JSONField(default=dict, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    provider_message_id = models.CharField(max_length=200, blank=True, db_index=True)
    retry_count = models.PositiveIntegerField(default=0)
    error_message = models.TextField(blank=True, null=True)
    sent_at = models.DateTimeField(null=True, blank=True)
    delivered_at = models.DateTimeField(null=True, blank=True)
    failed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.trigger} -> {self.phone_number} ({self.status})"

    class Meta:
        db_table = 'sent_messages'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['tenant', 'created_at'], name='idx_sentmsg_tenant_created'),
            models.Index(fields=['tenant', 'status'], name='idx_sentmsg_tenant_status'),
        ]
