from django.contrib import admin
from .models import MessageProvider, MessagingSettings, MessageTemplate, SentMessage


@admin.register(MessageProvider)
class MessageProviderAdmin(admin.ModelAdmin):
    list_display = ['name', 'provider_type', 'is_active', 'is_default', 'tenant']
    list_filter = ['provider_type', 'is_active', 'tenant']


@admin.register(MessagingSettings)
class MessagingSettingsAdmin(admin.ModelAdmin):
    list_display = ['tenant', 'whatsapp_enabled', 'receivables_notifications_enabled',
                    'payment_notifications_enabled', 'overdue_reminders_enabled', 'overdue_days_threshold']


@admin.register(MessageTemplate)
class MessageTemplateAdmin(admin.ModelAdmin):
    list_display = ['name', 'trigger', 'message_type', 'language', 'is_active', 'tenant']
    list_filter = ['trigger', 'message_type', 'is_active', 'tenant']
    search_fields = ['name', 'template']


@admin.register(SentMessage)
class SentMessageAdmin(admin.ModelAdmin):
    list_display = ['created_at', 'recipient_name', 'phone_number', 'trigger', 'status', 'retry_count', 'tenant']
    list_filter = ['status', 'trigger', 'message_type', 'tenant']
    search_fields = ['recipient_name', 'phone_number', 'provider_message_id']
    readonly_fields = ['created_at', 'updated_at', 'sent_at', 'delivered_at', 'failed_at']
