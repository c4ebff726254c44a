from rest_framework import serializers
from lpg_backend.core.serializers import TenantModelSerializer
from .models import MessageProvider, MessagingSettings, MessageTemplate, SentMessage


class MessageProviderSerializer(serializers.ModelSerializer):
    class Meta:
        model = MessageProvider
        fields = ['id', 'name', 'provider_type', 'is_active', 'is_default', 'created_at']


class MessagingSettingsSerializer(serializers.ModelSerializer):
    class Meta:
        model = MessagingSettings
        fields = ['whatsapp_enabled', 'sms_enabled', 'email_enabled', 'receivables_notifications_enabled',
                  'payment_notifications_enabled', 'overdue_reminders_enabled', 'overdue_days_threshold',
                  'updated_at']
        read_only_fields = ['updated_at']

    def validate_overdue_days_threshold(self, value):
        if value < 1:
            raise serializers.ValidationError("Threshold must be at least 1 day.")
        return value


class MessageTemplateSerializer(TenantModelSerializer):
    provider_name = serializers.CharField(source='provider.name', read_only=True, allow_null=True)

    tenant_unique_together = [('trigger', 'message_type')]
    tenant_related_fields = ['provider']

    class Meta:
        model = MessageTemplate
        fields = ['id', 'provider', 'provider_name', 'name', 'trigger', 'message_type', 'template',
                  'variables', 'language', 'is_active', 'is_default', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']


class SentMessageSerializer(serializers.ModelSerializer):
    template_name = serializers.CharField(source='template.name', read_only=True, allow_null=True)

    class Meta:
        model = SentMessage
        fields = ['id', 'template', 'template_name', 'provider', 'recipient_type', 'recipient_id',
                  'recipient_name', 'phone_number', 'message', 'trigger', 'message_type', 'metadata',
                  'status', 'provider_message_id', 'retry_count', 'error_message', 'sent_at',
                  'delivered_at', 'failed_at', 'created_at']


class SendTestSerializer(serializers.Serializer):
    phone = serializers.CharField(max_length=20)
    message = serializers.CharField(required=False, allow_blank=True)
    template_id = serializers.IntegerField(required=False)
    variables = serializers.DictField(required=False, default=dict)

    def validate(self, attrs):
        if not attrs.get('message') and not attrs.get('template_id'):
            raise serializers.ValidationError("Either a message or a template_id is required.")
        return attrs


class EvolutionSetupSerializer(serializers.Serializer):
    api_url = serializers.URLField(required=False)
    api_key = serializers.CharField(required=False, allow_blank=True)
    instance_name = serializers.CharField(required=False, max_length=100)
    webhook_url = serializers.URLField(required=False, allow_blank=True)
