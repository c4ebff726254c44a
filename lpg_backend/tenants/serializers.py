from rest_framework import serializers
from lpg_backend.core.models import Tenant, User

PLAN_CHOICES = [value for value, _ in Tenant.SUBSCRIPTION_PLAN_CHOICES]
SUBSCRIPTION_STATUS_CHOICES = [value for value, _ in Tenant.SUBSCRIPTION_STATUS_CHOICES]


class TenantAdminSerializer(serializers.ModelSerializer):
    user_count = serializers.IntegerField(read_only=True)
    last_activity = serializers.DateTimeField(read_only=True, allow_null=True)

    class Meta:
        model = Tenant
        fields = ['id', 'name', 'subdomain', 'contact_email', 'contact_phone', 'business_type',
                  'business_description', 'approval_status', 'subscription_status', 'subscription_plan',
                  'is_active', 'approved_at', 'approved_by', 'rejected_at', 'rejection_reason',
                  'user_count', 'last_activity', 'created_at', 'updated_at']


class TenantUserSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = ['id', 'email', 'name', 'phone', 'role', 'is_active', 'last_login_at',
                  'onboarding_completed', 'created_at']


class SubscriptionSerializer(serializers.Serializer):
    subscription_plan = serializers.ChoiceField(choices=PLAN_CHOICES)
    subscription_status = serializers.ChoiceField(choices=SUBSCRIPTION_STATUS_CHOICES)


class ReasonSerializer(serializers.Serializer):
    reason = serializers.CharField(required=False, allow_blank=True, default='')
