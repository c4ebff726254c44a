from rest_framework import serializers
from django.contrib.auth.password_validation import validate_password
from .models import Tenant, User, AuditLog


class TenantSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = Tenant
        fields = ['id', 'name', 'subdomain', 'approval_status', 'subscription_status',
                  'subscription_plan', 'is_active', 'settings']


class UserSerializer(serializers.ModelSerializer):
    tenant_name = serializers.CharField(source='tenant.name', read_only=True, allow_null=True)
    password = serializers.CharField(write_only=True, required=False, validators=[validate_password])

    class Meta:
        model = User
        fields = ['id', 'email', 'username', 'name', 'phone', 'role', 'tenant', 'tenant_name',
                  'is_active', 'page_permissions', 'last_login_at', 'onboarding_completed',
                  'onboarding_completed_at', 'created_at', 'updated_at', 'password']
        read_only_fields = ['tenant', 'last_login_at', 'onboarding_completed',
                            'onboarding_completed_at', 'created_at', 'updated_at']

    def validate_role(self, value):
        if value == User.ROLE_SUPER_ADMIN:
            raise serializers.ValidationError("Cannot assign the super admin role.")
        return value

    def update(self, instance, validated_data):
        password = validated_data.pop('password', None)
        instance = super().update(instance, validated_data)
        if password:
            instance.set_password(password)
            instance.save(update_fields=['password'])
        return instance


class UserCreateSerializer(serializers.ModelSerializer):
    """Creates a user inside the requesting admin's tenant (tenant passed to save())"""
    password = serializers.CharField(write_only=True, validators=[validate_password])
    password_confirm = serializers.CharField(write_only=True, required=False)
    username = serializers.CharField(required=False)

    class Meta:
        model = User
        fields = ['email', 'username', 'name', 'phone', 'role', 'page_permissions',
                  'password', 'password_confirm']

    def validate_role(self, value):
        if value == User.ROLE_SUPER_ADMIN:
            raise serializers.ValidationError("Cannot create super admin users.")
        return value

    def validate(self, attrs):
        confirm = attrs.get('password_confirm')
        if confirm is not None and attrs['password'] != confirm:
            raise serializers.ValidationError({"password": "Passwords don't match"})
        return attrs

    def create(self, validated_data):
        validated_data.pop('password_confirm', None)
        password = validated_data.pop('password')
        if not validated_data.get('username'):
            validated_data['username'] = validated_data['email']
        user = User(**validated_data, is_active=True)
        user.set_password(password)
        user.save()
        return user


class RegisterSerializer(serializers.Serializer):
    """Public sign-up: a pending tenant plus its first admin"""
    name = serializers.CharField(min_length=2, max_length=200)
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, min_length=8)
    company = serializers.CharField(min_length=2, max_length=200)
    phone = serializers.CharField(required=False, allow_blank=True, max_length=20)

    def validate_email(self, value):
        if User.objects.filter(email__iexact=value).exists():
            raise serializers.ValidationError("User with this email already exists")
        return value.lower()

    def create(self, validated_data):
        phone = validated_data.get('phone', '')
        tenant = Tenant.objects.create(
            name=validated_data['company'],
            contact_email=validated_data['email'],
            contact_phone=phone,
            approval_status=Tenant.APPROVAL_PENDING,
            is_active=False,
        )
        user = User(
            tenant=tenant,
            email=validated_data['email'],
            username=validated_data['email'],
            name=validated_data['name'],
            phone=phone or None,
            role=User.ROLE_ADMIN,
            is_active=True,
        )
        user.set_password(validated_data['password'])
        user.save()
        return user


class TenantSettingsSerializer(serializers.Serializer):
    currency = serializers.CharField(required=False, max_length=10)
    timezone = serializers.CharField(required=False, max_length=64)
    company_address = serializers.CharField(required=False, allow_blank=True)
    contact_number = serializers.CharField(required=False, allow_blank=True, max_length=20)
    language = serializers.ChoiceField(required=False, choices=['bn', 'en'])


class AuditLogSerializer(serializers.ModelSerializer):
    user_name = serializers.CharField(source='user.name', read_only=True, allow_null=True)
    user_email = serializers.CharField(source='user.email', read_only=True, allow_null=True)

    class Meta:
        model = AuditLog
        fields = ['id', 'user', 'user_name', 'user_email', 'action', 'model_name', 'object_id',
                  'object_name', 'changes', 'ip_address', 'created_at']


class TenantModelSerializer(serializers.ModelSerializer):
    """
    ModelSerializer for tenant-owned rows.

    unique_together sets that include the tenant are not validated by DRF
    (tenant is not a serializer field), so they are listed here and checked
    against the requesting user's tenant. Related objects must belong to the
    same tenant.
    """
    tenant_unique_together = []
    tenant_related_fields = []

    def get_tenant(self):
        tenant = self.context.get('tenant')
        if tenant is not None:
            return tenant
        request = self.context.get('request')
        if request is not None and getattr(request.user, 'tenant_id', None):
            return request.user.tenant
        if self.instance is not None and not isinstance(self.instance, (list, tuple)):
            return getattr(self.instance, 'tenant', None)
        return None

    def validate(self, attrs):
        attrs = super().validate(attrs)
        tenant = self.get_tenant()
        if tenant is None:
            return attrs

        for field in self.tenant_related_fields:
            related = attrs.get(field)
            if related is not None and related.tenant_id != tenant.id:
                raise serializers.ValidationError({field: 'Invalid selection.'})

        model = self.Meta.model
        for fields in self.tenant_unique_together:
            lookup = {}
            for field in fields:
                if field in attrs:
                    lookup[field] = attrs[field]
                elif self.instance is not None:
                    lookup[field] = getattr(self.instance, field)
                else:
                    lookup = None
                    break
            if lookup is None:
                continue
            duplicates = model.objects.filter(tenant=tenant, **lookup)
            if self.instance is not None:
                duplicates = duplicates.exclude(pk=self.instance.pk)
            if duplicates.exists():
                label = ', '.join(fields)
                raise serializers.ValidationError(
                    {fields[0]: f"{model._meta.verbose_name.capitalize()} with this {label} already exists."}
                )
        return attrs
