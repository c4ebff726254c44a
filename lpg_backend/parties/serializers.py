from rest_framework import serializers
from lpg_backend.core.serializers import TenantModelSerializer
from .models import Driver, Area, Customer


class DriverSerializer(TenantModelSerializer):
    is_active = serializers.BooleanField(read_only=True)

    tenant_unique_together = [('phone',)]

    class Meta:
        model = Driver
        fields = ['id', 'name', 'phone', 'email', 'address', 'license_number', 'route',
                  'driver_type', 'status', 'is_active', 'joining_date', 'leaving_date', 'notes',
                  'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def validate_name(self, value):
        value = value.strip()
        if len(value) < 2:
            raise serializers.ValidationError("Name must be at least 2 characters.")
        return value

    def validate(self, attrs):
        joining = attrs.get('joining_date', getattr(self.instance, 'joining_date', None))
        leaving = attrs.get('leaving_date', getattr(self.instance, 'leaving_date', None))
        if joining and leaving and leaving < joining:
            raise serializers.ValidationError({'leaving_date': 'Leaving date cannot be before joining date.'})
        return super().validate(attrs)


class CustomerSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = Customer
        fields = ['id', 'name', 'phone', 'customer_code', 'customer_type']


class AreaSerializer(TenantModelSerializer):
    customer_count = serializers.IntegerField(read_only=True, required=False)

    tenant_unique_together = [('name',)]

    class Meta:
        model = Area
        fields = ['id', 'name', 'code', 'description', 'is_active', 'customer_count',
                  'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']


class CustomerSerializer(TenantModelSerializer):
    area_name = serializers.CharField(source='area.name', read_only=True)
    driver_name = serializers.CharField(source='driver.name', read_only=True, allow_null=True)

    tenant_related_fields = ['area', 'driver']

    class Meta:
        model = Customer
        fields = ['id', 'area', 'area_name', 'driver', 'driver_name', 'name', 'phone', 'alternate_phone',
                  'address', 'customer_code', 'customer_type', 'is_active', 'notes',
                  'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']
