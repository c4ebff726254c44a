from rest_framework import serializers
from lpg_backend.core.serializers import TenantModelSerializer
from .models import Company, CylinderSize, Product


class CompanySerializer(TenantModelSerializer):
    product_count = serializers.IntegerField(read_only=True, required=False)

    tenant_unique_together = [('name',)]

    class Meta:
        model = Company
        fields = ['id', 'name', 'code', 'address', 'phone', 'email', 'is_active',
                  'product_count', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def validate_name(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Company name is required.")
        return value


class CylinderSizeSerializer(TenantModelSerializer):
    tenant_unique_together = [('size',)]

    class Meta:
        model = CylinderSize
        fields = ['id', 'size', 'description', 'is_active', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']

    def validate_size(self, value):
        value = value.strip().upper()
        if not value:
            raise serializers.ValidationError("Size is required.")
        return value


class ProductSerializer(TenantModelSerializer):
    company_name = serializers.CharField(source='company.name', read_only=True)
    size_label = serializers.CharField(read_only=True)

    tenant_unique_together = [('company', 'name', 'size')]
    tenant_related_fields = ['company', 'cylinder_size']

    class Meta:
        model = Product
        fields = ['id', 'company', 'company_name', 'cylinder_size', 'name', 'size', 'size_label',
                  'full_cylinder_price', 'empty_cylinder_price', 'current_price',
                  'low_stock_threshold', 'is_active', 'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']
        extra_kwargs = {
            'size': {'required': False, 'allow_blank': True},
        }

    def validate(self, attrs):
        # Products linked to a configured size take its label
        cylinder_size = attrs.get('cylinder_size')
        if cylinder_size is not None:
            attrs['size'] = cylinder_size.size
        elif not attrs.get('size') and self.instance is None:
            raise serializers.ValidationError({'size': 'Size or cylinder_size is required.'})
        for field in ('full_cylinder_price', 'empty_cylinder_price', 'current_price'):
            value = attrs.get(field)
            if value is not None and value < 0:
                raise serializers.ValidationError({field: 'Price cannot be negative.'})
        return super().validate(attrs)
