from rest_framework import serializers
from lpg_backend.core.serializers import TenantModelSerializer
from .models import Sale
from .services import MAX_QUANTITY


class SaleSerializer(TenantModelSerializer):
    driver_name = serializers.CharField(source='driver.name', read_only=True)
    product_name = serializers.CharField(source='product.name', read_only=True)
    product_size = serializers.CharField(source='product.size_label', read_only=True)
    created_by = serializers.CharField(source='user.name', read_only=True, allow_null=True)

    tenant_related_fields = ['driver', 'product']

    class Meta:
        model = Sale
        fields = ['id', 'driver', 'driver_name', 'product', 'product_name', 'product_size',
                  'sale_type', 'quantity', 'unit_price', 'total_value', 'discount', 'net_value',
                  'payment_type', 'cash_deposited', 'cylinders_deposited', 'is_on_credit',
                  'is_cylinder_credit', 'customer_name', 'sale_date', 'notes', 'created_by',
                  'created_at', 'updated_at']
        read_only_fields = ['total_value', 'net_value', 'is_on_credit', 'is_cylinder_credit',
                            'created_at', 'updated_at']
        extra_kwargs = {'sale_date': {'required': False}}

    def validate_quantity(self, value):
        if value < 1 or value > MAX_QUANTITY:
            raise serializers.ValidationError(f"Quantity must be between 1 and {MAX_QUANTITY}.")
        return value

    def validate_unit_price(self, value):
        if value <= 0:
            raise serializers.ValidationError("Unit price must be greater than 0.")
        return value

    def validate_discount(self, value):
        if value < 0:
            raise serializers.ValidationError("Discount cannot be negative.")
        return value

    def validate_cash_deposited(self, value):
        if value < 0:
            raise serializers.ValidationError("Cash deposited cannot be negative.")
        return value


class SaleUpdateSerializer(SaleSerializer):
    """Edits keep the sale's driver and date"""

    class Meta(SaleSerializer.Meta):
        read_only_fields = SaleSerializer.Meta.read_only_fields + ['driver', 'sale_date']


class BulkDeleteSerializer(serializers.Serializer):
    sales_ids = serializers.ListField(child=serializers.IntegerField(), min_length=1)
    date = serializers.DateField(required=False)
