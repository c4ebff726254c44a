from decimal import Decimal
from rest_framework import serializers
from lpg_backend.core.serializers import TenantModelSerializer
from .models import Shipment, InventoryMovement, InventoryRecord, EmptyCylinderRecord


class ShipmentSerializer(TenantModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)
    product_size = serializers.CharField(source='product.size_label', read_only=True)
    is_refill_purchase = serializers.BooleanField(read_only=True)

    tenant_related_fields = ['product']

    # Fields a COMPLETED shipment can no longer change
    LOCKED_WHEN_COMPLETED = ('product', 'shipment_type', 'quantity', 'shipment_date')

    class Meta:
        model = Shipment
        fields = ['id', 'product', 'product_name', 'product_size', 'shipment_type', 'status',
                  'quantity', 'unit_cost', 'total_cost', 'shipment_date', 'invoice_number', 'notes',
                  'is_refill_purchase', 'movement_recorded', 'created_at', 'updated_at']
        read_only_fields = ['total_cost', 'movement_recorded', 'created_at', 'updated_at']
        extra_kwargs = {'shipment_date': {'required': False}}

    @staticmethod
    def _is_refill_note(notes):
        return (notes or '').startswith(Shipment.REFILL_MARKER)

    def validate_quantity(self, value):
        if value < 1:
            raise serializers.ValidationError("Quantity must be at least 1.")
        return value

    def validate_unit_cost(self, value):
        if value is not None and value < 0:
            raise serializers.ValidationError("Unit cost cannot be negative.")
        return value

    def validate(self, attrs):
        attrs = super().validate(attrs)
        if self.instance is not None and self.instance.status == Shipment.STATUS_COMPLETED:
            for field in self.LOCKED_WHEN_COMPLETED:
                if field in attrs and attrs[field] != getattr(self.instance, field):
                    raise serializers.ValidationError({field: 'Cannot be changed on a completed shipment.'})
            if 'notes' in attrs and self._is_refill_note(attrs['notes']) != self._is_refill_note(self.instance.notes):
                raise serializers.ValidationError(
                    {'notes': f'The {Shipment.REFILL_MARKER} marker cannot be added or removed on a completed shipment.'})
            if attrs.get('status', Shipment.STATUS_COMPLETED) != Shipment.STATUS_COMPLETED:
                raise serializers.ValidationError({'status': 'A completed shipment cannot change status.'})

        quantity = attrs.get('quantity', getattr(self.instance, 'quantity', None))
        unit_cost = attrs.get('unit_cost', getattr(self.instance, 'unit_cost', None))
        if unit_cost is not None and quantity:
            attrs['total_cost'] = Decimal(quantity) * unit_cost
        return attrs


class InventoryMovementSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)
    driver_name = serializers.CharField(source='driver.name', read_only=True, allow_null=True)

    class Meta:
        model = InventoryMovement
        fields = ['id', 'product', 'product_name', 'driver', 'driver_name', 'movement_type',
                  'quantity', 'description', 'reference', 'created_at']


class InventoryRecordSerializer(serializers.ModelSerializer):
    product_name = serializers.CharField(source='product.name', read_only=True)

    class Meta:
        model = InventoryRecord
        fields = ['id', 'date', 'product', 'product_name', 'cylinder_size', 'package_sales', 'refill_sales',
                  'total_sales', 'package_purchase', 'refill_purchase', 'empty_cylinders_buy_sell',
                  'full_cylinders', 'empty_cylinders', 'total_cylinders', 'empty_cylinder_receivables',
                  'is_onboarding_baseline']


class EmptyCylinderRecordSerializer(serializers.ModelSerializer):
    class Meta:
        model = EmptyCylinderRecord
        fields = ['id', 'date', 'cylinder_size', 'quantity', 'quantity_with_drivers', 'notes']
