from decimal import Decimal
from rest_framework import serializers
from lpg_backend.core.serializers import TenantModelSerializer
from lpg_backend.parties.models import Driver
from .models import ReceivableRecord, CustomerReceivable
from .services import PAYMENT_METHODS


class ReceivableRecordSerializer(serializers.ModelSerializer):
    driver_name = serializers.CharField(source='driver.name', read_only=True)

    class Meta:
        model = ReceivableRecord
        fields = ['id', 'driver', 'driver_name', 'date', 'cash_receivables_change', 'cylinder_receivables_change',
                  'total_cash_receivables', 'total_cylinder_receivables', 'onboarding_cash_receivables',
                  'onboarding_cylinder_receivables', 'calculated_at']


class CustomerReceivableSerializer(TenantModelSerializer):
    driver_name = serializers.CharField(source='driver.name', read_only=True)
    customer_phone = serializers.CharField(source='customer.phone', read_only=True, allow_null=True)

    tenant_related_fields = ['driver', 'customer']

    class Meta:
        model = CustomerReceivable
        fields = ['id', 'driver', 'driver_name', 'customer', 'customer_name', 'customer_phone',
                  'receivable_type', 'amount', 'quantity', 'size', 'due_date', 'status', 'notes',
                  'created_at', 'updated_at']
        read_only_fields = ['created_at', 'updated_at']
        extra_kwargs = {'customer_name': {'required': False}}

    def validate_driver(self, value):
        if value.status != Driver.STATUS_ACTIVE or value.driver_type != Driver.TYPE_RETAIL:
            raise serializers.ValidationError("Customer receivables can only be assigned to active retail drivers.")
        return value

    def validate_amount(self, value):
        if value < 0:
            raise serializers.ValidationError("Amount cannot be negative.")
        return value

    def validate_quantity(self, value):
        if value < 0:
            raise serializers.ValidationError("Quantity cannot be negative.")
        return value

    def validate(self, attrs):
        attrs = super().validate(attrs)
        customer = attrs.get('customer')
        if customer is not None and not attrs.get('customer_name'):
            attrs['customer_name'] = customer.name
        if self.instance is None and not attrs.get('customer_name'):
            raise serializers.ValidationError({'customer_name': 'A customer or customer name is required.'})

        receivable_type = attrs.get('receivable_type', getattr(self.instance, 'receivable_type', None))
        if receivable_type == CustomerReceivable.TYPE_CASH:
            amount = attrs.get('amount', getattr(self.instance, 'amount', 0))
            if self.instance is None and not amount:
                raise serializers.ValidationError({'amount': 'Cash receivables need an amount.'})
        elif receivable_type == CustomerReceivable.TYPE_CYLINDER:
            quantity = attrs.get('quantity', getattr(self.instance, 'quantity', 0))
            if self.instance is None and not quantity:
                raise serializers.ValidationError({'quantity': 'Cylinder receivables need a quantity.'})
        return attrs


class PaymentSerializer(serializers.Serializer):
    customer_receivable_id = serializers.IntegerField()
    amount = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=Decimal('0.01'))
    payment_method = serializers.ChoiceField(choices=PAYMENT_METHODS, default='cash')
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class CylinderReturnSerializer(serializers.Serializer):
    customer_receivable_id = serializers.IntegerField()
    quantity = serializers.IntegerField(min_value=1)
    notes = serializers.CharField(required=False, allow_blank=True, default='')


class RecalculateSerializer(serializers.Serializer):
    driver_id = serializers.IntegerField(required=False, allow_null=True)
    date = serializers.DateField(required=False, allow_null=True)
    cascade = serializers.BooleanField(required=False, default=False)
