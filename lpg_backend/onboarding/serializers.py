from decimal import Decimal
from rest_framework import serializers
from lpg_backend.parties.models import Driver, driver_phone_validator


class CylinderSizeInputSerializer(serializers.Serializer):
    size = serializers.CharField(max_length=20)
    description = serializers.CharField(required=False, allow_blank=True, default='')


class ProductInputSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=200)
    company_index = serializers.IntegerField(min_value=0)
    size_index = serializers.IntegerField(min_value=0)
    current_price = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=Decimal('0'))
    low_stock_threshold = serializers.IntegerField(min_value=0, required=False, default=10)


class DriverInputSerializer(serializers.Serializer):
    name = serializers.CharField(min_length=2, max_length=200)
    phone = serializers.CharField(max_length=20, validators=[driver_phone_validator])
    driver_type = serializers.ChoiceField(choices=Driver.DRIVER_TYPE_CHOICES, default=Driver.TYPE_RETAIL)
    route = serializers.CharField(required=False, allow_blank=True, default='')


class InventoryInputSerializer(serializers.Serializer):
    product_index = serializers.IntegerField(min_value=0)
    full_cylinders = serializers.IntegerField(min_value=0)


class EmptyCylinderInputSerializer(serializers.Serializer):
    size_index = serializers.IntegerField(min_value=0)
    quantity = serializers.IntegerField(min_value=0)


class SizeQuantitySerializer(serializers.Serializer):
    size_index = serializers.IntegerField(min_value=0)
    quantity = serializers.IntegerField(min_value=0)


class ReceivableInputSerializer(serializers.Serializer):
    driver_index = serializers.IntegerField(min_value=0)
    cash_receivables = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=Decimal('0'),
                                                required=False, default=Decimal('0'))
    cylinder_receivables = serializers.IntegerField(min_value=0, required=False, default=0)
    cylinders_by_size = SizeQuantitySerializer(many=True, required=False, default=list)


class OnboardingSerializer(serializers.Serializer):
    company_names = serializers.ListField(child=serializers.CharField(min_length=1, max_length=200),
                                          required=False, default=list)
    cylinder_sizes = CylinderSizeInputSerializer(many=True, required=False, default=list)
    products = ProductInputSerializer(many=True, required=False, default=list)
    drivers = DriverInputSerializer(many=True, required=False, default=list)
    inventory = InventoryInputSerializer(many=True, required=False, default=list)
    empty_cylinders = EmptyCylinderInputSerializer(many=True, required=False, default=list)
    receivables = ReceivableInputSerializer(many=True, required=False, default=list)
