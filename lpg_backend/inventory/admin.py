from django.contrib import admin
from .models import Shipment, InventoryMovement, InventoryRecord, EmptyCylinderRecord, DriverCylinderSizeBaseline


@admin.register(Shipment)
class ShipmentAdmin(admin.ModelAdmin):
    list_display = ['id', 'shipment_date', 'product', 'shipment_type', 'status', 'quantity', 'total_cost', 'tenant']
    list_filter = ['shipment_type', 'status', 'tenant']
    search_fields = ['invoice_number', 'notes', 'product__name']
    readonly_fields = ['movement_recorded', 'created_at', 'updated_at']


@admin.register(InventoryMovement)
class InventoryMovementAdmin(admin.ModelAdmin):
    list_display = ['created_at', 'product', 'driver', 'movement_type', 'quantity', 'reference', 'tenant']
    list_filter = ['movement_type', 'tenant']
    search_fields = ['reference', 'description']


@admin.register(InventoryRecord)
class InventoryRecordAdmin(admin.ModelAdmin):
    list_display = ['date', 'product', 'cylinder_size', 'full_cylinders', 'empty_cylinders',
                    'is_onboarding_baseline', 'tenant']
    list_filter = ['is_onboarding_baseline', 'tenant']
    date_hierarchy = 'date'


@admin.register(EmptyCylinderRecord)
class EmptyCylinderRecordAdmin(admin.ModelAdmin):
    list_display = ['date', 'cylinder_size', 'quantity', 'quantity_with_drivers', 'tenant']
    list_filter = ['tenant']


@admin.register(DriverCylinderSizeBaseline)
class DriverCylinderSizeBaselineAdmin(admin.ModelAdmin):
    list_display = ['driver', 'cylinder_size', 'baseline_quantity', 'source', 'tenant']
    list_filter = ['source', 'tenant']
