from django.db import models
from django.utils import timezone


class Shipment(models.Model):
    """Cylinder shipments in and out of the depot"""
    INCOMING_FULL = 'INCOMING_FULL'
    INCOMING_EMPTY = 'INCOMING_EMPTY'
    OUTGOING_FULL = 'OUTGOING_FULL'
    OUTGOING_EMPTY = 'OUTGOING_EMPTY'
    SHIPMENT_TYPE_CHOICES = [
        (INCOMING_FULL, 'Incoming Full'),
        (INCOMING_EMPTY, 'Incoming Empty'),
        (OUTGOING_FULL, 'Outgoing Full'),
        (OUTGOING_EMPTY, 'Outgoing Empty'),
    ]

    STATUS_PENDING = 'PENDING'
    STATUS_COMPLETED = 'COMPLETED'
    STATUS_CANCELLED = 'CANCELLED'
    STATUS_CHOICES = [
        (STATUS_PENDING, 'Pending'),
        (STATUS_COMPLETED, 'Completed'),
        (STATUS_CANCELLED, 'Cancelled'),
    ]

    # Incoming full shipments whose notes start with this marker are refill purchases
    REFILL_MARKER = 'REFILL:'

    tenant = models.ForeignKey('core.Tenant', on_delete=models.CASCADE, related_name='shipments')
    product = models.ForeignKey('catalog.Product', on_delete=models.PROTECT, related_name='shipments')
    shipment_type = models.CharField(max_length=20, choices=SHIPMENT_TYPE_CHOICES)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    quantity = models.PositiveIntegerField()
    unit_cost = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    total_cost = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True)
    shipment_date = models.DateField(default=timezone.localdate, db_index=True)
    invoice_number = models.CharField(max_length=100, blank=True)
    notes = models.TextField(blank=True)
    movement_recorded = models.BooleanField(default=False)
    created_by = models.ForeignKey('core.User', on_delete=models.SET_NULL, null=True, related_name='shipments')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    @property
    def is_refill_purchase(self):
        return self.shipment_type == self.INCOMING_FULL and (self.notes or '').startswith(self.REFILL_MARKER)

    def __str__(self):
        return f"{self.get_shipment_type_display()} x{self.quantity} ({self.status})"

    class Meta:
        db_table = 'shipments'
        ordering = ['-shipment_date', '-created_at']
        indexes = [
            models.Index(fields=['tenant', 'shipment_date'], name='idx_shipment_tenant_date'),
            models.Index(fields=['tenant', 'status'], name='idx_shipment_tenant_status'),
        ]


class InventoryMovement(models.Model):
    """Signed stock movement of full cylinders (negative = out)"""
    MOVEMENT_TYPE_CHOICES = [
        ('SALE_PACKAGE', 'Package Sale'),
        ('SALE_REFILL', 'Refill Sale'),
        ('PURCHASE', 'Purchase'),
        ('SHIPMENT_IN', 'Shipment In'),
        ('SHIPMENT_OUT', 'Shipment Out'),
        ('EMPTY_IN', 'Empty Cylinders In'),
        ('EMPTY_OUT', 'Empty Cylinders Out'),
        ('ADJUSTMENT', 'Adjustment'),
    ]

    tenant = models.ForeignKey('core.Tenant', on_delete=models.CASCADE, related_name='inventory_movements')
    product = models.ForeignKey('catalog.Product', on_delete=models.CASCADE, related_name='movements')
    driver = models.ForeignKey('parties.Driver', on_delete=models.SET_NULL, null=True, blank=True, related_name='movements')
    movement_type = models.CharField(max_length=20, choices=MOVEMENT_TYPE_CHOICES)
    quantity = models.IntegerField()
    description = models.CharField(max_length=255, blank=True)
    reference = models.CharField(max_length=100, blank=True, db_index=True, help_text="Sale or shipment id that produced the movement")
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.movement_type} {self.quantity:+d}"

    class Meta:
        db_table = 'inventory_movements'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['tenant', 'created_at'], name='idx_movement_tenant_created'),
            models.Index(fields=['tenant', 'product'], name='idx_movement_tenant_product'),
        ]


class InventoryRecord(models.Model):
    """Daily inventory snapshot per product and cylinder size"""
    tenant = models.ForeignKey('core.Tenant', on_delete=models.CASCADE, related_name='inventory_records')
    date = models.DateField(db_index=True)
    product = models.ForeignKey('catalog.Product', on_delete=models.CASCADE, related_name='inventory_records')
    cylinder_size = models.CharField(max_length=20)
    package_sales = models.IntegerField(default=0)
    refill_sales = models.IntegerField(default=0)
    total_sales = models.IntegerField(default=0)
    package_purchase = models.IntegerField(default=0)
    refill_purchase = models.IntegerField(default=0)
    empty_cylinders_buy_sell = models.IntegerField(default=0)
    full_cylinders = models.IntegerField(default=0)
    empty_cylinders = models.IntegerField(default=0)
    total_cylinders = models.IntegerField(default=0)
    empty_cylinder_receivables = models.IntegerField(default=0)
    is_onboarding_baseline = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.product_id} {self.cylinder_size} @ {self.date}: {self.full_cylinders} full / {self.empty_cylinders} empty"

    class Meta:
        db_table = 'inventory_records'
        ordering = ['-date']
        unique_together = [['tenant', 'date', 'product', 'cylinder_size']]


class EmptyCylinderRecord(models.Model):
    """Empty cylinders in the depot per size at the end of a day"""
    tenant = models.ForeignKey('core.Tenant', on_delete=models.CASCADE, related_name='empty_cylinder_records')
    date = models.DateField(db_index=True)
    cylinder_size = models.CharField(max_length=20)
    quantity = models.IntegerField(default=0)
    quantity_with_drivers = models.IntegerField(default=0)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'empty_cylinder_records'
        ordering = ['-date', 'cylinder_size']
        unique_together = [['tenant', 'date', 'cylinder_size']]


class DriverCylinderSizeBaseline(models.Model):
    """Cylinders per size a driver owed when the tenant started using the system"""
    SOURCE_CHOICES = [
        ('ONBOARDING', 'Onboarding'),
        ('MANUAL', 'Manual'),
    ]

    tenant = models.ForeignKey('core.Tenant', on_delete=models.CASCADE, related_name='driver_size_baselines')
    driver = models.ForeignKey('parties.Driver', on_delete=models.CASCADE, related_name='size_baselines')
    cylinder_size = models.CharField(max_length=20)
    baseline_quantity = models.IntegerField(default=0)
    source = models.CharField(max_length=20, choices=SOURCE_CHOICES, default='ONBOARDING')
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'driver_cylinder_size_baselines'
        unique_together = [['tenant', 'driver', 'cylinder_size']]
