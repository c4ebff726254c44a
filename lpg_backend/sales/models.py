from django.db import models
from decimal import Decimal
from django.utils import timezone


class Sale(models.Model):
    """A driver's cylinder sale (or a deposit-only collection record when quantity is 0)"""
    SALE_TYPE_PACKAGE = 'PACKAGE'
    SALE_TYPE_REFILL = 'REFILL'
    SALE_TYPE_CHOICES = [
        (SALE_TYPE_PACKAGE, 'Package'),
        (SALE_TYPE_REFILL, 'Refill'),
    ]

    PAYMENT_CASH = 'CASH'
    PAYMENT_CREDIT = 'CREDIT'
    PAYMENT_PARTIAL = 'PARTIAL'
    PAYMENT_TYPE_CHOICES = [
        (PAYMENT_CASH, 'Cash'),
        (PAYMENT_CREDIT, 'Credit'),
        (PAYMENT_PARTIAL, 'Partial'),
    ]

    tenant = models.ForeignKey('core.Tenant', on_delete=models.CASCADE, related_name='sales')
    user = models.ForeignKey('core.User', on_delete=models.SET_NULL, null=True, related_name='sales')
    driver = models.ForeignKey('parties.Driver', on_delete=models.PROTECT, related_name='sales')
    product = models.ForeignKey('catalog.Product', on_delete=models.PROTECT, related_name='sales')
    sale_type = models.CharField(max_length=20, choices=SALE_TYPE_CHOICES)
    quantity = models.PositiveIntegerField()
    unit_price = models.DecimalField(max_digits=12, decimal_places=2)
    total_value = models.DecimalField(max_digits=14, decimal_places=2)
    discount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    net_value = models.DecimalField(max_digits=14, decimal_places=2)
    payment_type = models.CharField(max_length=20, choices=PAYMENT_TYPE_CHOICES, default=PAYMENT_CASH)
    cash_deposited = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    cylinders_deposited = models.PositiveIntegerField(default=0)
    is_on_credit = models.BooleanField(default=False)
    is_cylinder_credit = models.BooleanField(default=False)
    customer_name = models.CharField(max_length=200, blank=True)
    sale_date = models.DateField(default=timezone.localdate, db_index=True)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.get_sale_type_display()} x{self.quantity} - {self.driver_id} on {self.sale_date}"

    def recompute_totals(self):
        """Derive total/net values and the credit flags from the entered fields"""
        self.total_value = Decimal(self.quantity) * Decimal(self.unit_price)
        self.net_value = self.total_value - Decimal(self.discount or 0)
        self.is_on_credit = Decimal(self.cash_deposited or 0) < self.net_value
        self.is_cylinder_credit = (
            self.sale_type == self.SALE_TYPE_REFILL and self.cylinders_deposited < self.quantity
        )

    class Meta:
        db_table = 'sales'
        ordering = ['-sale_date', '-created_at']
        indexes = [
            models.Index(fields=['tenant', 'sale_date'], name='idx_sale_tenant_date'),
            models.Index(fields=['tenant', 'driver', 'sale_date'], name='idx_sale_tenant_driver_date'),
        ]
