from django.db import models
from decimal import Decimal


class ReceivableRecord(models.Model):
    """Running cash / cylinder balance a driver owes, one row per day"""
    tenant = models.ForeignKey('core.Tenant', on_delete=models.CASCADE, related_name='receivable_records')
    driver = models.ForeignKey('parties.Driver', on_delete=models.CASCADE, related_name='receivable_records')
    date = models.DateField(db_index=True)
    cash_receivables_change = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    cylinder_receivables_change = models.IntegerField(default=0)
    total_cash_receivables = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    total_cylinder_receivables = models.IntegerField(default=0)
    onboarding_cash_receivables = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    onboarding_cylinder_receivables = models.IntegerField(default=0)
    calculated_at = models.DateTimeField(auto_now=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.driver_id} @ {self.date}: {self.total_cash_receivables} / {self.total_cylinder_receivables}"

    class Meta:
        db_table = 'receivable_records'
        ordering = ['-date']
        unique_together = [['tenant', 'driver', 'date']]
        indexes = [
            models.Index(fields=['tenant', 'driver', 'date'], name='idx_recv_tenant_driver_date'),
        ]


class CustomerReceivable(models.Model):
    """Cash or cylinders a named customer of a retail driver still owes"""
    TYPE_CASH = 'CASH'
    TYPE_CYLINDER = 'CYLINDER'
    RECEIVABLE_TYPE_CHOICES = [
        (TYPE_CASH, 'Cash'),
        (TYPE_CYLINDER, 'Cylinder'),
    ]

    STATUS_CURRENT = 'CURRENT'
    STATUS_PAID = 'PAID'
    STATUS_OVERDUE = 'OVERDUE'
    STATUS_CHOICES = [
        (STATUS_CURRENT, 'Current'),
        (STATUS_PAID, 'Paid'),
        (STATUS_OVERDUE, 'Overdue'),
    ]

    ONBOARDING_CUSTOMER_NAME = 'Onboarding Balance'

    tenant = models.ForeignKey('core.Tenant', on_delete=models.CASCADE, related_name='customer_receivables')
    driver = models.ForeignKey('parties.Driver', on_delete=models.CASCADE, related_name='customer_receivables')
    customer = models.ForeignKey('parties.Customer', on_delete=models.SET_NULL, null=True, blank=True, related_name='receivables')
    customer_name = models.CharField(max_length=200)
    receivable_type = models.CharField(max_length=20, choices=RECEIVABLE_TYPE_CHOICES)
    amount = models.DecimalField(max_digits=14, decimal_places=2, default=Decimal('0.00'))
    quantity = models.IntegerField(default=0)
    size = models.CharField(max_length=20, blank=True)
    due_date = models.DateField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_CURRENT)
    notes = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        if self.receivable_type == self.TYPE_CASH:
            return f"{self.customer_name}: {self.amount}"
        return f"{self.customer_name}: {self.quantity} x {self.size}"

    class Meta:
        db_table = 'customer_receivables'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['tenant', 'driver'], name='idx_custrecv_tenant_driver'),
            models.Index(fields=['tenant', 'status'], name='idx_custrecv_tenant_status'),
        ]
