from django.db import models
from decimal import Decimal


class Company(models.Model):
    """LPG supplier / brand (e.g. Bashundhara, Omera)"""
    tenant = models.ForeignKey('core.Tenant', on_delete=models.CASCADE, related_name='companies')
    name = models.CharField(max_length=200, db_index=True)
    code = models.CharField(max_length=20, blank=True)
    address = models.TextField(blank=True)
    phone = models.CharField(max_length=20, blank=True)
    email = models.EmailField(blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'companies'
        verbose_name_plural = 'companies'
        ordering = ['name']
        unique_together = [['tenant', 'name']]


class CylinderSize(models.Model):
    """Cylinder capacity offered by the tenant (e.g. 12KG, 35KG)"""
    tenant = models.ForeignKey('core.Tenant', on_delete=models.CASCADE, related_name='cylinder_sizes')
    size = models.CharField(max_length=20)
    description = models.CharField(max_length=255, blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.size

    class Meta:
        db_table = 'cylinder_sizes'
        ordering = ['size']
        unique_together = [['tenant', 'size']]


class Product(models.Model):
    """A company's cylinder of a given size"""
    tenant = models.ForeignKey('core.Tenant', on_delete=models.CASCADE, related_name='products')
    company = models.ForeignKey(Company, on_delete=models.PROTECT, related_name='products')
    cylinder_size = models.ForeignKey(CylinderSize, on_delete=models.SET_NULL, null=True, blank=True, related_name='products')
    name = models.CharField(max_length=200, db_index=True)
    size = models.CharField(max_length=20, help_text="Cylinder size label, e.g. 12KG")
    full_cylinder_price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    empty_cylinder_price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    current_price = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0.00'))
    low_stock_threshold = models.PositiveIntegerField(default=10)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.name} ({self.size})"

    @property
    def size_label(self):
        """Size used for grouping: the linked cylinder size when set, else the free-text size"""
        if self.cylinder_size_id:
            return self.cylinder_size.size
        return self.size

    class Meta:
        db_table = 'products'
        ordering = ['company__name', 'name', 'size']
        unique_together = [['tenant', 'company', 'name', 'size']]
        indexes = [
            models.Index(fields=['tenant', 'is_active'], name='idx_product_tenant_active'),
        ]
