from django.core.validators import MinValueValidator
from django.db import models
from decimal import Decimal


class ExpenseParentCategory(models.Model):
    """Top level grouping for expense categories"""
    tenant = models.ForeignKey('core.Tenant', on_delete=models.CASCADE, related_name='expense_parent_categories')
    name = models.CharField(max_length=100)
    description = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'expense_parent_categories'
        ordering = ['name']
        verbose_name_plural = 'expense parent categories'
        unique_together = [['tenant', 'name']]


class ExpenseCategory(models.Model):
    """Expense category with an optional monthly budget"""
    tenant = models.ForeignKey('core.Tenant', on_delete=models.CASCADE, related_name='expense_categories')
    parent = models.ForeignKey(ExpenseParentCategory, on_delete=models.SET_NULL, null=True, blank=True, related_name='categories')
    name = models.CharField(max_length=100)
    description = models.TextField(blank=True)
    budget = models.DecimalField(max_digits=14, decimal_places=2, null=True, blank=True, help_text="Monthly budget")
    is_active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return self.name

    class Meta:
        db_table = 'expense_categories'
        ordering = ['name']
        verbose_name_plural = 'expense categories'
        unique_together = [['tenant', 'name']]


class Expense(models.Model):
    """Business expense awaiting or holding approval"""
    tenant = models.ForeignKey('core.Tenant', on_delete=models.CASCADE, related_name='expenses')
    category = models.ForeignKey(ExpenseCategory, on_delete=models.PROTECT, related_name='expenses')
    user = models.ForeignKey('core.User', on_delete=models.SET_NULL, null=True, related_name='expenses')
    amount = models.DecimalField(max_digits=14, decimal_places=2, validators=[MinValueValidator(Decimal('0.01'))])
    description = models.CharField(max_length=255)
    particulars = models.TextField(blank=True)
    expense_date = models.DateField(db_index=True)
    receipt_url = models.URLField(blank=True)
    notes = models.TextField(blank=True)
    is_approved = models.BooleanField(default=False)
    approved_by = models.ForeignKey('core.User', on_delete=models.SET_NULL, null=True, blank=True, related_name='approved_expenses')
    approved_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    def __str__(self):
        return f"{self.description} ({self.amount})"

    class Meta:
        db_table = 'expenses'
        ordering = ['-expense_date', '-created_at']
        indexes = [
            models.Index(fields=['tenant', 'expense_date'], name='idx_expense_tenant_date'),
            models.Index(fields=['tenant', 'is_approved'], name='idx_expense_tenant_approved'),
        ]
