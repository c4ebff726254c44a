from django.contrib import admin
from .models import ExpenseParentCategory, ExpenseCategory, Expense


@admin.register(ExpenseParentCategory)
class ExpenseParentCategoryAdmin(admin.ModelAdmin):
    list_display = ['name', 'is_active', 'tenant']
    list_filter = ['is_active', 'tenant']
    search_fields = ['name']


@admin.register(ExpenseCategory)
class ExpenseCategoryAdmin(admin.ModelAdmin):
    list_display = ['name', 'parent', 'budget', 'is_active', 'tenant']
    list_filter = ['is_active', 'tenant']
    search_fields = ['name']


@admin.register(Expense)
class ExpenseAdmin(admin.ModelAdmin):
    list_display = ['expense_date', 'description', 'category', 'amount', 'user', 'is_approved', 'tenant']
    list_filter = ['is_approved', 'category', 'tenant']
    search_fields = ['description', 'particulars', 'notes']
    date_hierarchy = 'expense_date'
    readonly_fields = ['approved_by', 'approved_at', 'created_at', 'updated_at']
