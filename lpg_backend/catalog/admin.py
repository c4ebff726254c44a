from django.contrib import admin
from .models import Company, CylinderSize, Product


@admin.register(Company)
class CompanyAdmin(admin.ModelAdmin):
    list_display = ['name', 'code', 'tenant', 'is_active', 'created_at']
    list_filter = ['is_active', 'tenant']
    search_fields = ['name', 'code']
    ordering = ['name']


@admin.register(CylinderSize)
class CylinderSizeAdmin(admin.ModelAdmin):
    list_display = ['size', 'description', 'tenant', 'is_active']
    list_filter = ['is_active', 'tenant']
    search_fields = ['size']
    ordering = ['size']


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = ['name', 'company', 'size', 'current_price', 'low_stock_threshold', 'is_active', 'tenant']
    list_filter = ['is_active', 'company', 'tenant']
    search_fields = ['name', 'company__name', 'size']
    ordering = ['name']
    readonly_fields = ['created_at', 'updated_at']
