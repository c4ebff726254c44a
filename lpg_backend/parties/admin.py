from django.contrib import admin
from .models import Driver, Area, Customer


@admin.register(Driver)
class DriverAdmin(admin.ModelAdmin):
    list_display = ['name', 'phone', 'driver_type', 'status', 'route', 'tenant', 'created_at']
    list_filter = ['driver_type', 'status', 'tenant']
    search_fields = ['name', 'phone', 'route']
    ordering = ['name']


@admin.register(Area)
class AreaAdmin(admin.ModelAdmin):
    list_display = ['name', 'code', 'is_active', 'tenant']
    list_filter = ['is_active', 'tenant']
    search_fields = ['name', 'code']
    ordering = ['name']


@admin.register(Customer)
class CustomerAdmin(admin.ModelAdmin):
    list_display = ['name', 'phone', 'area', 'driver', 'customer_type', 'is_active', 'tenant']
    list_filter = ['customer_type', 'is_active', 'tenant']
    search_fields = ['name', 'phone', 'customer_code']
    ordering = ['name']
    readonly_fields = ['created_at', 'updated_at']
