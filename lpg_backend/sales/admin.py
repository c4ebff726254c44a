from django.contrib import admin
from .models import Sale


@admin.register(Sale)
class SaleAdmin(admin.ModelAdmin):
    list_display = ['id', 'sale_date', 'driver', 'product', 'sale_type', 'quantity', 'net_value',
                    'cash_deposited', 'cylinders_deposited', 'tenant']
    list_filter = ['sale_type', 'payment_type', 'sale_date', 'tenant']
    search_fields = ['driver__name', 'notes', 'customer_name']
    readonly_fields = ['total_value', 'net_value', 'is_on_credit', 'is_cylinder_credit', 'created_at', 'updated_at']
    date_hierarchy = 'sale_date'
