from django.contrib import admin
from .models import ReceivableRecord, CustomerReceivable


@admin.register(ReceivableRecord)
class ReceivableRecordAdmin(admin.ModelAdmin):
    list_display = ['date', 'driver', 'cash_receivables_change', 'total_cash_receivables',
                    'cylinder_receivables_change', 'total_cylinder_receivables', 'tenant']
    list_filter = ['tenant']
    search_fields = ['driver__name']
    date_hierarchy = 'date'
    readonly_fields = ['calculated_at', 'created_at']


@admin.register(CustomerReceivable)
class CustomerReceivableAdmin(admin.ModelAdmin):
    list_display = ['customer_name', 'driver', 'receivable_type', 'amount', 'quantity', 'size', 'status',
                    'due_date', 'tenant']
    list_filter = ['receivable_type', 'status', 'tenant']
    search_fields = ['customer_name', 'driver__name']
