from django.urls import path
from .views import (
    receivables_list, driver_receivables, receivables_recalculate,
    customer_receivable_list_create, customer_receivable_detail,
    receivable_payment, cylinder_return, receivables_validation, receivables_by_size, receivable_changes,
)

urlpatterns = [
    path('receivables/', receivables_list, name='receivables-list'),
    path('receivables/drivers/<int:driver_id>/', driver_receivables, name='receivables-driver'),
    path('receivables/recalculate/', receivables_recalculate, name='receivables-recalculate'),

    # Customer level receivables and collections
    path('receivables/customers/', customer_receivable_list_create, name='customer-receivable-list-create'),
    path('receivables/customers/<int:pk>/', customer_receivable_detail, name='customer-receivable-detail'),
    path('receivables/payments/', receivable_payment, name='receivable-payment'),
    path('receivables/cylinder-returns/', cylinder_return, name='receivable-cylinder-return'),
    path('receivables/changes/', receivable_changes, name='receivable-changes'),

    # Consistency checks and breakdowns
    path('receivables/validation/', receivables_validation, name='receivables-validation'),
    path('receivables/by-driver-size/', receivables_by_size, name='receivables-by-driver-size'),
]
