from django.urls import path
from .views import sale_list_create, sale_detail, sale_bulk_delete, sale_daily_summary

urlpatterns = [
    path('sales/', sale_list_create, name='sale-list-create'),
    path('sales/bulk-delete/', sale_bulk_delete, name='sale-bulk-delete'),
    path('sales/daily-summary/', sale_daily_summary, name='sale-daily-summary'),
    path('sales/<int:pk>/', sale_detail, name='sale-detail'),
]
