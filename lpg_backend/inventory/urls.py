from django.urls import path
from .views import (
    inventory_levels, inventory_daily, cylinders_summary_view, empty_cylinders_view,
    movement_list, inventory_alerts,
    shipment_list_create, shipment_detail,
)

urlpatterns = [
    # Stock calculations
    path('inventory/', inventory_levels, name='inventory-levels'),
    path('inventory/daily/', inventory_daily, name='inventory-daily'),
    path('inventory/cylinders-summary/', cylinders_summary_view, name='inventory-cylinders-summary'),
    path('inventory/empty-cylinders/', empty_cylinders_view, name='inventory-empty-cylinders'),
    path('inventory/movements/', movement_list, name='inventory-movements'),
    path('inventory/alerts/', inventory_alerts, name='inventory-alerts'),

    # Shipment endpoints
    path('shipments/', shipment_list_create, name='shipment-list-create'),
    path('shipments/<int:pk>/', shipment_detail, name='shipment-detail'),
]
