from django.urls import path
from .views import (
    driver_list_create, driver_detail,
    area_list_create, area_detail,
    customer_list_create, customer_detail,
)

urlpatterns = [
    # Driver endpoints
    path('drivers/', driver_list_create, name='driver-list-create'),
    path('drivers/<int:pk>/', driver_detail, name='driver-detail'),

    # Area endpoints
    path('areas/', area_list_create, name='area-list-create'),
    path('areas/<int:pk>/', area_detail, name='area-detail'),

    # Customer endpoints
    path('customers/', customer_list_create, name='customer-list-create'),
    path('customers/<int:pk>/', customer_detail, name='customer-detail'),
]
