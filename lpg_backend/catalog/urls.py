from django.urls import path
from .views import (
    company_list_create, company_detail,
    cylinder_size_list_create, cylinder_size_detail,
    product_list_create, product_detail,
)

urlpatterns = [
    # Company endpoints
    path('companies/', company_list_create, name='company-list-create'),
    path('companies/<int:pk>/', company_detail, name='company-detail'),

    # Cylinder size endpoints
    path('cylinder-sizes/', cylinder_size_list_create, name='cylinder-size-list-create'),
    path('cylinder-sizes/<int:pk>/', cylinder_size_detail, name='cylinder-size-detail'),

    # Product endpoints
    path('products/', product_list_create, name='product-list-create'),
    path('products/<int:pk>/', product_detail, name='product-detail'),
]
