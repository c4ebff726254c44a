from django.urls import path
from .views import (
    tenant_list, tenant_approve, tenant_reject, tenant_suspend, tenant_subscription, tenant_users,
)

urlpatterns = [
    path('super-admin/tenants/', tenant_list, name='super-admin-tenant-list'),
    path('super-admin/tenants/<int:pk>/approve/', tenant_approve, name='super-admin-tenant-approve'),
    path('super-admin/tenants/<int:pk>/reject/', tenant_reject, name='super-admin-tenant-reject'),
    path('super-admin/tenants/<int:pk>/suspend/', tenant_suspend, name='super-admin-tenant-suspend'),
    path('super-admin/tenants/<int:pk>/subscription/', tenant_subscription, name='super-admin-tenant-subscription'),
    path('super-admin/tenants/<int:pk>/users/', tenant_users, name='super-admin-tenant-users'),
]
