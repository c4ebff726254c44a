"""
URL configuration for the LPG distributor back-office.

Every app mounts its routes under /api/v1/.
"""
from django.contrib import admin
from django.urls import path, include

admin.site.site_header = "LPG Distributor Admin Panel"
admin.site.site_title = "LPG Distributor Admin Portal"
admin.site.index_title = "Welcome to the LPG Distributor Admin Portal"

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/v1/', include('lpg_backend.core.urls')),
    path('api/v1/', include('lpg_backend.tenants.urls')),
    path('api/v1/', include('lpg_backend.catalog.urls')),
    path('api/v1/', include('lpg_backend.parties.urls')),
    path('api/v1/', include('lpg_backend.inventory.urls')),
    path('api/v1/', include('lpg_backend.sales.urls')),
    path('api/v1/', include('lpg_backend.receivables.urls')),
    path('api/v1/', include('lpg_backend.expenses.urls')),
    path('api/v1/', include('lpg_backend.onboarding.urls')),
    path('api/v1/', include('lpg_backend.messaging.urls')),
    path('api/v1/', include('lpg_backend.reports.urls')),
]
