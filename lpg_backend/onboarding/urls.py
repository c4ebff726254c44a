from django.urls import path
from .views import onboarding_status, onboarding_complete

urlpatterns = [
    path('onboarding/status/', onboarding_status, name='onboarding-status'),
    path('onboarding/complete/', onboarding_complete, name='onboarding-complete'),
]
