from django.urls import path
from .views import dashboard, daily_sales_report, driver_performance_report, financial_summary_report

urlpatterns = [
    path('reports/dashboard/', dashboard, name='reports-dashboard'),
    path('reports/daily-sales/', daily_sales_report, name='reports-daily-sales'),
    path('reports/driver-performance/', driver_performance_report, name='reports-driver-performance'),
    path('reports/financial-summary/', financial_summary_report, name='reports-financial-summary'),
]
