from django.urls import path
from .views import (
    template_list_create, template_detail, messaging_settings,
    message_log_list, message_log_detail, messaging_metrics,
    evolution_setup, evolution_webhook, send_test_message,
)

urlpatterns = [
    path('messaging/templates/', template_list_create, name='message-template-list-create'),
    path('messaging/templates/<int:pk>/', template_detail, name='message-template-detail'),
    path('messaging/settings/', messaging_settings, name='messaging-settings'),
    path('messaging/logs/', message_log_list, name='message-log-list'),
    path('messaging/logs/<int:pk>/', message_log_detail, name='message-log-detail'),
    path('messaging/metrics/', messaging_metrics, name='messaging-metrics'),

    # Evolution API (WhatsApp)
    path('messaging/evolution/setup/', evolution_setup, name='evolution-setup'),
    path('messaging/evolution/webhook/', evolution_webhook, name='evolution-webhook'),
    path('messaging/send-test/', send_test_message, name='messaging-send-test'),
]
