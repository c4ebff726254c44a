import logging
from datetime import timedelta

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, authentication_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated, AllowAny
from django.db.models import Count
from django.db.models.functions import TruncDate
from django.shortcuts import get_object_or_404

from lpg_backend.core.permissions import IsTenantUser, IsTenantAdmin, has_role_permission, MANAGE_SETTINGS
from lpg_backend.core.utils import paginate, today
from .evolution import EvolutionProvider, default_provider_config
from .filters import SentMessageFilter
from .models import MessageProvider, MessageTemplate, SentMessage
from .serializers import (
    MessageTemplateSerializer, MessagingSettingsSerializer, SentMessageSerializer,
    SendTestSerializer, EvolutionSetupSerializer, MessageProviderSerializer,
)
from .service import MessageService, ensure_tenant_messaging, render_template, handle_webhook

logger = logging.getLogger(__name__)

LOG_PAGE_SIZE = 50
DELIVERED_STATUSES = (SentMessage.STATUS_SENT, SentMessage.STATUS_DELIVERED)


def _settings_forbidden():
    return Response({'error': 'Insufficient permissions'}, status=status.HTTP_403_FORBIDDEN)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsTenantUser])
def template_list_create(request):
    tenant = request.user.tenant
    if request.method == 'GET':
        ensure_tenant_messaging(tenant)
        templates = MessageTemplate.objects.filter(tenant=tenant).select_related('provider').order_by('trigger', 'name')
        return Response(MessageTemplateSerializer(templates, many=True).data)
    else:
        if not has_role_permission(request.user, MANAGE_SETTINGS):
            return _settings_forbidden()
        serializer = MessageTemplateSerializer(data=request.data, context={'request': request})
        if serializer.is_valid():
            provider = serializer.validated_data.get('provider') or ensure_tenant_messaging(tenant)
            serializer.save(tenant=tenant, provider=provider)
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsTenantUser])
def template_detail(request, pk):
    template = get_object_or_404(MessageTemplate, pk=pk, tenant=request.user.tenant)

    if request.method == 'GET':
        return Response(MessageTemplateSerializer(template).data)

    if not has_role_permission(request.user, MANAGE_SETTINGS):
        return _settings_forbidden()

    if request.method == 'PATCH':
        serializer = MessageTemplateSerializer(template, data=request.data, partial=True,
                                               context={'request': request})
        if serializer.is_valid():
            serializer.save()
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        template.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated, IsTenantUser])
def messaging_settings(request):
    service = MessageService(request.user.tenant)
    current = service.settings

    if request.method == 'GET':
        return Response(MessagingSettingsSerializer(current).data)

    if not has_role_permission(request.user, MANAGE_SETTINGS):
        return _settings_forbidden()
    serializer = MessagingSettingsSerializer(current, data=request.data, partial=True)
    if serializer.is_valid():
        serializer.save()
        return Response(serializer.data)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsTenantUser])
def message_log_list(request):
    """Sent message history with the values available for each filter"""
    messages = SentMessage.objects.filter(tenant=request.user.tenant).select_related('template')
    filterset = SentMessageFilter(request.query_params, queryset=messages)
    data = paginate(request, filterset.qs.order_by('-created_at'), SentMessageSerializer,
                    default_limit=LOG_PAGE_SIZE)
    data['filters'] = {
        field: sorted(set(messages.values_list(field, flat=True)))
        for field in ('trigger', 'status', 'recipient_type')
    }
    return Response(data)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsTenantUser])
def message_log_detail(request, pk):
    message = get_object_or_404(SentMessage.objects.select_related('template'), pk=pk, tenant=request.user.tenant)
    return Response(SentMessageSerializer(message).data)


def _counts(queryset, field):
    return {row[field]: row['count'] for row in queryset.values(field).annotate(count=Count('id')).order_by(field)}


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsTenantUser])
def messaging_metrics(request):
    """Monthly volume, growth and delivery breakdown of sent messages"""
    tenant = request.user.tenant
    try:
        month_start = today().replace(day=1)
        previous_start = (month_start - timedelta(days=1)).replace(day=1)
        messages = SentMessage.objects.filter(tenant=tenant)
        current = messages.filter(created_at__date__gte=month_start)
        previous = messages.filter(created_at__date__gte=previous_start, created_at__date__lt=month_start)

        current_count = current.count()
        previous_count = previous.count()
        if previous_count:
            growth = round((current_count - previous_count) / previous_count * 100, 2)
        else:
            growth = 100.0 if current_count else 0.0

        delivered = current.filter(status__in=DELIVERED_STATUSES).count()
        success_rate = round(delivered / current_count * 100, 2) if current_count else 0.0

        daily = (
            current.annotate(day=TruncDate('created_at'))
            .values('day').annotate(count=Count('id')).order_by('day')
        )
        return Response({
            'current_month': current_count,
            'previous_month': previous_count,
            'growth_percentage': growth,
            'success_rate': success_rate,
            'by_trigger': _counts(current, 'trigger'),
            'by_type': _counts(current, 'message_type'),
            'by_status': _counts(current, 'status'),
            'daily': [{'date': row['day'].isoformat(), 'count': row['count']} for row in daily],
        })
    except Exception as e:
        logger.error(f"Error computing messaging metrics for tenant {tenant.id}: {str(e)}", exc_info=True)
        return Response({'error': 'Failed to compute messaging metrics'},
                        status=status.HTTP_500_INTERNAL_SERVER_ERROR)


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsTenantAdmin])
def evolution_setup(request):
    """
    GET: connection status of the tenant's WhatsApp instance (QR code with connect=true).
    POST: create the instance on the Evolution server and store the provider config.
    """
    tenant = request.user.tenant
    if request.method == 'GET':
        provider = ensure_tenant_messaging(tenant)
        client = EvolutionProvider.from_config(provider.config)
        data = {
            'provider': MessageProviderSerializer(provider).data,
            'instance_name': client.instance_name,
            'connected': client.get_instance_status(),
        }
        if request.query_params.get('connect') == 'true':
            data.update(client.get_connection_status())
        return Response(data)

    serializer = EvolutionSetupSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    config = default_provider_config()
    config.update({k: v for k, v in serializer.validated_data.items() if v})
    client = EvolutionProvider.from_config(config)
    if not client.setup_instance():
        return Response({'error': 'Failed to create WhatsApp instance'}, status=status.HTTP_502_BAD_GATEWAY)

    provider = MessageProvider.objects.filter(
        tenant=tenant, provider_type=MessageProvider.WHATSAPP_BUSINESS,
    ).order_by('-is_default', '-created_at').first()
    if provider is None:
        provider = MessageProvider(tenant=tenant, name='Evolution API',
                                   provider_type=MessageProvider.WHATSAPP_BUSINESS, is_default=True)
    provider.config = config
    provider.is_active = True
    provider.save()
    ensure_tenant_messaging(tenant)
    logger.info(f"Evolution instance {config['instance_name']} set up for tenant {tenant.id}")

    return Response({
        'message': 'WhatsApp instance created. Scan the QR code to connect.',
        'provider': MessageProviderSerializer(provider).data,
        **client.get_connection_status(),
    }, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@authentication_classes([])
@permission_classes([AllowAny])
def evolution_webhook(request):
    """Delivery and connection events pushed by the Evolution server"""
    try:
        updated = handle_webhook(request.data)
    except Exception as e:
        logger.error(f"Error handling Evolution webhook: {str(e)}", exc_info=True)
        return Response({'error': 'Webhook processing failed'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
    return Response({'received': True, 'updated': updated})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsTenantAdmin])
def send_test_message(request):
    """Send a free text or a rendered template to a phone number"""
    serializer = SendTestSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    tenant = request.user.tenant
    data = serializer.validated_data
    text = data.get('message')
    if data.get('template_id'):
        template = get_object_or_404(MessageTemplate, pk=data['template_id'], tenant=tenant)
        text = render_template(template.template, data.get('variables') or {})

    message = MessageService(tenant).send_text(data['phone'], text, recipient_name=request.user.name)
    response_status = status.HTTP_200_OK if message.status == SentMessage.STATUS_SENT else status.HTTP_502_BAD_GATEWAY
    return Response({
        'success': message.status == SentMessage.STATUS_SENT,
        'message': SentMessageSerializer(message).data,
    }, status=response_status)
