"""Super-admin tenant provisioning: approval workflow and subscriptions"""
import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.db.models import Count, Max, Q, Case, When, IntegerField
from django.shortcuts import get_object_or_404
from django.utils import timezone

from lpg_backend.core.models import Tenant
from lpg_backend.core.permissions import IsSuperAdmin
from lpg_backend.core.utils import create_audit_log, paginate
from .serializers import TenantAdminSerializer, TenantUserSerializer, SubscriptionSerializer, ReasonSerializer

logger = logging.getLogger(__name__)

TENANT_PAGE_SIZE = 50
DEFAULT_REJECTION_REASON = 'Rejected by super admin'


def _annotated_tenants():
    return Tenant.objects.annotate(
        user_count=Count('users', distinct=True),
        last_activity=Max('users__last_login_at'),
    )


def _tenant_data(tenant):
    return TenantAdminSerializer(_annotated_tenants().get(pk=tenant.pk)).data


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsSuperAdmin])
def tenant_list(request):
    """All tenants, pending first then newest, with user counts and last activity"""
    tenants = _annotated_tenants()

    approval_status = request.query_params.get('status', 'all')
    if approval_status and approval_status.lower() != 'all':
        tenants = tenants.filter(approval_status=approval_status.upper())

    search = request.query_params.get('search')
    if search:
        tenants = tenants.filter(
            Q(name__icontains=search) | Q(contact_email__icontains=search) | Q(subdomain__icontains=search)
        )

    tenants = tenants.annotate(
        pending_first=Case(
            When(approval_status=Tenant.APPROVAL_PENDING, then=0),
            default=1,
            output_field=IntegerField(),
        )
    ).order_by('pending_first', '-created_at')

    return Response(paginate(request, tenants, TenantAdminSerializer, default_limit=TENANT_PAGE_SIZE))


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsSuperAdmin])
def tenant_approve(request, pk):
    tenant = get_object_or_404(Tenant, pk=pk)
    if tenant.approval_status == Tenant.APPROVAL_APPROVED:
        return Response({'error': 'Tenant is already approved'}, status=status.HTTP_400_BAD_REQUEST)

    old_status = tenant.approval_status
    tenant.approval_status = Tenant.APPROVAL_APPROVED
    tenant.is_active = True
    tenant.approved_at = timezone.now()
    tenant.approved_by = request.user.email
    tenant.rejected_at = None
    tenant.rejection_reason = None
    tenant.save()

    create_audit_log(request=request, action='APPROVE', model_name='Tenant', object_id=tenant.id,
                     object_name=tenant.name, tenant=tenant,
                     changes={'old': {'approval_status': old_status},
                              'new': {'approval_status': tenant.approval_status}})
    logger.info(f"Tenant {tenant.id} approved by {request.user.email}")
    return Response({'message': 'Tenant approved successfully', 'tenant': _tenant_data(tenant)})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsSuperAdmin])
def tenant_reject(request, pk):
    tenant = get_object_or_404(Tenant, pk=pk)
    if tenant.approval_status != Tenant.APPROVAL_PENDING:
        return Response({'error': 'Only pending tenants can be rejected'}, status=status.HTTP_400_BAD_REQUEST)

    serializer = ReasonSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    reason = serializer.validated_data['reason'] or DEFAULT_REJECTION_REASON

    tenant.approval_status = Tenant.APPROVAL_REJECTED
    tenant.is_active = False
    tenant.rejected_at = timezone.now()
    tenant.rejection_reason = reason
    tenant.approved_at = None
    tenant.approved_by = None
    tenant.save()

    create_audit_log(request=request, action='REJECT', model_name='Tenant', object_id=tenant.id,
                     object_name=tenant.name, tenant=tenant,
                     changes={'new': {'approval_status': tenant.approval_status},
                              'metadata': {'reason': reason}})
    logger.info(f"Tenant {tenant.id} rejected by {request.user.email}: {reason}")
    return Response({'message': 'Tenant rejected', 'tenant': _tenant_data(tenant)})


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsSuperAdmin])
def tenant_suspend(request, pk):
    tenant = get_object_or_404(Tenant, pk=pk)
    if tenant.approval_status != Tenant.APPROVAL_APPROVED:
        return Response({'error': 'Only approved tenants can be suspended'}, status=status.HTTP_400_BAD_REQUEST)

    serializer = ReasonSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    reason = serializer.validated_data['reason']

    tenant.approval_status = Tenant.APPROVAL_SUSPENDED
    tenant.is_active = False
    tenant.save()

    create_audit_log(request=request, action='SUSPEND', model_name='Tenant', object_id=tenant.id,
                     object_name=tenant.name, tenant=tenant,
                     changes={'new': {'approval_status': tenant.approval_status},
                              'metadata': {'reason': reason}})
    logger.warning(f"Tenant {tenant.id} suspended by {request.user.email}")
    return Response({'message': 'Tenant suspended', 'tenant': _tenant_data(tenant)})


@api_view(['PATCH'])
@permission_classes([IsAuthenticated, IsSuperAdmin])
def tenant_subscription(request, pk):
    tenant = get_object_or_404(Tenant, pk=pk)
    serializer = SubscriptionSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    old = {'subscription_plan': tenant.subscription_plan, 'subscription_status': tenant.subscription_status}
    tenant.subscription_plan = serializer.validated_data['subscription_plan']
    tenant.subscription_status = serializer.validated_data['subscription_status']
    tenant.save(update_fields=['subscription_plan', 'subscription_status', 'updated_at'])

    create_audit_log(request=request, action='SUBSCRIPTION_CHANGE', model_name='Tenant', object_id=tenant.id,
                     object_name=tenant.name, tenant=tenant,
                     changes={'old': old, 'new': dict(serializer.validated_data)})
    return Response({'message': 'Subscription updated', 'tenant': _tenant_data(tenant)})


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsSuperAdmin])
def tenant_users(request, pk):
    tenant = get_object_or_404(Tenant, pk=pk)
    users = tenant.users.order_by('role', 'name')
    return Response({
        'tenant': {'id': tenant.id, 'name': tenant.name},
        'users': TenantUserSerializer(users, many=True).data,
    })
