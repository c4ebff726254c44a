import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated, AllowAny
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView
from rest_framework_simplejwt.serializers import TokenObtainPairSerializer, TokenRefreshSerializer
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError, AuthenticationFailed
from rest_framework_simplejwt.settings import api_settings
from django.contrib.auth import get_user_model
from django.core.exceptions import ObjectDoesNotExist
from django.shortcuts import get_object_or_404
from django.utils import timezone

from .models import Tenant, AuditLog
from .permissions import (
    IsTenantUser, IsTenantAdmin, ROLE_PERMISSIONS, has_role_permission,
    MANAGE_USERS, MANAGE_SETTINGS,
)
from .serializers import (
    UserSerializer, UserCreateSerializer, RegisterSerializer,
    TenantSummarySerializer, TenantSettingsSerializer, AuditLogSerializer,
)
from .utils import create_audit_log, model_snapshot, paginate, parse_date

logger = logging.getLogger(__name__)

User = get_user_model()


class CustomTokenObtainPairSerializer(TokenObtainPairSerializer):
    def validate(self, attrs):
        data = super().validate(attrs)
        user = self.user
        if not user.is_active:
            raise AuthenticationFailed('User account is disabled.')

        if user.role != User.ROLE_SUPER_ADMIN:
            tenant = user.tenant
            if tenant is None:
                raise AuthenticationFailed('User is not assigned to a tenant.')
            if tenant.approval_status != Tenant.APPROVAL_APPROVED:
                logger.info(f"Login refused for {user.email}: tenant {tenant.id} is {tenant.approval_status}")
                raise AuthenticationFailed(f'Tenant account is {tenant.approval_status.lower()}.')
            if not tenant.is_active:
                raise AuthenticationFailed('Tenant account is deactivated.')

        user.last_login_at = timezone.now()
        user.save(update_fields=['last_login_at'])

        data['user'] = UserSerializer(user).data
        return data

    @classmethod
    def get_token(cls, user):
        token = super().get_token(user)
        token['email'] = user.email
        token['name'] = user.name
        token['role'] = user.role
        token['tenant_id'] = user.tenant_id
        return token


class CustomTokenObtainPairView(TokenObtainPairView):
    serializer_class = CustomTokenObtainPairSerializer


class CustomTokenRefreshSerializer(TokenRefreshSerializer):
    """Custom token refresh serializer that handles deleted and deactivated users gracefully"""
    def validate(self, attrs):
        try:
            refresh = self.token_class(attrs['refresh'])
        except TokenError:
            raise InvalidToken('Token is invalid or expired.')

        user_id = refresh.payload.get(api_settings.USER_ID_CLAIM)
        user = User.objects.filter(**{api_settings.USER_ID_FIELD: user_id}).first()
        if user is None:
            raise InvalidToken('Token is invalid. User no longer exists.')
        if not user.is_active:
            raise InvalidToken('User account is disabled.')

        try:
            return super().validate(attrs)
        except (InvalidToken, TokenError):
            raise InvalidToken('Token is invalid or expired.')
        except (ObjectDoesNotExist, User.DoesNotExist):
            # User referenced in token doesn't exist anymore
            raise InvalidToken('Token is invalid. User no longer exists.')


class CustomTokenRefreshView(TokenRefreshView):
    """Custom token refresh view that handles deleted users gracefully"""
    serializer_class = CustomTokenRefreshSerializer


@api_view(['POST'])
@permission_classes([AllowAny])
def register(request):
    """Distributor sign-up; the tenant stays pending until a super admin approves it"""
    serializer = RegisterSerializer(data=request.data)
    if serializer.is_valid():
        user = serializer.save()
        logger.info(f"Registered tenant {user.tenant_id} ({user.tenant.name}) pending approval")
        return Response({
            'message': 'Registration received. Your account will be activated after approval.',
            'user': UserSerializer(user).data,
        }, status=status.HTTP_201_CREATED)
    return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
def user_me(request):
    """Current user with tenant, role permissions and onboarding state"""
    user = request.user
    user_data = UserSerializer(user).data
    user_data['tenant'] = TenantSummarySerializer(user.tenant).data if user.tenant else None
    user_data['permissions'] = ROLE_PERMISSIONS.get(user.role, [])
    user_data['is_admin'] = user.role in (User.ROLE_ADMIN, User.ROLE_SUPER_ADMIN)
    user_data['is_super_admin'] = user.role == User.ROLE_SUPER_ADMIN
    user_data['needs_onboarding'] = user.role == User.ROLE_ADMIN and not user.onboarding_completed
    return Response(user_data)


# User views (tenant scoped)
@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated, IsTenantUser])
def user_list_create(request):
    """List the tenant's users or create a new one"""
    if not has_role_permission(request.user, MANAGE_USERS):
        return Response({'error': 'Insufficient permissions'}, status=status.HTTP_403_FORBIDDEN)

    if request.method == 'GET':
        users = User.objects.filter(tenant=request.user.tenant).order_by('name', 'email')
        role = request.query_params.get('role')
        if role:
            users = users.filter(role=role)
        serializer = UserSerializer(users, many=True)
        return Response(serializer.data)
    else:
        serializer = UserCreateSerializer(data=request.data)
        if serializer.is_valid():
            user = serializer.save(tenant=request.user.tenant)
            create_audit_log(request=request, action='CREATE', model_name='User', object_id=user.id,
                             object_name=user.email, changes={'new': model_snapshot(user, fields=['email', 'name', 'role'])})
            return Response(UserSerializer(user).data, status=status.HTTP_201_CREATED)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated, IsTenantUser])
def user_detail(request, pk):
    """Retrieve, update or delete a user of the same tenant"""
    if not has_role_permission(request.user, MANAGE_USERS):
        return Response({'error': 'Insufficient permissions'}, status=status.HTTP_403_FORBIDDEN)

    user = get_object_or_404(User, pk=pk, tenant=request.user.tenant)

    if request.method == 'GET':
        serializer = UserSerializer(user)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        old = model_snapshot(user, fields=['email', 'name', 'role', 'is_active'])
        serializer = UserSerializer(user, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            serializer.save()
            create_audit_log(request=request, action='UPDATE', model_name='User', object_id=user.id,
                             object_name=user.email,
                             changes={'old': old, 'new': model_snapshot(user, fields=['email', 'name', 'role', 'is_active'])})
            return Response(serializer.data)
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        if user.pk == request.user.pk:
            return Response({'error': 'You cannot delete your own account'}, status=status.HTTP_400_BAD_REQUEST)
        create_audit_log(request=request, action='DELETE', model_name='User', object_id=user.id,
                         object_name=user.email, changes={'old': model_snapshot(user, fields=['email', 'name', 'role'])})
        user.delete()
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET', 'PATCH'])
@permission_classes([IsAuthenticated, IsTenantUser])
def tenant_settings(request):
    """Read or merge-update the tenant's settings JSON"""
    tenant = request.user.tenant

    if request.method == 'GET':
        return Response({'tenant': tenant.name, 'settings': tenant.settings})

    if not has_role_permission(request.user, MANAGE_SETTINGS):
        return Response({'error': 'Insufficient permissions'}, status=status.HTTP_403_FORBIDDEN)

    serializer = TenantSettingsSerializer(data=request.data, partial=True)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    old_settings = dict(tenant.settings or {})
    merged = dict(old_settings)
    merged.update(serializer.validated_data)
    tenant.settings = merged
    tenant.save(update_fields=['settings', 'updated_at'])
    create_audit_log(request=request, action='UPDATE', model_name='Tenant', object_id=tenant.id,
                     object_name=tenant.name, changes={'old': old_settings, 'new': merged})
    return Response({'tenant': tenant.name, 'settings': tenant.settings})


# AuditLog views (read-only)
@api_view(['GET'])
@permission_classes([IsAuthenticated, IsTenantAdmin])
def audit_log_list(request):
    """List the tenant's audit logs with filtering"""
    queryset = AuditLog.objects.filter(tenant=request.user.tenant).select_related('user')

    action_filter = request.query_params.get('action')
    if action_filter:
        queryset = queryset.filter(action=action_filter)

    model_filter = request.query_params.get('model_name')
    if model_filter:
        queryset = queryset.filter(model_name=model_filter)

    user_filter = request.query_params.get('user')
    if user_filter:
        queryset = queryset.filter(user_id=user_filter)

    date_from = parse_date(request.query_params.get('date_from'))
    if date_from:
        queryset = queryset.filter(created_at__date__gte=date_from)

    date_to = parse_date(request.query_params.get('date_to'))
    if date_to:
        queryset = queryset.filter(created_at__date__lte=date_to)

    return Response(paginate(request, queryset.order_by('-created_at'), AuditLogSerializer, default_limit=50))


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsTenantAdmin])
def audit_log_detail(request, pk):
    """Retrieve an audit log"""
    audit_log = get_object_or_404(AuditLog, pk=pk, tenant=request.user.tenant)
    serializer = AuditLogSerializer(audit_log)
    return Response(serializer.data)
