import logging

from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated

from lpg_backend.core.permissions import IsTenantUser, is_admin_user
from lpg_backend.core.utils import create_audit_log
from .serializers import OnboardingSerializer
from .services import OnboardingError, complete_onboarding

logger = logging.getLogger(__name__)


@api_view(['GET'])
@permission_classes([IsAuthenticated, IsTenantUser])
def onboarding_status(request):
    user = request.user
    return Response({
        'onboarding_completed': user.onboarding_completed,
        'completed_at': user.onboarding_completed_at,
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsTenantUser])
def onboarding_complete(request):
    """Create the tenant's opening catalog, drivers and balances in one go"""
    user = request.user
    if not is_admin_user(user):
        return Response({'error': 'Admin access required.'}, status=status.HTTP_403_FORBIDDEN)
    if user.onboarding_completed:
        return Response({'error': 'Onboarding already completed for this user'},
                        status=status.HTTP_400_BAD_REQUEST)

    serializer = OnboardingSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    try:
        summary = complete_onboarding(user, serializer.validated_data)
    except OnboardingError as e:
        return Response({'error': 'Invalid onboarding data', 'details': str(e)},
                        status=status.HTTP_400_BAD_REQUEST)

    create_audit_log(request=request, action='ONBOARDING', model_name='Tenant', object_id=user.tenant_id,
                     object_name=user.tenant.name, changes={'metadata': summary})
    return Response({'message': 'Onboarding completed successfully', 'summary': summary})
