"""Shared helpers: audit logging, request parsing and pagination"""
import logging
from datetime import datetime, date
from decimal import Decimal

from django.core.paginator import Paginator
from django.forms.models import model_to_dict
from django.utils import timezone

from .models import AuditLog

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def get_client_ip(request):
    """Extract client IP address from request"""
    if not request or not hasattr(request, 'META'):
        return None
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        ip = x_forwarded_for.split(',')[0].strip()
    else:
        ip = request.META.get('REMOTE_ADDR')
    return ip or None


def _json_safe(value):
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _json_safe(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_json_safe(v) for v in value]
    return value


def model_snapshot(instance, fields=None):
    """JSON-safe dict of a model instance, used for before/after audit entries"""
    if instance is None:
        return None
    return _json_safe(model_to_dict(instance, fields=fields))


def create_audit_log(request=None, action=None, model_name=None, object_id=None,
                     changes=None, user=None, tenant=None, object_name=None):
    """
    Create an audit log entry

    Args:
        request: Django request object (for user, tenant and IP) - optional if user is provided
        action: Action type (CREATE, UPDATE, DELETE, PAYMENT, ...)
        model_name: Name of the model being acted upon
        object_id: ID of the object (as string)
        changes: Dictionary with old/new snapshots and metadata
        user: Optional user override (defaults to request.user if request provided)
        tenant: Optional tenant override (defaults to the user's tenant)
        object_name: Human-readable name of the object
    """
    try:
        audit_user = None
        if user:
            audit_user = user
        elif request and hasattr(request, 'user'):
            audit_user = request.user

        if audit_user is not None and not audit_user.is_authenticated:
            audit_user = None

        if tenant is None and audit_user is not None:
            tenant = audit_user.tenant

        ip_address = get_client_ip(request) if request else None

        if not action or not model_name or not object_id:
            logger.warning(f"Audit log creation skipped: missing required fields (action={action}, model_name={model_name}, object_id={object_id})")
            return None

        return AuditLog.objects.create(
            tenant=tenant,
            user=audit_user,
            action=action,
            model_name=model_name,
            object_id=str(object_id),
            object_name=object_name,
            changes=_json_safe(changes or {}),
            ip_address=ip_address,
        )
    except Exception as e:
        # Don't fail the main operation if audit logging fails
        logger.error(f"Failed to create audit log: {str(e)}")
        return None


def parse_date(value, default=None):
    """Parse YYYY-MM-DD (or an ISO datetime) into a date, returning default on bad input"""
    if not value:
        return default
    if isinstance(value, date):
        return value
    try:
        return datetime.strptime(value[:10], '%Y-%m-%d').date()
    except (TypeError, ValueError):
        return default


def today():
    return timezone.localdate()


def parse_bool(value, default=False):
    if value is None:
        return default
    return str(value).strip().lower() in ('1', 'true', 'yes', 'on')


def get_page_params(request, default_limit=DEFAULT_PAGE_SIZE, max_limit=MAX_PAGE_SIZE):
    try:
        page = max(1, int(request.query_params.get('page', 1)))
    except (TypeError, ValueError):
        page = 1
    try:
        limit = int(request.query_params.get('limit', default_limit))
    except (TypeError, ValueError):
        limit = default_limit
    limit = min(max(1, limit), max_limit)
    return page, limit


def paginate(request, queryset, serializer_class=None, default_limit=DEFAULT_PAGE_SIZE,
             max_limit=MAX_PAGE_SIZE, context=None, serialize=None):
    """
    Paginate a queryset with page/limit query params.

    Either serializer_class or a serialize(obj) callable renders the rows.
    """
    page, limit = get_page_params(request, default_limit, max_limit)
    paginator = Paginator(queryset, limit)
    page_obj = paginator.get_page(page)

    if serialize is not None:
        results = [serialize(obj) for obj in page_obj]
    else:
        results = serializer_class(page_obj, many=True, context=context or {'request': request}).data

    return {
        'results': results,
        'count': paginator.count,
        'next': page_obj.next_page_number() if page_obj.has_next() else None,
        'previous': page_obj.previous_page_number() if page_obj.has_previous() else None,
        'page': page_obj.number,
        'page_size': limit,
        'total_pages': paginator.num_pages,
    }
