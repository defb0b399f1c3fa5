"""Request helpers shared by the storefront apps: audit logging, pagination, query params"""
import logging
import math

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


def create_audit_log(request=None, action=None, model_name=None, object_id=None,
                     changes=None, user=None, object_name=None):
    """
    Create an audit log entry

    Args:
        request: Django request object (for user and IP) - optional if user is provided
        action: Action type (create, update, delete, toggle, reorder, ...)
        model_name: Name of the model being acted upon
        object_id: ID of the object (as string)
        changes: Dictionary of changes made
        user: Optional user override (defaults to request.user if request provided)
        object_name: Human-readable name of the object (e.g., banner title, order number)
    """
    try:
        audit_user = None
        if user:
            audit_user = user
        elif request and hasattr(request, 'user'):
            audit_user = request.user

        ip_address = get_client_ip(request) if request else None

        if not action or not model_name or object_id is None:
            logger.warning(f"Audit log creation skipped: missing required fields (action={action}, model_name={model_name}, object_id={object_id})")
            return None

        return AuditLog.objects.create(
            user=audit_user if audit_user and audit_user.is_authenticated else None,
            action=action,
            model_name=model_name,
            object_id=str(object_id),
            object_name=object_name,
            changes=changes or {},
            ip_address=ip_address
        )
    except Exception as e:
        # Don't fail the main operation if audit logging fails
        logger.error(f"Failed to create audit log: {str(e)}")
        return None


def parse_int(value, default=None, minimum=None, maximum=None):
    """Parse an integer query parameter, clamping it into [minimum, maximum]"""
    try:
        result = int(value)
    except (TypeError, ValueError):
        return default
    if minimum is not None and result < minimum:
        result = minimum
    if maximum is not None and result > maximum:
        result = maximum
    return result


def parse_float(value, default=None):
    """Finite float or default; nan and inf count as bad input"""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return number if math.isfinite(number) else default


def parse_bool(value, default=None):
    if value is None or value == '':
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('1', 'true', 'yes', 'on')


def paginate(items, request, default_limit=DEFAULT_PAGE_SIZE):
    """
    Slice a queryset (or list) using the ?page= and ?limit= query params.

    Returns (page_items, pagination) where pagination holds page, limit,
    total and pages.
    """
    page = parse_int(request.query_params.get('page'), default=1, minimum=1)
    limit = parse_int(request.query_params.get('limit'), default=default_limit, minimum=1, maximum=MAX_PAGE_SIZE)

    total = items.count() if hasattr(items, 'count') and not isinstance(items, list) else len(items)
    offset = (page - 1) * limit
    page_items = items[offset:offset + limit]

    return page_items, {
        'page': page,
        'limit': limit,
        'total': total,
        'pages': math.ceil(total / limit) if total else 0,
    }


def month_window_start(months=12, now=None):
    """First instant of the month `months - 1` months before now, so the window spans `months` calendar months"""
    now = timezone.localtime(now or timezone.now())
    year, month = now.year, now.month - (months - 1)
    while month < 1:
        month += 12
        year -= 1
    return now.replace(year=year, month=month, day=1, hour=0, minute=0, second=0, microsecond=0)
