"""Utility functions for audit logging, pagination and exports"""
import csv
import logging
import secrets
import string
from datetime import datetime, timedelta

from django.core.paginator import Paginator
from django.http import HttpResponse
from django.utils import timezone
from rest_framework.response import Response

from .models import AuditLog

logger = logging.getLogger('agency.core')

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 200


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
        action: Action type (create, update, delete, policy_approve, etc.)
        model_name: Name of the model being acted upon
        object_id: ID of the object (as string)
        changes: Dictionary of changes made
        user: Optional user override (defaults to request.user if request provided)
        object_name: Human-readable name of the object (e.g., policy number, dealer name)
    """
    if not action or not model_name or object_id in (None, ''):
        logger.warning(f"Audit log creation skipped: missing required fields (action={action}, model_name={model_name}, object_id={object_id})")
        return None

    audit_user = user
    if audit_user is None and request is not None and hasattr(request, 'user'):
        audit_user = request.user

    try:
        return AuditLog.objects.create(
            user=audit_user if audit_user and audit_user.is_authenticated else None,
            action=action,
            model_name=model_name,
            object_id=str(object_id),
            object_name=object_name,
            changes=changes or {},
            ip_address=get_client_ip(request) if request else None,
        )
    except Exception as e:
        # Don't fail the main operation if audit logging fails
        logger.error(f"Failed to create audit log: {str(e)}", exc_info=True)
        return None


def get_page_params(request):
    """Read ``page`` and ``page_size`` (or ``limit``) from the query string."""
    try:
        page = max(int(request.query_params.get('page', 1)), 1)
    except (TypeError, ValueError):
        page = 1
    raw_size = request.query_params.get('page_size') or request.query_params.get('limit')
    try:
        page_size = int(raw_size) if raw_size else DEFAULT_PAGE_SIZE
    except (TypeError, ValueError):
        page_size = DEFAULT_PAGE_SIZE
    page_size = min(max(page_size, 1), MAX_PAGE_SIZE)
    return page, page_size


def paginate(request, queryset, serializer_class, context=None):
    """Paginate ``queryset`` and return the standard list envelope."""
    page, page_size = get_page_params(request)
    paginator = Paginator(queryset, page_size)
    page_obj = paginator.get_page(page)

    serializer_context = {'request': request}
    if context:
        serializer_context.update(context)
    serializer = serializer_class(page_obj, many=True, context=serializer_context)
    return Response({
        'results': serializer.data,
        'count': paginator.count,
        'next': page_obj.next_page_number() if page_obj.has_next() else None,
        'previous': page_obj.previous_page_number() if page_obj.has_previous() else None,
        'page': page_obj.number,
        'page_size': page_size,
        'total_pages': paginator.num_pages,
    })


def parse_date(value, default=None):
    """Parse ``YYYY-MM-DD`` (or an ISO datetime) into a date; ``default`` when empty or invalid."""
    if not value:
        return default
    try:
        return datetime.strptime(value[:10], '%Y-%m-%d').date()
    except ValueError:
        return default


def get_date_range(request, default_days=30):
    """Date range from ``date_from``/``date_to`` query params, last ``default_days`` days by default."""
    today = timezone.localdate()
    date_from = parse_date(request.query_params.get('date_from'), today - timedelta(days=default_days))
    date_to = parse_date(request.query_params.get('date_to'), today)
    return date_from, date_to


def generate_temporary_password(length=12):
    """Random password containing letters, digits and one symbol."""
    alphabet = string.ascii_letters + string.digits
    while True:
        password = ''.join(secrets.choice(alphabet) for _ in range(length - 1)) + secrets.choice('!@#$%*')
        if any(c.isdigit() for c in password) and any(c.isupper() for c in password) and any(c.islower() for c in password):
            return password


def csv_response(filename, header, rows):
    """Build a CSV download response."""
    response = HttpResponse(content_type='text/csv; charset=utf-8')
    response['Content-Disposition'] = f'attachment; filename="{filename}"'
    writer = csv.writer(response)
    writer.writerow(header)
    for row in rows:
        writer.writerow(row)
    return response
