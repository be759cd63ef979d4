"""
Maintenance mode gate for the API
"""
import logging

from django.conf import settings
from django.http import JsonResponse
from rest_framework.exceptions import AuthenticationFailed
from rest_framework_simplejwt.authentication import JWTAuthentication
from rest_framework_simplejwt.exceptions import InvalidToken, TokenError

from agency.core.roles import get_portal, is_admin_user

logger = logging.getLogger('agency.system')


class MaintenanceModeMiddleware:
    """
    Answer 503 to API calls from users whose portal is under maintenance.

    DRF authenticates inside the view, so the bearer token is checked here.
    Requests without a valid token pass through and are rejected by the view.
    """

    def __init__(self, get_response):
        self.get_response = get_response
        self.authenticator = JWTAuthentication()

    def __call__(self, request):
        if self._is_gated(request.path):
            response = self._maintenance_response(request)
            if response is not None:
                return response
        return self.get_response(request)

    def _is_gated(self, path):
        if not path.startswith('/api/'):
            return False
        exempt = getattr(settings, 'MAINTENANCE_EXEMPT_PREFIXES', ())
        return not any(path.startswith(prefix) for prefix in exempt)

    def _authenticate(self, request):
        try:
            result = self.authenticator.authenticate(request)
        except (AuthenticationFailed, InvalidToken, TokenError):
            return None
        return result[0] if result else None

    def _maintenance_response(self, request):
        from .models import MaintenanceWindow

        window = MaintenanceWindow.objects.filter(pk=MaintenanceWindow.SINGLETON_ID).first()
        if window is None or not window.in_effect:
            return None

        user = self._authenticate(request)
        if user is None or is_admin_user(user):
            return None

        portal = get_portal(user)
        if not window.affects(portal):
            return None

        logger.debug(f"Maintenance blocked {request.method} {request.path} for {user.username} ({portal})")
        return JsonResponse({
            'error': 'The system is under maintenance.',
            'code': 'MAINTENANCE',
            'message': window.message,
            'until': window.until.isoformat() if window.until else None,
        }, status=503)
