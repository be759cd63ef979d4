"""
Domain errors and the API exception handler.

Business-rule violations raise ``DomainError`` subclasses; the handler turns
them into ``{"error": ..., "code": ...}`` bodies so the portals can branch on
the machine code.
"""
import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger('agency.core')


class DomainError(Exception):
    status_code = status.HTTP_400_BAD_REQUEST
    code = 'DOMAIN_ERROR'

    def __init__(self, message, code=None, status_code=None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code


class ConflictError(DomainError):
    status_code = status.HTTP_409_CONFLICT
    code = 'CONFLICT'


class InvalidTransition(ConflictError):
    code = 'INVALID_TRANSITION'


def api_exception_handler(exc, context):
    if isinstance(exc, DomainError):
        view = context.get('view')
        logger.info(f"Domain error in {view.__class__.__name__ if view else 'view'}: {exc.code} {exc.message}")
        return Response({'error': exc.message, 'code': exc.code}, status=exc.status_code)

    response = exception_handler(exc, context)
    if response is not None and isinstance(response.data, dict) and 'detail' in response.data \
            and response.status_code in (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN,
                                         status.HTTP_404_NOT_FOUND, status.HTTP_405_METHOD_NOT_ALLOWED):
        response.data['error'] = str(response.data['detail'])
    return response
