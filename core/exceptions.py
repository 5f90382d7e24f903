"""
Error taxonomy for the marketplace API.

Service functions raise these; ``api_exception_handler`` turns them (and
any other DRF error) into ``{"success": false, "error": "..."}`` bodies.
Anything that is not an API error is logged and answered with a generic
500 so internals never leak to the client.
"""
import logging

from rest_framework import exceptions, status
from rest_framework.response import Response
from rest_framework.views import exception_handler

logger = logging.getLogger(__name__)


class ValidationError(exceptions.ValidationError):
    """Malformed or out-of-range input (400)."""


class AuthenticationError(exceptions.NotAuthenticated):
    """No caller, or the caller could not be identified (401)."""


class AuthorizationError(exceptions.PermissionDenied):
    """Caller is known but not allowed to do this (403)."""


class NotFoundError(exceptions.NotFound):
    """Referenced entity does not exist (404)."""


class ConflictError(exceptions.APIException):
    """A state-machine precondition does not hold (409)."""
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'The request conflicts with the current state of the resource.'
    default_code = 'conflict'


def _first_message(detail):
    if isinstance(detail, dict):
        for field, value in detail.items():
            message = _first_message(value)
            if field in ('non_field_errors', 'detail', 'error'):
                return message
            return f"{field}: {message}"
        return ''
    if isinstance(detail, (list, tuple)):
        return _first_message(detail[0]) if detail else ''
    return str(detail)


def api_exception_handler(exc, context):
    response = exception_handler(exc, context)
    view = context.get('view')
    view_name = view.__class__.__name__ if view else 'unknown view'

    if response is None:
        logger.exception(f"Unhandled error in {view_name}: {exc}")
        return Response(
            {'success': False, 'error': 'Internal server error'},
            status=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

    detail = response.data
    body = {'success': False, 'error': _first_message(detail)}
    if isinstance(detail, dict) and set(detail) - {'detail'}:
        body['details'] = detail

    if response.status_code >= 500:
        logger.error(f"{view_name} failed with {response.status_code}: {body['error']}")
    else:
        logger.warning(f"{view_name} refused request with {response.status_code}: {body['error']}")
    response.data = body
    return response
