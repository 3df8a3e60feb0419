"""
Error codes, the OpsHub exception hierarchy and DRF exception handling.

Every failure reported to a caller carries a code of the form
``ERR-<DOMAIN>-<NNN>``. Handlers raise ``OpsHubError`` subclasses with a typed
code; ``classify_failure`` turns any exception into ``(code, message,
fields)``.
"""
import re
from collections import namedtuple

from django_ratelimit.exceptions import Ratelimited
from django.http import JsonResponse
from rest_framework import exceptions as drf_exceptions
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from apps.core.logging import get_logger

logger = get_logger(__name__)


ERROR_DOMAINS = ('AUTH', 'VAL', 'WF', 'PJ', 'EXP', 'INV', 'SYS')

ERROR_CODE_PATTERN = re.compile(r'^ERR-(?:%s)-\d{3}$' % '|'.join(ERROR_DOMAINS))

# Legacy form: "ERR-WF-002: Rejection reason is required"
ERROR_PREFIX_PATTERN = re.compile(
    r'^\s*(ERR-(?:%s)-\d{3})\s*:\s*(.*)$' % '|'.join(ERROR_DOMAINS),
    re.DOTALL,
)

SYSTEM_ERROR_CODE = 'ERR-SYS-001'
SYSTEM_ERROR_MESSAGE = 'An unexpected error occurred'


def is_error_code(value):
    return isinstance(value, str) and bool(ERROR_CODE_PATTERN.match(value))


def error_domain(code):
    """Return the DOMAIN part of an error code (``ERR-WF-002`` -> ``WF``)."""
    return code.split('-')[1]


class OpsHubError(Exception):
    """
    Base exception for failures reported to callers.

    ``code`` must be a well-formed error code; ``fields`` maps input field
    names to messages for field-level validation failures.
    """
    default_code = SYSTEM_ERROR_CODE
    default_message = SYSTEM_ERROR_MESSAGE

    def __init__(self, message=None, code=None, fields=None):
        self.code = code or self.default_code
        if not is_error_code(self.code):
            raise ValueError(f"Malformed error code: {self.code!r}")
        self.message = message or self.default_message
        self.fields = dict(fields) if fields else None
        super().__init__(self.message)

    def __str__(self):
        return f"{self.code}: {self.message}"


class AuthenticationRequired(OpsHubError):
    default_code = 'ERR-AUTH-001'
    default_message = 'Authentication required'


class AuthorizationDenied(OpsHubError):
    default_code = 'ERR-AUTH-003'
    default_message = 'Insufficient permissions'


class ValidationFailed(OpsHubError):
    default_code = 'ERR-VAL-001'
    default_message = 'Invalid input'


class DomainRuleViolated(OpsHubError):
    """A business rule refused the operation (illegal transition, not found, ...)."""

    def __init__(self, code, message, fields=None):
        super().__init__(message=message, code=code, fields=fields)


class SystemFailure(OpsHubError):
    default_code = SYSTEM_ERROR_CODE


ClassifiedFailure = namedtuple('ClassifiedFailure', 'code message fields classified')


def flatten_errors(detail):
    """Reduce DRF error detail to one message per field."""
    if isinstance(detail, dict):
        fields = {}
        for key, value in detail.items():
            if isinstance(value, (list, tuple)) and value:
                value = value[0]
            if isinstance(value, dict):
                nested = flatten_errors(value)
                for nested_key, nested_value in nested.items():
                    fields[f"{key}.{nested_key}"] = nested_value
            else:
                fields[str(key)] = str(value)
        return fields
    if isinstance(detail, (list, tuple)) and detail:
        return {'non_field_errors': str(detail[0])}
    return {'non_field_errors': str(detail)}


def classify_failure(exc):
    """
    Map an exception to a reportable failure.

    Typed ``OpsHubError`` codes win; DRF validation and permission errors map
    to VAL and AUTH codes; a message starting with a recognized
    ``ERR-<DOMAIN>-<NNN>:`` prefix keeps that code. Everything else is
    ``ERR-SYS-001`` with a generic message and ``classified=False``.
    """
    if isinstance(exc, OpsHubError):
        return ClassifiedFailure(exc.code, exc.message, exc.fields, True)

    if isinstance(exc, drf_exceptions.ValidationError):
        fields = flatten_errors(exc.detail)
        return ClassifiedFailure(
            ValidationFailed.default_code, 'Invalid input', fields, True
        )

    if isinstance(exc, (drf_exceptions.PermissionDenied, drf_exceptions.NotAuthenticated)):
        return ClassifiedFailure(
            AuthorizationDenied.default_code, str(exc.detail), None, True
        )

    match = ERROR_PREFIX_PATTERN.match(str(exc))
    if match:
        message = match.group(2).strip() or SYSTEM_ERROR_MESSAGE
        return ClassifiedFailure(match.group(1), message, None, True)

    return ClassifiedFailure(SYSTEM_ERROR_CODE, SYSTEM_ERROR_MESSAGE, None, False)


def http_status_for(code):
    """HTTP status used when an error code is returned over the API."""
    domain = error_domain(code)
    if code == AuthenticationRequired.default_code:
        return status.HTTP_401_UNAUTHORIZED
    if domain == 'AUTH':
        return status.HTTP_403_FORBIDDEN
    if domain == 'VAL':
        return status.HTTP_400_BAD_REQUEST
    if domain == 'SYS':
        return status.HTTP_500_INTERNAL_SERVER_ERROR
    return status.HTTP_422_UNPROCESSABLE_ENTITY


def error_body(code, message, fields=None):
    error = {'code': code, 'message': message}
    if fields:
        error['fields'] = fields
    return {'success': False, 'error': error}


RATE_LIMIT_CODE = 'ERR-AUTH-006'
RATE_LIMIT_RETRY_AFTER = 60


def ratelimit_view(request, exception):
    """
    View for django-ratelimit returning 429 instead of 403.
    """
    logger.warn(
        "Rate limit exceeded",
        {
            'request_id': getattr(request, 'request_id', None),
            'path': request.path,
            'method': request.method,
            'ip': request.META.get('REMOTE_ADDR', 'unknown'),
        },
    )
    response = JsonResponse(
        error_body(RATE_LIMIT_CODE, 'Too many attempts. Please try again later.'),
        status=status.HTTP_429_TOO_MANY_REQUESTS,
    )
    response['Retry-After'] = str(RATE_LIMIT_RETRY_AFTER)
    return response


def custom_exception_handler(exc, context):
    """
    Render failures raised outside wrapped actions in the action result shape.
    """
    request = context.get('request')
    request_id = getattr(request, 'request_id', None) if request else None

    if isinstance(exc, Ratelimited):
        response = Response(
            error_body(RATE_LIMIT_CODE, 'Too many attempts. Please try again later.'),
            status=status.HTTP_429_TOO_MANY_REQUESTS,
        )
        response['Retry-After'] = str(RATE_LIMIT_RETRY_AFTER)
        return response

    response = exception_handler(exc, context)

    if isinstance(exc, OpsHubError):
        return Response(
            error_body(exc.code, exc.message, exc.fields),
            status=http_status_for(exc.code),
        )

    if response is not None:
        if isinstance(exc, drf_exceptions.NotAuthenticated):
            code, message = AuthenticationRequired.default_code, str(exc.detail)
        elif isinstance(exc, drf_exceptions.ValidationError):
            failure = classify_failure(exc)
            return Response(error_body(failure.code, failure.message, failure.fields),
                            status=response.status_code)
        elif response.status_code == status.HTTP_403_FORBIDDEN:
            code, message = AuthorizationDenied.default_code, str(exc.detail)
        else:
            code, message = 'ERR-VAL-001', str(getattr(exc, 'detail', exc))
        response.data = error_body(code, message)
        return response

    logger.error(
        f"API Exception: {exc.__class__.__name__}",
        {
            'request_id': request_id,
            'path': request.path if request else None,
            'method': request.method if request else None,
        },
        exc,
    )
    return Response(
        error_body(SYSTEM_ERROR_CODE, SYSTEM_ERROR_MESSAGE),
        status=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
