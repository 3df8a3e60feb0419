"""
Authenticated actions and their uniform result envelope.

``with_auth`` turns a handler ``handler(identity, ctx, data)`` into an
action ``action(request, data)`` that:

- resolves the session identity (returning ``Unauthenticated`` untouched so
  the view can redirect to the login page),
- builds the request-scoped ``ActionContext``,
- runs the handler inside a database transaction,
- converts every failure into an ``ActionResult`` error, logging it once.

A wrapped action never raises.
"""
import uuid
from dataclasses import dataclass
from functools import wraps
from typing import Any, Dict, Optional

from django.db import DEFAULT_DB_ALIAS, transaction

from apps.core.exceptions import (
    AuthorizationDenied,
    classify_failure,
    is_error_code,
)
from apps.core.logging import get_logger
from apps.core.sentry_utils import capture_unclassified_failure, set_identity_context
from apps.rbac.identity import Unauthenticated, require_auth

logger = get_logger(__name__)

TENANT_HEADER = 'HTTP_X_TENANT_ID'


@dataclass(frozen=True)
class ErrorDetail:
    code: str
    message: str
    fields: Optional[Dict[str, str]] = None

    def to_dict(self):
        data = {'code': self.code, 'message': self.message}
        if self.fields:
            data['fields'] = dict(self.fields)
        return data


@dataclass(frozen=True)
class ActionResult:
    """
    ``{success: true, data}`` or ``{success: false, error}``; never both.
    """
    success: bool
    data: Any = None
    error: Optional[ErrorDetail] = None

    def __post_init__(self):
        if self.success and self.error is not None:
            raise ValueError('A successful result cannot carry an error')
        if not self.success:
            if self.error is None:
                raise ValueError('A failed result must carry an error')
            if self.data is not None:
                raise ValueError('A failed result cannot carry data')
            if not is_error_code(self.error.code):
                raise ValueError(f"Malformed error code: {self.error.code!r}")

    @classmethod
    def ok(cls, data=None):
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, code, message, fields=None):
        return cls(success=False, error=ErrorDetail(code, message, fields or None))

    def to_dict(self):
        if self.success:
            return {'success': True, 'data': self.data}
        return {'success': False, 'error': self.error.to_dict()}


def get_client_ip(request):
    """Extract client IP from request."""
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        return x_forwarded_for.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR')


@dataclass(frozen=True)
class ActionContext:
    """
    Request-scoped handle passed to every handler.

    Carries the selected tenant, request metadata for audit rows and the
    database alias the handler's transaction runs on. Created per request and
    never shared.
    """
    tenant_id: Optional[uuid.UUID]
    request_id: Optional[str] = None
    ip_address: Optional[str] = None
    user_agent: str = ''
    using: str = DEFAULT_DB_ALIAS

    @classmethod
    def from_request(cls, request, identity, using=DEFAULT_DB_ALIAS):
        return cls(
            tenant_id=cls.select_tenant(request, identity),
            request_id=getattr(request, 'request_id', None),
            ip_address=get_client_ip(request),
            user_agent=request.META.get('HTTP_USER_AGENT', ''),
            using=using,
        )

    @staticmethod
    def select_tenant(request, identity):
        """
        The ``X-TENANT-ID`` header when the identity belongs to that tenant,
        else the identity's first tenant.
        """
        requested = request.META.get(TENANT_HEADER)
        if requested:
            try:
                requested = uuid.UUID(requested)
            except ValueError:
                requested = None
            if requested is not None and requested in identity.tenant_ids:
                return requested
        return identity.tenant_ids[0] if identity.tenant_ids else None

    def require_tenant(self):
        if self.tenant_id is None:
            raise AuthorizationDenied('No tenant membership')
        return self.tenant_id

    def atomic(self):
        return transaction.atomic(using=self.using)


def with_auth(handler):
    """
    Wrap ``handler(identity, ctx, data)`` as an authenticated action.
    """

    @wraps(handler)
    def action(request, data=None):
        ctx = None
        try:
            auth = require_auth(request)
            if isinstance(auth, Unauthenticated):
                return auth
            ctx = ActionContext.from_request(request, auth.identity)
            set_identity_context(auth.identity, ctx.tenant_id)
            with ctx.atomic():
                result = handler(auth.identity, ctx, data if data is not None else {})
            return ActionResult.ok(result)
        except Exception as exc:
            failure = classify_failure(exc)
            logger.error(
                f"Action {handler.__name__} failed",
                {
                    'action': handler.__name__,
                    'code': failure.code,
                    'request_id': getattr(request, 'request_id', None),
                    'tenant_id': str(ctx.tenant_id) if ctx and ctx.tenant_id else None,
                    'unclassified': not failure.classified,
                },
                exc,
            )
            if not failure.classified:
                capture_unclassified_failure(exc, handler.__name__, ctx)
            return ActionResult.fail(failure.code, failure.message, failure.fields)

    action.handler = handler
    return action
