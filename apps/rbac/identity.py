"""
Session identity resolution and tenant-scoped role checks.

An ``Identity`` is rebuilt from the session user and the ``user_roles`` table
on every call and lives for one request only. Resolution and authorization
return explicit result values rather than raising or redirecting, so the
calling view decides what navigation (if any) happens.
"""
import uuid
from dataclasses import dataclass, field
from typing import Iterable, Optional, Tuple, Union

from django.conf import settings
from django.contrib.auth.views import redirect_to_login

from apps.core.exceptions import AuthorizationDenied
from apps.core.logging import get_logger
from apps.rbac.models import Role, UserRole

logger = get_logger(__name__)


@dataclass(frozen=True)
class RoleAssignment:
    tenant_id: uuid.UUID
    role: Role


@dataclass(frozen=True)
class Identity:
    """
    The authenticated user for one request.

    ``roles`` is ordered by grant time. ``tenant_ids`` is derived from it, so
    it always lists exactly the tenants the user holds a role in.
    """
    id: uuid.UUID
    email: str
    roles: Tuple[RoleAssignment, ...] = field(default_factory=tuple)

    @property
    def tenant_ids(self) -> Tuple[uuid.UUID, ...]:
        seen = []
        for assignment in self.roles:
            if assignment.tenant_id not in seen:
                seen.append(assignment.tenant_id)
        return tuple(seen)

    def roles_in(self, tenant_id) -> Tuple[Role, ...]:
        tenant_id = _as_uuid(tenant_id)
        return tuple(a.role for a in self.roles if a.tenant_id == tenant_id)

    def belongs_to(self, tenant_id) -> bool:
        return _as_uuid(tenant_id) in self.tenant_ids


@dataclass(frozen=True)
class Authenticated:
    identity: Identity


@dataclass(frozen=True)
class Unauthenticated:
    login_url: str = settings.LOGIN_URL


@dataclass(frozen=True)
class Authorized:
    identity: Identity


@dataclass(frozen=True)
class Denied:
    identity: Identity
    reason: str = 'Insufficient permissions'
    code: str = AuthorizationDenied.default_code


AuthResult = Union[Authenticated, Unauthenticated]
RoleCheckResult = Union[Authorized, Denied, Unauthenticated]


def _as_uuid(value) -> Optional[uuid.UUID]:
    if value is None or isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError, AttributeError):
        return None


def load_role_assignments(user) -> Tuple[RoleAssignment, ...]:
    assignments = []
    for row in UserRole.objects.for_user(user).order_by('created_at', 'id'):
        try:
            role = Role.parse(row.role)
        except ValueError:
            logger.warn(
                "Skipping role assignment with unknown role",
                {'user_id': str(user.pk), 'tenant_id': str(row.tenant_id), 'role': row.role},
            )
            continue
        assignments.append(RoleAssignment(tenant_id=row.tenant_id, role=role))
    return tuple(assignments)


def require_auth(request) -> AuthResult:
    """
    Resolve the session user into an Identity.

    Anonymous and disabled users resolve to ``Unauthenticated``. A user with
    no role assignments is still authenticated, with empty roles.
    """
    user = getattr(request, 'user', None)
    if user is None or not user.is_authenticated or not getattr(user, 'is_active', False):
        return Unauthenticated()

    identity = Identity(
        id=user.pk,
        email=user.email or '',
        roles=load_role_assignments(user),
    )
    return Authenticated(identity)


def get_current_user(request) -> Optional[Identity]:
    """Non-redirecting variant of ``require_auth``."""
    result = require_auth(request)
    if isinstance(result, Authenticated):
        return result.identity
    return None


def has_role(identity: Identity, tenant_id, allowed_roles: Iterable) -> bool:
    """
    True when the identity holds one of ``allowed_roles`` in exactly
    ``tenant_id``. Roles held in other tenants never count.
    """
    tenant_id = _as_uuid(tenant_id)
    if tenant_id is None:
        return False
    allowed = {Role.parse(role) for role in allowed_roles}
    return any(
        assignment.tenant_id == tenant_id and assignment.role in allowed
        for assignment in identity.roles
    )


def authorize(identity: Identity, tenant_id, allowed_roles: Iterable) -> Union[Authorized, Denied]:
    allowed_roles = tuple(allowed_roles)
    if has_role(identity, tenant_id, allowed_roles):
        return Authorized(identity)
    return Denied(
        identity,
        reason=f"Requires one of: {', '.join(Role.parse(r).value for r in allowed_roles)}",
    )


def require_role(request, tenant_id, allowed_roles: Iterable) -> RoleCheckResult:
    result = require_auth(request)
    if isinstance(result, Unauthenticated):
        return result
    return authorize(result.identity, tenant_id, allowed_roles)


def ensure_role(identity: Identity, tenant_id, allowed_roles: Iterable) -> Identity:
    """
    Enforcement point for privileged mutations inside wrapped actions.

    Raises ``AuthorizationDenied`` (ERR-AUTH-003) unless the role is held.
    """
    result = authorize(identity, tenant_id, allowed_roles)
    if isinstance(result, Denied):
        raise AuthorizationDenied(result.reason, code=result.code)
    return identity


def login_redirect(request, result: Unauthenticated = None):
    """Redirect to the login page, remembering where the user was going."""
    login_url = result.login_url if result is not None else settings.LOGIN_URL
    return redirect_to_login(request.get_full_path(), login_url=login_url)
