"""
Tenant administration actions: users, roles and the audit log.

Everything here requires tenant_admin or it_admin in the current tenant,
except ``get_me`` and ``set_password`` which act on the caller.
"""
import datetime
from collections import defaultdict

from django.core.paginator import Paginator
from django.db.models import Q
from django.utils import timezone

from apps.core.actions import with_auth
from apps.core.exceptions import AuthorizationDenied, ValidationFailed
from apps.core.validators import ensure_date_range, validate_input
from apps.rbac.audit import ACTION_TYPES, RESOURCE_TYPES, AuditEntry, write_audit_log
from apps.rbac.identity import ensure_role, has_role
from apps.rbac.models import ADMIN_ROLES, AuditLog, Role, User, UserRole
from apps.rbac.serializers import (
    AuditLogSerializer,
    ChangeUserRolesSerializer,
    ChangeUserStatusSerializer,
    CurrentUserSerializer,
    FetchAuditLogsSerializer,
    GetUsersSerializer,
    InviteUserSerializer,
    SetPasswordSerializer,
    TenantUserSerializer,
    UserIdSerializer,
)
from apps.rbac.tokens import send_invitation_email, send_password_reset_email
from apps.tenants.models import Tenant


def _ensure_admin(identity, tenant_id):
    ensure_role(identity, tenant_id, ADMIN_ROLES)


def _ensure_it_admin_guard(identity, tenant_id, roles, code, message):
    """Only an it_admin may grant (or take away) the it_admin role."""
    if Role.IT_ADMIN.value in roles and not has_role(identity, tenant_id, [Role.IT_ADMIN]):
        raise AuthorizationDenied(message, code=code)


def _roles_by_user(tenant_id, user_ids=None):
    rows = UserRole.objects.for_tenant(tenant_id)
    if user_ids is not None:
        rows = rows.filter(user_id__in=user_ids)
    roles = defaultdict(list)
    for row in rows.order_by('created_at', 'id'):
        roles[row.user_id].append(row.role)
    return roles


def _get_tenant_user(tenant_id, user_id):
    user = User.objects.filter(pk=user_id, role_assignments__tenant_id=tenant_id).distinct().first()
    if user is None:
        raise ValidationFailed('User not found', fields={'user_id': 'User not found'})
    return user


def _is_last_tenant_admin(tenant_id, user_id):
    admins = set(
        UserRole.objects.for_tenant(tenant_id)
        .filter(role=Role.TENANT_ADMIN, user__is_active=True)
        .values_list('user_id', flat=True)
    )
    return user_id in admins and not (admins - {user_id})


def _row(user, roles):
    return {
        'id': user.id,
        'email': user.email,
        'display_name': user.display_name,
        'roles': roles,
        'status': user.status,
        'last_login_at': user.last_login_at,
        'created_at': user.created_at,
    }


@with_auth
def get_me(identity, ctx, data):
    user = User.objects.get(pk=identity.id)
    return CurrentUserSerializer({
        'id': identity.id,
        'email': identity.email,
        'display_name': user.get_full_name(),
        'tenant_id': ctx.tenant_id,
        'roles': [role.value for role in identity.roles_in(ctx.tenant_id)],
        'tenants': list(identity.tenant_ids),
    }).data


@with_auth
def set_password(identity, ctx, data):
    """Set the caller's password, typically right after an emailed link."""
    user = User.objects.select_for_update().get(pk=identity.id)
    payload = validate_input(SetPasswordSerializer, data, context={'user': user})
    user.set_password(payload['new_password'])
    user.save(update_fields=['password_hash', 'updated_at'])
    return {'user_id': str(user.id)}


@with_auth
def get_users(identity, ctx, data):
    """
    Users of the current tenant with their roles, filtered and paged.

    ``status`` is derived (active, invited or disabled), so the search and
    status filters run after the role lookup.
    """
    tenant_id = ctx.require_tenant()
    _ensure_admin(identity, tenant_id)
    params = validate_input(GetUsersSerializer, data)

    role_rows = UserRole.objects.for_tenant(tenant_id)
    if params.get('role'):
        role_rows = role_rows.filter(role=params['role'])
    user_ids = set(role_rows.values_list('user_id', flat=True))
    roles = _roles_by_user(tenant_id, user_ids)

    users = User.objects.filter(pk__in=user_ids)
    if params.get('search'):
        term = params['search'].strip()
        users = users.filter(Q(email__icontains=term) | Q(display_name__icontains=term))

    rows = [_row(user, roles[user.id]) for user in users.order_by('email')]
    if params.get('status'):
        rows = [row for row in rows if row['status'] == params['status']]

    paginator = Paginator(rows, params['per_page'])
    page_obj = paginator.get_page(params['page'])
    return {
        'data': TenantUserSerializer(page_obj.object_list, many=True).data,
        'count': paginator.count,
    }


@with_auth
def invite_user(identity, ctx, data):
    tenant_id = ctx.require_tenant()
    _ensure_admin(identity, tenant_id)
    payload = validate_input(InviteUserSerializer, data)

    roles = list(dict.fromkeys(payload['roles']))
    if not roles:
        raise ValidationFailed('Select at least one role', code='ERR-VAL-002',
                               fields={'roles': 'Select at least one role'})
    _ensure_it_admin_guard(identity, tenant_id, roles, 'ERR-AUTH-004',
                           'The it_admin role cannot be granted from here')

    user = User.objects.by_email(payload['email'])
    if user is not None and UserRole.objects.for_tenant(tenant_id).filter(user=user).exists():
        raise ValidationFailed('This email address is already registered', code='ERR-VAL-003',
                               fields={'email': 'This email address is already registered'})

    if user is None:
        user = User.objects.create_user(
            email=payload['email'],
            display_name=payload.get('display_name') or '',
            invited_at=timezone.now(),
        )

    for role in roles:
        UserRole.objects.create(tenant_id=tenant_id, user=user, role=role, granted_by_id=identity.id)

    tenant = Tenant.objects.get(pk=tenant_id)
    send_invitation_email(user, tenant, User.objects.get(pk=identity.id))

    write_audit_log(ctx, identity.id, AuditEntry(
        tenant_id=tenant_id,
        action='user.invite',
        resource_type='user',
        resource_id=user.id,
        after={'email': user.email, 'roles': roles},
        metadata={'email': user.email, 'roles': roles},
    ))
    return {'id': str(user.id), 'email': user.email, 'roles': roles}


@with_auth
def change_user_roles(identity, ctx, data):
    """Replace the target user's roles in the current tenant."""
    tenant_id = ctx.require_tenant()
    _ensure_admin(identity, tenant_id)
    payload = validate_input(ChangeUserRolesSerializer, data)
    user_id = payload['user_id']

    if user_id == identity.id:
        raise ValidationFailed('You cannot change your own roles', code='ERR-VAL-004')

    roles = list(dict.fromkeys(payload['roles']))
    if not roles:
        raise ValidationFailed('Select at least one role', code='ERR-VAL-005',
                               fields={'roles': 'Select at least one role'})

    user = _get_tenant_user(tenant_id, user_id)
    old_roles = _roles_by_user(tenant_id, [user.id])[user.id]

    touched = set(roles).symmetric_difference(old_roles)
    _ensure_it_admin_guard(identity, tenant_id, touched, 'ERR-AUTH-005',
                           'You are not allowed to change the it_admin role')

    if Role.TENANT_ADMIN.value not in roles and _is_last_tenant_admin(tenant_id, user.id):
        raise ValidationFailed('The tenant needs at least one tenant admin', code='ERR-VAL-006')

    UserRole.objects.for_tenant(tenant_id).filter(user=user).delete()
    for role in roles:
        UserRole.objects.create(tenant_id=tenant_id, user=user, role=role, granted_by_id=identity.id)

    write_audit_log(ctx, identity.id, AuditEntry(
        tenant_id=tenant_id,
        action='user.role_change',
        resource_type='user',
        resource_id=user.id,
        before={'roles': old_roles},
        after={'roles': roles},
    ))
    return {'user_id': str(user.id), 'roles': roles}


@with_auth
def change_user_status(identity, ctx, data):
    tenant_id = ctx.require_tenant()
    _ensure_admin(identity, tenant_id)
    payload = validate_input(ChangeUserStatusSerializer, data)
    disable = payload['action'] == 'disable'

    if disable and payload['user_id'] == identity.id:
        raise ValidationFailed('You cannot disable your own account', code='ERR-VAL-007')

    user = _get_tenant_user(tenant_id, payload['user_id'])
    if disable and _is_last_tenant_admin(tenant_id, user.id):
        raise ValidationFailed('The tenant needs at least one active tenant admin', code='ERR-VAL-008')

    user.is_active = not disable
    user.save(update_fields=['is_active', 'updated_at'])

    write_audit_log(ctx, identity.id, AuditEntry(
        tenant_id=tenant_id,
        action='user.deactivate' if disable else 'user.reactivate',
        resource_type='user',
        resource_id=user.id,
    ))
    return {'user_id': str(user.id), 'status': user.status}


@with_auth
def reset_password(identity, ctx, data):
    """Email the user a one-time recovery link."""
    tenant_id = ctx.require_tenant()
    _ensure_admin(identity, tenant_id)
    payload = validate_input(UserIdSerializer, data)

    user = _get_tenant_user(tenant_id, payload['user_id'])
    send_password_reset_email(user)

    write_audit_log(ctx, identity.id, AuditEntry(
        tenant_id=tenant_id,
        action='user.password_reset',
        resource_type='user',
        resource_id=user.id,
    ))
    return {'user_id': str(user.id)}


def _ensure_audit_reader(identity, tenant_id):
    if not has_role(identity, tenant_id, ADMIN_ROLES):
        raise AuthorizationDenied('You do not have access to the audit log', code='ERR-AUTH-002')


@with_auth
def fetch_audit_logs(identity, ctx, data):
    """Audit rows of the current tenant, newest first."""
    tenant_id = ctx.require_tenant()
    _ensure_audit_reader(identity, tenant_id)
    params = validate_input(FetchAuditLogsSerializer, data)
    ensure_date_range(params.get('date_from'), params.get('date_to'))

    qs = AuditLog.objects.for_tenant(tenant_id).select_related('user')
    if params.get('user_id'):
        qs = qs.filter(user_id=params['user_id'])
    if params.get('action'):
        qs = qs.filter(action=params['action'])
    if params.get('resource_type'):
        qs = qs.filter(resource_type=params['resource_type'])
    if params.get('date_from'):
        qs = qs.filter(created_at__gte=_start_of_day(params['date_from']))
    if params.get('date_to'):
        qs = qs.filter(created_at__lt=_start_of_day(params['date_to'] + datetime.timedelta(days=1)))

    paginator = Paginator(qs.order_by('-created_at', '-id'), params['page_size'])
    page_obj = paginator.get_page(params['page'])
    return {
        'logs': AuditLogSerializer(page_obj.object_list, many=True).data,
        'total': paginator.count,
    }


def _start_of_day(day):
    return timezone.make_aware(datetime.datetime.combine(day, datetime.time.min))


@with_auth
def fetch_filter_options(identity, ctx, data):
    tenant_id = ctx.require_tenant()
    _ensure_audit_reader(identity, tenant_id)

    users = (
        User.objects.filter(role_assignments__tenant_id=tenant_id)
        .distinct()
        .order_by('email')
    )
    return {
        'users': [{'id': str(user.id), 'display_name': user.get_full_name()} for user in users],
        'action_types': list(ACTION_TYPES),
        'resource_types': list(RESOURCE_TYPES),
    }
