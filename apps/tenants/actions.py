"""
Tenant administration actions.

Tenant and IT admins read and edit the organisation's details and
preferences. Only an IT admin may delete the tenant, and only after typing
its name.
"""
from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.validators import validate_email
from django.utils import timezone

from apps.core.actions import with_auth
from apps.core.exceptions import ValidationFailed
from apps.core.validators import validate_input
from apps.projects.models import Project
from apps.rbac.audit import AuditEntry, write_audit_log
from apps.rbac.identity import ensure_role
from apps.rbac.models import ADMIN_ROLES, Role, UserRole
from apps.tenants.models import Tenant
from apps.tenants.serializers import (
    TENANT_SETTING_KEYS,
    DeleteTenantSerializer,
    UpdateTenantSerializer,
    UpdateTenantSettingsSerializer,
)
from apps.workflows.models import Workflow

NAME_MAX_LENGTH = 100


def _invalid(code, field, message):
    return ValidationFailed(message, code=code, fields={field: message})


def _get_tenant(tenant_id, using, for_update=False):
    qs = Tenant.objects.db_manager(using).all()
    if for_update:
        qs = qs.select_for_update()
    return qs.get(pk=tenant_id)


def _detail(tenant):
    month_start = timezone.localdate().replace(day=1)
    return {
        'id': str(tenant.id),
        'name': tenant.name,
        'slug': tenant.slug,
        'settings': tenant.settings or {},
        'created_at': tenant.created_at,
        'updated_at': tenant.updated_at,
        'stats': {
            'active_users': (
                UserRole.objects.for_tenant(tenant.id)
                .filter(user__is_active=True)
                .values('user_id').distinct().count()
            ),
            'project_count': Project.objects.for_tenant(tenant.id).count(),
            'monthly_workflows': (
                Workflow.objects.for_tenant(tenant.id)
                .filter(created_at__date__gte=month_start)
                .count()
            ),
        },
    }


@with_auth
def get_tenant_detail(identity, ctx, data):
    tenant_id = ctx.require_tenant()
    ensure_role(identity, tenant_id, ADMIN_ROLES)
    return _detail(_get_tenant(tenant_id, ctx.using))


@with_auth
def update_tenant(identity, ctx, data):
    """Rename the tenant and edit its contact details."""
    tenant_id = ctx.require_tenant()
    ensure_role(identity, tenant_id, ADMIN_ROLES)
    payload = validate_input(UpdateTenantSerializer, data)

    name = payload.get('name') or ''
    if not name:
        raise _invalid('ERR-VAL-001', 'name', 'Organisation name is required')
    if len(name) > NAME_MAX_LENGTH:
        raise _invalid('ERR-VAL-002', 'name', f'Organisation name must be {NAME_MAX_LENGTH} characters or fewer')
    contact_email = payload.get('contact_email')
    if contact_email:
        try:
            validate_email(contact_email)
        except DjangoValidationError:
            raise _invalid('ERR-VAL-003', 'contact_email', 'Enter a valid email address')

    tenant = _get_tenant(tenant_id, ctx.using, for_update=True)
    before = tenant.snapshot(['name', 'settings'])

    tenant.name = name
    settings = dict(tenant.settings or {})
    for key in ('contact_email', 'address'):
        if key in payload:
            settings[key] = payload[key]
    tenant.settings = settings
    tenant.save(using=ctx.using, update_fields=['name', 'settings', 'updated_at'])

    write_audit_log(ctx, identity.id, AuditEntry(
        tenant_id=tenant_id,
        action='tenant.update',
        resource_type='tenant',
        resource_id=tenant.id,
        before=before,
        after=tenant.snapshot(['name', 'settings']),
    ))
    return _detail(tenant)


@with_auth
def update_tenant_settings(identity, ctx, data):
    """Merge the given preferences into the tenant's settings."""
    tenant_id = ctx.require_tenant()
    ensure_role(identity, tenant_id, ADMIN_ROLES)
    payload = validate_input(UpdateTenantSettingsSerializer, data)
    changes = {key: value for key, value in payload['settings'].items() if key in TENANT_SETTING_KEYS}

    fiscal_year_start = changes.get('fiscal_year_start')
    if fiscal_year_start is not None and not 1 <= fiscal_year_start <= 12:
        raise _invalid('ERR-VAL-004', 'settings.fiscal_year_start',
                       'Fiscal year start must be a month from 1 to 12')

    tenant = _get_tenant(tenant_id, ctx.using, for_update=True)
    before = dict(tenant.settings or {})
    tenant.settings = {**before, **changes}
    tenant.save(using=ctx.using, update_fields=['settings', 'updated_at'])

    write_audit_log(ctx, identity.id, AuditEntry(
        tenant_id=tenant_id,
        action='tenant.settings_change',
        resource_type='tenant',
        resource_id=tenant.id,
        before={'settings': before},
        after={'settings': tenant.settings},
    ))
    return _detail(tenant)


@with_auth
def delete_tenant(identity, ctx, data):
    tenant_id = ctx.require_tenant()
    ensure_role(identity, tenant_id, [Role.IT_ADMIN])
    payload = validate_input(DeleteTenantSerializer, data)

    tenant = _get_tenant(tenant_id, ctx.using, for_update=True)
    if payload.get('confirmation') != tenant.name:
        raise _invalid('ERR-VAL-005', 'confirmation', 'Type the organisation name exactly to confirm')

    tenant.delete(using=ctx.using)

    write_audit_log(ctx, identity.id, AuditEntry(
        tenant_id=tenant_id,
        action='tenant.soft_delete',
        resource_type='tenant',
        resource_id=tenant.id,
        before={'name': tenant.name, 'slug': tenant.slug},
        metadata={'deleted_at': tenant.deleted_at.isoformat()},
    ))
    return {'deleted': str(tenant.id)}
