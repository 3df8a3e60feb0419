"""
Audit log writer.

A mutation records what changed after it succeeds. Writing the record is
best-effort: a failed insert is logged at error level and never undoes or
fails the mutation it describes.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from django.db import transaction

from apps.core.logging import get_logger
from apps.rbac.models import AuditLog

logger = get_logger(__name__)


ACTION_TYPES = (
    'workflow.create',
    'workflow.update',
    'workflow.submit',
    'workflow.approve',
    'workflow.reject',
    'workflow.withdraw',
    'project.create',
    'project.update',
    'project.status_change',
    'project.add_member',
    'project.remove_member',
    'task.create',
    'task.update',
    'task.delete',
    'task.status_change',
    'timesheet.create',
    'timesheet.update',
    'timesheet.delete',
    'timesheet.export',
    'expense.create',
    'expense.submit',
    'invoice.create',
    'invoice.update',
    'invoice.delete',
    'invoice.status_change',
    'user.invite',
    'user.role_change',
    'user.reactivate',
    'user.deactivate',
    'user.password_reset',
    'tenant.update',
    'tenant.settings_change',
    'tenant.soft_delete',
)

RESOURCE_TYPES = (
    'workflow',
    'project',
    'task',
    'timesheet',
    'expense',
    'invoice',
    'user',
    'tenant',
)


@dataclass(frozen=True)
class AuditEntry:
    """What happened, to which resource, with optional before/after data."""
    tenant_id: Any
    action: str
    resource_type: str
    resource_id: Optional[Any] = None
    before: Optional[Dict[str, Any]] = None
    after: Optional[Dict[str, Any]] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


def write_audit_log(ctx, user_id, entry):
    """
    Append one audit row for ``entry`` performed by ``user_id``.

    The insert runs in its own savepoint so a failure leaves the caller's
    transaction usable. Returns the AuditLog, or None when the write failed.
    """
    try:
        with transaction.atomic(using=ctx.using):
            return AuditLog.objects.db_manager(ctx.using).create(
                tenant_id=entry.tenant_id,
                user_id=user_id,
                action=entry.action,
                resource_type=entry.resource_type,
                resource_id=str(entry.resource_id) if entry.resource_id is not None else None,
                before_data=entry.before,
                after_data=entry.after,
                metadata=entry.metadata or {},
                ip_address=ctx.ip_address,
                user_agent=ctx.user_agent or '',
                request_id=ctx.request_id,
            )
    except Exception as exc:
        logger.error(
            "Failed to write audit log",
            {
                'action': entry.action,
                'resource_type': entry.resource_type,
                'resource_id': str(entry.resource_id) if entry.resource_id is not None else None,
                'tenant_id': str(entry.tenant_id),
                'user_id': str(user_id),
                'request_id': ctx.request_id,
            },
            exc,
        )
        return None
