"""
Workflow (approval request) actions.

Requesters create, edit, submit and withdraw their own requests; the
assigned approver (or a tenant admin) approves or rejects them.
"""
from django.utils import timezone

from apps.core.actions import with_auth
from apps.core.exceptions import AuthorizationDenied, DomainRuleViolated, ValidationFailed
from apps.core.validators import ensure_date_range, validate_input
from apps.notifications.models import NotificationType
from apps.notifications.services import create_notification
from apps.rbac.audit import AuditEntry, write_audit_log
from apps.rbac.identity import has_role
from apps.rbac.models import Role, User, UserRole
from apps.tenants.models import Tenant
from apps.workflows.models import WORKFLOW_TRANSITIONS, Workflow, WorkflowStatus
from apps.workflows.serializers import (
    CreateWorkflowSerializer,
    ListWorkflowsSerializer,
    RejectWorkflowSerializer,
    TransitionWorkflowSerializer,
    UpdateWorkflowSerializer,
    WorkflowIdSerializer,
    WorkflowSerializer,
)

ERR_TRANSITION = 'ERR-WF-001'
ERR_REASON_REQUIRED = 'ERR-WF-002'
ERR_NOT_FOUND = 'ERR-WF-003'
ERR_DATE_RANGE = 'ERR-VAL-004'

TITLE_MAX_LENGTH = 200
APPROVER_ROLES = (Role.APPROVER, Role.TENANT_ADMIN)

UPDATABLE_FIELDS = ('title', 'description', 'amount', 'date_from', 'date_to', 'approver_id')


def _validate_title(title):
    if not title or not title.strip():
        raise ValidationFailed('Title is required', code='ERR-VAL-001',
                               fields={'title': 'Title is required'})
    if len(title.strip()) > TITLE_MAX_LENGTH:
        message = f'Title must be {TITLE_MAX_LENGTH} characters or fewer'
        raise ValidationFailed(message, code='ERR-VAL-002', fields={'title': message})
    return title.strip()


def _validate_approver(tenant_id, approver_id):
    if not approver_id:
        raise ValidationFailed('Select an approver', code='ERR-VAL-003',
                               fields={'approver_id': 'Select an approver'})
    exists = UserRole.objects.for_tenant(tenant_id).filter(
        user_id=approver_id,
        role__in=APPROVER_ROLES,
        user__is_active=True,
    ).exists()
    if not exists:
        raise ValidationFailed('Approver not found', code='ERR-VAL-005',
                               fields={'approver_id': 'Approver not found'})


def _get_workflow(tenant_id, workflow_id, for_update=False):
    qs = Workflow.objects.for_tenant(tenant_id)
    if for_update:
        qs = qs.select_for_update()
    try:
        return qs.get(pk=workflow_id)
    except Workflow.DoesNotExist:
        raise DomainRuleViolated(ERR_NOT_FOUND, 'Workflow not found')


def _ensure_creator(identity, workflow):
    if workflow.created_by_id != identity.id:
        raise AuthorizationDenied('Only the requester can change this workflow')


def _ensure_can_decide(identity, tenant_id, workflow, verb):
    if workflow.approver_id != identity.id and not has_role(identity, tenant_id, [Role.TENANT_ADMIN]):
        raise AuthorizationDenied(
            f'You are not allowed to {verb} this workflow', code='ERR-AUTH-002',
        )


def _notify_approver(ctx, workflow):
    if not workflow.approver_id:
        return
    create_notification(
        ctx,
        tenant_id=workflow.tenant_id,
        user_id=workflow.approver_id,
        type=NotificationType.WORKFLOW_SUBMITTED,
        title=f'New request to review: {workflow.title}',
        body=f'{workflow.workflow_number} "{workflow.title}" was submitted for approval',
        resource_type='workflow',
        resource_id=workflow.id,
    )


@with_auth
def create_workflow(identity, ctx, data):
    tenant_id = ctx.require_tenant()
    payload = validate_input(CreateWorkflowSerializer, data)

    title = _validate_title(payload.get('title'))
    _validate_approver(tenant_id, payload.get('approver_id'))
    ensure_date_range(payload.get('date_from'), payload.get('date_to'), code=ERR_DATE_RANGE)

    workflow = Workflow.objects.create(
        tenant_id=tenant_id,
        workflow_number=Tenant.objects.next_workflow_number(tenant_id, using=ctx.using),
        type=payload['type'],
        title=title,
        description=payload.get('description') or '',
        amount=payload.get('amount'),
        date_from=payload.get('date_from'),
        date_to=payload.get('date_to'),
        approver_id=payload['approver_id'],
        status=payload['status'],
        created_by_id=identity.id,
    )

    submitted = workflow.status == WorkflowStatus.SUBMITTED
    write_audit_log(ctx, identity.id, AuditEntry(
        tenant_id=tenant_id,
        action='workflow.submit' if submitted else 'workflow.create',
        resource_type='workflow',
        resource_id=workflow.id,
        after=workflow.snapshot(),
    ))
    if submitted:
        _notify_approver(ctx, workflow)

    return WorkflowSerializer(workflow).data


@with_auth
def update_workflow(identity, ctx, data):
    tenant_id = ctx.require_tenant()
    payload = validate_input(UpdateWorkflowSerializer, data)

    workflow = _get_workflow(tenant_id, payload['workflow_id'], for_update=True)
    _ensure_creator(identity, workflow)
    if not workflow.is_editable:
        raise DomainRuleViolated(ERR_TRANSITION, 'This workflow can no longer be edited')

    before = workflow.snapshot()
    changes = {name: payload[name] for name in UPDATABLE_FIELDS if name in payload}
    if 'title' in changes:
        changes['title'] = _validate_title(changes['title'])
    if 'approver_id' in changes:
        _validate_approver(tenant_id, changes['approver_id'])
    ensure_date_range(
        changes.get('date_from', workflow.date_from),
        changes.get('date_to', workflow.date_to),
        code=ERR_DATE_RANGE,
    )
    if 'description' in changes:
        changes['description'] = changes['description'] or ''

    for name, value in changes.items():
        setattr(workflow, name, value)
    workflow.save()

    write_audit_log(ctx, identity.id, AuditEntry(
        tenant_id=tenant_id,
        action='workflow.update',
        resource_type='workflow',
        resource_id=workflow.id,
        before=before,
        after=workflow.snapshot(),
    ))
    return WorkflowSerializer(workflow).data


@with_auth
def transition_workflow(identity, ctx, data):
    """Submit or withdraw the caller's own workflow."""
    tenant_id = ctx.require_tenant()
    payload = validate_input(TransitionWorkflowSerializer, data)

    workflow = _get_workflow(tenant_id, payload['workflow_id'], for_update=True)
    _ensure_creator(identity, workflow)

    previous = workflow.status
    if payload['action'] == 'submit':
        target, audit_action = WorkflowStatus.SUBMITTED, 'workflow.submit'
    else:
        target, audit_action = WorkflowStatus.WITHDRAWN, 'workflow.withdraw'
    WORKFLOW_TRANSITIONS.ensure(previous, target, ERR_TRANSITION)

    if target == WorkflowStatus.SUBMITTED:
        _validate_title(workflow.title)
        if not workflow.approver_id:
            raise ValidationFailed('Select an approver', code='ERR-VAL-003',
                                   fields={'approver_id': 'Select an approver'})
        workflow.rejection_reason = ''

    workflow.status = target
    workflow.save()

    write_audit_log(ctx, identity.id, AuditEntry(
        tenant_id=tenant_id,
        action=audit_action,
        resource_type='workflow',
        resource_id=workflow.id,
        before={'status': previous},
        after={'status': target},
    ))
    if target == WorkflowStatus.SUBMITTED:
        _notify_approver(ctx, workflow)

    return WorkflowSerializer(workflow).data


@with_auth
def approve_workflow(identity, ctx, data):
    tenant_id = ctx.require_tenant()
    payload = validate_input(WorkflowIdSerializer, data)

    workflow = _get_workflow(tenant_id, payload['workflow_id'], for_update=True)
    _ensure_can_decide(identity, tenant_id, workflow, 'approve')

    previous = workflow.status
    WORKFLOW_TRANSITIONS.ensure(previous, WorkflowStatus.APPROVED, ERR_TRANSITION)

    workflow.status = WorkflowStatus.APPROVED
    workflow.approved_at = timezone.now()
    workflow.save()

    write_audit_log(ctx, identity.id, AuditEntry(
        tenant_id=tenant_id,
        action='workflow.approve',
        resource_type='workflow',
        resource_id=workflow.id,
        before={'status': previous},
        after={'status': workflow.status},
    ))
    create_notification(
        ctx,
        tenant_id=tenant_id,
        user_id=workflow.created_by_id,
        type=NotificationType.WORKFLOW_APPROVED,
        title='Your request was approved',
        body=f'"{workflow.title}" was approved',
        resource_type='workflow',
        resource_id=workflow.id,
    )
    return WorkflowSerializer(workflow).data


@with_auth
def reject_workflow(identity, ctx, data):
    tenant_id = ctx.require_tenant()
    payload = validate_input(RejectWorkflowSerializer, data)

    reason = (payload.get('reason') or '').strip()
    if not reason:
        raise DomainRuleViolated(
            ERR_REASON_REQUIRED, 'A rejection reason is required',
            fields={'reason': 'A rejection reason is required'},
        )

    workflow = _get_workflow(tenant_id, payload['workflow_id'], for_update=True)
    _ensure_can_decide(identity, tenant_id, workflow, 'reject')

    previous = workflow.status
    WORKFLOW_TRANSITIONS.ensure(previous, WorkflowStatus.REJECTED, ERR_TRANSITION)

    workflow.status = WorkflowStatus.REJECTED
    workflow.rejection_reason = reason
    workflow.save()

    write_audit_log(ctx, identity.id, AuditEntry(
        tenant_id=tenant_id,
        action='workflow.reject',
        resource_type='workflow',
        resource_id=workflow.id,
        before={'status': previous},
        after={'status': workflow.status},
        metadata={'rejection_reason': reason},
    ))
    create_notification(
        ctx,
        tenant_id=tenant_id,
        user_id=workflow.created_by_id,
        type=NotificationType.WORKFLOW_REJECTED,
        title='Your request was sent back',
        body=f'"{workflow.title}" was rejected. Reason: {reason}',
        resource_type='workflow',
        resource_id=workflow.id,
    )
    return WorkflowSerializer(workflow).data


@with_auth
def get_approvers(identity, ctx, data):
    tenant_id = ctx.require_tenant()
    rows = (
        UserRole.objects.for_tenant(tenant_id)
        .filter(role__in=APPROVER_ROLES, user__is_active=True)
        .select_related('user')
        .order_by('user__email', 'role')
    )
    return [
        {
            'user_id': str(row.user_id),
            'role': row.role,
            'display_name': row.user.get_full_name(),
        }
        for row in rows
    ]


@with_auth
def get_pending_workflows(identity, ctx, data):
    """
    Submitted workflows awaiting a decision. Tenant admins see all of them,
    everyone else only those assigned to them.
    """
    tenant_id = ctx.require_tenant()
    qs = Workflow.objects.for_tenant(tenant_id).filter(status=WorkflowStatus.SUBMITTED)
    if not has_role(identity, tenant_id, [Role.TENANT_ADMIN]):
        qs = qs.filter(approver_id=identity.id)
    workflows = list(qs.order_by('-created_at'))

    creator_ids = {w.created_by_id for w in workflows}
    creators = User.objects.filter(pk__in=creator_ids)
    return {
        'workflows': WorkflowSerializer(workflows, many=True).data,
        'profile_map': {str(user.pk): user.get_full_name() for user in creators},
    }


@with_auth
def list_workflows(identity, ctx, data):
    """The caller's own requests, newest first."""
    tenant_id = ctx.require_tenant()
    payload = validate_input(ListWorkflowsSerializer, data)
    qs = Workflow.objects.for_tenant(tenant_id).filter(created_by_id=identity.id)
    if payload.get('status'):
        qs = qs.filter(status=payload['status'])
    return WorkflowSerializer(qs.order_by('-created_at'), many=True).data


@with_auth
def get_workflow(identity, ctx, data):
    tenant_id = ctx.require_tenant()
    payload = validate_input(WorkflowIdSerializer, data)
    workflow = _get_workflow(tenant_id, payload['workflow_id'])
    if identity.id not in (workflow.created_by_id, workflow.approver_id) and not has_role(
        identity, tenant_id, [Role.TENANT_ADMIN]
    ):
        raise AuthorizationDenied('You are not allowed to view this workflow')
    return WorkflowSerializer(workflow).data
