"""
Project and task actions.

Projects are created by PMs and tenant admins. After that the project's
own PM (or a tenant admin) manages it; task assignees may also edit and
move their tasks.
"""
from apps.core.actions import with_auth
from apps.core.exceptions import AuthorizationDenied, DomainRuleViolated, ValidationFailed
from apps.core.validators import ensure_date_range, validate_input
from apps.notifications.models import NotificationType
from apps.notifications.services import create_notification
from apps.projects.models import (
    PROJECT_TRANSITIONS,
    TASK_TRANSITIONS,
    Project,
    ProjectMember,
    ProjectStatus,
    Task,
    TaskStatus,
)
from apps.projects.serializers import (
    ChangeTaskStatusSerializer,
    CreateProjectSerializer,
    CreateTaskSerializer,
    ListProjectsSerializer,
    MemberSerializer,
    ProjectIdSerializer,
    ProjectMemberSerializer,
    ProjectSerializer,
    TaskIdSerializer,
    TaskSerializer,
    UpdateProjectSerializer,
    UpdateTaskSerializer,
)
from apps.rbac.audit import AuditEntry, write_audit_log
from apps.rbac.identity import ensure_role, has_role
from apps.rbac.models import Role, UserRole

ERR_PROJECT_NOT_FOUND = 'ERR-PJ-001'
ERR_PROJECT_TRANSITION = 'ERR-PJ-002'
ERR_ALREADY_MEMBER = 'ERR-PJ-003'
ERR_PM_NOT_REMOVABLE = 'ERR-PJ-004'
ERR_TASK_NOT_FOUND = 'ERR-PJ-005'
ERR_TASK_TRANSITION = 'ERR-PJ-006'
ERR_TASK_HAS_TIMESHEETS = 'ERR-PJ-007'

PROJECT_NAME_MAX_LENGTH = 100
TASK_TITLE_MAX_LENGTH = 200


def _validate_name(value, label, max_length):
    if not value or not value.strip():
        message = f'{label} is required'
        raise ValidationFailed(message, code='ERR-VAL-001', fields={'name': message})
    if len(value) > max_length:
        message = f'{label} must be {max_length} characters or fewer'
        raise ValidationFailed(message, code='ERR-VAL-002', fields={'name': message})
    return value.strip()


def _validate_title(value):
    try:
        return _validate_name(value, 'Task title', TASK_TITLE_MAX_LENGTH)
    except ValidationFailed as exc:
        raise ValidationFailed(exc.message, code=exc.code, fields={'title': exc.message})


def _ensure_tenant_user(tenant_id, user_id, code, field):
    if not UserRole.objects.for_tenant(tenant_id).filter(user_id=user_id).exists():
        raise ValidationFailed('User not found in this tenant', code=code,
                               fields={field: 'User not found in this tenant'})


def _ensure_project_member(project, user_id):
    if not project.has_member(user_id):
        message = 'The user is not a member of this project'
        raise ValidationFailed(message, code='ERR-VAL-005', fields={'assignee_id': message})


def _get_project(tenant_id, project_id, for_update=False):
    qs = Project.objects.for_tenant(tenant_id)
    if for_update:
        qs = qs.select_for_update()
    try:
        return qs.get(pk=project_id)
    except Project.DoesNotExist:
        raise DomainRuleViolated(ERR_PROJECT_NOT_FOUND, 'Project not found')


def _get_task(tenant_id, task_id):
    try:
        return (
            Task.objects.for_tenant(tenant_id)
            .select_for_update()
            .select_related('project')
            .get(pk=task_id)
        )
    except Task.DoesNotExist:
        raise DomainRuleViolated(ERR_TASK_NOT_FOUND, 'Task not found')


def _is_manager(identity, tenant_id, project):
    return project.pm_id == identity.id or has_role(identity, tenant_id, [Role.TENANT_ADMIN])


def _ensure_manager(identity, tenant_id, project, message='Only the project PM can do this'):
    if not _is_manager(identity, tenant_id, project):
        raise AuthorizationDenied(message)


def _notify_assignee(ctx, identity, task):
    if not task.assignee_id or task.assignee_id == identity.id:
        return
    create_notification(
        ctx,
        tenant_id=task.tenant_id,
        user_id=task.assignee_id,
        type=NotificationType.TASK_ASSIGNED,
        title=f'You were assigned "{task.title}"',
        body=f'Project: {task.project.name}',
        resource_type='task',
        resource_id=task.id,
    )


# Projects

@with_auth
def create_project(identity, ctx, data):
    tenant_id = ctx.require_tenant()
    ensure_role(identity, tenant_id, [Role.PM, Role.TENANT_ADMIN])
    payload = validate_input(CreateProjectSerializer, data)

    name = _validate_name(payload['name'], 'Project name', PROJECT_NAME_MAX_LENGTH)
    ensure_date_range(payload.get('start_date'), payload.get('end_date'),
                      code='ERR-VAL-003', field='end_date')
    _ensure_tenant_user(tenant_id, payload['pm_id'], 'ERR-VAL-004', 'pm_id')

    project = Project.objects.create(
        tenant_id=tenant_id,
        name=name,
        description=payload.get('description') or '',
        status=ProjectStatus.PLANNING,
        start_date=payload.get('start_date'),
        end_date=payload.get('end_date'),
        pm_id=payload['pm_id'],
        created_by_id=identity.id,
    )
    ProjectMember.objects.create(tenant_id=tenant_id, project=project, user_id=project.pm_id)

    write_audit_log(ctx, identity.id, AuditEntry(
        tenant_id=tenant_id,
        action='project.create',
        resource_type='project',
        resource_id=project.id,
        after=project.snapshot(),
    ))
    return ProjectSerializer(project).data


@with_auth
def update_project(identity, ctx, data):
    """
    Edit a project. A status change is checked against the project
    transition table and audited as ``project.status_change``.
    """
    tenant_id = ctx.require_tenant()
    payload = validate_input(UpdateProjectSerializer, data)

    project = _get_project(tenant_id, payload['project_id'], for_update=True)
    _ensure_manager(identity, tenant_id, project)

    audit_action = 'project.update'
    new_status = payload.get('status')
    if new_status and new_status != project.status:
        PROJECT_TRANSITIONS.ensure(project.status, new_status, ERR_PROJECT_TRANSITION)
        audit_action = 'project.status_change'

    if 'name' in payload:
        payload['name'] = _validate_name(payload['name'], 'Project name', PROJECT_NAME_MAX_LENGTH)
    ensure_date_range(
        payload.get('start_date', project.start_date),
        payload.get('end_date', project.end_date),
        code='ERR-VAL-003',
        field='end_date',
    )
    if payload.get('pm_id') and payload['pm_id'] != project.pm_id:
        _ensure_tenant_user(tenant_id, payload['pm_id'], 'ERR-VAL-004', 'pm_id')

    before = project.snapshot()
    for name in ('name', 'description', 'status', 'start_date', 'end_date', 'pm_id'):
        if name in payload:
            setattr(project, name, payload[name])
    project.updated_by_id = identity.id
    project.save()

    if 'pm_id' in payload and not project.has_member(project.pm_id):
        ProjectMember.objects.create(tenant_id=tenant_id, project=project, user_id=project.pm_id)

    write_audit_log(ctx, identity.id, AuditEntry(
        tenant_id=tenant_id,
        action=audit_action,
        resource_type='project',
        resource_id=project.id,
        before=before,
        after=project.snapshot(),
    ))
    return ProjectSerializer(project).data


@with_auth
def add_member(identity, ctx, data):
    tenant_id = ctx.require_tenant()
    payload = validate_input(MemberSerializer, data)

    project = _get_project(tenant_id, payload['project_id'])
    _ensure_manager(identity, tenant_id, project)
    _ensure_tenant_user(tenant_id, payload['user_id'], 'ERR-VAL-005', 'user_id')

    if project.has_member(payload['user_id']):
        raise DomainRuleViolated(ERR_ALREADY_MEMBER, 'The user is already a member')

    ProjectMember.objects.create(tenant_id=tenant_id, project=project, user_id=payload['user_id'])

    write_audit_log(ctx, identity.id, AuditEntry(
        tenant_id=tenant_id,
        action='project.add_member',
        resource_type='project',
        resource_id=project.id,
        after={'user_id': str(payload['user_id'])},
    ))
    create_notification(
        ctx,
        tenant_id=tenant_id,
        user_id=payload['user_id'],
        type=NotificationType.PROJECT_MEMBER_ADDED,
        title=f'You were added to {project.name}',
        resource_type='project',
        resource_id=project.id,
    )
    return {'project_id': str(project.id), 'user_id': str(payload['user_id'])}


@with_auth
def remove_member(identity, ctx, data):
    tenant_id = ctx.require_tenant()
    payload = validate_input(MemberSerializer, data)

    project = _get_project(tenant_id, payload['project_id'])
    if payload['user_id'] == project.pm_id:
        raise DomainRuleViolated(
            ERR_PM_NOT_REMOVABLE, 'The PM cannot be removed. Assign another PM first',
        )
    _ensure_manager(identity, tenant_id, project)

    deleted, _ = project.members.filter(user_id=payload['user_id']).delete()

    if deleted:
        write_audit_log(ctx, identity.id, AuditEntry(
            tenant_id=tenant_id,
            action='project.remove_member',
            resource_type='project',
            resource_id=project.id,
            before={'user_id': str(payload['user_id'])},
        ))
    return {'removed': bool(deleted)}


@with_auth
def get_tenant_users(identity, ctx, data):
    """Users holding any role in the current tenant, one row per role."""
    tenant_id = ctx.require_tenant()
    rows = (
        UserRole.objects.for_tenant(tenant_id)
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
def list_projects(identity, ctx, data):
    tenant_id = ctx.require_tenant()
    payload = validate_input(ListProjectsSerializer, data)
    qs = Project.objects.for_tenant(tenant_id)
    if payload.get('status'):
        qs = qs.filter(status=payload['status'])
    return ProjectSerializer(qs.order_by('-created_at'), many=True).data


@with_auth
def get_project(identity, ctx, data):
    """A project with its members and tasks."""
    tenant_id = ctx.require_tenant()
    payload = validate_input(ProjectIdSerializer, data)
    project = _get_project(tenant_id, payload['project_id'])

    result = dict(ProjectSerializer(project).data)
    result['members'] = ProjectMemberSerializer(
        project.members.select_related('user'), many=True,
    ).data
    result['tasks'] = TaskSerializer(project.tasks.all(), many=True).data
    result['can_manage'] = _is_manager(identity, tenant_id, project)
    return result


# Tasks

@with_auth
def create_task(identity, ctx, data):
    tenant_id = ctx.require_tenant()
    payload = validate_input(CreateTaskSerializer, data)

    project = _get_project(tenant_id, payload['project_id'])
    _ensure_manager(identity, tenant_id, project)

    title = _validate_title(payload['title'])
    if payload.get('assignee_id'):
        _ensure_project_member(project, payload['assignee_id'])

    task = Task.objects.create(
        tenant_id=tenant_id,
        project=project,
        title=title,
        description=payload.get('description') or '',
        status=TaskStatus.TODO,
        assignee_id=payload.get('assignee_id'),
        due_date=payload.get('due_date'),
        created_by_id=identity.id,
    )

    write_audit_log(ctx, identity.id, AuditEntry(
        tenant_id=tenant_id,
        action='task.create',
        resource_type='task',
        resource_id=task.id,
        after=task.snapshot(),
    ))
    _notify_assignee(ctx, identity, task)
    return TaskSerializer(task).data


@with_auth
def update_task(identity, ctx, data):
    tenant_id = ctx.require_tenant()
    payload = validate_input(UpdateTaskSerializer, data)

    task = _get_task(tenant_id, payload['task_id'])
    if task.assignee_id != identity.id:
        _ensure_manager(identity, tenant_id, task.project)

    if 'title' in payload:
        payload['title'] = _validate_title(payload['title'])
    if payload.get('assignee_id'):
        _ensure_project_member(task.project, payload['assignee_id'])

    before = task.snapshot()
    previous_assignee = task.assignee_id
    for name in ('title', 'description', 'assignee_id', 'due_date'):
        if name in payload:
            setattr(task, name, payload[name])
    task.save()

    write_audit_log(ctx, identity.id, AuditEntry(
        tenant_id=tenant_id,
        action='task.update',
        resource_type='task',
        resource_id=task.id,
        before=before,
        after=task.snapshot(),
    ))
    if task.assignee_id != previous_assignee:
        _notify_assignee(ctx, identity, task)
    return TaskSerializer(task).data


@with_auth
def change_task_status(identity, ctx, data):
    tenant_id = ctx.require_tenant()
    payload = validate_input(ChangeTaskStatusSerializer, data)

    task = _get_task(tenant_id, payload['task_id'])
    if task.assignee_id != identity.id:
        _ensure_manager(identity, tenant_id, task.project)

    previous = task.status
    TASK_TRANSITIONS.ensure(previous, payload['status'], ERR_TASK_TRANSITION)

    task.status = payload['status']
    task.save(update_fields=['status', 'updated_at'])

    write_audit_log(ctx, identity.id, AuditEntry(
        tenant_id=tenant_id,
        action='task.status_change',
        resource_type='task',
        resource_id=task.id,
        before={'status': previous},
        after={'status': task.status},
    ))
    return TaskSerializer(task).data


@with_auth
def delete_task(identity, ctx, data):
    tenant_id = ctx.require_tenant()
    payload = validate_input(TaskIdSerializer, data)

    task = _get_task(tenant_id, payload['task_id'])
    _ensure_manager(identity, tenant_id, task.project, 'Only the project PM can delete tasks')

    if task.timesheets.exists():
        raise DomainRuleViolated(
            ERR_TASK_HAS_TIMESHEETS, 'Time has been recorded against this task. It cannot be deleted',
        )

    before = task.snapshot()
    task.delete(using=ctx.using)

    write_audit_log(ctx, identity.id, AuditEntry(
        tenant_id=tenant_id,
        action='task.delete',
        resource_type='task',
        resource_id=before['id'],
        before=before,
    ))
    return {'task_id': str(before['id'])}
