"""
Timesheet actions. Every entry belongs to the signed-in user.
"""
from collections import defaultdict

from apps.core.actions import with_auth
from apps.core.exceptions import DomainRuleViolated, ValidationFailed
from apps.core.validators import ensure_date_range, validate_input
from apps.projects.models import Project, Task
from apps.rbac.audit import AuditEntry, write_audit_log
from apps.timesheets.models import (
    HOURS_STEP,
    MAX_DAILY_HOURS,
    MAX_HOURS,
    MIN_HOURS,
    Timesheet,
)
from apps.timesheets.serializers import (
    BulkTimesheetSerializer,
    CreateTimesheetSerializer,
    ListTimesheetsSerializer,
    TimesheetIdSerializer,
    TimesheetSerializer,
    UpdateTimesheetSerializer,
)

ERR_NOT_FOUND = 'ERR-PJ-008'


def validate_hours(hours):
    if hours < MIN_HOURS or hours > MAX_HOURS:
        message = f'Hours must be between {MIN_HOURS} and {MAX_HOURS}'
        raise ValidationFailed(message, code='ERR-VAL-001', fields={'hours': message})
    if hours % HOURS_STEP != 0:
        message = 'Hours must be entered in 15 minute (0.25h) steps'
        raise ValidationFailed(message, code='ERR-VAL-002', fields={'hours': message})


def _ensure_daily_total(total, work_date):
    if total > MAX_DAILY_HOURS:
        raise ValidationFailed(
            f'Total hours for {work_date} exceed {MAX_DAILY_HOURS}',
            code='ERR-VAL-005',
            fields={'hours': f'Total hours for {work_date} exceed {MAX_DAILY_HOURS}'},
        )


def _ensure_project_member(tenant_id, project_id, user_id):
    exists = Project.objects.for_tenant(tenant_id).filter(
        pk=project_id, members__user_id=user_id,
    ).exists()
    if not exists:
        message = 'You are not a member of this project'
        raise ValidationFailed(message, code='ERR-VAL-003', fields={'project_id': message})


def _ensure_task_in_project(tenant_id, task_id, project_id):
    if not Task.objects.for_tenant(tenant_id).filter(pk=task_id, project_id=project_id).exists():
        message = 'The task does not belong to this project'
        raise ValidationFailed(message, code='ERR-VAL-004', fields={'task_id': message})


def _is_duplicate(user_id, project_id, task_id, work_date):
    return Timesheet.objects.filter(
        user_id=user_id,
        project_id=project_id,
        task_id=task_id,
        work_date=work_date,
    ).exists()


def _get_own_timesheet(identity, tenant_id, timesheet_id):
    try:
        return (
            Timesheet.objects.for_tenant(tenant_id)
            .for_user(identity.id)
            .select_for_update()
            .get(pk=timesheet_id)
        )
    except Timesheet.DoesNotExist:
        raise DomainRuleViolated(ERR_NOT_FOUND, 'Timesheet entry not found')


@with_auth
def create_timesheet(identity, ctx, data):
    tenant_id = ctx.require_tenant()
    payload = validate_input(CreateTimesheetSerializer, data)
    hours = payload['hours']
    task_id = payload.get('task_id')

    validate_hours(hours)
    _ensure_project_member(tenant_id, payload['project_id'], identity.id)
    if task_id:
        _ensure_task_in_project(tenant_id, task_id, payload['project_id'])

    day_total = (
        Timesheet.objects.for_user(identity.id)
        .filter(work_date=payload['work_date'])
        .total_hours()
    )
    _ensure_daily_total(day_total + hours, payload['work_date'])

    if _is_duplicate(identity.id, payload['project_id'], task_id, payload['work_date']):
        raise ValidationFailed(
            'An entry for this project, task and date already exists', code='ERR-VAL-006',
        )

    timesheet = Timesheet.objects.create(
        tenant_id=tenant_id,
        user_id=identity.id,
        project_id=payload['project_id'],
        task_id=task_id,
        work_date=payload['work_date'],
        hours=hours,
        note=payload.get('note') or '',
    )

    write_audit_log(ctx, identity.id, AuditEntry(
        tenant_id=tenant_id,
        action='timesheet.create',
        resource_type='timesheet',
        resource_id=timesheet.id,
        after=timesheet.snapshot(),
    ))
    return TimesheetSerializer(timesheet).data


@with_auth
def update_timesheet(identity, ctx, data):
    tenant_id = ctx.require_tenant()
    payload = validate_input(UpdateTimesheetSerializer, data)
    hours = payload['hours']

    validate_hours(hours)
    timesheet = _get_own_timesheet(identity, tenant_id, payload['timesheet_id'])

    others = (
        Timesheet.objects.for_user(identity.id)
        .filter(work_date=timesheet.work_date)
        .exclude(pk=timesheet.pk)
        .total_hours()
    )
    _ensure_daily_total(others + hours, timesheet.work_date)

    before = timesheet.snapshot()
    timesheet.hours = hours
    if 'note' in payload:
        timesheet.note = payload['note']
    timesheet.save()

    write_audit_log(ctx, identity.id, AuditEntry(
        tenant_id=tenant_id,
        action='timesheet.update',
        resource_type='timesheet',
        resource_id=timesheet.id,
        before=before,
        after=timesheet.snapshot(),
    ))
    return TimesheetSerializer(timesheet).data


@with_auth
def delete_timesheet(identity, ctx, data):
    tenant_id = ctx.require_tenant()
    payload = validate_input(TimesheetIdSerializer, data)

    timesheet = _get_own_timesheet(identity, tenant_id, payload['timesheet_id'])
    before = timesheet.snapshot()
    timesheet.delete(using=ctx.using)

    write_audit_log(ctx, identity.id, AuditEntry(
        tenant_id=tenant_id,
        action='timesheet.delete',
        resource_type='timesheet',
        resource_id=timesheet.id,
        before=before,
    ))
    return {'timesheet_id': str(timesheet.id)}


@with_auth
def bulk_update_timesheets(identity, ctx, data):
    """
    Save a weekly grid in one transaction.

    Entries with zero hours are ignored. Entries carrying an ``id`` update
    the caller's existing row; the rest are inserted, skipping any that
    duplicate an existing entry. ``deleted_ids`` are removed first. Every
    row touched gets its own audit entry tagged ``bulk``.
    """
    tenant_id = ctx.require_tenant()
    payload = validate_input(BulkTimesheetSerializer, data)
    entries = [entry for entry in payload['entries'] if entry['hours'] > 0]

    daily_totals = defaultdict(lambda: 0)
    for entry in entries:
        validate_hours(entry['hours'])
        daily_totals[entry['work_date']] += entry['hours']
    for work_date, total in sorted(daily_totals.items()):
        _ensure_daily_total(total, work_date)

    own = Timesheet.objects.for_tenant(tenant_id).for_user(identity.id)

    def audit(action, timesheet, before=None, after=None):
        write_audit_log(ctx, identity.id, AuditEntry(
            tenant_id=tenant_id,
            action=action,
            resource_type='timesheet',
            resource_id=timesheet.id,
            before=before,
            after=after,
            metadata={'bulk': True},
        ))

    deleted = 0
    if payload.get('deleted_ids'):
        for timesheet in own.filter(pk__in=payload['deleted_ids']).select_for_update():
            before = timesheet.snapshot()
            timesheet.delete(using=ctx.using)
            audit('timesheet.delete', timesheet, before=before)
            deleted += 1

    created = updated = skipped = 0
    for entry in entries:
        if entry.get('id'):
            timesheet = own.select_for_update().filter(pk=entry['id']).first()
            if timesheet is None:
                continue
            before = timesheet.snapshot()
            timesheet.hours = entry['hours']
            timesheet.note = entry.get('note') or ''
            timesheet.save()
            audit('timesheet.update', timesheet, before=before, after=timesheet.snapshot())
            updated += 1
            continue

        task_id = entry.get('task_id')
        _ensure_project_member(tenant_id, entry['project_id'], identity.id)
        if task_id:
            _ensure_task_in_project(tenant_id, task_id, entry['project_id'])
        if _is_duplicate(identity.id, entry['project_id'], task_id, entry['work_date']):
            skipped += 1
            continue

        timesheet = Timesheet.objects.create(
            tenant_id=tenant_id,
            user_id=identity.id,
            project_id=entry['project_id'],
            task_id=task_id,
            work_date=entry['work_date'],
            hours=entry['hours'],
            note=entry.get('note') or '',
        )
        audit('timesheet.create', timesheet, after=timesheet.snapshot())
        created += 1

    return {'created': created, 'updated': updated, 'deleted': deleted, 'skipped': skipped}


@with_auth
def list_timesheets(identity, ctx, data):
    """The caller's entries in a date range, with the projects they can book to."""
    tenant_id = ctx.require_tenant()
    payload = validate_input(ListTimesheetsSerializer, data)
    ensure_date_range(payload['date_from'], payload['date_to'])

    timesheets = (
        Timesheet.objects.for_tenant(tenant_id)
        .for_user(identity.id)
        .between(payload['date_from'], payload['date_to'])
    )
    projects = (
        Project.objects.for_tenant(tenant_id)
        .filter(members__user_id=identity.id)
        .order_by('name')
    )
    return {
        'timesheets': TimesheetSerializer(timesheets, many=True).data,
        'projects': [{'id': str(p.id), 'name': p.name} for p in projects],
    }
