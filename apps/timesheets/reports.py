"""
Timesheet reporting: who may see which entries, and hour totals per
project and per member over a date range.
"""
from decimal import Decimal

from django.db.models import Count, Sum

from apps.core.actions import with_auth
from apps.core.validators import ensure_date_range, validate_input
from apps.projects.models import Project
from apps.rbac.identity import has_role
from apps.rbac.models import Role, User
from apps.timesheets.models import Timesheet
from apps.timesheets.serializers import TimesheetQuerySerializer

HOURS = Decimal('0.01')


def visible_timesheets(identity, tenant_id):
    """
    Entries the identity may report on or export.

    Tenant admins and accounting see the whole tenant. A PM sees the
    projects they manage (or only their own time when they manage none).
    Everyone else sees their own entries.
    """
    qs = Timesheet.objects.for_tenant(tenant_id)
    if has_role(identity, tenant_id, [Role.TENANT_ADMIN, Role.ACCOUNTING]):
        return qs
    if has_role(identity, tenant_id, [Role.PM]):
        managed = list(
            Project.objects.for_tenant(tenant_id)
            .filter(pm_id=identity.id)
            .values_list('id', flat=True)
        )
        if managed:
            return qs.filter(project_id__in=managed)
    return qs.filter(user_id=identity.id)


def _hours(value):
    return f'{(value or Decimal("0")).quantize(HOURS):.2f}'


@with_auth
def get_timesheet_report(identity, ctx, data):
    tenant_id = ctx.require_tenant()
    params = validate_input(TimesheetQuerySerializer, data)
    ensure_date_range(params['date_from'], params['date_to'])

    qs = visible_timesheets(identity, tenant_id).between(params['date_from'], params['date_to'])
    if params.get('project_id'):
        qs = qs.filter(project_id=params['project_id'])
    if params.get('member_id'):
        qs = qs.filter(user_id=params['member_id'])

    by_project = (
        qs.values('project_id', 'project__name')
        .annotate(total=Sum('hours'), members=Count('user_id', distinct=True))
        .order_by('-total', 'project__name')
    )
    by_member = list(
        qs.values('user_id')
        .annotate(total=Sum('hours'), projects=Count('project_id', distinct=True))
        .order_by('-total', 'user_id')
    )
    names = {
        user.pk: user.get_full_name()
        for user in User.objects.filter(pk__in=[row['user_id'] for row in by_member])
    }

    return {
        'projects': [
            {
                'project_id': str(row['project_id']),
                'project_name': row['project__name'],
                'total_hours': _hours(row['total']),
                'member_count': row['members'],
            }
            for row in by_project
        ],
        'members': [
            {
                'user_id': str(row['user_id']),
                'display_name': names.get(row['user_id'], str(row['user_id'])),
                'total_hours': _hours(row['total']),
                'project_count': row['projects'],
            }
            for row in by_member
        ],
        'grand_total': _hours(qs.total_hours()),
    }


@with_auth
def get_report_filters(identity, ctx, data):
    """Projects and members that appear in the caller's visible entries."""
    tenant_id = ctx.require_tenant()
    qs = visible_timesheets(identity, tenant_id)

    project_ids = set(qs.values_list('project_id', flat=True))
    user_ids = set(qs.values_list('user_id', flat=True))
    projects = Project.objects.for_tenant(tenant_id).filter(pk__in=project_ids).order_by('name')
    users = User.objects.filter(pk__in=user_ids).order_by('email')
    return {
        'projects': [{'id': str(p.id), 'name': p.name} for p in projects],
        'members': [{'id': str(u.id), 'display_name': u.get_full_name()} for u in users],
    }
