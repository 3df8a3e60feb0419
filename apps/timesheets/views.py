"""
Timesheet CSV export.
"""
import csv
from io import StringIO

from drf_spectacular.utils import OpenApiParameter, extend_schema
from django.http import HttpResponse
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.core.actions import ActionContext
from apps.core.exceptions import (
    AuthenticationRequired,
    OpsHubError,
    error_body,
    http_status_for,
)
from apps.core.logging import get_logger
from apps.core.validators import ensure_date_range, validate_input
from apps.rbac.audit import AuditEntry, write_audit_log
from apps.rbac.identity import get_current_user
from apps.rbac.models import User
from apps.timesheets.reports import visible_timesheets
from apps.timesheets.serializers import TimesheetQuerySerializer

logger = get_logger(__name__)

CSV_BOM = '\ufeff'
CSV_HEADER = ['Project', 'Member', 'Date', 'Hours', 'Task', 'Note']


def render_csv(timesheets):
    """CSV text with a UTF-8 BOM so spreadsheet apps detect the encoding."""
    user_ids = {ts.user_id for ts in timesheets}
    names = {user.pk: user.get_full_name() for user in User.objects.filter(pk__in=user_ids)}

    output = StringIO()
    writer = csv.writer(output, lineterminator='\n')
    writer.writerow(CSV_HEADER)
    for ts in timesheets:
        writer.writerow([
            ts.project.name,
            names.get(ts.user_id, str(ts.user_id)),
            ts.work_date.isoformat(),
            f'{ts.hours:.2f}',
            ts.task.title if ts.task_id else '',
            ts.note,
        ])
    content = CSV_BOM + output.getvalue()
    output.close()
    return content


class TimesheetExportView(APIView):
    """
    Export timesheets as CSV.

    GET /v1/timesheets/export?date_from=&date_to=[&project_id=][&member_id=]

    Unlike action endpoints this answers 401 instead of redirecting, since
    it is fetched as a download.
    """

    @extend_schema(
        summary="Export timesheets",
        parameters=[
            OpenApiParameter('date_from', str, required=True),
            OpenApiParameter('date_to', str, required=True),
            OpenApiParameter('project_id', str),
            OpenApiParameter('member_id', str),
        ],
        responses={200: {'type': 'string', 'format': 'binary'}},
        tags=['Timesheets'],
    )
    def get(self, request):
        identity = get_current_user(request)
        if identity is None:
            return Response(
                error_body(AuthenticationRequired.default_code, AuthenticationRequired.default_message),
                status=status.HTTP_401_UNAUTHORIZED,
            )

        try:
            ctx = ActionContext.from_request(request, identity)
            tenant_id = ctx.require_tenant()
            params = validate_input(TimesheetQuerySerializer, request.query_params.dict())
            ensure_date_range(params['date_from'], params['date_to'])
        except OpsHubError as exc:
            return Response(error_body(exc.code, exc.message, exc.fields), status=http_status_for(exc.code))

        qs = visible_timesheets(identity, tenant_id).between(params['date_from'], params['date_to'])
        if params.get('project_id'):
            qs = qs.filter(project_id=params['project_id'])
        if params.get('member_id'):
            qs = qs.filter(user_id=params['member_id'])
        timesheets = list(qs.select_related('project', 'task').order_by('work_date', 'created_at'))

        content = render_csv(timesheets)

        write_audit_log(ctx, identity.id, AuditEntry(
            tenant_id=tenant_id,
            action='timesheet.export',
            resource_type='timesheet',
            metadata={
                'date_from': params['date_from'].isoformat(),
                'date_to': params['date_to'].isoformat(),
                'project_id': str(params['project_id']) if params.get('project_id') else None,
                'member_id': str(params['member_id']) if params.get('member_id') else None,
                'row_count': len(timesheets),
            },
        ))
        logger.info("Timesheets exported", {
            'request_id': ctx.request_id,
            'tenant_id': str(tenant_id),
            'row_count': len(timesheets),
        })

        filename = f"timesheets_{params['date_from']}_{params['date_to']}.csv"
        response = HttpResponse(content, content_type='text/csv; charset=utf-8')
        response['Content-Disposition'] = f'attachment; filename="{filename}"'
        return response
