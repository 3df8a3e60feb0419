"""
Timesheet URLs.
"""
from django.urls import path

from apps.core.views import ActionView
from apps.timesheets import actions, reports
from apps.timesheets.views import TimesheetExportView


def _post(action):
    return ActionView.as_view(server_action=action, http_method_names=['post'])


def _get(action):
    return ActionView.as_view(server_action=action, http_method_names=['get'])


urlpatterns = [
    path('', _get(actions.list_timesheets), name='timesheet-list'),
    path('create', _post(actions.create_timesheet), name='timesheet-create'),
    path('bulk', _post(actions.bulk_update_timesheets), name='timesheet-bulk'),
    path('export', TimesheetExportView.as_view(), name='timesheet-export'),
    path('report', _get(reports.get_timesheet_report), name='timesheet-report'),
    path('report/filters', _get(reports.get_report_filters), name='timesheet-report-filters'),
    path('<uuid:timesheet_id>/update', _post(actions.update_timesheet), name='timesheet-update'),
    path('<uuid:timesheet_id>/delete', _post(actions.delete_timesheet), name='timesheet-delete'),
]
