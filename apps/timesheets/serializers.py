"""
Serializers for timesheet actions and the CSV export.
"""
from rest_framework import serializers

from apps.timesheets.models import Timesheet


class TimesheetSerializer(serializers.ModelSerializer):
    project_id = serializers.UUIDField(read_only=True)
    task_id = serializers.UUIDField(read_only=True, allow_null=True)
    user_id = serializers.UUIDField(read_only=True)

    class Meta:
        model = Timesheet
        fields = [
            'id', 'user_id', 'project_id', 'task_id', 'work_date', 'hours', 'note',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields


def hours_field(**kwargs):
    # Unbounded precision so the quarter-hour rule reports its own error
    return serializers.DecimalField(max_digits=None, decimal_places=None, **kwargs)


class CreateTimesheetSerializer(serializers.Serializer):
    project_id = serializers.UUIDField()
    task_id = serializers.UUIDField(required=False, allow_null=True)
    work_date = serializers.DateField()
    hours = hours_field()
    note = serializers.CharField(required=False, allow_blank=True)


class UpdateTimesheetSerializer(serializers.Serializer):
    timesheet_id = serializers.UUIDField()
    hours = hours_field()
    note = serializers.CharField(required=False, allow_blank=True)


class TimesheetIdSerializer(serializers.Serializer):
    timesheet_id = serializers.UUIDField()


class BulkEntrySerializer(serializers.Serializer):
    id = serializers.UUIDField(required=False, allow_null=True)
    project_id = serializers.UUIDField()
    task_id = serializers.UUIDField(required=False, allow_null=True)
    work_date = serializers.DateField()
    hours = hours_field()
    note = serializers.CharField(required=False, allow_blank=True)


class BulkTimesheetSerializer(serializers.Serializer):
    entries = BulkEntrySerializer(many=True)
    deleted_ids = serializers.ListField(child=serializers.UUIDField(), required=False)


class ListTimesheetsSerializer(serializers.Serializer):
    date_from = serializers.DateField()
    date_to = serializers.DateField()


class TimesheetQuerySerializer(serializers.Serializer):
    """Date range and optional filters shared by the CSV export and the report."""
    date_from = serializers.DateField(error_messages={'required': 'date_from and date_to are required'})
    date_to = serializers.DateField(error_messages={'required': 'date_from and date_to are required'})
    project_id = serializers.UUIDField(required=False)
    member_id = serializers.UUIDField(required=False)
