from django.contrib import admin
from .models import Timesheet


@admin.register(Timesheet)
class TimesheetAdmin(admin.ModelAdmin):
    list_display = ['user', 'project', 'task', 'work_date', 'hours', 'tenant']
    list_filter = ['work_date']
    search_fields = ['user__email', 'project__name', 'note']
    date_hierarchy = 'work_date'
