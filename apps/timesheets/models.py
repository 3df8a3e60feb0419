"""
Time recorded by a user against a project (and optionally one of its tasks).
"""
from decimal import Decimal

from django.conf import settings
from django.db import models
from django.db.models import Q, Sum

from apps.core.models import ActiveManager, BaseModel, TenantScopedQuerySet

MIN_HOURS = Decimal('0.25')
MAX_HOURS = Decimal('24')
HOURS_STEP = Decimal('0.25')
MAX_DAILY_HOURS = Decimal('24')


class TimesheetQuerySet(TenantScopedQuerySet):

    def for_user(self, user_id):
        return self.filter(user_id=user_id)

    def between(self, date_from, date_to):
        return self.filter(work_date__gte=date_from, work_date__lte=date_to)

    def total_hours(self):
        return self.aggregate(total=Sum('hours'))['total'] or Decimal('0')


class Timesheet(BaseModel):
    tenant = models.ForeignKey(
        'tenants.Tenant',
        on_delete=models.CASCADE,
        related_name='timesheets',
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='timesheets',
    )
    project = models.ForeignKey(
        'projects.Project',
        on_delete=models.PROTECT,
        related_name='timesheets',
    )
    task = models.ForeignKey(
        'projects.Task',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='timesheets',
    )
    work_date = models.DateField(db_index=True)
    hours = models.DecimalField(max_digits=4, decimal_places=2)
    note = models.TextField(blank=True)

    objects = ActiveManager.from_queryset(TimesheetQuerySet)()

    class Meta:
        db_table = 'timesheets'
        ordering = ['work_date', 'created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['user', 'project', 'task', 'work_date'],
                condition=Q(deleted_at__isnull=True),
                name='unique_timesheet_entry',
            ),
            models.UniqueConstraint(
                fields=['user', 'project', 'work_date'],
                condition=Q(deleted_at__isnull=True, task__isnull=True),
                name='unique_timesheet_entry_without_task',
            ),
        ]
        indexes = [
            models.Index(fields=['tenant', 'work_date']),
            models.Index(fields=['user', 'work_date']),
        ]

    def __str__(self):
        return f"{self.user_id} {self.work_date} {self.hours}h"
