"""
In-app notifications addressed to one user in one tenant.
"""
from django.conf import settings
from django.db import models

from apps.core.models import BaseModel


class NotificationType(models.TextChoices):
    WORKFLOW_SUBMITTED = 'workflow_submitted', 'Workflow submitted'
    WORKFLOW_APPROVED = 'workflow_approved', 'Workflow approved'
    WORKFLOW_REJECTED = 'workflow_rejected', 'Workflow rejected'
    TASK_ASSIGNED = 'task_assigned', 'Task assigned'
    PROJECT_MEMBER_ADDED = 'project_member_added', 'Added to project'


class NotificationQuerySet(models.QuerySet):

    def for_recipient(self, user_id, tenant_id=None):
        qs = self.filter(user_id=user_id)
        if tenant_id is not None:
            qs = qs.filter(tenant_id=tenant_id)
        return qs

    def unread(self):
        return self.filter(is_read=False)


class Notification(BaseModel):
    tenant = models.ForeignKey(
        'tenants.Tenant',
        on_delete=models.CASCADE,
        related_name='notifications',
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='notifications',
    )
    type = models.CharField(max_length=50, choices=NotificationType.choices)
    title = models.CharField(max_length=200)
    body = models.TextField(blank=True)
    resource_type = models.CharField(max_length=50, blank=True)
    resource_id = models.CharField(max_length=64, blank=True)
    is_read = models.BooleanField(default=False, db_index=True)

    objects = NotificationQuerySet.as_manager()

    class Meta:
        db_table = 'notifications'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user', 'is_read', 'created_at']),
        ]

    def __str__(self):
        return f"{self.user_id}: {self.title}"
