"""
Approval workflows: expense, leave and purchase requests.

A request is created by one user, routed to one approver and moves through
the statuses in ``WORKFLOW_TRANSITIONS``.
"""
from django.conf import settings
from django.db import models

from apps.core.models import BaseModel
from apps.core.transitions import TransitionTable


class WorkflowType(models.TextChoices):
    EXPENSE = 'expense', 'Expense'
    LEAVE = 'leave', 'Leave'
    PURCHASE = 'purchase', 'Purchase'
    OTHER = 'other', 'Other'


class WorkflowStatus(models.TextChoices):
    DRAFT = 'draft', 'Draft'
    SUBMITTED = 'submitted', 'Submitted'
    APPROVED = 'approved', 'Approved'
    REJECTED = 'rejected', 'Rejected'
    WITHDRAWN = 'withdrawn', 'Withdrawn'


WORKFLOW_TRANSITIONS = TransitionTable('workflow', {
    WorkflowStatus.DRAFT: [WorkflowStatus.SUBMITTED],
    WorkflowStatus.SUBMITTED: [
        WorkflowStatus.APPROVED,
        WorkflowStatus.REJECTED,
        WorkflowStatus.WITHDRAWN,
    ],
    WorkflowStatus.APPROVED: [],
    WorkflowStatus.REJECTED: [WorkflowStatus.SUBMITTED, WorkflowStatus.WITHDRAWN],
    WorkflowStatus.WITHDRAWN: [],
})

# Only these statuses may still be edited by the requester
EDITABLE_STATUSES = (WorkflowStatus.DRAFT, WorkflowStatus.REJECTED)


class Workflow(BaseModel):
    tenant = models.ForeignKey(
        'tenants.Tenant',
        on_delete=models.CASCADE,
        related_name='workflows',
    )
    workflow_number = models.CharField(max_length=20)
    type = models.CharField(max_length=20, choices=WorkflowType.choices)
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    date_from = models.DateField(null=True, blank=True)
    date_to = models.DateField(null=True, blank=True)

    approver = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='workflows_to_approve',
    )
    status = models.CharField(
        max_length=20,
        choices=WorkflowStatus.choices,
        default=WorkflowStatus.DRAFT,
        db_index=True,
    )
    approved_at = models.DateTimeField(null=True, blank=True)
    rejection_reason = models.TextField(blank=True)

    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='workflows_created',
    )

    class Meta:
        db_table = 'workflows'
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['tenant', 'workflow_number'],
                name='unique_workflow_number_per_tenant',
            ),
        ]
        indexes = [
            models.Index(fields=['tenant', 'status', 'approver']),
            models.Index(fields=['tenant', 'created_by']),
        ]

    def __str__(self):
        return f"{self.workflow_number} {self.title}"

    @property
    def is_editable(self):
        return self.status in EDITABLE_STATUSES
