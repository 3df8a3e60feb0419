"""
Expense claims.

Every claim is backed by an expense workflow: the approval status, number
and approver live on the workflow, the accounting detail on the expense.
"""
from decimal import Decimal

from django.conf import settings
from django.db import models

from apps.core.models import BaseModel

MAX_AMOUNT = Decimal('10000000')


class ExpenseCategory(models.TextChoices):
    TRANSPORTATION = 'transportation', 'Transportation'
    LODGING = 'lodging', 'Lodging'
    MEETINGS = 'meetings', 'Meetings'
    SUPPLIES = 'supplies', 'Supplies'
    COMMUNICATION = 'communication', 'Communication'
    OTHER = 'other', 'Other'


class Expense(BaseModel):
    tenant = models.ForeignKey(
        'tenants.Tenant',
        on_delete=models.CASCADE,
        related_name='expenses',
    )
    workflow = models.OneToOneField(
        'workflows.Workflow',
        on_delete=models.PROTECT,
        related_name='expense',
    )
    project = models.ForeignKey(
        'projects.Project',
        on_delete=models.PROTECT,
        related_name='expenses',
    )
    category = models.CharField(max_length=20, choices=ExpenseCategory.choices, db_index=True)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    expense_date = models.DateField(db_index=True)
    description = models.TextField(blank=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='expenses',
    )

    class Meta:
        db_table = 'expenses'
        ordering = ['-expense_date', '-created_at']
        indexes = [
            models.Index(fields=['tenant', 'expense_date']),
            models.Index(fields=['tenant', 'created_by']),
        ]

    def __str__(self):
        return f"{self.category} {self.amount}"
