"""
Serializers for expense actions.

Category, amount, date, project and approver rules are checked in the
actions so each failure carries its own validation code.
"""
from rest_framework import serializers

from apps.expenses.models import Expense, ExpenseCategory
from apps.workflows.models import WorkflowStatus


class ExpenseSerializer(serializers.ModelSerializer):
    tenant_id = serializers.UUIDField(read_only=True)
    workflow_id = serializers.UUIDField(read_only=True)
    project_id = serializers.UUIDField(read_only=True)
    created_by_id = serializers.UUIDField(read_only=True)
    workflow_number = serializers.CharField(source='workflow.workflow_number', read_only=True)
    status = serializers.CharField(source='workflow.status', read_only=True)
    approver_id = serializers.UUIDField(source='workflow.approver_id', read_only=True)
    project_name = serializers.CharField(source='project.name', read_only=True)

    class Meta:
        model = Expense
        fields = [
            'id', 'tenant_id', 'workflow_id', 'workflow_number', 'status', 'approver_id',
            'project_id', 'project_name', 'category', 'amount', 'expense_date',
            'description', 'created_by_id', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class CreateExpenseSerializer(serializers.Serializer):
    category = serializers.CharField(required=False, allow_blank=True)
    amount = serializers.DecimalField(max_digits=14, decimal_places=2, required=False, allow_null=True)
    expense_date = serializers.DateField(required=False, allow_null=True)
    description = serializers.CharField(required=False, allow_blank=True)
    project_id = serializers.UUIDField(required=False, allow_null=True)
    approver_id = serializers.UUIDField(required=False, allow_null=True)
    status = serializers.ChoiceField(
        choices=[WorkflowStatus.DRAFT, WorkflowStatus.SUBMITTED],
        default=WorkflowStatus.DRAFT,
    )


class ExpenseIdSerializer(serializers.Serializer):
    expense_id = serializers.UUIDField()


class ListExpensesSerializer(serializers.Serializer):
    category = serializers.ChoiceField(choices=ExpenseCategory.choices, required=False)


class ExpenseSummarySerializer(serializers.Serializer):
    date_from = serializers.DateField(required=False)
    date_to = serializers.DateField(required=False)
    category = serializers.ChoiceField(choices=ExpenseCategory.choices, required=False)
    project_id = serializers.UUIDField(required=False)
    approved_only = serializers.BooleanField(default=False)
