"""
Serializers for workflow actions.

Input serializers check types and shapes only; business rules (title
length, approver eligibility, status) are enforced in the actions so each
carries its own error code.
"""
from rest_framework import serializers

from apps.workflows.models import Workflow, WorkflowStatus, WorkflowType


class WorkflowSerializer(serializers.ModelSerializer):
    approver_id = serializers.UUIDField(read_only=True)
    created_by_id = serializers.UUIDField(read_only=True)
    tenant_id = serializers.UUIDField(read_only=True)

    class Meta:
        model = Workflow
        fields = [
            'id', 'tenant_id', 'workflow_number', 'type', 'title', 'description',
            'amount', 'date_from', 'date_to', 'approver_id', 'status',
            'approved_at', 'rejection_reason', 'created_by_id',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields


class WorkflowFieldsSerializer(serializers.Serializer):
    title = serializers.CharField(required=False, allow_blank=True, trim_whitespace=True)
    description = serializers.CharField(required=False, allow_blank=True)
    amount = serializers.DecimalField(
        max_digits=12, decimal_places=2, required=False, allow_null=True, min_value=0,
    )
    date_from = serializers.DateField(required=False, allow_null=True)
    date_to = serializers.DateField(required=False, allow_null=True)
    approver_id = serializers.UUIDField(required=False, allow_null=True)


class CreateWorkflowSerializer(WorkflowFieldsSerializer):
    type = serializers.ChoiceField(choices=WorkflowType.choices)
    status = serializers.ChoiceField(
        choices=[WorkflowStatus.DRAFT, WorkflowStatus.SUBMITTED],
        default=WorkflowStatus.DRAFT,
    )


class UpdateWorkflowSerializer(WorkflowFieldsSerializer):
    workflow_id = serializers.UUIDField()


class TransitionWorkflowSerializer(serializers.Serializer):
    workflow_id = serializers.UUIDField()
    action = serializers.ChoiceField(choices=['submit', 'withdraw'])


class WorkflowIdSerializer(serializers.Serializer):
    workflow_id = serializers.UUIDField()


class RejectWorkflowSerializer(WorkflowIdSerializer):
    reason = serializers.CharField(required=False, allow_blank=True, trim_whitespace=True)


class ListWorkflowsSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=WorkflowStatus.choices, required=False)
