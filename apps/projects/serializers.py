"""
Serializers for project and task actions.
"""
from rest_framework import serializers

from apps.projects.models import Project, ProjectMember, ProjectStatus, Task, TaskStatus


class ProjectSerializer(serializers.ModelSerializer):
    tenant_id = serializers.UUIDField(read_only=True)
    pm_id = serializers.UUIDField(read_only=True)
    created_by_id = serializers.UUIDField(read_only=True)

    class Meta:
        model = Project
        fields = [
            'id', 'tenant_id', 'name', 'description', 'status',
            'start_date', 'end_date', 'pm_id', 'created_by_id',
            'created_at', 'updated_at',
        ]
        read_only_fields = fields


class ProjectMemberSerializer(serializers.ModelSerializer):
    user_id = serializers.UUIDField(read_only=True)
    display_name = serializers.CharField(source='user.get_full_name', read_only=True)
    email = serializers.EmailField(source='user.email', read_only=True)

    class Meta:
        model = ProjectMember
        fields = ['user_id', 'display_name', 'email', 'created_at']
        read_only_fields = fields


class TaskSerializer(serializers.ModelSerializer):
    project_id = serializers.UUIDField(read_only=True)
    assignee_id = serializers.UUIDField(read_only=True)

    class Meta:
        model = Task
        fields = [
            'id', 'project_id', 'title', 'description', 'status',
            'assignee_id', 'due_date', 'created_at', 'updated_at',
        ]
        read_only_fields = fields


class CreateProjectSerializer(serializers.Serializer):
    name = serializers.CharField(allow_blank=True, trim_whitespace=False)
    description = serializers.CharField(required=False, allow_blank=True)
    start_date = serializers.DateField(required=False, allow_null=True)
    end_date = serializers.DateField(required=False, allow_null=True)
    pm_id = serializers.UUIDField()


class UpdateProjectSerializer(serializers.Serializer):
    project_id = serializers.UUIDField()
    name = serializers.CharField(required=False, allow_blank=True, trim_whitespace=False)
    description = serializers.CharField(required=False, allow_blank=True)
    status = serializers.ChoiceField(choices=ProjectStatus.choices, required=False)
    start_date = serializers.DateField(required=False, allow_null=True)
    end_date = serializers.DateField(required=False, allow_null=True)
    pm_id = serializers.UUIDField(required=False)


class ProjectIdSerializer(serializers.Serializer):
    project_id = serializers.UUIDField()


class MemberSerializer(ProjectIdSerializer):
    user_id = serializers.UUIDField()


class ListProjectsSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=ProjectStatus.choices, required=False)


class CreateTaskSerializer(serializers.Serializer):
    project_id = serializers.UUIDField()
    title = serializers.CharField(allow_blank=True, trim_whitespace=False)
    description = serializers.CharField(required=False, allow_blank=True)
    assignee_id = serializers.UUIDField(required=False, allow_null=True)
    due_date = serializers.DateField(required=False, allow_null=True)


class UpdateTaskSerializer(serializers.Serializer):
    task_id = serializers.UUIDField()
    title = serializers.CharField(required=False, allow_blank=True, trim_whitespace=False)
    description = serializers.CharField(required=False, allow_blank=True)
    assignee_id = serializers.UUIDField(required=False, allow_null=True)
    due_date = serializers.DateField(required=False, allow_null=True)


class ChangeTaskStatusSerializer(serializers.Serializer):
    task_id = serializers.UUIDField()
    # Any string; the transition table decides
    status = serializers.CharField()


class TaskIdSerializer(serializers.Serializer):
    task_id = serializers.UUIDField()
