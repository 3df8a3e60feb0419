from django.contrib import admin
from .models import Project, ProjectMember, Task


class ProjectMemberInline(admin.TabularInline):
    model = ProjectMember
    extra = 0
    fields = ['user', 'created_at']
    readonly_fields = ['user', 'created_at']
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Project)
class ProjectAdmin(admin.ModelAdmin):
    list_display = ['name', 'status', 'tenant', 'pm', 'start_date', 'end_date']
    list_filter = ['status']
    search_fields = ['name']
    inlines = [ProjectMemberInline]


@admin.register(Task)
class TaskAdmin(admin.ModelAdmin):
    list_display = ['title', 'project', 'status', 'assignee', 'due_date']
    list_filter = ['status']
    search_fields = ['title', 'project__name']
