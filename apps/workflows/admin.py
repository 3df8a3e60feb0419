from django.contrib import admin
from .models import Workflow


@admin.register(Workflow)
class WorkflowAdmin(admin.ModelAdmin):
    list_display = ['workflow_number', 'title', 'type', 'status', 'tenant', 'created_by', 'created_at']
    list_filter = ['type', 'status']
    search_fields = ['workflow_number', 'title']
    readonly_fields = ['workflow_number', 'approved_at', 'created_at', 'updated_at']
