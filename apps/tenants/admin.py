"""
Django admin configuration for tenants app.
"""
from django.contrib import admin
from .models import Tenant


@admin.register(Tenant)
class TenantAdmin(admin.ModelAdmin):
    list_display = ['name', 'slug', 'workflow_seq', 'invoice_seq', 'created_at']
    search_fields = ['name', 'slug']
    readonly_fields = ['workflow_seq', 'invoice_seq', 'created_at', 'updated_at']
