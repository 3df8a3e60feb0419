"""
Django admin configuration for RBAC app.
"""
from django.contrib import admin

from .models import AuditLog, User, UserRole


class UserRoleInline(admin.TabularInline):
    model = UserRole
    fk_name = 'user'
    extra = 0
    fields = ['tenant', 'role', 'granted_by', 'created_at']
    readonly_fields = ['granted_by', 'created_at']


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    """
    Admin for the email-based User model.

    Passwords are never edited here; users set them from an emailed link.
    """
    list_display = ['email', 'display_name', 'is_active', 'is_superuser', 'last_login_at', 'created_at']
    list_filter = ['is_active', 'is_superuser', 'created_at']
    search_fields = ['email', 'display_name']
    ordering = ['-created_at']

    fieldsets = (
        (None, {
            'fields': ('email', 'display_name')
        }),
        ('Permissions', {
            'fields': ('is_active', 'is_superuser')
        }),
        ('Activity', {
            'fields': ('invited_at', 'email_confirmed_at', 'last_login_at', 'created_at', 'updated_at')
        }),
    )
    readonly_fields = ['invited_at', 'email_confirmed_at', 'last_login_at', 'created_at', 'updated_at']
    inlines = [UserRoleInline]


@admin.register(UserRole)
class UserRoleAdmin(admin.ModelAdmin):
    list_display = ['user', 'tenant', 'role', 'granted_by', 'created_at']
    list_filter = ['role', 'tenant']
    search_fields = ['user__email', 'tenant__name']
    readonly_fields = ['created_at']


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    """Read-only view of the audit trail."""
    list_display = ['created_at', 'tenant', 'user', 'action', 'resource_type', 'resource_id']
    list_filter = ['action', 'resource_type', 'tenant']
    search_fields = ['user__email', 'resource_id', 'request_id']
    date_hierarchy = 'created_at'

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
