"""
RBAC serializers.

Provides serialization for:
- Login and password changes
- Tenant user administration
- Audit logs
"""
from django.contrib.auth.password_validation import validate_password
from rest_framework import serializers

from apps.rbac.models import AuditLog, Role, UserStatus

DEFAULT_PAGE_SIZE = 25
MAX_PAGE_SIZE = 100


# ===== AUTHENTICATION SERIALIZERS =====

class LoginSerializer(serializers.Serializer):
    """Serializer for user login."""

    email = serializers.EmailField(required=True)
    password = serializers.CharField(
        required=True,
        write_only=True,
        trim_whitespace=False,
        style={'input_type': 'password'}
    )
    next = serializers.CharField(required=False, allow_blank=True)

    def validate_email(self, value):
        """Normalize email to lowercase."""
        return value.strip().lower()


class SetPasswordSerializer(serializers.Serializer):
    """Choose a new password after an invitation or recovery link."""

    new_password = serializers.CharField(
        required=True,
        write_only=True,
        trim_whitespace=False,
        style={'input_type': 'password'}
    )

    def validate_new_password(self, value):
        validate_password(value, user=self.context.get('user'))
        return value


class CurrentUserSerializer(serializers.Serializer):
    id = serializers.UUIDField()
    email = serializers.EmailField()
    display_name = serializers.CharField()
    tenant_id = serializers.UUIDField(allow_null=True)
    roles = serializers.ListField(child=serializers.CharField())
    tenants = serializers.ListField(child=serializers.UUIDField())


# ===== USER ADMINISTRATION SERIALIZERS =====

class PagingSerializer(serializers.Serializer):
    page = serializers.IntegerField(required=False, min_value=1, default=1)
    per_page = serializers.IntegerField(
        required=False, min_value=1, max_value=MAX_PAGE_SIZE, default=DEFAULT_PAGE_SIZE,
    )


class GetUsersSerializer(PagingSerializer):
    search = serializers.CharField(required=False, allow_blank=True)
    role = serializers.CharField(required=False, allow_blank=True)
    status = serializers.CharField(required=False, allow_blank=True)

    def validate_role(self, value):
        if value in ('', 'all'):
            return None
        if value not in Role.values:
            raise serializers.ValidationError(f'Unknown role: {value}')
        return value

    def validate_status(self, value):
        if value in ('', 'all'):
            return None
        if value not in UserStatus.values:
            raise serializers.ValidationError(f'Unknown status: {value}')
        return value


class TenantUserSerializer(serializers.Serializer):
    """A user with the roles they hold in the current tenant."""

    id = serializers.UUIDField()
    email = serializers.EmailField()
    name = serializers.CharField(source='display_name')
    roles = serializers.ListField(child=serializers.CharField())
    status = serializers.CharField()
    last_sign_in_at = serializers.DateTimeField(source='last_login_at', allow_null=True)
    created_at = serializers.DateTimeField()


class InviteUserSerializer(serializers.Serializer):
    email = serializers.EmailField()
    display_name = serializers.CharField(required=False, allow_blank=True, max_length=150)
    roles = serializers.ListField(child=serializers.ChoiceField(choices=Role.choices))

    def validate_email(self, value):
        return value.strip().lower()


class ChangeUserRolesSerializer(serializers.Serializer):
    user_id = serializers.UUIDField()
    roles = serializers.ListField(child=serializers.ChoiceField(choices=Role.choices))


class ChangeUserStatusSerializer(serializers.Serializer):
    user_id = serializers.UUIDField()
    action = serializers.ChoiceField(choices=['disable', 'enable'])


class UserIdSerializer(serializers.Serializer):
    user_id = serializers.UUIDField()


# ===== AUDIT LOG SERIALIZERS =====

class AuditLogSerializer(serializers.ModelSerializer):
    """Serializer for AuditLog model."""

    user_id = serializers.UUIDField(read_only=True)
    user_email = serializers.EmailField(source='user.email', read_only=True)

    class Meta:
        model = AuditLog
        fields = [
            'id', 'user_id', 'user_email', 'action',
            'resource_type', 'resource_id', 'before_data', 'after_data', 'metadata',
            'ip_address', 'user_agent', 'request_id',
            'created_at'
        ]
        read_only_fields = fields


class FetchAuditLogsSerializer(serializers.Serializer):
    page = serializers.IntegerField(required=False, min_value=1, default=1)
    page_size = serializers.IntegerField(
        required=False, min_value=1, max_value=MAX_PAGE_SIZE, default=50,
    )
    date_from = serializers.DateField(required=False)
    date_to = serializers.DateField(required=False)
    user_id = serializers.UUIDField(required=False)
    action = serializers.CharField(required=False, allow_blank=True)
    resource_type = serializers.CharField(required=False, allow_blank=True)
