"""
Serializers for tenant administration actions.
"""
from rest_framework import serializers

# Preferences stored in Tenant.settings next to contact_email and address
TENANT_SETTING_KEYS = (
    'default_approval_route',
    'notification_email',
    'notification_in_app',
    'timezone',
    'fiscal_year_start',
)


class UpdateTenantSerializer(serializers.Serializer):
    name = serializers.CharField(required=False, allow_blank=True, trim_whitespace=True)
    contact_email = serializers.CharField(required=False, allow_blank=True, trim_whitespace=True)
    address = serializers.CharField(required=False, allow_blank=True)


class TenantSettingsSerializer(serializers.Serializer):
    default_approval_route = serializers.CharField(required=False, allow_blank=True, max_length=100)
    notification_email = serializers.BooleanField(required=False)
    notification_in_app = serializers.BooleanField(required=False)
    timezone = serializers.CharField(required=False, max_length=64)
    fiscal_year_start = serializers.IntegerField(required=False)


class UpdateTenantSettingsSerializer(serializers.Serializer):
    settings = TenantSettingsSerializer()


class DeleteTenantSerializer(serializers.Serializer):
    confirmation = serializers.CharField(required=False, allow_blank=True, trim_whitespace=False)
