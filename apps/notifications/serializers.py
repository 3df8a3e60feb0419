from rest_framework import serializers

from apps.notifications.models import Notification
from apps.notifications.services import get_notification_link


class NotificationSerializer(serializers.ModelSerializer):
    link = serializers.SerializerMethodField()

    class Meta:
        model = Notification
        fields = [
            'id', 'type', 'title', 'body', 'resource_type', 'resource_id',
            'is_read', 'link', 'created_at',
        ]
        read_only_fields = fields

    def get_link(self, obj):
        return get_notification_link(obj.resource_type, obj.resource_id)


class MarkAsReadSerializer(serializers.Serializer):
    notification_id = serializers.UUIDField()
