"""
Notification actions for the signed-in user.
"""
from apps.core.actions import with_auth
from apps.core.validators import validate_input
from apps.notifications.models import Notification
from apps.notifications.serializers import MarkAsReadSerializer, NotificationSerializer

LATEST_LIMIT = 20


def _own_notifications(identity, ctx):
    return Notification.objects.for_recipient(identity.id, ctx.tenant_id)


@with_auth
def get_notifications(identity, ctx, data):
    notifications = _own_notifications(identity, ctx).order_by('-created_at')[:LATEST_LIMIT]
    return NotificationSerializer(notifications, many=True).data


@with_auth
def get_unread_count(identity, ctx, data):
    return {'count': _own_notifications(identity, ctx).unread().count()}


@with_auth
def mark_as_read(identity, ctx, data):
    payload = validate_input(MarkAsReadSerializer, data)
    updated = _own_notifications(identity, ctx).filter(
        id=payload['notification_id'],
    ).update(is_read=True)
    return {'updated': updated}


@with_auth
def mark_all_as_read(identity, ctx, data):
    updated = _own_notifications(identity, ctx).unread().update(is_read=True)
    return {'updated': updated}
