"""
Notification helpers used by other apps' actions.
"""
from django.db import transaction

from apps.core.logging import get_logger
from apps.notifications.models import Notification

logger = get_logger(__name__)

RESOURCE_ROUTES = {
    'workflow': '/workflows/{id}',
    'project': '/projects/{id}',
    'task': '/projects',
}


def create_notification(ctx, tenant_id, user_id, type, title, body='',
                        resource_type='', resource_id=None):
    """
    Create a notification for ``user_id``.

    Like audit writes this never fails the calling mutation: errors are
    logged and None is returned.
    """
    try:
        with transaction.atomic(using=ctx.using):
            return Notification.objects.db_manager(ctx.using).create(
                tenant_id=tenant_id,
                user_id=user_id,
                type=type,
                title=title,
                body=body or '',
                resource_type=resource_type or '',
                resource_id=str(resource_id) if resource_id is not None else '',
            )
    except Exception as exc:
        logger.error(
            "Failed to create notification",
            {'user_id': str(user_id), 'type': type, 'request_id': ctx.request_id},
            exc,
        )
        return None


def get_notification_link(resource_type, resource_id):
    """Return the in-app path a notification points at, or None."""
    if not resource_type or not resource_id:
        return None
    route = RESOURCE_ROUTES.get(resource_type)
    if route is None:
        return None
    return route.format(id=resource_id)
