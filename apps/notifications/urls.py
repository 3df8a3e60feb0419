"""
Notification URLs.
"""
from django.urls import path

from apps.core.views import ActionView
from apps.notifications import actions

urlpatterns = [
    path('', ActionView.as_view(
        server_action=actions.get_notifications, http_method_names=['get']),
        name='notification-list'),
    path('unread-count', ActionView.as_view(
        server_action=actions.get_unread_count, http_method_names=['get']),
        name='notification-unread-count'),
    path('<uuid:notification_id>/read', ActionView.as_view(
        server_action=actions.mark_as_read, http_method_names=['post']),
        name='notification-mark-read'),
    path('read-all', ActionView.as_view(
        server_action=actions.mark_all_as_read, http_method_names=['post']),
        name='notification-mark-all-read'),
]
