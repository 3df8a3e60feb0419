"""
RBAC API URLs.

Provides endpoints for:
- The current user (profile, password)
- Tenant user administration (invites, roles, status, password resets)
- Audit log viewing
"""
from django.urls import path

from apps.core.views import ActionView
from apps.rbac import actions

app_name = 'rbac'


def _post(action):
    return ActionView.as_view(server_action=action, http_method_names=['post'])


def _get(action):
    return ActionView.as_view(server_action=action, http_method_names=['get'])


urlpatterns = [
    path('me', _get(actions.get_me), name='me'),
    path('me/password', _post(actions.set_password), name='me-password'),

    # Tenant user administration
    path('users', _get(actions.get_users), name='user-list'),
    path('users/invite', _post(actions.invite_user), name='user-invite'),
    path('users/<uuid:user_id>/roles', _post(actions.change_user_roles), name='user-roles'),
    path('users/<uuid:user_id>/status', _post(actions.change_user_status), name='user-status'),
    path('users/<uuid:user_id>/reset-password', _post(actions.reset_password), name='user-reset-password'),

    # Audit log
    path('audit-logs', _get(actions.fetch_audit_logs), name='audit-log-list'),
    path('audit-logs/filters', _get(actions.fetch_filter_options), name='audit-log-filters'),
]
