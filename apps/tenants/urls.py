"""
Tenant administration URLs.
"""
from django.urls import path

from apps.core.views import ActionView
from apps.tenants import actions


def _post(action):
    return ActionView.as_view(server_action=action, http_method_names=['post'])


urlpatterns = [
    path('', ActionView.as_view(server_action=actions.get_tenant_detail, http_method_names=['get']),
         name='tenant-detail'),
    path('update', _post(actions.update_tenant), name='tenant-update'),
    path('settings', _post(actions.update_tenant_settings), name='tenant-settings'),
    path('delete', _post(actions.delete_tenant), name='tenant-delete'),
]
