"""
Workflow URLs.
"""
from django.urls import path

from apps.core.views import ActionView
from apps.workflows import actions


def _post(action):
    return ActionView.as_view(server_action=action, http_method_names=['post'])


def _get(action):
    return ActionView.as_view(server_action=action, http_method_names=['get'])


urlpatterns = [
    path('', _get(actions.list_workflows), name='workflow-list'),
    path('create', _post(actions.create_workflow), name='workflow-create'),
    path('pending', _get(actions.get_pending_workflows), name='workflow-pending'),
    path('approvers', _get(actions.get_approvers), name='workflow-approvers'),
    path('<uuid:workflow_id>', _get(actions.get_workflow), name='workflow-detail'),
    path('<uuid:workflow_id>/update', _post(actions.update_workflow), name='workflow-update'),
    path('<uuid:workflow_id>/transition', _post(actions.transition_workflow), name='workflow-transition'),
    path('<uuid:workflow_id>/approve', _post(actions.approve_workflow), name='workflow-approve'),
    path('<uuid:workflow_id>/reject', _post(actions.reject_workflow), name='workflow-reject'),
]
