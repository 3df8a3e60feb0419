"""
Project and task URLs.
"""
from django.urls import path

from apps.core.views import ActionView
from apps.projects import actions


def _post(action):
    return ActionView.as_view(server_action=action, http_method_names=['post'])


def _get(action):
    return ActionView.as_view(server_action=action, http_method_names=['get'])


urlpatterns = [
    path('', _get(actions.list_projects), name='project-list'),
    path('create', _post(actions.create_project), name='project-create'),
    path('users', _get(actions.get_tenant_users), name='project-tenant-users'),
    path('<uuid:project_id>', _get(actions.get_project), name='project-detail'),
    path('<uuid:project_id>/update', _post(actions.update_project), name='project-update'),
    path('<uuid:project_id>/members/add', _post(actions.add_member), name='project-member-add'),
    path('<uuid:project_id>/members/remove', _post(actions.remove_member), name='project-member-remove'),
    path('<uuid:project_id>/tasks/create', _post(actions.create_task), name='task-create'),
    path('tasks/<uuid:task_id>/update', _post(actions.update_task), name='task-update'),
    path('tasks/<uuid:task_id>/status', _post(actions.change_task_status), name='task-status'),
    path('tasks/<uuid:task_id>/delete', _post(actions.delete_task), name='task-delete'),
]
