"""
Tests for project and task actions.
"""
import datetime
from decimal import Decimal
from unittest.mock import patch

import pytest

from apps.notifications.models import Notification, NotificationType
from apps.projects import actions
from apps.projects.models import Project, ProjectMember, Task, TaskStatus
from apps.rbac.models import AuditLog
from apps.timesheets.models import Timesheet


@pytest.fixture
def project(action_request, pm):
    result = actions.create_project(
        action_request(pm), {'name': 'Website relaunch', 'pm_id': str(pm.id)}
    )
    assert result.success, result.error
    return Project.objects.get(pk=result.data['id'])


@pytest.fixture
def task(action_request, pm, project, member):
    actions.add_member(action_request(pm), {'project_id': str(project.id), 'user_id': str(member.id)})
    result = actions.create_task(
        action_request(pm),
        {'project_id': str(project.id), 'title': 'Draft sitemap', 'assignee_id': str(member.id)},
    )
    assert result.success, result.error
    return Task.objects.get(pk=result.data['id'])


@pytest.mark.django_db
class TestProjects:

    def test_create_adds_pm_as_member(self, action_request, pm, project):
        assert project.status == 'planning'
        assert list(project.members.values_list('user_id', flat=True)) == [pm.id]
        assert AuditLog.objects.filter(action='project.create', resource_id=str(project.id)).exists()

    def test_member_cannot_create(self, action_request, member, pm):
        result = actions.create_project(
            action_request(member), {'name': 'Side project', 'pm_id': str(pm.id)}
        )

        assert result.error.code == 'ERR-AUTH-003'
        assert not Project.objects.exists()

    def test_name_rules(self, action_request, pm):
        blank = actions.create_project(action_request(pm), {'name': ' ', 'pm_id': str(pm.id)})
        long = actions.create_project(action_request(pm), {'name': 'x' * 101, 'pm_id': str(pm.id)})

        assert blank.error.code == 'ERR-VAL-001'
        assert long.error.code == 'ERR-VAL-002'

    def test_end_before_start(self, action_request, pm):
        result = actions.create_project(action_request(pm), {
            'name': 'Backwards',
            'pm_id': str(pm.id),
            'start_date': '2026-06-01',
            'end_date': '2026-05-01',
        })

        assert result.error.code == 'ERR-VAL-003'

    def test_pm_must_belong_to_tenant(self, action_request, pm, make_user, other_tenant):
        outsider = make_user(roles=['pm'], in_tenant=other_tenant)

        result = actions.create_project(
            action_request(pm), {'name': 'Outsourced', 'pm_id': str(outsider.id)}
        )

        assert result.error.code == 'ERR-VAL-004'

    def test_status_change_follows_table(self, action_request, pm, project):
        active = actions.update_project(
            action_request(pm), {'project_id': str(project.id), 'status': 'active'}
        )
        assert active.data['status'] == 'active'
        assert AuditLog.objects.filter(action='project.status_change').count() == 1

        back = actions.update_project(
            action_request(pm), {'project_id': str(project.id), 'status': 'planning'}
        )
        assert back.error.code == 'ERR-PJ-002'

    def test_completed_is_terminal(self, action_request, pm, project):
        for status in ('active', 'completed'):
            actions.update_project(action_request(pm), {'project_id': str(project.id), 'status': status})

        result = actions.update_project(
            action_request(pm), {'project_id': str(project.id), 'status': 'cancelled'}
        )

        assert result.error.code == 'ERR-PJ-002'

    def test_other_pm_cannot_update(self, action_request, make_user, project):
        other_pm = make_user(roles=['pm'])

        result = actions.update_project(
            action_request(other_pm), {'project_id': str(project.id), 'name': 'Taken over'}
        )

        assert result.error.code == 'ERR-AUTH-003'

    def test_tenant_admin_can_update(self, action_request, tenant_admin, project):
        result = actions.update_project(
            action_request(tenant_admin), {'project_id': str(project.id), 'name': 'Renamed'}
        )

        assert result.data['name'] == 'Renamed'

    def test_unknown_project(self, action_request, pm):
        result = actions.update_project(
            action_request(pm),
            {'project_id': '00000000-0000-0000-0000-000000000000', 'name': 'Ghost'},
        )

        assert result.error.code == 'ERR-PJ-001'

    def test_audit_failure_keeps_the_project(self, action_request, pm):
        with patch.object(AuditLog, 'save', side_effect=RuntimeError('audit table locked')), \
                patch('apps.rbac.audit.logger') as audit_logger:
            result = actions.create_project(
                action_request(pm), {'name': 'Quiet launch', 'pm_id': str(pm.id)}
            )

        assert result.success
        project = Project.objects.get(pk=result.data['id'])
        assert project.name == 'Quiet launch'
        assert project.has_member(pm.id)
        assert not AuditLog.objects.exists()
        audit_logger.error.assert_called_once()
        assert audit_logger.error.call_args[0][1]['action'] == 'project.create'


@pytest.mark.django_db
class TestMembers:

    def test_add_member(self, action_request, pm, member, project):
        result = actions.add_member(
            action_request(pm), {'project_id': str(project.id), 'user_id': str(member.id)}
        )

        assert result.success
        assert project.has_member(member.id)
        notification = Notification.objects.get(user=member)
        assert notification.type == NotificationType.PROJECT_MEMBER_ADDED

    def test_add_twice(self, action_request, pm, member, project):
        data = {'project_id': str(project.id), 'user_id': str(member.id)}
        actions.add_member(action_request(pm), data)

        result = actions.add_member(action_request(pm), data)

        assert result.error.code == 'ERR-PJ-003'

    def test_add_user_from_other_tenant(self, action_request, pm, project, make_user, other_tenant):
        outsider = make_user(roles=['member'], in_tenant=other_tenant)

        result = actions.add_member(
            action_request(pm), {'project_id': str(project.id), 'user_id': str(outsider.id)}
        )

        assert result.error.code == 'ERR-VAL-005'

    def test_pm_cannot_be_removed(self, action_request, pm, project):
        result = actions.remove_member(
            action_request(pm), {'project_id': str(project.id), 'user_id': str(pm.id)}
        )

        assert result.error.code == 'ERR-PJ-004'
        assert project.has_member(pm.id)

    def test_remove_member(self, action_request, pm, member, project):
        data = {'project_id': str(project.id), 'user_id': str(member.id)}
        actions.add_member(action_request(pm), data)

        result = actions.remove_member(action_request(pm), data)

        assert result.data == {'removed': True}
        assert not ProjectMember.objects.filter(project=project, user=member).exists()
        assert AuditLog.objects.filter(action='project.remove_member').count() == 1

    def test_changing_pm_adds_membership(self, action_request, tenant_admin, project, make_user):
        new_pm = make_user(roles=['pm'])

        actions.update_project(
            action_request(tenant_admin), {'project_id': str(project.id), 'pm_id': str(new_pm.id)}
        )

        assert project.has_member(new_pm.id)

    def test_get_tenant_users(self, action_request, pm, member, make_user, other_tenant):
        make_user(roles=['member'], in_tenant=other_tenant)

        result = actions.get_tenant_users(action_request(pm), {})

        assert {row['user_id'] for row in result.data} == {str(pm.id), str(member.id)}


@pytest.mark.django_db
class TestTasks:

    def test_create_task_notifies_assignee(self, task, member):
        assert task.status == TaskStatus.TODO
        assert Notification.objects.filter(user=member, type=NotificationType.TASK_ASSIGNED).exists()

    def test_assignee_must_be_member(self, action_request, pm, project, make_user):
        stranger = make_user(roles=['member'])

        result = actions.create_task(
            action_request(pm),
            {'project_id': str(project.id), 'title': 'Audit', 'assignee_id': str(stranger.id)},
        )

        assert result.error.code == 'ERR-VAL-005'

    def test_member_cannot_create_task(self, action_request, member, project):
        result = actions.create_task(
            action_request(member), {'project_id': str(project.id), 'title': 'Sneaky'}
        )

        assert result.error.code == 'ERR-AUTH-003'

    def test_assignee_can_update(self, action_request, member, task):
        result = actions.update_task(
            action_request(member), {'task_id': str(task.id), 'due_date': '2026-11-30'}
        )

        assert result.data['due_date'] == '2026-11-30'

    def test_non_assignee_cannot_update(self, action_request, make_user, task):
        colleague = make_user(roles=['member'])

        result = actions.update_task(
            action_request(colleague), {'task_id': str(task.id), 'title': 'Mine'}
        )

        assert result.error.code == 'ERR-AUTH-003'

    def test_status_transitions(self, action_request, member, task):
        skip = actions.change_task_status(
            action_request(member), {'task_id': str(task.id), 'status': 'done'}
        )
        assert skip.error.code == 'ERR-PJ-006'

        start = actions.change_task_status(
            action_request(member), {'task_id': str(task.id), 'status': 'in_progress'}
        )
        finish = actions.change_task_status(
            action_request(member), {'task_id': str(task.id), 'status': 'done'}
        )
        assert start.data['status'] == 'in_progress'
        assert finish.data['status'] == 'done'

        log = AuditLog.objects.filter(action='task.status_change').order_by('-created_at').first()
        assert log.before_data == {'status': 'in_progress'}
        assert log.after_data == {'status': 'done'}

    def test_unknown_status_rejected(self, action_request, pm, task):
        result = actions.change_task_status(
            action_request(pm), {'task_id': str(task.id), 'status': 'archived'}
        )

        assert result.error.code == 'ERR-PJ-006'

    def test_delete_task(self, action_request, pm, task):
        result = actions.delete_task(action_request(pm), {'task_id': str(task.id)})

        assert result.success
        assert not Task.objects.filter(pk=task.pk).exists()
        assert Task.objects_with_deleted.get(pk=task.pk).is_deleted
        assert AuditLog.objects.get(action='task.delete').before_data['title'] == 'Draft sitemap'

    def test_assignee_cannot_delete(self, action_request, member, task):
        result = actions.delete_task(action_request(member), {'task_id': str(task.id)})

        assert result.error.code == 'ERR-AUTH-003'

    def test_task_with_time_cannot_be_deleted(self, action_request, pm, member, task, tenant):
        Timesheet.objects.create(
            tenant=tenant, user=member, project=task.project, task=task,
            work_date=datetime.date(2026, 10, 1), hours=Decimal('2.00'),
        )

        result = actions.delete_task(action_request(pm), {'task_id': str(task.id)})

        assert result.error.code == 'ERR-PJ-007'
        assert Task.objects.filter(pk=task.pk).exists()

    def test_unknown_task(self, action_request, pm):
        result = actions.delete_task(
            action_request(pm), {'task_id': '00000000-0000-0000-0000-000000000000'}
        )

        assert result.error.code == 'ERR-PJ-005'

    def test_project_detail(self, client_for, pm, task):
        response = client_for(pm).get(f'/v1/projects/{task.project_id}')

        body = response.json()['data']
        assert response.status_code == 200
        assert body['can_manage'] is True
        assert [t['title'] for t in body['tasks']] == ['Draft sitemap']
        assert len(body['members']) == 2
