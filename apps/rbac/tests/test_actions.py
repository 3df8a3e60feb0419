"""
Tests for tenant administration actions.
"""
from unittest.mock import patch

import pytest
from django.core import mail

from apps.core.actions import ActionContext
from apps.rbac import actions
from apps.rbac.audit import AuditEntry, write_audit_log
from apps.rbac.identity import Unauthenticated
from apps.rbac.models import AuditLog, User, UserRole


def _roles(user, tenant):
    return sorted(UserRole.objects.for_tenant(tenant.id).filter(user=user).values_list('role', flat=True))


@pytest.fixture
def it_admin(make_user):
    return make_user(email='it@example.com', roles=['it_admin'], display_name='Ira IT')


@pytest.mark.django_db
class TestCurrentUser:

    def test_get_me(self, action_request, member, tenant):
        result = actions.get_me(action_request(member), {})

        assert result.data['email'] == 'member@example.com'
        assert result.data['display_name'] == 'Mia Member'
        assert result.data['tenant_id'] == str(tenant.id)
        assert result.data['roles'] == ['member']

    def test_set_password(self, action_request, member):
        result = actions.set_password(action_request(member), {'new_password': 'Correct-Horse-42'})

        assert result.success
        member.refresh_from_db()
        assert member.check_password('Correct-Horse-42')

    def test_set_password_runs_validators(self, action_request, member, settings):
        settings.AUTH_PASSWORD_VALIDATORS = [
            {'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator'},
        ]

        result = actions.set_password(action_request(member), {'new_password': 'short'})

        assert result.error.code == 'ERR-VAL-001'
        assert 'new_password' in result.error.fields


@pytest.mark.django_db
class TestGetUsers:

    def test_requires_admin(self, action_request, member):
        result = actions.get_users(action_request(member), {})

        assert result.error.code == 'ERR-AUTH-003'

    def test_lists_tenant_users_only(self, action_request, tenant_admin, member, make_user, other_tenant):
        make_user(email='elsewhere@example.com', roles=['member'], in_tenant=other_tenant)

        result = actions.get_users(action_request(tenant_admin), {})

        assert result.data['count'] == 2
        emails = [row['email'] for row in result.data['data']]
        assert emails == ['admin@example.com', 'member@example.com']
        assert result.data['data'][1]['roles'] == ['member']
        assert result.data['data'][1]['name'] == 'Mia Member'

    def test_filters(self, action_request, tenant_admin, member, approver):
        member.is_active = False
        member.save()
        request = action_request(tenant_admin)

        by_role = actions.get_users(request, {'role': 'approver'})
        by_status = actions.get_users(request, {'status': 'disabled'})
        by_search = actions.get_users(request, {'search': 'avery'})
        everyone = actions.get_users(request, {'role': 'all', 'status': ''})

        assert [row['email'] for row in by_role.data['data']] == ['approver@example.com']
        assert [row['email'] for row in by_status.data['data']] == ['member@example.com']
        assert [row['email'] for row in by_search.data['data']] == ['approver@example.com']
        assert everyone.data['count'] == 3

    def test_paging(self, action_request, tenant_admin, make_user):
        for _ in range(4):
            make_user(roles=['member'])

        result = actions.get_users(action_request(tenant_admin), {'page': 2, 'per_page': 2})

        assert result.data['count'] == 5
        assert len(result.data['data']) == 2

    def test_unknown_role_filter(self, action_request, tenant_admin):
        result = actions.get_users(action_request(tenant_admin), {'role': 'owner'})

        assert result.error.code == 'ERR-VAL-001'
        assert 'role' in result.error.fields


@pytest.mark.django_db
class TestInviteUser:

    def test_invite_new_user(self, action_request, tenant_admin, tenant):
        result = actions.invite_user(
            action_request(tenant_admin),
            {'email': 'New.Hire@Example.com', 'display_name': 'Nia New', 'roles': ['member', 'pm']},
        )

        assert result.success
        user = User.objects.get(email='new.hire@example.com')
        assert user.status == 'invited'
        assert not user.has_usable_password()
        assert _roles(user, tenant) == ['member', 'pm']
        assert UserRole.objects.filter(user=user).first().granted_by_id == tenant_admin.id

        assert len(mail.outbox) == 1
        message = mail.outbox[0]
        assert message.to == ['new.hire@example.com']
        assert 'Test Tenant' in message.subject
        assert '/auth/callback?uid=' in message.body
        assert 'Ada Admin' in message.body

        log = AuditLog.objects.get(action='user.invite')
        assert log.resource_id == str(user.id)
        assert log.metadata['roles'] == ['member', 'pm']

    def test_existing_user_from_another_tenant_joins(self, action_request, tenant_admin, tenant,
                                                      make_user, other_tenant):
        outsider = make_user(email='outsider@example.com', roles=['pm'], in_tenant=other_tenant)

        result = actions.invite_user(
            action_request(tenant_admin), {'email': 'outsider@example.com', 'roles': ['approver']}
        )

        assert result.data['id'] == str(outsider.id)
        assert _roles(outsider, tenant) == ['approver']
        assert _roles(outsider, other_tenant) == ['pm']

    def test_roles_required(self, action_request, tenant_admin):
        result = actions.invite_user(action_request(tenant_admin), {'email': 'x@example.com', 'roles': []})

        assert result.error.code == 'ERR-VAL-002'

    def test_duplicate_in_tenant(self, action_request, tenant_admin, member):
        result = actions.invite_user(
            action_request(tenant_admin), {'email': 'MEMBER@example.com', 'roles': ['member']}
        )

        assert result.error.code == 'ERR-VAL-003'
        assert 'email' in result.error.fields

    def test_only_it_admin_grants_it_admin(self, action_request, tenant_admin, it_admin):
        payload = {'email': 'ops@example.com', 'roles': ['it_admin']}

        denied = actions.invite_user(action_request(tenant_admin), payload)
        allowed = actions.invite_user(action_request(it_admin), payload)

        assert denied.error.code == 'ERR-AUTH-004'
        assert allowed.success

    def test_mail_failure_rolls_back(self, action_request, tenant_admin):
        with patch('apps.rbac.tokens.send_mail', side_effect=OSError('smtp down')):
            result = actions.invite_user(
                action_request(tenant_admin), {'email': 'x@example.com', 'roles': ['member']}
            )

        assert result.error.code == 'ERR-SYS-001'
        assert not User.objects.filter(email='x@example.com').exists()
        assert not AuditLog.objects.exists()

    def test_mail_failure_logged_once(self, action_request, tenant_admin):
        with patch('apps.rbac.tokens.send_mail', side_effect=OSError('smtp down')), \
                patch('apps.core.actions.logger') as action_logger:
            actions.invite_user(
                action_request(tenant_admin), {'email': 'x@example.com', 'roles': ['member']}
            )

        action_logger.error.assert_called_once()
        context = action_logger.error.call_args[0][1]
        assert context['action'] == 'invite_user'
        assert context['code'] == 'ERR-SYS-001'
        assert isinstance(action_logger.error.call_args[0][2].__cause__, OSError)

    def test_invitation_link_goes_to_password_page(self, action_request, tenant_admin, settings):
        settings.SET_PASSWORD_URL = '/welcome/password'

        actions.invite_user(action_request(tenant_admin), {'email': 'new@example.com', 'roles': ['member']})

        assert 'next=%2Fwelcome%2Fpassword' in mail.outbox[0].body


@pytest.mark.django_db
class TestChangeUserRoles:

    def test_replace_roles(self, action_request, tenant_admin, member, tenant):
        result = actions.change_user_roles(
            action_request(tenant_admin), {'user_id': str(member.id), 'roles': ['approver', 'pm']}
        )

        assert result.data['roles'] == ['approver', 'pm']
        assert _roles(member, tenant) == ['approver', 'pm']
        log = AuditLog.objects.get(action='user.role_change')
        assert log.before_data == {'roles': ['member']}
        assert log.after_data == {'roles': ['approver', 'pm']}

    def test_not_self(self, action_request, tenant_admin):
        result = actions.change_user_roles(
            action_request(tenant_admin), {'user_id': str(tenant_admin.id), 'roles': ['member']}
        )

        assert result.error.code == 'ERR-VAL-004'

    def test_at_least_one_role(self, action_request, tenant_admin, member):
        result = actions.change_user_roles(
            action_request(tenant_admin), {'user_id': str(member.id), 'roles': []}
        )

        assert result.error.code == 'ERR-VAL-005'

    def test_user_outside_tenant(self, action_request, tenant_admin, make_user, other_tenant):
        outsider = make_user(roles=['member'], in_tenant=other_tenant)

        result = actions.change_user_roles(
            action_request(tenant_admin), {'user_id': str(outsider.id), 'roles': ['pm']}
        )

        assert result.error.code == 'ERR-VAL-001'

    def test_it_admin_guard_applies_both_ways(self, action_request, tenant_admin, it_admin, member):
        grant = actions.change_user_roles(
            action_request(tenant_admin), {'user_id': str(member.id), 'roles': ['it_admin']}
        )
        revoke = actions.change_user_roles(
            action_request(tenant_admin), {'user_id': str(it_admin.id), 'roles': ['member']}
        )

        assert grant.error.code == 'ERR-AUTH-005'
        assert revoke.error.code == 'ERR-AUTH-005'

    def test_last_tenant_admin_kept(self, action_request, it_admin, tenant_admin):
        result = actions.change_user_roles(
            action_request(it_admin), {'user_id': str(tenant_admin.id), 'roles': ['member']}
        )

        assert result.error.code == 'ERR-VAL-006'

    def test_second_admin_can_be_demoted(self, action_request, tenant_admin, make_user):
        other_admin = make_user(roles=['tenant_admin'])

        result = actions.change_user_roles(
            action_request(tenant_admin), {'user_id': str(other_admin.id), 'roles': ['member']}
        )

        assert result.success


@pytest.mark.django_db
class TestChangeUserStatus:

    def test_disable_and_enable(self, action_request, tenant_admin, member):
        disabled = actions.change_user_status(
            action_request(tenant_admin), {'user_id': str(member.id), 'action': 'disable'}
        )
        member.refresh_from_db()
        assert disabled.data['status'] == 'disabled'
        assert not member.is_active
        assert isinstance(actions.get_me(action_request(member), {}), Unauthenticated)

        enabled = actions.change_user_status(
            action_request(tenant_admin), {'user_id': str(member.id), 'action': 'enable'}
        )
        assert enabled.data['status'] == 'active'
        assert list(AuditLog.objects.order_by('created_at').values_list('action', flat=True)) == [
            'user.deactivate', 'user.reactivate',
        ]

    def test_not_self(self, action_request, tenant_admin):
        result = actions.change_user_status(
            action_request(tenant_admin), {'user_id': str(tenant_admin.id), 'action': 'disable'}
        )

        assert result.error.code == 'ERR-VAL-007'

    def test_last_tenant_admin_kept(self, action_request, it_admin, tenant_admin):
        result = actions.change_user_status(
            action_request(it_admin), {'user_id': str(tenant_admin.id), 'action': 'disable'}
        )

        assert result.error.code == 'ERR-VAL-008'

    def test_admin_count_is_per_acting_tenant(self, action_request, tenant_admin, make_user, other_tenant):
        # Sole tenant_admin elsewhere; only the acting tenant is checked
        user = make_user(roles=['member'])
        UserRole.objects.create(tenant=other_tenant, user=user, role='tenant_admin')

        result = actions.change_user_status(
            action_request(tenant_admin), {'user_id': str(user.id), 'action': 'disable'}
        )

        assert result.success, result.error
        user.refresh_from_db()
        assert not user.is_active

    def test_unknown_action(self, action_request, tenant_admin, member):
        result = actions.change_user_status(
            action_request(tenant_admin), {'user_id': str(member.id), 'action': 'delete'}
        )

        assert result.error.code == 'ERR-VAL-001'


@pytest.mark.django_db
def test_reset_password_sends_link(action_request, tenant_admin, member):
    result = actions.reset_password(action_request(tenant_admin), {'user_id': str(member.id)})

    assert result.success
    assert mail.outbox[0].to == ['member@example.com']
    assert '/auth/callback?uid=' in mail.outbox[0].body
    assert AuditLog.objects.filter(action='user.password_reset', resource_id=str(member.id)).exists()


@pytest.mark.django_db
class TestAuditLogQueries:

    @pytest.fixture
    def logs(self, action_request, tenant, other_tenant, tenant_admin, member):
        ctx = ActionContext(tenant_id=tenant.id, request_id='req-1')
        write_audit_log(ctx, member.id, AuditEntry(tenant.id, 'project.create', 'project'))
        write_audit_log(ctx, tenant_admin.id, AuditEntry(tenant.id, 'user.invite', 'user'))
        write_audit_log(ctx, member.id, AuditEntry(other_tenant.id, 'task.create', 'task'))

    def test_requires_admin(self, action_request, member):
        result = actions.fetch_audit_logs(action_request(member), {})

        assert result.error.code == 'ERR-AUTH-002'

    def test_tenant_rows_newest_first(self, action_request, tenant_admin, logs):
        result = actions.fetch_audit_logs(action_request(tenant_admin), {})

        assert result.data['total'] == 2
        assert [row['action'] for row in result.data['logs']] == ['user.invite', 'project.create']

    def test_filters(self, action_request, tenant_admin, member, logs):
        request = action_request(tenant_admin)

        by_user = actions.fetch_audit_logs(request, {'user_id': str(member.id)})
        by_type = actions.fetch_audit_logs(request, {'resource_type': 'user'})
        future = actions.fetch_audit_logs(request, {'date_from': '2999-01-01'})

        assert [row['action'] for row in by_user.data['logs']] == ['project.create']
        assert [row['action'] for row in by_type.data['logs']] == ['user.invite']
        assert future.data['total'] == 0

    def test_date_range_ordered(self, action_request, tenant_admin):
        result = actions.fetch_audit_logs(
            action_request(tenant_admin), {'date_from': '2026-10-10', 'date_to': '2026-10-01'}
        )

        assert result.error.code == 'ERR-VAL-001'

    def test_filter_options(self, action_request, it_admin, member):
        result = actions.fetch_filter_options(action_request(it_admin), {})

        assert [user['display_name'] for user in result.data['users']] == ['Ira IT', 'Mia Member']
        assert 'timesheet.export' in result.data['action_types']
        assert 'workflow' in result.data['resource_types']


@pytest.mark.django_db
class TestAdminEndpoints:

    def test_invite_over_http(self, client_for, tenant_admin):
        response = client_for(tenant_admin).post(
            '/v1/users/invite', {'email': 'http@example.com', 'roles': ['member']}, format='json'
        )

        assert response.status_code == 200
        assert response.json()['data']['email'] == 'http@example.com'

    def test_user_id_comes_from_the_path(self, client_for, tenant_admin, member):
        response = client_for(tenant_admin).post(
            f'/v1/users/{member.id}/roles', {'roles': ['approver']}, format='json'
        )

        assert response.status_code == 200
        assert response.json()['data']['roles'] == ['approver']

    def test_forbidden_for_members(self, client_for, member):
        response = client_for(member).get('/v1/users')

        assert response.status_code == 403
        assert response.json()['error']['code'] == 'ERR-AUTH-003'

    def test_audit_logs_over_http(self, client_for, tenant_admin):
        response = client_for(tenant_admin).get('/v1/audit-logs', {'page_size': '10'})

        assert response.status_code == 200
        assert response.json()['data'] == {'logs': [], 'total': 0}
