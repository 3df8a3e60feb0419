"""
Tests for the with_auth wrapper, ActionResult and error classification.
"""
import datetime
import uuid
from unittest.mock import patch

import pytest
from rest_framework import serializers

from apps.core.actions import ActionContext, ActionResult, get_client_ip, with_auth
from apps.core.exceptions import (
    AuthorizationDenied,
    DomainRuleViolated,
    SystemFailure,
    ValidationFailed,
    classify_failure,
    http_status_for,
    is_error_code,
)
from apps.core.validators import ensure_date_range, validate_input
from apps.rbac.identity import Unauthenticated
from apps.tenants.models import Tenant


class TestErrorCodes:

    @pytest.mark.parametrize('code,expected', [
        ('ERR-AUTH-001', True),
        ('ERR-WF-002', True),
        ('ERR-SYS-001', True),
        ('ERR-FOO-001', False),
        ('ERR-WF-02', False),
        ('err-wf-002', False),
        (None, False),
    ])
    def test_is_error_code(self, code, expected):
        assert is_error_code(code) is expected

    @pytest.mark.parametrize('code,status', [
        ('ERR-AUTH-001', 401),
        ('ERR-AUTH-003', 403),
        ('ERR-VAL-004', 400),
        ('ERR-WF-001', 422),
        ('ERR-PJ-007', 422),
        ('ERR-SYS-001', 500),
    ])
    def test_http_status(self, code, status):
        assert http_status_for(code) == status

    def test_malformed_code_refused(self):
        with pytest.raises(ValueError):
            DomainRuleViolated('WF-1', 'bad')


class TestClassifyFailure:

    def test_typed_error(self):
        failure = classify_failure(ValidationFailed('Too long', code='ERR-VAL-002', fields={'title': 'Too long'}))

        assert failure == ('ERR-VAL-002', 'Too long', {'title': 'Too long'}, True)

    def test_message_prefix(self):
        failure = classify_failure(RuntimeError('ERR-WF-002: Rejection reason is required'))

        assert failure.code == 'ERR-WF-002'
        assert failure.message == 'Rejection reason is required'
        assert failure.classified

    def test_unknown_prefix_is_a_system_error(self):
        failure = classify_failure(RuntimeError('ERR-XYZ-001: nope'))

        assert failure.code == 'ERR-SYS-001'
        assert failure.message == 'An unexpected error occurred'
        assert not failure.classified

    def test_drf_validation_error(self):
        failure = classify_failure(serializers.ValidationError({'name': ['This field is required.']}))

        assert failure.code == 'ERR-VAL-001'
        assert failure.fields == {'name': 'This field is required.'}


class TestActionResult:

    def test_ok(self):
        assert ActionResult.ok({'id': 1}).to_dict() == {'success': True, 'data': {'id': 1}}

    def test_fail(self):
        result = ActionResult.fail('ERR-WF-001', 'Illegal', {'status': 'Illegal'})

        assert result.to_dict() == {
            'success': False,
            'error': {'code': 'ERR-WF-001', 'message': 'Illegal', 'fields': {'status': 'Illegal'}},
        }

    def test_never_both(self):
        with pytest.raises(ValueError):
            ActionResult(success=False, data={'x': 1}, error=None)
        with pytest.raises(ValueError):
            ActionResult.fail('WF-1', 'bad')


class _InputSerializer(serializers.Serializer):
    title = serializers.CharField(max_length=5)


@with_auth
def echo(identity, ctx, data):
    return {'user_id': str(identity.id), 'tenant_id': str(ctx.tenant_id), 'data': data}


@with_auth
def needs_input(identity, ctx, data):
    return validate_input(_InputSerializer, data, code='ERR-VAL-002')


@with_auth
def creates_then_fails(identity, ctx, data):
    Tenant.objects.create(name='Half done', slug='half-done')
    raise DomainRuleViolated('ERR-PJ-001', 'Project not found')


@with_auth
def crashes(identity, ctx, data):
    raise KeyError('secret internals')


@with_auth
def legacy_error(identity, ctx, data):
    raise Exception('ERR-WF-002: Rejection reason is required')


@pytest.mark.django_db
class TestWithAuth:

    def test_unauthenticated_is_returned_untouched(self, action_request):
        result = echo(action_request(None), {})

        assert isinstance(result, Unauthenticated)

    def test_success(self, action_request, member, tenant):
        result = echo(action_request(member), {'x': 1})

        assert result.success
        assert result.data == {'user_id': str(member.id), 'tenant_id': str(tenant.id), 'data': {'x': 1}}

    def test_none_data_becomes_empty_dict(self, action_request, member):
        assert echo(action_request(member)).data['data'] == {}

    def test_validation_failure(self, action_request, member):
        result = needs_input(action_request(member), {'title': 'far too long'})

        assert not result.success
        assert result.data is None
        assert result.error.code == 'ERR-VAL-002'
        assert 'title' in result.error.fields

    def test_failure_rolls_back(self, action_request, member):
        result = creates_then_fails(action_request(member), {})

        assert result.error.code == 'ERR-PJ-001'
        assert result.error.message == 'Project not found'
        assert not Tenant.objects.filter(slug='half-done').exists()

    def test_unclassified_failure(self, action_request, member):
        with patch('apps.core.actions.capture_unclassified_failure') as capture, \
                patch('apps.core.actions.logger') as mock_logger:
            result = crashes(action_request(member), {})

        assert result.error.code == 'ERR-SYS-001'
        assert 'secret' not in result.error.message
        capture.assert_called_once()
        context = mock_logger.error.call_args[0][1]
        assert context['action'] == 'crashes'
        assert context['unclassified'] is True
        assert context['request_id'] == 'req-test'

    def test_legacy_prefix(self, action_request, member):
        with patch('apps.core.actions.capture_unclassified_failure') as capture:
            result = legacy_error(action_request(member), {})

        assert result.error.code == 'ERR-WF-002'
        assert result.error.message == 'Rejection reason is required'
        capture.assert_not_called()

    def test_tenant_header_must_be_a_membership(self, action_request, member, tenant, other_tenant):
        result = echo(action_request(member, in_tenant=other_tenant), {})

        assert result.data['tenant_id'] == str(tenant.id)

    def test_require_tenant_without_membership(self, make_user, action_request):
        @with_auth
        def scoped(identity, ctx, data):
            return ctx.require_tenant()

        result = scoped(action_request(make_user()), {})

        assert result.error.code == 'ERR-AUTH-003'

    def test_handler_is_exposed(self):
        assert echo.handler.__name__ == 'echo'


class TestActionContext:

    def test_select_tenant_prefers_header(self, rf):
        first, second = uuid.uuid4(), uuid.uuid4()
        identity = type('I', (), {'tenant_ids': (first, second)})()
        request = rf.get('/', HTTP_X_TENANT_ID=str(second))

        assert ActionContext.select_tenant(request, identity) == second

    def test_select_tenant_ignores_garbage(self, rf):
        first = uuid.uuid4()
        identity = type('I', (), {'tenant_ids': (first,)})()
        request = rf.get('/', HTTP_X_TENANT_ID='garbage')

        assert ActionContext.select_tenant(request, identity) == first

    def test_client_ip_from_forwarded_for(self, rf):
        request = rf.get('/', HTTP_X_FORWARDED_FOR='203.0.113.9, 10.0.0.1')

        assert get_client_ip(request) == '203.0.113.9'


class TestEnsureDateRange:

    def test_reversed_range(self):
        with pytest.raises(ValidationFailed) as excinfo:
            ensure_date_range(datetime.date(2026, 10, 2), datetime.date(2026, 10, 1), code='ERR-VAL-004')

        assert excinfo.value.code == 'ERR-VAL-004'
        assert 'date_to' in excinfo.value.fields

    def test_open_ended(self):
        ensure_date_range(None, datetime.date(2026, 10, 1))
        ensure_date_range(datetime.date(2026, 10, 1), datetime.date(2026, 10, 1))


def test_exception_hierarchy_defaults():
    assert AuthorizationDenied().code == 'ERR-AUTH-003'
    assert SystemFailure().code == 'ERR-SYS-001'
    assert str(ValidationFailed('Bad')) == 'ERR-VAL-001: Bad'
