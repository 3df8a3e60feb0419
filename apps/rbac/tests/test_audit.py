"""
Tests for the audit log writer and the write-once AuditLog model.
"""
import uuid
from unittest.mock import patch

import pytest

from apps.core.actions import ActionContext
from apps.rbac.audit import AuditEntry, write_audit_log
from apps.rbac.models import AuditLog


@pytest.fixture
def ctx(tenant):
    return ActionContext(
        tenant_id=tenant.id,
        request_id='req-audit',
        ip_address='10.0.0.1',
        user_agent='pytest',
    )


@pytest.mark.django_db
class TestWriteAuditLog:

    def test_records_entry_with_request_metadata(self, ctx, tenant, member):
        resource_id = uuid.uuid4()

        log = write_audit_log(ctx, member.id, AuditEntry(
            tenant_id=tenant.id,
            action='project.update',
            resource_type='project',
            resource_id=resource_id,
            before={'name': 'Old'},
            after={'name': 'New'},
        ))

        log.refresh_from_db()
        assert log.user_id == member.id
        assert log.resource_id == str(resource_id)
        assert log.before_data == {'name': 'Old'}
        assert log.after_data == {'name': 'New'}
        assert log.metadata == {}
        assert log.ip_address == '10.0.0.1'
        assert log.user_agent == 'pytest'
        assert log.request_id == 'req-audit'

    def test_failure_is_logged_not_raised(self, ctx, tenant, member):
        entry = AuditEntry(tenant_id=tenant.id, action='task.delete', resource_type='task')

        with patch.object(AuditLog, 'save', side_effect=RuntimeError('disk full')), \
                patch('apps.rbac.audit.logger') as mock_logger:
            result = write_audit_log(ctx, member.id, entry)

        assert result is None
        mock_logger.error.assert_called_once()
        message, context, exc = mock_logger.error.call_args[0]
        assert message == 'Failed to write audit log'
        assert context['action'] == 'task.delete'
        assert context['request_id'] == 'req-audit'
        assert isinstance(exc, RuntimeError)


@pytest.mark.django_db
class TestAuditLogIsWriteOnce:

    @pytest.fixture
    def log(self, ctx, tenant, member):
        return write_audit_log(ctx, member.id, AuditEntry(
            tenant_id=tenant.id, action='user.invite', resource_type='user',
        ))

    def test_update_refused(self, log):
        log.action = 'user.role_change'

        with pytest.raises(TypeError):
            log.save()
        with pytest.raises(TypeError):
            AuditLog.objects.filter(pk=log.pk).update(action='x')

    def test_delete_refused(self, log):
        with pytest.raises(TypeError):
            log.delete()
        with pytest.raises(TypeError):
            AuditLog.objects.all().delete()
