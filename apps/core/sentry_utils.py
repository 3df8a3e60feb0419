"""
Sentry utilities for adding context to captured failures.
"""
import sentry_sdk
from django.conf import settings


def set_identity_context(identity, tenant_id=None):
    """
    Attach the acting user to the current Sentry scope (no email, id only).
    """
    if not settings.SENTRY_DSN:
        return

    sentry_sdk.set_user({'id': str(identity.id)})
    if tenant_id:
        sentry_sdk.set_tag('tenant_id', str(tenant_id))


def capture_unclassified_failure(exception, action_name, ctx=None):
    """
    Report a failure that carried no recognizable error code.

    Callers only ever see ERR-SYS-001 for these, so Sentry is the one place
    the real cause surfaces.
    """
    if not settings.SENTRY_DSN:
        return

    with sentry_sdk.new_scope() as scope:
        scope.set_tag('action', action_name)
        if ctx is not None:
            scope.set_tag('request_id', ctx.request_id or '')
            if ctx.tenant_id:
                scope.set_tag('tenant_id', str(ctx.tenant_id))
        sentry_sdk.capture_exception(exception)
