"""
Pytest configuration and fixtures.
"""
import itertools

import pytest
from django.conf import settings
import django


def pytest_configure(config):
    """Configure Django settings for tests."""
    settings.DATABASES['default'] = {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
        'ATOMIC_REQUESTS': False,
    }
    settings.CACHES = {
        'default': {
            'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
            'LOCATION': 'opshub-tests',
        }
    }
    settings.RATELIMIT_ENABLE = False
    settings.EMAIL_BACKEND = 'django.core.mail.backends.locmem.EmailBackend'
    settings.PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']
    django.setup()


_emails = itertools.count(1)


@pytest.fixture
def api_client():
    """Return DRF API client."""
    from rest_framework.test import APIClient
    return APIClient()


@pytest.fixture
def tenant(db):
    """Create a test tenant."""
    from apps.tenants.models import Tenant
    return Tenant.objects.create(name='Test Tenant', slug='test-tenant')


@pytest.fixture
def other_tenant(db):
    """Create another test tenant for isolation tests."""
    from apps.tenants.models import Tenant
    return Tenant.objects.create(name='Other Tenant', slug='other-tenant')


@pytest.fixture
def make_user(db, tenant):
    """
    Factory creating a user with roles.

    ``roles`` is a list of role values granted in ``in_tenant`` (the default
    test tenant unless given).
    """
    from apps.rbac.models import User, UserRole

    def _make_user(email=None, roles=(), in_tenant=None, password='testpass123', **extra):
        email = email or f'user{next(_emails)}@example.com'
        user = User.objects.create_user(email=email, password=password, **extra)
        for role in roles:
            UserRole.objects.create(tenant=in_tenant or tenant, user=user, role=role)
        return user

    return _make_user


@pytest.fixture
def member(make_user):
    return make_user(email='member@example.com', roles=['member'], display_name='Mia Member')


@pytest.fixture
def approver(make_user):
    return make_user(email='approver@example.com', roles=['approver'], display_name='Avery Approver')


@pytest.fixture
def pm(make_user):
    return make_user(email='pm@example.com', roles=['pm'], display_name='Pat Manager')


@pytest.fixture
def tenant_admin(make_user):
    return make_user(email='admin@example.com', roles=['tenant_admin'], display_name='Ada Admin')


@pytest.fixture
def client_for(tenant):
    """Factory returning an APIClient logged in as ``user``."""
    from rest_framework.test import APIClient

    def _client_for(user, in_tenant=None):
        client = APIClient()
        client.force_login(user, backend='apps.rbac.backends.EmailAuthBackend')
        client.credentials(HTTP_X_TENANT_ID=str((in_tenant or tenant).id))
        return client

    return _client_for


@pytest.fixture
def action_request(rf, tenant):
    """
    Factory building a request for calling wrapped actions directly.

    ``user=None`` gives an anonymous request.
    """
    from django.contrib.auth.models import AnonymousUser

    def _action_request(user=None, in_tenant=None, path='/', request_id='req-test'):
        request = rf.post(
            path,
            HTTP_X_TENANT_ID=str((in_tenant or tenant).id),
            HTTP_USER_AGENT='pytest',
            REMOTE_ADDR='127.0.0.1',
        )
        request.user = user if user is not None else AnonymousUser()
        request.request_id = request_id
        return request

    return _action_request
