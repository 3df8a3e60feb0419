"""
Core middleware for request processing.
"""
import re
import time
import uuid

from django.conf import settings
from django.contrib.auth import SESSION_KEY
from django.utils.deprecation import MiddlewareMixin

from apps.core.logging import get_logger

logger = get_logger(__name__)


class RequestIDMiddleware(MiddlewareMixin):
    """
    Attach a request_id to each request for tracing and echo it back.
    """

    def process_request(self, request):
        request.request_id = request.META.get('HTTP_X_REQUEST_ID') or str(uuid.uuid4())

    def process_response(self, request, response):
        if hasattr(request, 'request_id'):
            response['X-Request-ID'] = request.request_id
        return response


class SessionRefreshMiddleware(MiddlewareMixin):
    """
    Keep authenticated sessions alive.

    When an authenticated session has less than SESSION_REFRESH_THRESHOLD
    seconds left it is stamped as modified, so SessionMiddleware saves it and
    re-issues the cookie with a full SESSION_COOKIE_AGE.

    Static assets are skipped and the public paths (login and the auth
    callback) are passed through untouched. This middleware never decides
    whether a request is allowed; that happens in the views.
    """

    PUBLIC_PATHS = ('/login', '/auth/callback')

    EXCLUDED_PATTERN = re.compile(
        r'^/(?:static|media)/|^/favicon\.ico$|\.(?:svg|png|jpe?g|gif|webp|ico|css|js|map|woff2?)$',
        re.IGNORECASE,
    )

    REFRESHED_AT_KEY = '_session_refreshed_at'

    def process_request(self, request):
        request.session_refreshed = False
        path = request.path_info

        if self._is_excluded(path) or self._is_public_path(path):
            return None

        session = getattr(request, 'session', None)
        if session is None or SESSION_KEY not in session:
            return None

        now = time.time()
        refreshed_at = session.get(self.REFRESHED_AT_KEY)
        if refreshed_at is None:
            remaining = 0
        else:
            remaining = settings.SESSION_COOKIE_AGE - (now - refreshed_at)

        if remaining < settings.SESSION_REFRESH_THRESHOLD:
            session[self.REFRESHED_AT_KEY] = now
            request.session_refreshed = True
            logger.debug("Session refreshed", {
                'request_id': getattr(request, 'request_id', None),
                'path': path,
            })
        return None

    def _is_public_path(self, path):
        return any(path == public or path.startswith(public + '/') for public in self.PUBLIC_PATHS)

    def _is_excluded(self, path):
        return bool(self.EXCLUDED_PATTERN.search(path))
