"""
Core API views.
"""
from django.conf import settings
from django.core.cache import cache
from django.db import connection
from django.utils import timezone
from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.core.exceptions import http_status_for
from apps.core.logging import get_logger
from apps.rbac.identity import Unauthenticated, login_redirect

logger = get_logger(__name__)


class HealthCheckView(APIView):
    """
    Health check endpoint to verify system dependencies.

    GET /v1/health

    Returns 503 when the database is unreachable. A failing cache only
    degrades the status.
    """
    authentication_classes = []
    permission_classes = []

    @extend_schema(
        summary="Health check",
        description="Check the health of the service and its dependencies",
        responses={
            200: {
                'type': 'object',
                'properties': {
                    'status': {'type': 'string', 'enum': ['healthy', 'degraded']},
                    'timestamp': {'type': 'string', 'format': 'date-time'},
                    'version': {'type': 'string'},
                    'database': {'type': 'string'},
                    'cache': {'type': 'string'},
                }
            },
            503: {
                'type': 'object',
                'properties': {
                    'status': {'type': 'string', 'enum': ['unhealthy']},
                    'timestamp': {'type': 'string', 'format': 'date-time'},
                    'version': {'type': 'string'},
                    'database': {'type': 'string'},
                    'cache': {'type': 'string'},
                }
            },
        },
        tags=['Health'],
    )
    def get(self, request):
        health_status = {
            'status': 'healthy',
            'timestamp': timezone.now().isoformat(),
            'version': settings.APP_VERSION,
            'database': 'unknown',
            'cache': 'unknown',
        }

        try:
            with connection.cursor() as cursor:
                cursor.execute("SELECT 1")
                cursor.fetchone()
            health_status['database'] = 'healthy'
        except Exception as exc:
            health_status['database'] = 'unhealthy'
            logger.error("Database health check failed", exc=exc)

        try:
            cache.set('health_check', 'ok', timeout=10)
            if cache.get('health_check') == 'ok':
                health_status['cache'] = 'healthy'
            else:
                health_status['cache'] = 'unhealthy'
        except Exception as exc:
            health_status['cache'] = 'unhealthy'
            logger.error("Cache health check failed", exc=exc)

        if health_status['database'] != 'healthy':
            health_status['status'] = 'unhealthy'
            return Response(health_status, status=status.HTTP_503_SERVICE_UNAVAILABLE)

        if health_status['cache'] != 'healthy':
            health_status['status'] = 'degraded'

        return Response(health_status, status=status.HTTP_200_OK)


class ActionView(APIView):
    """
    Expose a ``with_auth`` action over HTTP.

    GET passes the query string to the action, POST the JSON body. Sessions
    that do not resolve are redirected to the login page; everything else is
    answered with the action result envelope.

    Usage::

        path('workflows/create', ActionView.as_view(
            server_action=actions.create_workflow,
            http_method_names=['post'],
        ))
    """
    server_action = None

    def get(self, request, *args, **kwargs):
        return self.run_action(request, request.query_params.dict(), kwargs)

    def post(self, request, *args, **kwargs):
        data = request.data if isinstance(request.data, dict) else {'items': request.data}
        return self.run_action(request, dict(data), kwargs)

    def run_action(self, request, data, url_kwargs):
        data.update(url_kwargs)
        result = self.server_action(request, data)

        if isinstance(result, Unauthenticated):
            return login_redirect(request, result)

        if result.success:
            return Response(result.to_dict(), status=status.HTTP_200_OK)
        return Response(result.to_dict(), status=http_status_for(result.error.code))
