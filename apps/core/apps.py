from django.apps import AppConfig
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured

from apps.core.logging import get_logger

logger = get_logger(__name__)


class CoreConfig(AppConfig):
    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.core'
    verbose_name = 'Core'

    def ready(self):
        """
        Validate configuration once at startup, before requests are served.
        """
        self._validate_security_settings()
        self._validate_session_settings()

    def _validate_security_settings(self):
        secret_key = getattr(settings, 'SECRET_KEY', None)
        if not secret_key:
            raise ImproperlyConfigured("SECRET_KEY must be set in environment variables.")

        if not settings.DEBUG and secret_key == settings.INSECURE_DEFAULT_SECRET_KEY:
            raise ImproperlyConfigured(
                "SECRET_KEY is the development default. "
                "Generate a strong key with: "
                "python -c \"import secrets; print(secrets.token_urlsafe(50))\""
            )

        if not settings.DEBUG and not getattr(settings, 'SESSION_COOKIE_SECURE', False):
            logger.warn("SESSION_COOKIE_SECURE is not enabled in production")

    def _validate_session_settings(self):
        if settings.SESSION_REFRESH_THRESHOLD >= settings.SESSION_COOKIE_AGE:
            raise ImproperlyConfigured(
                "SESSION_REFRESH_THRESHOLD must be shorter than SESSION_COOKIE_AGE."
            )
