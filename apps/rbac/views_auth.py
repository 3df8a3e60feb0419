"""
Session authentication views.

Implements endpoints for:
- Login (email and password, rate limited)
- Invitation and recovery links
- Logout

These live outside ``/v1`` because unauthenticated actions redirect to
``/login`` and emailed links point at ``/auth/callback``.
"""
import uuid

from django.conf import settings
from django.contrib.auth import authenticate, get_user, login, logout
from django.shortcuts import redirect
from django.utils import timezone
from django.utils.decorators import method_decorator
from django.utils.http import url_has_allowed_host_and_scheme
from django_ratelimit.decorators import ratelimit
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiExample, extend_schema
from rest_framework import status
from rest_framework.exceptions import ValidationError
from rest_framework.response import Response
from rest_framework.views import APIView

from apps.core.actions import get_client_ip
from apps.core.exceptions import (
    RATE_LIMIT_CODE,
    RATE_LIMIT_RETRY_AFTER,
    AuthenticationRequired,
    classify_failure,
    error_body,
)
from apps.core.logging import PIIMasker, get_logger
from apps.rbac.models import User
from apps.rbac.serializers import LoginSerializer
from apps.rbac.tokens import decode_uid, token_generator

logger = get_logger(__name__)

AUTH_BACKEND = 'apps.rbac.backends.EmailAuthBackend'
DEFAULT_NEXT = '/'


def safe_next(request, target):
    """Only same-host relative targets are followed after sign-in."""
    if target and url_has_allowed_host_and_scheme(
        target,
        allowed_hosts={request.get_host()},
        require_https=request.is_secure(),
    ):
        return target
    return DEFAULT_NEXT


@extend_schema(
    tags=['Authentication'],
    summary='Sign in',
    description='''
Authenticate with email and password and open a session.

**No authentication required** - this is a public endpoint.

**Rate limit**: 5 requests/minute per IP
    ''',
    request=LoginSerializer,
    responses={
        200: OpenApiTypes.OBJECT,
        400: OpenApiTypes.OBJECT,
        401: OpenApiTypes.OBJECT,
        429: OpenApiTypes.OBJECT,
    },
    examples=[
        OpenApiExample(
            'Login Request',
            value={'email': 'user@example.com', 'password': 'SecurePass123!', 'next': '/workflows'},
            request_only=True
        ),
    ]
)
@method_decorator(ratelimit(key='ip', rate='5/m', method='POST', block=False), name='dispatch')
class LoginView(APIView):
    """
    GET /login reports whether the session is signed in.
    POST /login signs in.

    No authentication required.
    """
    authentication_classes = []
    permission_classes = []

    def get(self, request):
        # With no authentication classes DRF sets request.user to AnonymousUser
        # so the user comes from the session
        user = get_user(request._request)
        signed_in = bool(user.is_authenticated and user.is_active)
        return Response({
            'success': True,
            'data': {
                'authenticated': signed_in,
                'email': user.email if signed_in else None,
                'next': safe_next(request, request.query_params.get('next')),
            },
        })

    def post(self, request):
        """Login user."""
        if getattr(request, 'limited', False):
            logger.warn("Login rate limit exceeded", {
                'request_id': getattr(request, 'request_id', None),
                'ip': get_client_ip(request),
            })
            response = Response(
                error_body(RATE_LIMIT_CODE, 'Too many attempts. Please try again later.'),
                status=status.HTTP_429_TOO_MANY_REQUESTS,
            )
            response['Retry-After'] = str(RATE_LIMIT_RETRY_AFTER)
            return response

        serializer = LoginSerializer(data=request.data)
        if not serializer.is_valid():
            failure = classify_failure(ValidationError(serializer.errors))
            return Response(
                error_body(failure.code, failure.message, failure.fields),
                status=status.HTTP_400_BAD_REQUEST,
            )

        email = serializer.validated_data['email']
        user = authenticate(request._request, email=email, password=serializer.validated_data['password'])

        if user is None:
            logger.warn("Failed login attempt", {
                'request_id': getattr(request, 'request_id', None),
                'email': PIIMasker.mask_email(email),
                'ip': get_client_ip(request),
            })
            return Response(
                error_body(AuthenticationRequired.default_code, 'Invalid email or password'),
                status=status.HTTP_401_UNAUTHORIZED,
            )

        login(request._request, user, backend=AUTH_BACKEND)
        user.update_last_login()

        logger.info("User signed in", {
            'request_id': getattr(request, 'request_id', None),
            'user_id': str(user.id),
        })

        return Response({
            'success': True,
            'data': {
                'user_id': str(user.id),
                'email': user.email,
                'next': safe_next(request, serializer.validated_data.get('next')),
            },
        })


class AuthCallbackView(APIView):
    """
    GET /auth/callback?uid=&token=&next=

    Target of invitation and password recovery emails. A valid link confirms
    the email address, opens a session and redirects to ``next``; anything
    else goes back to the login page.
    """
    authentication_classes = []
    permission_classes = []

    def get(self, request):
        uid = decode_uid(request.query_params.get('uid', ''))
        token = request.query_params.get('token', '')

        user = User.objects.filter(pk=uid).first() if _is_uuid(uid) else None
        if user is None or not user.is_active or not token_generator.check_token(user, token):
            logger.warn("Invalid or expired auth link", {
                'request_id': getattr(request, 'request_id', None),
                'ip': get_client_ip(request),
            })
            return redirect(f'{settings.LOGIN_URL}?error=invalid_link')

        if user.email_confirmed_at is None:
            user.email_confirmed_at = timezone.now()
            user.save(update_fields=['email_confirmed_at', 'updated_at'])

        login(request._request, user, backend=AUTH_BACKEND)
        # Also invalidates the token just used
        user.update_last_login()

        logger.info("User signed in from emailed link", {
            'request_id': getattr(request, 'request_id', None),
            'user_id': str(user.id),
        })
        return redirect(safe_next(request, request.query_params.get('next')))


class LogoutView(APIView):
    """
    GET|POST /auth/logout

    Ends the session and returns to the login page.
    """
    authentication_classes = []
    permission_classes = []

    def get(self, request):
        return self._logout(request)

    def post(self, request):
        return self._logout(request)

    def _logout(self, request):
        logout(request._request)
        return redirect(settings.LOGIN_URL)


def _is_uuid(value):
    try:
        uuid.UUID(str(value))
    except (TypeError, ValueError):
        return False
    return True
