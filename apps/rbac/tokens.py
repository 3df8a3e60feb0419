"""
One-time sign-in links for invitations and password recovery.

Links point at ``/auth/callback`` and carry a uid and a token from
``InvitationTokenGenerator``. A token stops verifying once the user logs in
or changes their password, or after PASSWORD_RESET_TIMEOUT seconds.
"""
from urllib.parse import urlencode

from django.conf import settings
from django.contrib.auth.tokens import PasswordResetTokenGenerator
from django.core.mail import send_mail
from django.utils.encoding import force_bytes, force_str
from django.utils.http import urlsafe_base64_decode, urlsafe_base64_encode

from apps.core.exceptions import SystemFailure

CALLBACK_PATH = '/auth/callback'


class InvitationTokenGenerator(PasswordResetTokenGenerator):
    key_salt = 'apps.rbac.tokens.InvitationTokenGenerator'

    def _make_hash_value(self, user, timestamp):
        login_timestamp = (
            '' if user.last_login_at is None
            else user.last_login_at.replace(microsecond=0, tzinfo=None)
        )
        return f'{user.pk}{user.password_hash}{login_timestamp}{timestamp}{user.email}'


token_generator = InvitationTokenGenerator()


def encode_uid(user):
    return urlsafe_base64_encode(force_bytes(user.pk))


def decode_uid(uidb64):
    """Return the user id encoded in ``uidb64``, or None when malformed."""
    try:
        return force_str(urlsafe_base64_decode(uidb64))
    except (TypeError, ValueError, OverflowError):
        return None


def build_callback_url(user, next_path=None):
    """
    Absolute sign-in link for ``user``. After signing in the browser goes to
    ``next_path``, by default the frontend page where a password is chosen.
    """
    query = urlencode({
        'uid': encode_uid(user),
        'token': token_generator.make_token(user),
        'next': next_path or settings.SET_PASSWORD_URL,
    })
    return f'{settings.FRONTEND_URL.rstrip("/")}{CALLBACK_PATH}?{query}'


def _send(user, subject, body):
    try:
        send_mail(subject, body, settings.DEFAULT_FROM_EMAIL, [user.email], fail_silently=False)
    except Exception as exc:
        raise SystemFailure('Failed to send the email') from exc


def send_invitation_email(user, tenant, invited_by):
    link = build_callback_url(user)
    _send(
        user,
        f"You've been invited to {tenant.name} on OpsHub",
        f"""Hello,

{invited_by.get_full_name()} has invited you to join {tenant.name} on OpsHub.

Use this link to sign in and choose a password:
{link}

The link can only be used once.
""",
    )


def send_password_reset_email(user):
    link = build_callback_url(user)
    _send(
        user,
        'Reset your OpsHub password',
        f"""Hello,

An administrator requested a password reset for your OpsHub account.

Use this link to sign in and choose a new password:
{link}

If you did not expect this email you can ignore it.
""",
    )
