"""
Email and password authentication backend.

Used by the login endpoint and the Django admin.
"""
from django.contrib.auth import get_user_model
from django.contrib.auth.backends import BaseBackend
from django.core.exceptions import ValidationError

User = get_user_model()


class EmailAuthBackend(BaseBackend):
    """
    Authenticate using email address instead of username.

    Disabled users never authenticate.
    """

    def authenticate(self, request, username=None, password=None, **kwargs):
        # Django admin passes the email as 'username'
        email = username or kwargs.get('email')

        if not email or not password:
            return None

        user = User.objects.by_email(email)
        if user is None:
            # Run the default password hasher once to reduce the timing
            # difference between existing and non-existing users
            User().set_password(password)
            return None

        if user.check_password(password) and user.is_active:
            return user
        return None

    def get_user(self, user_id):
        try:
            return User.objects.get(pk=user_id)
        except (User.DoesNotExist, ValidationError):
            return None
