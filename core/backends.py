"""
Email-based authentication backend.

Marketplace accounts sign in with their email address; the username field
only exists because AbstractUser requires it.
"""

from django.contrib.auth import get_user_model
from django.contrib.auth.backends import ModelBackend

User = get_user_model()


class EmailBackend(ModelBackend):
    """
    Authenticate with email (case-insensitive) and password.

    Used by django.contrib.auth.authenticate(), which is what the simplejwt
    token endpoint (api/token/) calls with ``email=...``.
    """

    def authenticate(self, request, username=None, password=None, **kwargs):
        email = kwargs.get('email', username)

        if email is None or password is None:
            return None

        try:
            user = User.objects.get(email__iexact=email.strip())
        except User.DoesNotExist:
            # Hash once anyway so unknown emails take as long as wrong passwords
            User().set_password(password)
            return None

        if user.check_password(password) and self.user_can_authenticate(user):
            return user

        return None

    def get_user(self, user_id):
        try:
            user = User.objects.get(pk=user_id)
        except User.DoesNotExist:
            return None
        return user if self.user_can_authenticate(user) else None
