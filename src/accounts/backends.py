"""Custom authentication backend for the asset tracker."""

from django.contrib.auth import get_user_model
from django.contrib.auth.backends import ModelBackend

User = get_user_model()


class EmailOrUsernameBackend(ModelBackend):
    """Allow login with either email address or username.

    Usernames are frequently e-mail addresses themselves, so an exact
    username match is tried before falling back to the email column.
    """

    def authenticate(self, request, username=None, password=None, **kwargs):
        if username is None or password is None:
            return None

        user = User.objects.filter(username=username).first()
        if user is None and "@" in username:
            users = User.objects.filter(email__iexact=username)
            if users.count() != 1:
                return None
            user = users.first()
        if user is None:
            return None

        if user.check_password(password) and self.user_can_authenticate(user):
            return user
        return None
