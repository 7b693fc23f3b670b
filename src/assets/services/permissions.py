"""Role checks for the admin / verifier / employee roles."""

from django.contrib.auth import get_user_model

from ..exceptions import AuthorizationError

User = get_user_model()


def get_user_role(user: User) -> str:
    """Return 'admin', 'verifier', 'employee' or 'anonymous'."""
    if user is None or not user.is_authenticated:
        return "anonymous"
    if user.is_admin:
        return User.ROLE_ADMIN
    return user.role


def can_manage(user: User) -> bool:
    """Admins alone may create, edit, allocate, return and import."""
    return get_user_role(user) == User.ROLE_ADMIN


def require_admin(user: User) -> None:
    if not can_manage(user):
        raise AuthorizationError(
            "Only administrators can perform this action."
        )
