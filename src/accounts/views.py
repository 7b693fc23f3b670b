"""Authentication and user management views for the JSON API."""

import json
import logging

from django_ratelimit.decorators import ratelimit

from django.contrib.auth import (
    authenticate,
    get_user_model,
    login,
    logout,
    update_session_auth_hash,
)
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError
from django.db.models import ProtectedError
from django.forms.models import model_to_dict
from django.http import HttpResponse, JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.csrf import ensure_csrf_cookie
from django.views.decorators.http import require_GET, require_POST

from assets.exceptions import ConflictError
from assets.services import audit
from assets.services.permissions import require_admin
from assets.views import api_view, form_data, form_error, json_object

from .forms import UserForm

logger = logging.getLogger(__name__)

User = get_user_model()

# API payload key -> form field name
USER_KEYS = {
    "username": "username",
    "email": "email",
    "displayName": "display_name",
    "role": "role",
    "isActive": "is_active",
    "mustChangePassword": "must_change_password",
    "password": "password",
}


def serialize_user(user):
    return {
        "id": user.pk,
        "username": user.username,
        "email": user.email,
        "displayName": user.get_display_name(),
        "role": "admin" if user.is_admin else user.role,
        "mustChangePassword": user.must_change_password,
        "isActive": user.is_active,
    }


def _json_body(request):
    try:
        data = json.loads(request.body or b"{}")
    except (json.JSONDecodeError, ValueError):
        return None
    return data if isinstance(data, dict) else None


@require_POST
@ratelimit(key="ip", rate="5/m", method="POST", block=False)
def login_view(request):
    """Authenticate with username/email and password."""
    if getattr(request, "limited", False):
        return JsonResponse(
            {"error": "Too many login attempts. Please try again shortly."},
            status=429,
        )
    data = _json_body(request)
    if data is None:
        return JsonResponse({"error": "Invalid JSON"}, status=400)

    username = str(data.get("username", "")).strip()
    password = data.get("password") or ""
    user = authenticate(request, username=username, password=password)
    if user is None:
        logger.info("Failed login for '%s'", username)
        return JsonResponse(
            {"error": "Incorrect username or password."}, status=401
        )
    login(request, user)
    return JsonResponse(serialize_user(user))


@require_POST
def logout_view(request):
    logout(request)
    return JsonResponse({"message": "Logged out"})


@require_GET
@ensure_csrf_cookie
def me_view(request):
    """Return the current session user."""
    if not request.user.is_authenticated:
        return JsonResponse({"error": "Not authenticated"}, status=401)
    return JsonResponse(serialize_user(request.user))


@require_POST
def password_change_view(request):
    """Change the current user's password and keep the session."""
    if not request.user.is_authenticated:
        return JsonResponse({"error": "Not authenticated"}, status=401)
    data = _json_body(request)
    if data is None:
        return JsonResponse({"error": "Invalid JSON"}, status=400)

    user = request.user
    new_password = data.get("newPassword") or ""
    current = data.get("currentPassword")
    # Users forced to change a seeded password may skip the current one
    if not user.must_change_password and not user.check_password(
        current or ""
    ):
        return JsonResponse(
            {
                "error": "Current password is incorrect.",
                "field": "currentPassword",
            },
            status=400,
        )
    try:
        validate_password(new_password, user)
    except ValidationError as exc:
        return JsonResponse(
            {"error": " ".join(exc.messages), "field": "newPassword"},
            status=400,
        )
    user.set_password(new_password)
    user.must_change_password = False
    user.save(update_fields=["password", "must_change_password"])
    update_session_auth_hash(request, user)
    return JsonResponse({"message": "Password updated successfully"})


# --- User management ---


@api_view(["GET", "POST"])
def user_list(request):
    require_admin(request.user)
    if request.method == "GET":
        return JsonResponse(
            [serialize_user(u) for u in User.objects.order_by("username")],
            safe=False,
        )

    form = UserForm(
        form_data(
            json_object(request),
            USER_KEYS,
            {"role": User.ROLE_EMPLOYEE, "is_active": True},
        )
    )
    if not form.is_valid():
        raise form_error(form, USER_KEYS)
    user = form.save()
    audit.record(
        request.user,
        "Create User",
        user,
        details={"username": user.username, "role": user.role},
    )
    logger.info("User %s created by %s", user.username, request.user)
    return JsonResponse(serialize_user(user), status=201)


@api_view(["GET", "PATCH", "PUT", "DELETE"])
def user_detail(request, pk):
    require_admin(request.user)
    user = get_object_or_404(User, pk=pk)
    if request.method == "GET":
        return JsonResponse(serialize_user(user))

    is_self = user.pk == request.user.pk
    if request.method == "DELETE":
        if is_self:
            raise ConflictError("You cannot delete your own account.")
        username = user.username
        try:
            user.delete()
        except ProtectedError:
            raise ConflictError(
                "This user has recorded verifications; deactivate the "
                "account instead."
            )
        audit.record(
            request.user,
            "Delete User",
            entity_type="CustomUser",
            entity_id=pk,
            details={"username": username},
        )
        return HttpResponse(status=204)

    form = UserForm(
        form_data(
            json_object(request),
            USER_KEYS,
            model_to_dict(user, fields=UserForm.Meta.fields),
        ),
        instance=user,
    )
    if not form.is_valid():
        raise form_error(form, USER_KEYS)
    if is_self and (
        not form.cleaned_data["is_active"]
        or (
            form.cleaned_data["role"] != User.ROLE_ADMIN
            and not user.is_superuser
        )
    ):
        raise ConflictError(
            "You cannot remove your own admin access.", field="role"
        )
    changed = form.changed_data
    user = form.save()
    if is_self and "password" in changed:
        update_session_auth_hash(request, user)
    audit.record(
        request.user,
        "Update User",
        user,
        # Never log the password itself
        details={"changed": changed},
    )
    return JsonResponse(serialize_user(user))
