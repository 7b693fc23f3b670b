"""Admin configuration for accounts app."""

import logging

from unfold.admin import ModelAdmin
from unfold.decorators import action, display

from django.contrib import admin, messages
from django.contrib.admin.models import CHANGE, LogEntry
from django.contrib.auth.admin import UserAdmin
from django.contrib.contenttypes.models import ContentType

from .forms import CustomUserChangeForm, CustomUserCreationForm
from .models import CustomUser

logger = logging.getLogger(__name__)


@admin.register(CustomUser)
class CustomUserAdmin(UserAdmin, ModelAdmin):
    add_form = CustomUserCreationForm
    form = CustomUserChangeForm
    model = CustomUser
    list_display = [
        "display_user",
        "email",
        "display_role",
        "display_staff",
        "display_active",
    ]
    list_filter = [
        "role",
        "is_active",
        "is_staff",
        "is_superuser",
    ]
    search_fields = [
        "username",
        "email",
        "display_name",
        "first_name",
        "last_name",
    ]
    fieldsets = (
        (
            "Profile",
            {
                "classes": ["tab"],
                "fields": (
                    "username",
                    "password",
                    "display_name",
                    "first_name",
                    "last_name",
                    "email",
                ),
            },
        ),
        (
            "Permissions",
            {
                "classes": ["tab"],
                "fields": (
                    "role",
                    "must_change_password",
                    "is_active",
                    "is_staff",
                    "is_superuser",
                ),
            },
        ),
        (
            "Activity",
            {
                "classes": ["tab"],
                "fields": ("last_login", "date_joined"),
            },
        ),
    )
    readonly_fields = ["last_login", "date_joined"]
    add_fieldsets = UserAdmin.add_fieldsets + (
        (
            "Additional Info",
            {"fields": ("email", "display_name", "role")},
        ),
    )

    @display(description="User", header=True, ordering="username")
    def display_user(self, obj):
        name = obj.display_name or obj.get_full_name() or obj.username
        return name, obj.username

    @display(
        description="Role",
        label={
            CustomUser.ROLE_ADMIN: "danger",
            CustomUser.ROLE_VERIFIER: "warning",
            CustomUser.ROLE_EMPLOYEE: "info",
        },
    )
    def display_role(self, obj):
        return obj.role

    @display(description="Staff", boolean=True)
    def display_staff(self, obj):
        return obj.is_staff

    @display(description="Active", boolean=True)
    def display_active(self, obj):
        return obj.is_active

    actions = ["make_admin", "make_verifier", "make_employee"]

    def _log_change(self, request, user, message):
        """Create a LogEntry for a bulk action change."""
        ct = ContentType.objects.get_for_model(user)
        LogEntry.objects.create(
            user_id=request.user.pk,
            content_type_id=ct.pk,
            object_id=str(user.pk),
            object_repr=str(user),
            action_flag=CHANGE,
            change_message=message,
        )

    def _set_role(self, request, queryset, role):
        if role != CustomUser.ROLE_ADMIN and queryset.filter(
            pk=request.user.pk
        ).exists():
            messages.error(request, "You cannot demote your own account.")
            return
        for user in queryset:
            user.role = role
            user.save(update_fields=["role"])
            self._log_change(request, user, f"Role set to '{role}'")
        logger.info(
            "%s set role '%s' on %d user(s)",
            request.user,
            role,
            queryset.count(),
        )
        messages.success(
            request, f"Role '{role}' assigned to {queryset.count()} user(s)."
        )

    @action(description="Set role: admin")
    def make_admin(self, request, queryset):
        self._set_role(request, queryset, CustomUser.ROLE_ADMIN)

    @action(description="Set role: verifier")
    def make_verifier(self, request, queryset):
        self._set_role(request, queryset, CustomUser.ROLE_VERIFIER)

    @action(description="Set role: employee")
    def make_employee(self, request, queryset):
        self._set_role(request, queryset, CustomUser.ROLE_EMPLOYEE)
