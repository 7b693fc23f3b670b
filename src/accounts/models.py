"""Custom user model for the asset tracker."""

from django.contrib.auth.models import AbstractUser
from django.db import models


class CustomUser(AbstractUser):
    """Application user with a coarse role and a display name."""

    ROLE_ADMIN = "admin"
    ROLE_VERIFIER = "verifier"
    ROLE_EMPLOYEE = "employee"

    ROLE_CHOICES = [
        (ROLE_ADMIN, "Admin"),
        (ROLE_VERIFIER, "Verifier"),
        (ROLE_EMPLOYEE, "Employee"),
    ]

    role = models.CharField(
        max_length=20,
        choices=ROLE_CHOICES,
        default=ROLE_EMPLOYEE,
    )
    display_name = models.CharField(
        max_length=255,
        blank=True,
        help_text="Human-readable name shown in audit records",
    )
    must_change_password = models.BooleanField(
        default=False,
        help_text="Force a password change on next login",
    )

    class Meta:
        verbose_name = "user"
        verbose_name_plural = "users"

    @property
    def is_admin(self):
        return self.is_superuser or self.role == self.ROLE_ADMIN

    def get_display_name(self):
        """Return display_name if set, otherwise full name or username."""
        if self.display_name:
            return self.display_name
        full = self.get_full_name()
        return full if full else self.username

    def __str__(self):
        return self.get_display_name()
