"""Forms for the accounts app."""

from django import forms
from django.contrib.auth.forms import UserChangeForm, UserCreationForm
from django.contrib.auth.password_validation import validate_password
from django.core.exceptions import ValidationError as DjangoValidationError

from .models import CustomUser


class CustomUserCreationForm(UserCreationForm):
    class Meta:
        model = CustomUser
        fields = ("username", "email", "display_name", "role")


class CustomUserChangeForm(UserChangeForm):
    class Meta:
        model = CustomUser
        fields = (
            "username",
            "email",
            "display_name",
            "role",
            "first_name",
            "last_name",
            "must_change_password",
        )


class UserForm(forms.ModelForm):
    """Create or edit a user through the JSON API.

    ``password`` is required on create and optional on edit; when given
    it is validated and stored hashed.
    """

    password = forms.CharField(required=False, strip=False)

    class Meta:
        model = CustomUser
        fields = (
            "username",
            "email",
            "display_name",
            "role",
            "is_active",
            "must_change_password",
        )

    def clean_password(self):
        password = self.cleaned_data.get("password") or ""
        if not password:
            if self.instance.pk is None:
                raise forms.ValidationError("A password is required.")
            return ""
        try:
            validate_password(password, self.instance)
        except DjangoValidationError as exc:
            raise forms.ValidationError(exc.messages)
        return password

    def save(self, commit=True):
        user = super().save(commit=False)
        password = self.cleaned_data.get("password")
        if password:
            user.set_password(password)
        if commit:
            user.save()
        return user
