"""Forms validating JSON payloads for the assets API."""

from django import forms

from .exceptions import ServiceError
from .models import Asset, AssetType, EmailSettings, Employee, Verification
from .services.specifications import clean_specifications

# Statuses an asset may be created with. Allocated is reached only by
# allocating it.
CREATE_STATUS_CHOICES = [
    (status, label)
    for status, label in Asset.STATUS_CHOICES
    if status not in (Asset.ALLOCATED, Asset.RETURNED)
]


class EmployeeForm(forms.ModelForm):
    class Meta:
        model = Employee
        fields = [
            "emp_id",
            "name",
            "email",
            "branch",
            "department",
            "designation",
            "mobile",
            "status",
            "date_of_joining",
        ]

    def clean_emp_id(self):
        emp_id = self.cleaned_data["emp_id"].strip()
        if not emp_id:
            raise forms.ValidationError("Employee ID is required.")
        return emp_id


class AssetTypeForm(forms.ModelForm):
    """Asset type creation/editing form."""

    schema = forms.JSONField(required=False)

    class Meta:
        model = AssetType
        fields = ["name", "description", "schema"]

    def clean_name(self):
        name = self.cleaned_data["name"].strip()
        qs = AssetType.objects.filter(name__iexact=name)
        if self.instance.pk:
            qs = qs.exclude(pk=self.instance.pk)
        if qs.exists():
            raise forms.ValidationError(
                f"An asset type named '{name}' already exists."
            )
        return name

    def clean_schema(self):
        return self.cleaned_data.get("schema") or []


class AssetForm(forms.ModelForm):
    """Asset creation/editing form.

    Specifications are checked against the asset type's schema,
    including required fields. Status is not edited here; updates go
    through the state machine.
    """

    specifications = forms.JSONField(required=False)
    images = forms.JSONField(required=False)

    class Meta:
        model = Asset
        fields = ["asset_type", "serial_number", "specifications", "images"]

    def clean_serial_number(self):
        serial = Asset.normalize_serial(self.cleaned_data["serial_number"])
        if not serial:
            raise forms.ValidationError("Serial number is required.")
        qs = Asset.objects.filter(serial_number__iexact=serial)
        if self.instance.pk:
            qs = qs.exclude(pk=self.instance.pk)
        if qs.exists():
            raise forms.ValidationError(
                f"An asset with serial number '{serial}' already exists."
            )
        return serial

    def clean_images(self):
        images = self.cleaned_data.get("images") or []
        if not isinstance(images, list) or not all(
            isinstance(url, str) for url in images
        ):
            raise forms.ValidationError("Images must be a list of URLs.")
        return images

    def clean(self):
        cleaned = super().clean()
        asset_type = cleaned.get("asset_type")
        if asset_type is not None:
            try:
                cleaned["specifications"] = clean_specifications(
                    asset_type, cleaned.get("specifications") or {}
                )
            except ServiceError as exc:
                self.add_error("specifications", exc.message)
        return cleaned


class AssetCreateForm(AssetForm):
    status = forms.ChoiceField(
        choices=CREATE_STATUS_CHOICES, initial=Asset.AVAILABLE, required=False
    )

    class Meta(AssetForm.Meta):
        fields = AssetForm.Meta.fields + ["status"]

    def clean_status(self):
        return self.cleaned_data.get("status") or Asset.AVAILABLE


class VerificationForm(forms.ModelForm):
    images = forms.JSONField(required=False)

    class Meta:
        model = Verification
        fields = ["asset", "status", "remarks", "images"]

    def clean_images(self):
        return self.cleaned_data.get("images") or []


class EmailSettingsForm(forms.ModelForm):
    """SMTP settings; a blank password keeps the stored one."""

    password = forms.CharField(required=False, strip=False)

    class Meta:
        model = EmailSettings
        fields = [
            "host",
            "port",
            "use_tls",
            "use_ssl",
            "username",
            "password",
            "from_email",
        ]

    def clean_password(self):
        password = self.cleaned_data.get("password")
        if not password and self.instance.pk:
            return self.instance.password
        return password or ""
