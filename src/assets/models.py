"""Models for asset allocation tracking."""

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models.functions import Lower
from django.utils import timezone


class AssetType(models.Model):
    """A category of asset carrying a user-defined attribute schema.

    ``schema`` is an ordered list of field definitions::

        [{"name": "RAM", "type": "number", "required": true},
         {"name": "OS", "type": "select", "options": ["Linux", "Windows"]}]
    """

    FIELD_TYPES = ("text", "number", "boolean", "date", "select")

    name = models.CharField(max_length=100)
    description = models.TextField(blank=True)
    schema = models.JSONField(default=list, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["name"]
        constraints = [
            models.UniqueConstraint(
                Lower("name"),
                name="unique_asset_type_name_ci",
            ),
        ]

    def __str__(self):
        return self.name

    def clean(self):
        super().clean()
        self.name = (self.name or "").strip()
        if not isinstance(self.schema, list):
            raise ValidationError({"schema": "Schema must be a list."})
        seen = set()
        for field in self.schema:
            if not isinstance(field, dict) or not field.get("name"):
                raise ValidationError(
                    {"schema": "Every schema field needs a name."}
                )
            key = str(field["name"]).lower()
            if key in seen:
                raise ValidationError(
                    {"schema": f"Duplicate schema field '{field['name']}'."}
                )
            seen.add(key)
            if field.get("type", "text") not in self.FIELD_TYPES:
                raise ValidationError(
                    {
                        "schema": f"Unknown field type '{field.get('type')}' "
                        f"for '{field['name']}'."
                    }
                )

    @property
    def field_names(self):
        return [str(f["name"]) for f in self.schema or [] if f.get("name")]


class Asset(models.Model):
    """One physical item, identified by its serial number."""

    AVAILABLE = "Available"
    ALLOCATED = "Allocated"
    RETURNED = "Returned"
    DAMAGED = "Damaged"
    LOST = "Lost"
    SCRAPPED = "Scrapped"

    STATUS_CHOICES = [
        (AVAILABLE, "Available"),
        (ALLOCATED, "Allocated"),
        (RETURNED, "Returned"),
        (DAMAGED, "Damaged"),
        (LOST, "Lost"),
        (SCRAPPED, "Scrapped"),
    ]

    # Statuses an asset may take when its allocation is returned
    RETURN_STATUSES = (AVAILABLE, DAMAGED, SCRAPPED)

    # Direct (non-allocation) edits. Allocated is entered and left only
    # through allocate/return.
    VALID_TRANSITIONS = {
        AVAILABLE: [DAMAGED, LOST, SCRAPPED],
        ALLOCATED: [],
        RETURNED: [AVAILABLE, DAMAGED, LOST, SCRAPPED],
        DAMAGED: [AVAILABLE, LOST, SCRAPPED],
        LOST: [AVAILABLE, DAMAGED, SCRAPPED],
        SCRAPPED: [AVAILABLE],
    }

    asset_type = models.ForeignKey(
        AssetType,
        on_delete=models.PROTECT,
        related_name="assets",
    )
    serial_number = models.CharField(max_length=100, unique=True)
    status = models.CharField(
        max_length=20, choices=STATUS_CHOICES, default=AVAILABLE
    )
    specifications = models.JSONField(default=dict, blank=True)
    images = models.JSONField(default=list, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-updated_at"]
        indexes = [
            models.Index(fields=["status"], name="idx_asset_status"),
        ]

    def __str__(self):
        return f"{self.serial_number} ({self.asset_type})"

    @staticmethod
    def normalize_serial(value):
        return str(value or "").strip().upper()

    def save(self, *args, **kwargs):
        self.serial_number = self.normalize_serial(self.serial_number)
        super().save(*args, **kwargs)

    def clean(self):
        super().clean()
        if not self.normalize_serial(self.serial_number):
            raise ValidationError(
                {"serial_number": "Serial number is required."}
            )

    def can_transition_to(self, new_status):
        """Check if a direct status edit is valid."""
        return new_status in self.VALID_TRANSITIONS.get(self.status, [])

    @property
    def active_allocation(self):
        return self.allocations.filter(status=Allocation.ACTIVE).first()


class Employee(models.Model):
    """A member of staff who can hold assets."""

    ACTIVE = "Active"
    INACTIVE = "Inactive"

    STATUS_CHOICES = [
        (ACTIVE, "Active"),
        (INACTIVE, "Inactive"),
    ]

    emp_id = models.CharField(max_length=50, unique=True)
    name = models.CharField(max_length=200)
    email = models.EmailField(blank=True)
    branch = models.CharField(max_length=100, blank=True)
    department = models.CharField(max_length=100, blank=True)
    designation = models.CharField(max_length=100, blank=True)
    mobile = models.CharField(max_length=30, blank=True)
    status = models.CharField(
        max_length=20, choices=STATUS_CHOICES, default=ACTIVE
    )
    date_of_joining = models.DateField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["name"]
        indexes = [
            models.Index(fields=["branch"], name="idx_employee_branch"),
            models.Index(
                fields=["department"], name="idx_employee_department"
            ),
        ]

    def __str__(self):
        return f"{self.name} ({self.emp_id})"

    def save(self, *args, **kwargs):
        self.emp_id = str(self.emp_id or "").strip()
        super().save(*args, **kwargs)


class Allocation(models.Model):
    """Assignment of one asset to one employee for a span of time.

    Rows are never deleted: returned allocations form the asset's
    allocation history.
    """

    ACTIVE = "Active"
    RETURNED = "Returned"

    STATUS_CHOICES = [
        (ACTIVE, "Active"),
        (RETURNED, "Returned"),
    ]

    asset = models.ForeignKey(
        Asset, on_delete=models.PROTECT, related_name="allocations"
    )
    employee = models.ForeignKey(
        Employee, on_delete=models.PROTECT, related_name="allocations"
    )
    allocated_at = models.DateTimeField(default=timezone.now)
    status = models.CharField(
        max_length=20, choices=STATUS_CHOICES, default=ACTIVE
    )
    return_date = models.DateTimeField(null=True, blank=True)
    return_reason = models.TextField(blank=True)
    remarks = models.TextField(blank=True)
    details = models.JSONField(default=dict, blank=True)
    pdf_url = models.CharField(max_length=500, blank=True)

    class Meta:
        ordering = ["-allocated_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["asset"],
                condition=models.Q(status="Active"),
                name="unique_active_allocation_per_asset",
            ),
        ]
        indexes = [
            models.Index(fields=["status"], name="idx_allocation_status"),
        ]

    def __str__(self):
        return f"{self.asset.serial_number} -> {self.employee.emp_id}"

    def delete(self, *args, **kwargs):
        raise ValidationError("Allocations are permanent history.")


class Verification(models.Model):
    """A reviewer's check of an asset's presence and condition."""

    PENDING = "Pending"
    APPROVED = "Approved"
    REJECTED = "Rejected"

    STATUS_CHOICES = [
        (PENDING, "Pending"),
        (APPROVED, "Approved"),
        (REJECTED, "Rejected"),
    ]

    asset = models.ForeignKey(
        Asset, on_delete=models.PROTECT, related_name="verifications"
    )
    verifier = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="verifications",
    )
    verified_at = models.DateTimeField(default=timezone.now)
    status = models.CharField(
        max_length=20, choices=STATUS_CHOICES, default=PENDING
    )
    remarks = models.TextField(blank=True)
    images = models.JSONField(default=list, blank=True)

    class Meta:
        ordering = ["-verified_at"]

    def __str__(self):
        return f"{self.asset.serial_number} - {self.status}"


class AuditLog(models.Model):
    """Immutable record of every state-changing action."""

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="audit_logs",
        help_text="The user who performed the action",
    )
    action = models.CharField(max_length=100)
    entity_type = models.CharField(max_length=50, blank=True)
    entity_id = models.BigIntegerField(null=True, blank=True)
    details = models.JSONField(null=True, blank=True)
    ip_address = models.GenericIPAddressField(null=True, blank=True)
    timestamp = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["-timestamp", "-id"]
        indexes = [
            models.Index(fields=["timestamp"], name="idx_auditlog_timestamp"),
            models.Index(
                fields=["entity_type", "entity_id"],
                name="idx_auditlog_entity",
            ),
        ]

    def __str__(self):
        return f"{self.action} by {self.user}"

    def save(self, *args, **kwargs):
        if self.pk is not None:
            raise ValidationError(
                "Audit log entries are immutable and cannot be modified."
            )
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError(
            "Audit log entries are immutable and cannot be deleted."
        )


class EmailSettings(models.Model):
    """Singleton SMTP configuration for outgoing notifications."""

    host = models.CharField(max_length=255)
    port = models.PositiveIntegerField(default=587)
    use_tls = models.BooleanField(
        default=True, help_text="Use STARTTLS (port 587)"
    )
    use_ssl = models.BooleanField(
        default=False, help_text="Use implicit TLS (port 465)"
    )
    username = models.CharField(max_length=255, blank=True)
    password = models.CharField(max_length=255, blank=True)
    from_email = models.EmailField()
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Email Settings"
        verbose_name_plural = "Email Settings"

    def __str__(self):
        return f"{self.host}:{self.port}"

    def clean(self):
        super().clean()
        if self.use_tls and self.use_ssl:
            raise ValidationError(
                "Only one of TLS and SSL may be enabled."
            )

    def save(self, *args, **kwargs):
        # Enforce singleton: always reuse the first row's pk
        if not self.pk:
            existing = EmailSettings.objects.first()
            if existing:
                self.pk = existing.pk
        super().save(*args, **kwargs)

    @classmethod
    def get_current(cls):
        """Return the configured instance, or None."""
        return cls.objects.first()
