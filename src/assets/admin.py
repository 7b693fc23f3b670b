"""Admin configuration for assets app using django-unfold."""

from unfold.admin import ModelAdmin, TabularInline
from unfold.contrib.filters.admin import (
    ChoicesDropdownFilter,
    RelatedDropdownFilter,
)
from unfold.decorators import action, display

from django.contrib import admin, messages
from django.db.models import Count

from .exceptions import ServiceError
from .models import (
    Allocation,
    Asset,
    AssetType,
    AuditLog,
    EmailSettings,
    Employee,
    Verification,
)
from .services import audit
from .services.state import transition_asset

STATUS_LABELS = {
    Asset.AVAILABLE: "success",
    Asset.ALLOCATED: "info",
    Asset.RETURNED: "default",
    Asset.DAMAGED: "warning",
    Asset.LOST: "danger",
    Asset.SCRAPPED: "danger",
}


class ReadOnlyAdminMixin:
    """History models: viewable, never added, edited or deleted here."""

    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


class AllocationInline(ReadOnlyAdminMixin, TabularInline):
    model = Allocation
    extra = 0
    fields = [
        "employee",
        "status",
        "allocated_at",
        "return_date",
        "return_reason",
    ]
    readonly_fields = fields


@admin.register(AssetType)
class AssetTypeAdmin(ModelAdmin):
    list_display = ["name", "description", "display_asset_count"]
    search_fields = ["name"]
    readonly_fields = ["created_at"]

    def get_queryset(self, request):
        return (
            super().get_queryset(request).annotate(Count("assets"))
        )

    @display(description="Assets", ordering="assets__count")
    def display_asset_count(self, obj):
        return obj.assets__count


@admin.register(Asset)
class AssetAdmin(ModelAdmin):
    list_display = [
        "display_header",
        "display_status",
        "asset_type",
        "updated_at",
    ]
    list_filter = [
        ("status", ChoicesDropdownFilter),
        ("asset_type", RelatedDropdownFilter),
    ]
    list_filter_submit = True
    search_fields = ["serial_number"]
    # Status changes go through the state machine actions below
    readonly_fields = ["status", "created_at", "updated_at"]
    autocomplete_fields = ["asset_type"]
    inlines = [AllocationInline]
    actions = ["mark_available", "mark_damaged", "mark_lost", "mark_scrapped"]

    @display(description="Asset", header=True, ordering="serial_number")
    def display_header(self, obj):
        return obj.serial_number, obj.asset_type.name

    @display(description="Status", label=STATUS_LABELS)
    def display_status(self, obj):
        return obj.status

    def _transition(self, request, queryset, new_status):
        moved = 0
        for asset in queryset:
            previous = asset.status
            try:
                transition_asset(asset, new_status)
            except ServiceError as exc:
                messages.error(request, f"{asset.serial_number}: {exc.message}")
                continue
            if previous != new_status:
                audit.record(
                    request.user,
                    "Change Asset Status",
                    asset,
                    details={"from": previous, "to": new_status},
                    ip_address=request.META.get("REMOTE_ADDR"),
                )
            moved += 1
        if moved:
            messages.success(
                request, f"{moved} asset(s) marked as {new_status}."
            )

    @action(description="Mark as available")
    def mark_available(self, request, queryset):
        self._transition(request, queryset, Asset.AVAILABLE)

    @action(description="Mark as damaged")
    def mark_damaged(self, request, queryset):
        self._transition(request, queryset, Asset.DAMAGED)

    @action(description="Mark as lost")
    def mark_lost(self, request, queryset):
        self._transition(request, queryset, Asset.LOST)

    @action(description="Mark as scrapped")
    def mark_scrapped(self, request, queryset):
        self._transition(request, queryset, Asset.SCRAPPED)


@admin.register(Employee)
class EmployeeAdmin(ModelAdmin):
    list_display = [
        "emp_id",
        "name",
        "email",
        "branch",
        "department",
        "display_status",
    ]
    list_filter = [
        ("status", ChoicesDropdownFilter),
        "branch",
        "department",
    ]
    search_fields = ["emp_id", "name", "email"]
    readonly_fields = ["created_at"]

    @display(
        description="Status",
        label={Employee.ACTIVE: "success", Employee.INACTIVE: "default"},
    )
    def display_status(self, obj):
        return obj.status


@admin.register(Allocation)
class AllocationAdmin(ReadOnlyAdminMixin, ModelAdmin):
    list_display = [
        "asset",
        "employee",
        "display_status",
        "allocated_at",
        "return_date",
    ]
    list_filter = [("status", ChoicesDropdownFilter)]
    search_fields = [
        "asset__serial_number",
        "employee__emp_id",
        "employee__name",
    ]
    date_hierarchy = "allocated_at"
    list_select_related = ["asset", "employee"]

    @display(
        description="Status",
        label={Allocation.ACTIVE: "info", Allocation.RETURNED: "success"},
    )
    def display_status(self, obj):
        return obj.status


@admin.register(Verification)
class VerificationAdmin(ModelAdmin):
    list_display = ["asset", "verifier", "display_status", "verified_at"]
    list_filter = [("status", ChoicesDropdownFilter)]
    search_fields = ["asset__serial_number", "remarks"]
    autocomplete_fields = ["asset"]

    @display(
        description="Status",
        label={
            Verification.PENDING: "warning",
            Verification.APPROVED: "success",
            Verification.REJECTED: "danger",
        },
    )
    def display_status(self, obj):
        return obj.status


@admin.register(AuditLog)
class AuditLogAdmin(ReadOnlyAdminMixin, ModelAdmin):
    list_display = [
        "timestamp",
        "action",
        "entity_type",
        "entity_id",
        "user",
        "ip_address",
    ]
    list_filter = ["action", "entity_type"]
    search_fields = ["action", "entity_type"]
    date_hierarchy = "timestamp"


@admin.register(EmailSettings)
class EmailSettingsAdmin(ModelAdmin):
    list_display = ["__str__", "from_email", "use_tls", "use_ssl"]
    fields = [
        "host",
        "port",
        "use_tls",
        "use_ssl",
        "username",
        "password",
        "from_email",
    ]

    def has_add_permission(self, request):
        if EmailSettings.objects.exists():
            return False
        return super().has_add_permission(request)
