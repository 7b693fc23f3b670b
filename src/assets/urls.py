"""URL configuration for assets app."""

from django.urls import path

from . import views

app_name = "assets"

urlpatterns = [
    # Dashboard
    path("dashboard/stats/", views.dashboard_stats, name="dashboard_stats"),
    # Employees
    path("employees/", views.employee_list, name="employee_list"),
    path(
        "employees/import/",
        views.employee_import,
        name="employee_import",
    ),
    path(
        "employees/<int:pk>/",
        views.employee_detail,
        name="employee_detail",
    ),
    # Asset types
    path("asset-types/", views.asset_type_list, name="asset_type_list"),
    path(
        "asset-types/import/",
        views.asset_type_import,
        name="asset_type_import",
    ),
    path(
        "asset-types/<int:pk>/",
        views.asset_type_detail,
        name="asset_type_detail",
    ),
    # Assets
    path("assets/", views.asset_list, name="asset_list"),
    path("assets/import/", views.asset_import, name="asset_import"),
    path("assets/<int:pk>/", views.asset_detail, name="asset_detail"),
    # Allocations
    path("allocations/", views.allocation_list, name="allocation_list"),
    path(
        "allocations/import/",
        views.allocation_import,
        name="allocation_import",
    ),
    path(
        "allocations/bulk-import/",
        views.allocation_bulk_import,
        name="allocation_bulk_import",
    ),
    path(
        "allocations/<int:pk>/return/",
        views.allocation_return,
        name="allocation_return",
    ),
    # Verifications
    path(
        "verifications/",
        views.verification_list,
        name="verification_list",
    ),
    # Audit log
    path("audit-logs/", views.audit_log_list, name="audit_log_list"),
    # Settings
    path("settings/email/", views.email_settings, name="email_settings"),
    path(
        "settings/email/test/",
        views.email_settings_test,
        name="email_settings_test",
    ),
    # Import templates
    path(
        "templates/<slug:kind>/",
        views.import_template,
        name="import_template",
    ),
]
