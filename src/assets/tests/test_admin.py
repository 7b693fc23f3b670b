"""Tests for Django admin interface."""

import pytest

from django.urls import reverse

from assets.factories import AllocationFactory, VerificationFactory
from assets.models import Asset, AuditLog, EmailSettings
from assets.services.allocations import allocate


class TestAdminPages:
    @pytest.mark.parametrize(
        "model",
        [
            "assettype",
            "asset",
            "employee",
            "allocation",
            "verification",
            "auditlog",
            "emailsettings",
        ],
    )
    def test_changelist_renders(self, admin_client, model):
        response = admin_client.get(reverse(f"admin:assets_{model}_changelist"))
        assert response.status_code == 200

    def test_asset_change_page_shows_history(
        self, admin_client, asset, employee, admin_user
    ):
        allocate(asset.pk, employee.pk, admin_user)
        response = admin_client.get(
            reverse("admin:assets_asset_change", args=[asset.pk])
        )
        assert response.status_code == 200
        assert b"EMP001" in response.content

    def test_asset_type_count(self, rf, admin_user, asset, second_asset):
        from django.contrib.admin.sites import site

        from assets.admin import AssetTypeAdmin
        from assets.models import AssetType

        model_admin = AssetTypeAdmin(AssetType, site)
        request = rf.get("/")
        request.user = admin_user
        obj = model_admin.get_queryset(request).get()
        assert model_admin.display_asset_count(obj) == 2

    def test_verifications_listed(self, admin_client, asset):
        VerificationFactory(asset=asset, remarks="shelf B")
        response = admin_client.get(
            reverse("admin:assets_verification_changelist")
        )
        assert b"SN-1001" in response.content


class TestReadOnlyHistory:
    def test_allocation_cannot_be_added(self, admin_client):
        response = admin_client.get(reverse("admin:assets_allocation_add"))
        assert response.status_code == 403

    def test_audit_log_cannot_be_deleted(self, admin_client, db):
        entry = AuditLog.objects.create(action="Create Asset")
        response = admin_client.post(
            reverse("admin:assets_auditlog_delete", args=[entry.pk]),
            {"post": "yes"},
        )
        assert response.status_code == 403
        assert AuditLog.objects.filter(pk=entry.pk).exists()

    def test_allocation_change_page_is_read_only(
        self, admin_client, asset, employee
    ):
        allocation = AllocationFactory(asset=asset, employee=employee)
        response = admin_client.get(
            reverse("admin:assets_allocation_change", args=[allocation.pk])
        )
        # View permission only; no save buttons
        assert response.status_code == 200
        assert b'name="_save"' not in response.content


class TestAssetStatusActions:
    def _run(self, client, action, *assets):
        return client.post(
            reverse("admin:assets_asset_changelist"),
            {"action": action, "_selected_action": [a.pk for a in assets]},
        )

    def test_mark_damaged(self, admin_client, asset):
        response = self._run(admin_client, "mark_damaged", asset)
        assert response.status_code == 302
        asset.refresh_from_db()
        assert asset.status == Asset.DAMAGED
        entry = AuditLog.objects.get(action="Change Asset Status")
        assert entry.details == {"from": "Available", "to": "Damaged"}

    def test_allocated_asset_is_skipped(
        self, admin_client, asset, second_asset, employee, admin_user
    ):
        allocate(asset.pk, employee.pk, admin_user)
        self._run(admin_client, "mark_lost", asset, second_asset)
        asset.refresh_from_db()
        second_asset.refresh_from_db()
        assert asset.status == Asset.ALLOCATED
        assert second_asset.status == Asset.LOST
        assert AuditLog.objects.filter(action="Change Asset Status").count() == 1

    def test_disallowed_transition_is_skipped(self, admin_client, asset):
        Asset.objects.filter(pk=asset.pk).update(status=Asset.SCRAPPED)
        self._run(admin_client, "mark_damaged", asset)
        asset.refresh_from_db()
        assert asset.status == Asset.SCRAPPED


class TestEmailSettingsAdmin:
    def test_add_allowed_until_configured(self, admin_client, db):
        url = reverse("admin:assets_emailsettings_add")
        assert admin_client.get(url).status_code == 200
        EmailSettings.objects.create(host="smtp.x", from_email="a@x.test")
        assert admin_client.get(url).status_code == 403
