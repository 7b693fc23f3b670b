"""Tests for asset tracker models."""

import pytest

from django.core.exceptions import ValidationError
from django.db import IntegrityError, transaction

from assets.factories import (
    AllocationFactory,
    AssetFactory,
    AssetTypeFactory,
    EmployeeFactory,
)
from assets.models import Allocation, Asset, AssetType, AuditLog, EmailSettings


class TestAssetType:
    def test_name_unique_case_insensitive(self, db):
        AssetTypeFactory(name="Laptop")
        with pytest.raises(IntegrityError):
            with transaction.atomic():
                AssetTypeFactory(name="LAPTOP")

    def test_schema_must_be_list(self, db):
        asset_type = AssetType(name="Phone", schema={"RAM": "number"})
        with pytest.raises(ValidationError, match="Schema must be a list"):
            asset_type.full_clean()

    def test_schema_rejects_unknown_field_type(self, db):
        asset_type = AssetType(
            name="Phone", schema=[{"name": "RAM", "type": "colour"}]
        )
        with pytest.raises(ValidationError, match="Unknown field type"):
            asset_type.full_clean()

    def test_schema_rejects_duplicate_fields(self, db):
        asset_type = AssetType(
            name="Phone", schema=[{"name": "RAM"}, {"name": "ram"}]
        )
        with pytest.raises(ValidationError, match="Duplicate"):
            asset_type.full_clean()

    def test_field_names(self, asset_type):
        assert asset_type.field_names == ["RAM", "OS"]


class TestAsset:
    def test_serial_upper_cased_and_stripped_on_save(self, asset_type):
        asset = AssetFactory(asset_type=asset_type, serial_number="  ab-12x ")
        asset.refresh_from_db()
        assert asset.serial_number == "AB-12X"

    def test_serial_unique(self, asset):
        with pytest.raises(IntegrityError):
            with transaction.atomic():
                AssetFactory(
                    asset_type=asset.asset_type,
                    serial_number=asset.serial_number.lower(),
                )

    def test_default_status_available(self, asset):
        assert asset.status == Asset.AVAILABLE

    def test_can_transition_to(self, asset):
        assert asset.can_transition_to(Asset.DAMAGED)
        assert not asset.can_transition_to(Asset.ALLOCATED)
        asset.status = Asset.SCRAPPED
        assert asset.can_transition_to(Asset.AVAILABLE)
        assert not asset.can_transition_to(Asset.LOST)

    def test_deleting_type_with_assets_is_protected(self, asset):
        from django.db.models import ProtectedError

        with pytest.raises(ProtectedError):
            asset.asset_type.delete()

    def test_active_allocation(self, asset, employee):
        assert asset.active_allocation is None
        allocation = AllocationFactory(asset=asset, employee=employee)
        assert asset.active_allocation == allocation


class TestEmployee:
    def test_emp_id_stripped(self, db):
        employee = EmployeeFactory(emp_id="  E-9 ")
        assert employee.emp_id == "E-9"

    def test_str(self, employee):
        assert str(employee) == "Jane Doe (EMP001)"


class TestAllocation:
    def test_one_active_allocation_per_asset(self, asset, employee):
        AllocationFactory(asset=asset, employee=employee)
        with pytest.raises(IntegrityError):
            with transaction.atomic():
                AllocationFactory(asset=asset, employee=EmployeeFactory())

    def test_returned_allocations_do_not_block(self, asset, employee):
        AllocationFactory(
            asset=asset, employee=employee, status=Allocation.RETURNED
        )
        AllocationFactory(
            asset=asset, employee=employee, status=Allocation.RETURNED
        )
        AllocationFactory(asset=asset, employee=employee)
        assert asset.allocations.count() == 3

    def test_cannot_delete(self, asset, employee):
        allocation = AllocationFactory(asset=asset, employee=employee)
        with pytest.raises(ValidationError):
            allocation.delete()
        assert Allocation.objects.filter(pk=allocation.pk).exists()


class TestAuditLog:
    def test_cannot_modify(self, db):
        entry = AuditLog.objects.create(action="Create Asset")
        entry.action = "Tampered"
        with pytest.raises(ValidationError, match="immutable"):
            entry.save()

    def test_cannot_delete(self, db):
        entry = AuditLog.objects.create(action="Create Asset")
        with pytest.raises(ValidationError, match="immutable"):
            entry.delete()
        assert AuditLog.objects.filter(pk=entry.pk).exists()

    def test_ordering_newest_first(self, db):
        first = AuditLog.objects.create(action="A")
        second = AuditLog.objects.create(action="B")
        assert list(AuditLog.objects.all()) == [second, first]


class TestEmailSettings:
    def test_singleton(self, email_settings):
        other = EmailSettings(
            host="smtp.other.test", port=25, from_email="x@example.com"
        )
        other.save()
        assert EmailSettings.objects.count() == 1
        assert EmailSettings.get_current().host == "smtp.other.test"

    def test_get_current_none(self, db):
        assert EmailSettings.get_current() is None

    def test_tls_and_ssl_exclusive(self, db):
        config = EmailSettings(
            host="smtp.example.com",
            from_email="x@example.com",
            use_tls=True,
            use_ssl=True,
        )
        with pytest.raises(ValidationError, match="Only one of TLS and SSL"):
            config.full_clean()
