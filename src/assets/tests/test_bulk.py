"""Tests for the bulk import coordinator."""

import pytest

from django.test.utils import override_settings

from assets.exceptions import ValidationError
from assets.factories import AssetFactory, AssetTypeFactory, EmployeeFactory
from assets.models import Allocation, Asset, AssetType, AuditLog, Employee
from assets.services import bulk
from assets.services.allocations import allocate


class TestImportResult:
    def test_as_dict(self):
        result = bulk.ImportResult()
        result.count = 2
        result.add_error(3, "boom")
        assert result.as_dict() == {
            "count": 2,
            "errors": [{"row": 3, "message": "boom"}],
        }
        assert result.failed == 1


class TestValidateRows:
    def test_not_a_list(self):
        with pytest.raises(ValidationError):
            bulk.validate_rows({"rows": []})

    @override_settings(IMPORT_MAX_ROWS=2)
    def test_too_many_rows(self):
        with pytest.raises(ValidationError, match="Too many rows"):
            bulk.validate_rows([{}, {}, {}])


class TestBulkImportAllocations:
    def test_auto_creates_everything(self, db, admin_user):
        rows = [
            {
                "Employee ID": "E-1",
                "Employee Name": "Asha",
                "Asset Serial Number": "sn-a",
                "Asset Type Name": "Laptop",
            },
            {
                "empId": "E-2",
                "name": "Ravi",
                "serialNumber": "sn-b",
                "assetTypeName": "LAPTOP",
            },
        ]
        result = bulk.bulk_import_allocations(rows, admin_user)
        assert result.count == 2
        assert result.errors == []
        assert Employee.objects.count() == 2
        assert AssetType.objects.count() == 1
        assert set(Asset.objects.values_list("status", flat=True)) == {
            Asset.ALLOCATED
        }
        summary = AuditLog.objects.get(action="Import Allocations")
        assert summary.details == {"count": 2, "failed": 0, "mode": "bulk"}

    def test_unresolvable_employee_row_is_skipped(self, db, admin_user):
        rows = [
            {"empId": "E-1", "name": "One", "serialNumber": "r-1", "type": "Pen"},
            {"serialNumber": "r-2", "type": "Pen"},
            {"empId": "E-3", "name": "Three", "serialNumber": "r-3", "type": "Pen"},
        ]
        result = bulk.bulk_import_allocations(rows, admin_user)
        assert result.count == 2
        assert result.errors[0]["row"] == 2
        allocated = set(
            Allocation.objects.values_list("asset__serial_number", flat=True)
        )
        assert allocated == {"R-1", "R-3"}

    def test_partial_failure_tolerance(self, asset, employee, admin_user):
        rows = [
            {"empId": "EMP001", "serialNumber": "SN-1001"},
            {"empId": "EMP001", "serialNumber": "SN-1001"},
            {"empId": "E-NEW", "name": "New Hire", "serialNumber": "sn-x"},
        ]
        result = bulk.bulk_import_allocations(rows, admin_user)
        assert result.count == 1
        rows_with_errors = [e["row"] for e in result.errors]
        assert rows_with_errors == [2, 3]
        # Row 3 names no asset type; its auto-created employee persists
        assert Employee.objects.filter(emp_id="E-NEW").exists()
        assert not Asset.objects.filter(serial_number="SN-X").exists()
        summary = AuditLog.objects.get(action="Import Allocations")
        assert summary.details["count"] == 1
        assert summary.details["failed"] == 2

    def test_return_row(self, asset, employee, admin_user):
        allocate(asset.pk, employee.pk, admin_user)
        rows = [
            {
                "Employee ID": "EMP001",
                "Asset Serial Number": "sn-1001",
                "Action": "Return",
                "Return Reason": "Left company",
                "Asset Status After Return": "damaged",
            }
        ]
        result = bulk.bulk_import_allocations(rows, admin_user)
        assert result.count == 1
        asset.refresh_from_db()
        assert asset.status == Asset.DAMAGED
        allocation = asset.allocations.get()
        assert allocation.status == Allocation.RETURNED
        assert allocation.return_reason == "Left company"

    def test_returned_status_means_return(self, asset, employee, admin_user):
        allocate(asset.pk, employee.pk, admin_user)
        result = bulk.bulk_import_allocations(
            [{"empId": "EMP001", "serialNumber": "SN-1001", "status": "Returned"}],
            admin_user,
        )
        assert result.count == 1
        asset.refresh_from_db()
        assert asset.status == Asset.AVAILABLE

    def test_return_without_active_allocation(self, asset, employee, admin_user):
        result = bulk.bulk_import_allocations(
            [{"empId": "EMP001", "serialNumber": "SN-1001", "action": "return"}],
            admin_user,
        )
        assert result.count == 0
        assert "no active allocation" in result.errors[0]["message"]

    def test_return_by_other_employee(
        self, asset, employee, second_employee, admin_user
    ):
        allocate(asset.pk, employee.pk, admin_user)
        result = bulk.bulk_import_allocations(
            [{"empId": "EMP002", "serialNumber": "SN-1001", "action": "Return"}],
            admin_user,
        )
        assert result.count == 0
        assert "EMP001" in result.errors[0]["message"]
        asset.refresh_from_db()
        assert asset.status == Asset.ALLOCATED

    def test_unknown_action(self, asset, employee, admin_user):
        result = bulk.bulk_import_allocations(
            [{"empId": "EMP001", "serialNumber": "SN-1001", "action": "Lend"}],
            admin_user,
        )
        assert result.count == 0
        assert "Unknown action" in result.errors[0]["message"]

    def test_non_dict_row(self, db, admin_user):
        result = bulk.bulk_import_allocations(["nope"], admin_user)
        assert result.errors == [{"row": 1, "message": "Row must be an object."}]

    def test_nested_bundles(self, db, admin_user):
        rows = [
            {
                "employeeData": {"empId": "E-9", "name": "Nested"},
                "assetData": {"serialNumber": "n-1", "assetTypeName": "Dock"},
                "remarks": "desk 4",
            }
        ]
        result = bulk.bulk_import_allocations(rows, admin_user)
        assert result.count == 1
        allocation = Allocation.objects.get()
        assert allocation.employee.emp_id == "E-9"
        assert allocation.remarks == "desk 4"

    def test_id_headers_carrying_business_keys(self, db, admin_user):
        rows = [
            {
                "EmployeeID": "1001",
                "Employee Name": "Priya",
                "AssetID": "7007",
                "Asset Type": "Laptop",
            }
        ]
        result = bulk.bulk_import_allocations(rows, admin_user)
        assert result.errors == []
        assert result.count == 1
        allocation = Allocation.objects.select_related("employee", "asset").get()
        assert allocation.employee.emp_id == "1001"
        assert allocation.employee.name == "Priya"
        assert allocation.asset.serial_number == "7007"

    def test_numeric_id_header_matching_a_row_is_a_pk(
        self, asset, employee, admin_user
    ):
        rows = [{"EmployeeID": str(employee.pk), "AssetID": str(asset.pk)}]
        result = bulk.bulk_import_allocations(rows, admin_user)
        assert result.count == 1
        assert Employee.objects.count() == 1
        assert Allocation.objects.get().employee == employee


class TestImportAllocations:
    def test_by_ids(self, asset, employee, admin_user):
        result = bulk.import_allocations(
            [{"employeeId": employee.pk, "assetId": asset.pk}], admin_user
        )
        assert result.count == 1
        summary = AuditLog.objects.get(action="Import Allocations")
        assert summary.details["mode"] == "basic"

    def test_by_business_keys(self, asset, employee, admin_user):
        result = bulk.import_allocations(
            [{"employeeId": "EMP001", "serialNumber": "sn-1001"}], admin_user
        )
        assert result.count == 1

    def test_unknown_numeric_id_reports_missing_employee(self, db, admin_user):
        result = bulk.import_allocations(
            [{"EmployeeID": "1001", "serialNumber": "sn-1"}], admin_user
        )
        assert result.count == 0
        assert "1001" in result.errors[0]["message"]
        assert not Employee.objects.exists()

    def test_does_not_auto_create(self, db, admin_user):
        result = bulk.import_allocations(
            [
                {
                    "empId": "E-1",
                    "name": "Asha",
                    "serialNumber": "sn-z",
                    "assetTypeName": "Laptop",
                }
            ],
            admin_user,
        )
        assert result.count == 0
        assert len(result.errors) == 1
        assert not Employee.objects.exists()
        assert not Asset.objects.exists()
        assert not AssetType.objects.exists()


class TestImportEmployees:
    def test_creates_and_updates(self, employee, admin_user):
        rows = [
            {"Employee ID": "EMP001", "Branch": "Mumbai"},
            {
                "Employee ID": "EMP050",
                "Employee Name": "New Person",
                "Date of Joining": "2024-02-01",
            },
            {"Employee Name": "Missing Id"},
        ]
        result = bulk.import_employees(rows, admin_user)
        assert result.count == 2
        assert result.errors[0]["row"] == 3
        employee.refresh_from_db()
        assert employee.branch == "Mumbai"
        assert employee.name == "Jane Doe"
        created = Employee.objects.get(emp_id="EMP050")
        assert created.date_of_joining.isoformat() == "2024-02-01"
        assert AuditLog.objects.filter(action="Import Employees").exists()

    def test_invalid_date(self, db, admin_user):
        result = bulk.import_employees(
            [{"empId": "E1", "name": "A", "dateOfJoining": "31/31/2024"}],
            admin_user,
        )
        assert result.count == 0
        assert "Invalid date" in result.errors[0]["message"]


class TestImportAssetTypes:
    def test_creates_with_json_schema(self, db, admin_user):
        rows = [
            {
                "Asset Type Name": "Phone",
                "Schema": '[{"name": "IMEI", "type": "text"}]',
            },
            {"Asset Type Name": "phone"},
            {"Asset Type Name": "Bad", "Schema": "{not json"},
        ]
        result = bulk.import_asset_types(rows, admin_user)
        assert result.count == 1
        assert [e["row"] for e in result.errors] == [2, 3]
        assert AssetType.objects.get().schema == [
            {"name": "IMEI", "type": "text"}
        ]


class TestImportAssets:
    def test_creates_assets(self, asset_type, admin_user):
        rows = [
            {"Serial Number": "a-1", "Asset Type Name": "Laptop", "RAM": 8},
            {"Serial Number": "a-2", "Asset Type Name": "Mouse"},
            {"Serial Number": "a-3", "Asset Type Name": "Laptop"},
            {"Serial Number": "A-1", "Asset Type Name": "Laptop", "RAM": 4},
            {"Serial Number": "a-4", "Asset Type Name": "Mouse", "Status": "Allocated"},
        ]
        result = bulk.import_assets(rows, admin_user)
        assert result.count == 2
        assert [e["row"] for e in result.errors] == [3, 4, 5]
        assert Asset.objects.get(serial_number="A-1").specifications == {"RAM": 8}
        assert AssetType.objects.filter(name="Mouse").exists()

    def test_initial_status(self, db, admin_user):
        AssetTypeFactory(name="Chair")
        result = bulk.import_assets(
            [{"serialNumber": "c-1", "assetTypeName": "Chair", "status": "damaged"}],
            admin_user,
        )
        assert result.count == 1
        assert Asset.objects.get().status == Asset.DAMAGED


class TestRowsAreIndependent:
    def test_failure_does_not_roll_back_earlier_rows(self, db, admin_user):
        asset_type = AssetTypeFactory(name="Desk")
        AssetFactory(asset_type=asset_type, serial_number="D-1")
        EmployeeFactory(emp_id="E-1")
        rows = [
            {"empId": "E-1", "serialNumber": "D-1"},
            {"empId": "E-1", "serialNumber": "D-1"},
        ]
        result = bulk.bulk_import_allocations(rows, admin_user)
        assert result.count == 1
        assert Allocation.objects.count() == 1
