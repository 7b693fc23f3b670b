"""Bulk import service for allocations, employees, assets and types.

Rows are processed strictly in order and independently: a failing row
is logged and reported back, and the batch moves on. There is no
batch-wide transaction; each allocate or return is atomic on its own,
and records auto-created for a row that later fails are kept.
"""

import json
import logging
from dataclasses import dataclass, field

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction

from ..exceptions import (
    ConflictError,
    ServiceError,
    ValidationError,
    from_django_validation,
)
from ..models import Asset, AssetType, Employee
from . import audit
from .allocations import active_allocation_for, allocate, return_allocation
from .fields import extract_field, extract_text
from .resolve import (
    as_pk,
    find_asset,
    find_employee,
    parse_date_value,
    resolve_asset,
    resolve_asset_type,
    resolve_employee,
)
from .specifications import clean_specifications, specifications_from_row

logger = logging.getLogger(__name__)

ALLOCATE = "allocate"
RETURN = "return"


@dataclass
class ImportResult:
    """Outcome of one import batch."""

    count: int = 0
    errors: list = field(default_factory=list)

    def add_error(self, row: int, message: str) -> None:
        self.errors.append({"row": row, "message": message})

    @property
    def failed(self) -> int:
        return len(self.errors)

    def as_dict(self) -> dict:
        return {"count": self.count, "errors": self.errors}


def validate_rows(rows) -> list:
    """Reject a payload that is not a list of rows or is too large."""
    if not isinstance(rows, list):
        raise ValidationError("Expected a list of rows.", field="rows")
    limit = settings.IMPORT_MAX_ROWS
    if len(rows) > limit:
        raise ValidationError(
            f"Too many rows ({len(rows)}); the limit is {limit}.",
            field="rows",
        )
    return rows


def _run_rows(rows, handle_row, label) -> ImportResult:
    validate_rows(rows)
    result = ImportResult()
    for index, row in enumerate(rows, start=1):
        try:
            if not isinstance(row, dict):
                raise ValidationError("Row must be an object.")
            handle_row(row)
        except ServiceError as exc:
            logger.warning("%s row %d failed: %s", label, index, exc.message)
            result.add_error(index, exc.message)
        except DjangoValidationError as exc:
            message = from_django_validation(exc).message
            logger.warning("%s row %d failed: %s", label, index, message)
            result.add_error(index, message)
        except Exception as exc:
            # One bad row must not abort the rest of the batch
            logger.exception("%s row %d failed", label, index)
            result.add_error(index, str(exc) or exc.__class__.__name__)
        else:
            result.count += 1
    logger.info(
        "%s finished: %d succeeded, %d failed",
        label,
        result.count,
        result.failed,
    )
    return result


def _summary(user, action, entity_type, result, ip_address, **extra):
    audit.record(
        user,
        action,
        entity_type=entity_type,
        details={"count": result.count, "failed": result.failed, **extra},
        ip_address=ip_address,
    )


# -------------------------------------------------------------------
# Allocations
# -------------------------------------------------------------------


def _reference(row, id_field, nested_keys, key_field, model):
    """Pick the pk or the bundle that identifies a row's subject.

    A nested object (``employeeData``) wins, then a numeric id column
    naming an existing row. Any other id column value is read as the
    business key (emp id or serial number).
    """
    for key in nested_keys:
        nested = row.get(key)
        if isinstance(nested, dict) and nested:
            return nested
    raw = extract_field(row, id_field)
    if raw is not None:
        pk = as_pk(raw)
        if pk is not None and model.objects.filter(pk=pk).exists():
            return pk
        if not extract_field(row, key_field):
            return {**row, key_field: raw}
    return row


def employee_reference(row):
    return _reference(
        row, "employee_id", ("employeeData", "employee"), "emp_id", Employee
    )


def asset_reference(row):
    return _reference(
        row, "asset_id", ("assetData", "asset"), "serial_number", Asset
    )


def row_action(row) -> str:
    action = extract_text(row, "action").lower()
    status = extract_text(row, "status").lower()
    if action == RETURN or (not action and status == "returned"):
        return RETURN
    if action in ("", ALLOCATE):
        return ALLOCATE
    raise ValidationError(
        f"Unknown action '{action}'; use Allocate or Return.",
        field="action",
    )


def _return_status(row) -> str:
    raw = extract_text(row, "return_status")
    if not raw:
        return Asset.AVAILABLE
    for status in Asset.RETURN_STATUSES:
        if status.lower() == raw.lower():
            return status
    raise ValidationError(
        f"Return status must be one of: "
        f"{', '.join(Asset.RETURN_STATUSES)}.",
        field="returnStatus",
    )


def _process_allocation_row(row, user, create, ip_address):
    action = row_action(row)
    if create:
        employee = resolve_employee(
            employee_reference(row), user, context="bulk import"
        )
        asset = resolve_asset(asset_reference(row), user, context="bulk import")
    else:
        employee = find_employee(employee_reference(row))
        asset = find_asset(asset_reference(row))

    details = extract_field(row, "details")
    details = details if isinstance(details, dict) else None

    if action == RETURN:
        allocation = active_allocation_for(asset)
        if allocation is None:
            raise ConflictError(
                f"Asset {asset.serial_number} has no active allocation "
                f"to return."
            )
        if allocation.employee_id != employee.pk:
            raise ConflictError(
                f"Asset {asset.serial_number} is allocated to "
                f"{allocation.employee.emp_id}, not {employee.emp_id}."
            )
        return return_allocation(
            allocation.pk,
            extract_text(row, "return_reason"),
            _return_status(row),
            user,
            details=details,
            ip_address=ip_address,
        )
    return allocate(
        asset.pk,
        employee.pk,
        user,
        remarks=extract_text(row, "remarks"),
        details=details,
        ip_address=ip_address,
    )


def import_allocations(rows, user, ip_address=None) -> ImportResult:
    """Allocate or return per row, looking subjects up only.

    Rows reference employees and assets by pk or by emp id / serial
    number; nothing is created.
    """
    result = _run_rows(
        rows,
        lambda row: _process_allocation_row(row, user, False, ip_address),
        "Allocation import",
    )
    _summary(
        user, "Import Allocations", "Allocation", result, ip_address,
        mode="basic",
    )
    return result


def bulk_import_allocations(rows, user, ip_address=None) -> ImportResult:
    """Allocate or return per row, auto-creating unknown subjects.

    Unknown employees, assets and asset types named by a row are
    created before the row's allocation or return runs.
    """
    result = _run_rows(
        rows,
        lambda row: _process_allocation_row(row, user, True, ip_address),
        "Bulk allocation import",
    )
    _summary(
        user, "Import Allocations", "Allocation", result, ip_address,
        mode="bulk",
    )
    return result


# -------------------------------------------------------------------
# Entities
# -------------------------------------------------------------------

EMPLOYEE_FIELDS = (
    "name",
    "email",
    "branch",
    "department",
    "designation",
    "mobile",
)


def _full_clean(instance):
    try:
        instance.full_clean()
    except DjangoValidationError as exc:
        raise from_django_validation(exc)


def upsert_employee(row) -> Employee:
    """Create the employee named by ``row`` or update its non-blank fields."""
    emp_id = extract_text(row, "emp_id")
    if not emp_id:
        raise ValidationError("Employee ID is required.", field="empId")
    employee = Employee.objects.filter(emp_id=emp_id).first()
    if employee is None:
        employee = Employee(emp_id=emp_id)
    for name in EMPLOYEE_FIELDS:
        value = extract_text(row, name)
        if value:
            setattr(employee, name, value)
    status = extract_text(row, "employee_status") or extract_text(
        row, "status"
    )
    if status:
        employee.status = status.capitalize()
    joined = extract_field(row, "date_of_joining")
    if joined is not None:
        employee.date_of_joining = parse_date_value(joined, "dateOfJoining")
    _full_clean(employee)
    with transaction.atomic():
        employee.save()
    return employee


def import_employees(rows, user, ip_address=None) -> ImportResult:
    """Create or update employees keyed by emp id."""
    result = _run_rows(rows, upsert_employee, "Employee import")
    _summary(user, "Import Employees", "Employee", result, ip_address)
    return result


def _load_schema(raw):
    if raw is None:
        return []
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            raise ValidationError("Schema must be valid JSON.", field="schema")
    if not isinstance(raw, list):
        raise ValidationError("Schema must be a list.", field="schema")
    return raw


def create_asset_type(row) -> AssetType:
    name = extract_text(row, "type_name")
    if not name:
        raise ValidationError("Asset type name is required.", field="name")
    if AssetType.objects.filter(name__iexact=name).exists():
        raise ConflictError(
            f"Asset type '{name}' already exists.", field="name"
        )
    asset_type = AssetType(
        name=name,
        description=extract_text(row, "description"),
        schema=_load_schema(extract_field(row, "schema")),
    )
    _full_clean(asset_type)
    with transaction.atomic():
        asset_type.save()
    return asset_type


def import_asset_types(rows, user, ip_address=None) -> ImportResult:
    result = _run_rows(rows, create_asset_type, "Asset type import")
    _summary(user, "Import Asset Types", "AssetType", result, ip_address)
    return result


def _import_status(row) -> str:
    raw = extract_text(row, "asset_status") or extract_text(row, "status")
    if not raw:
        return Asset.AVAILABLE
    for status, _label in Asset.STATUS_CHOICES:
        if status.lower() == raw.lower():
            if status == Asset.ALLOCATED:
                raise ValidationError(
                    "Imported assets cannot start Allocated; import an "
                    "allocation instead.",
                    field="status",
                )
            return status
    raise ValidationError(f"'{raw}' is not a valid status.", field="status")


def create_asset(row, user) -> Asset:
    serial = Asset.normalize_serial(extract_text(row, "serial_number"))
    if not serial:
        raise ValidationError(
            "Serial number is required.", field="serialNumber"
        )
    if Asset.objects.filter(serial_number__iexact=serial).exists():
        raise ConflictError(
            f"Asset {serial} already exists.", field="serialNumber"
        )

    type_pk = as_pk(extract_field(row, "asset_type_id"))
    asset_type = (
        AssetType.objects.filter(pk=type_pk).first() if type_pk else None
    )
    if asset_type is None:
        asset_type = resolve_asset_type(
            extract_text(row, "asset_type_name"), user, context="asset import"
        )

    explicit = extract_field(row, "specifications")
    if isinstance(explicit, str):
        try:
            explicit = json.loads(explicit)
        except ValueError:
            raise ValidationError(
                "Specifications must be valid JSON.", field="specifications"
            )
    asset = Asset(
        asset_type=asset_type,
        serial_number=serial,
        status=_import_status(row),
        specifications=clean_specifications(
            asset_type,
            specifications_from_row(
                row,
                asset_type,
                explicit if isinstance(explicit, dict) else None,
            ),
        ),
    )
    _full_clean(asset)
    with transaction.atomic():
        asset.save()
    return asset


def import_assets(rows, user, ip_address=None) -> ImportResult:
    """Create assets; unknown type names are auto-created."""
    result = _run_rows(
        rows, lambda row: create_asset(row, user), "Asset import"
    )
    _summary(user, "Import Assets", "Asset", result, ip_address)
    return result
