"""Find-or-create resolution of employees, assets and asset types.

Allocation requests and import rows name their subjects either by
numeric primary key or by a loose bundle of business fields (emp id,
serial number, type name, ...). The resolvers here turn either form
into a model instance, creating missing records when asked to and
auditing every auto-creation.
"""

import datetime
import logging
import uuid

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.utils.dateparse import parse_date

from ..exceptions import (
    NotFoundError,
    PersistenceError,
    ValidationError,
    from_django_validation,
)
from ..models import Asset, AssetType, Employee
from . import audit
from .fields import extract_field, extract_text
from .specifications import clean_specifications, specifications_from_row

logger = logging.getLogger(__name__)


def _truncate(value, max_len=100):
    s = str(value)
    return s if len(s) <= max_len else s[:max_len] + "..."


def as_pk(value):
    """Return ``value`` as an int primary key, or None if it is not one."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def parse_date_value(value, field):
    if value in (None, ""):
        return None
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    try:
        parsed = parse_date(str(value).strip())
    except ValueError:
        parsed = None
    if parsed is None:
        raise ValidationError(
            f"Invalid date '{_truncate(value)}'; use YYYY-MM-DD.",
            field=field,
        )
    return parsed


def _generate_emp_id():
    return f"AUTO-{uuid.uuid4().hex[:8].upper()}"


def _save_new(instance):
    """full_clean() and insert ``instance`` inside a savepoint.

    Returns False when a concurrent writer inserted the same business
    key first.
    """
    try:
        instance.full_clean(validate_unique=False)
    except DjangoValidationError as exc:
        raise from_django_validation(exc)
    try:
        with transaction.atomic():
            instance.save()
    except IntegrityError:
        return False
    return True


# -------------------------------------------------------------------
# Employees
# -------------------------------------------------------------------


def find_employee(ref) -> Employee:
    """Look up an employee by pk or by the emp id inside a bundle."""
    pk = as_pk(ref)
    if pk is not None:
        try:
            return Employee.objects.get(pk=pk)
        except Employee.DoesNotExist:
            raise NotFoundError(
                f"No employee found with ID '{pk}'.", field="employeeId"
            )
    emp_id = extract_text(ref, "emp_id") if isinstance(ref, dict) else ""
    if not emp_id:
        raise ValidationError(
            "An employee id or employee details are required.",
            field="employee",
        )
    employee = Employee.objects.filter(emp_id=emp_id).first()
    if employee is None:
        raise NotFoundError(
            f"No employee found with employee ID '{_truncate(emp_id)}'.",
            field="empId",
        )
    return employee


def resolve_employee(ref, user=None, context="allocation") -> Employee:
    """Return the employee ``ref`` names, creating it if needed.

    ``ref`` is a pk or a bundle such as
    ``{"empId": "E-101", "name": "Asha", "email": "asha@example.com"}``.
    A bundle whose emp id is unknown must carry a name; the new
    employee is created Active.
    """
    pk = as_pk(ref)
    if pk is not None:
        return find_employee(pk)
    if not isinstance(ref, dict) or not ref:
        raise ValidationError(
            "An employee id or employee details are required.",
            field="employee",
        )

    emp_id = extract_text(ref, "emp_id")
    if emp_id:
        existing = Employee.objects.filter(emp_id=emp_id).first()
        if existing is not None:
            return existing

    name = extract_text(ref, "name")
    if not name:
        raise ValidationError(
            "Employee name is required to create a new employee.",
            field="name",
        )

    status = extract_text(ref, "employee_status") or Employee.ACTIVE
    employee = Employee(
        emp_id=emp_id or _generate_emp_id(),
        name=name,
        email=extract_text(ref, "email"),
        branch=extract_text(ref, "branch"),
        department=extract_text(ref, "department"),
        designation=extract_text(ref, "designation"),
        mobile=extract_text(ref, "mobile"),
        status=status.capitalize(),
        date_of_joining=parse_date_value(
            extract_field(ref, "date_of_joining"), "dateOfJoining"
        ),
    )
    if not _save_new(employee):
        existing = Employee.objects.filter(emp_id=employee.emp_id).first()
        if existing is None:
            raise PersistenceError("Could not create employee.")
        return existing

    audit.record(
        user,
        "Auto Create Employee",
        employee,
        details={
            "empId": employee.emp_id,
            "name": employee.name,
            "context": context,
        },
    )
    logger.info(
        "Auto-created employee %s during %s", employee.emp_id, context
    )
    return employee


# -------------------------------------------------------------------
# Asset types
# -------------------------------------------------------------------


def resolve_asset_type(name, user=None, context="import") -> AssetType:
    """Return the asset type called ``name`` (case-insensitive).

    Missing types are created with an empty schema. Repeated calls
    with any casing of the same name return the same row.
    """
    name = str(name or "").strip()
    if not name:
        raise ValidationError(
            "Asset type name is required.", field="assetTypeName"
        )
    existing = AssetType.objects.filter(name__iexact=name).first()
    if existing is not None:
        return existing

    asset_type = AssetType(
        name=name,
        description=f"Auto-created during {context}",
        schema=[],
    )
    if not _save_new(asset_type):
        return AssetType.objects.get(name__iexact=name)

    audit.record(
        user,
        "Auto Create Asset Type",
        asset_type,
        details={"name": asset_type.name, "context": context},
    )
    logger.info("Auto-created asset type '%s' during %s", name, context)
    return asset_type


def _type_from_bundle(ref, user, context) -> AssetType:
    type_pk = as_pk(extract_field(ref, "asset_type_id"))
    if type_pk is not None:
        asset_type = AssetType.objects.filter(pk=type_pk).first()
        if asset_type is not None:
            return asset_type
    type_name = extract_text(ref, "asset_type_name")
    if type_name:
        return resolve_asset_type(type_name, user, context=context)
    if type_pk is not None:
        raise ValidationError(
            f"No asset type found with ID '{type_pk}'.", field="assetTypeId"
        )
    raise ValidationError(
        "An asset type is required to create a new asset.",
        field="assetTypeName",
    )


# -------------------------------------------------------------------
# Assets
# -------------------------------------------------------------------


def find_asset(ref) -> Asset:
    """Look up an asset by pk or by the serial number inside a bundle."""
    pk = as_pk(ref)
    if pk is not None:
        try:
            return Asset.objects.get(pk=pk)
        except Asset.DoesNotExist:
            raise NotFoundError(
                f"No asset found with ID '{pk}'.", field="assetId"
            )
    serial = (
        Asset.normalize_serial(extract_text(ref, "serial_number"))
        if isinstance(ref, dict)
        else ""
    )
    if not serial:
        raise ValidationError(
            "An asset id or serial number is required.", field="asset"
        )
    asset = Asset.objects.filter(serial_number__iexact=serial).first()
    if asset is None:
        raise NotFoundError(
            f"No asset found with serial number '{_truncate(serial)}'.",
            field="serialNumber",
        )
    return asset


def resolve_asset(ref, user=None, context="allocation") -> Asset:
    """Return the asset ``ref`` names, creating it if needed.

    ``ref`` is a pk or a bundle such as
    ``{"serialNumber": "sn-1", "assetTypeName": "Laptop", "RAM": 16}``.
    An existing asset is returned untouched whatever its status. A new
    one is created Available; top-level keys named like one of its
    type's schema fields are folded into its specifications.
    """
    pk = as_pk(ref)
    if pk is not None:
        return find_asset(pk)
    if not isinstance(ref, dict) or not ref:
        raise ValidationError(
            "An asset id or asset details are required.", field="asset"
        )

    serial = Asset.normalize_serial(extract_text(ref, "serial_number"))
    if not serial:
        raise ValidationError(
            "Serial number is required.", field="serialNumber"
        )
    existing = Asset.objects.filter(serial_number__iexact=serial).first()
    if existing is not None:
        return existing

    asset_type = _type_from_bundle(ref, user, context)
    explicit = extract_field(ref, "specifications")
    specs = clean_specifications(
        asset_type,
        specifications_from_row(
            ref, asset_type, explicit if isinstance(explicit, dict) else None
        ),
        require_all=False,
    )
    asset = Asset(
        asset_type=asset_type,
        serial_number=serial,
        status=Asset.AVAILABLE,
        specifications=specs,
    )
    if not _save_new(asset):
        existing = Asset.objects.filter(serial_number=serial).first()
        if existing is None:
            raise PersistenceError("Could not create asset.")
        return existing

    audit.record(
        user,
        "Auto Create Asset",
        asset,
        details={
            "serialNumber": asset.serial_number,
            "assetType": asset_type.name,
            "context": context,
        },
    )
    logger.info("Auto-created asset %s during %s", serial, context)
    return asset
