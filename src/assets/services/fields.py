"""Alias-tolerant field extraction for loosely shaped input rows.

Spreadsheet headers and JSON bundles name the same logical field in
many ways ("empId", "Employee ID", "employeeEmpId"). FIELD_ALIASES maps
each canonical field to the spellings accepted for it, in priority
order; extract_field() is the single lookup used by every import path.
"""

import datetime

FIELD_ALIASES = {
    # Employee
    "employee_id": ("employeeId", "employee_id"),
    "emp_id": (
        "empId",
        "Employee ID",
        "employeeEmpId",
        "Emp ID",
        "emp_id",
        "EmpID",
        "Employee Code",
    ),
    "name": ("name", "Employee Name", "employeeName", "Full Name"),
    "email": ("email", "Employee Email", "employeeEmail", "Email ID"),
    "branch": ("branch", "Branch", "Location"),
    "department": ("department", "Department", "Dept"),
    "designation": ("designation", "Designation", "Title"),
    "mobile": ("mobile", "Mobile", "Mobile Number", "phone", "Phone"),
    "employee_status": ("employeeStatus", "Employee Status"),
    "date_of_joining": (
        "dateOfJoining",
        "Date of Joining",
        "date_of_joining",
        "DOJ",
        "joinDate",
    ),
    # Asset
    "asset_id": ("assetId", "asset_id"),
    "serial_number": (
        "serialNumber",
        "assetSerialNumber",
        "Serial Number",
        "Asset Serial Number",
        "serial_number",
        "Serial No",
        "serial",
    ),
    "asset_type_id": ("assetTypeId", "asset_type_id"),
    "asset_type_name": (
        "assetTypeName",
        "Asset Type Name",
        "Asset Type",
        "assetType",
        "type",
    ),
    "asset_status": ("assetStatus", "Asset Status"),
    "specifications": ("specifications", "Specifications", "specs"),
    "images": ("images", "Images"),
    # Asset type
    "type_name": ("name", "Asset Type Name", "assetTypeName", "Type Name"),
    "description": ("description", "Description"),
    "schema": ("schema", "Schema", "fields"),
    # Allocation
    "action": ("action", "Action"),
    "status": ("status", "Status", "Allocation Status"),
    "return_reason": ("returnReason", "Return Reason", "return_reason"),
    "return_status": (
        "returnStatus",
        "Return Status",
        "Asset Status After Return",
        "condition",
        "Condition",
    ),
    "remarks": ("remarks", "Remarks", "notes", "Notes"),
    "details": ("details", "Details"),
}


def is_blank(value) -> bool:
    if value is None:
        return True
    return isinstance(value, str) and not value.strip()


def _clean(value):
    if isinstance(value, str):
        return value.strip()
    # Spreadsheet cells hold whole numbers as floats (1001 -> 1001.0)
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


def extract_field(row: dict, field: str, default=None):
    """Return the value of canonical ``field`` from ``row``.

    Tries an exact key match for each alias in priority order, then a
    case-insensitive match on trimmed header names. Blank cells count
    as missing. Unknown canonical names are looked up as themselves.
    """
    if not isinstance(row, dict):
        return default
    aliases = FIELD_ALIASES.get(field, (field,))

    for alias in aliases:
        value = row.get(alias)
        if not is_blank(value):
            return _clean(value)

    folded = {}
    for key, value in row.items():
        if not is_blank(value):
            folded.setdefault(str(key).strip().casefold(), value)
    for alias in aliases:
        value = folded.get(alias.casefold())
        if value is not None:
            return _clean(value)
    return default


def extract_text(row: dict, field: str, default: str = "") -> str:
    """Like extract_field() but always returns a trimmed string."""
    value = extract_field(row, field)
    if value is None:
        return default
    if isinstance(value, datetime.datetime):
        return value.date().isoformat()
    if isinstance(value, datetime.date):
        return value.isoformat()
    return str(value).strip()
