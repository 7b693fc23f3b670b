"""Excel import parsing and import templates."""

from io import BytesIO
from zipfile import BadZipFile

import openpyxl
from openpyxl.styles import Font, PatternFill
from openpyxl.utils.exceptions import InvalidFileException

from django.conf import settings

from ..exceptions import NotFoundError, ValidationError

TEMPLATES = {
    "allocations": {
        "headers": [
            "Employee ID",
            "Employee Name",
            "Employee Email",
            "Branch",
            "Department",
            "Asset Serial Number",
            "Asset Type Name",
            "Action",
            "Return Reason",
            "Asset Status After Return",
            "Remarks",
        ],
        "example": [
            "EMP001",
            "Jane Doe",
            "jane.doe@example.com",
            "Head Office",
            "Finance",
            "SN-0001",
            "Laptop",
            "Allocate",
            "",
            "",
            "New joiner kit",
        ],
    },
    "employees": {
        "headers": [
            "Employee ID",
            "Employee Name",
            "Employee Email",
            "Branch",
            "Department",
            "Designation",
            "Mobile",
            "Date of Joining",
        ],
        "example": [
            "EMP001",
            "Jane Doe",
            "jane.doe@example.com",
            "Head Office",
            "Finance",
            "Analyst",
            "+1 555 0100",
            "2024-01-15",
        ],
    },
    "assets": {
        "headers": ["Serial Number", "Asset Type Name", "Status"],
        "example": ["SN-0001", "Laptop", "Available"],
    },
    "asset-types": {
        "headers": ["Asset Type Name", "Description", "Schema"],
        "example": [
            "Laptop",
            "Company laptops",
            '[{"name": "RAM", "type": "number", "required": true}]',
        ],
    },
}

HEADER_FILL = PatternFill(
    start_color="2563EB", end_color="2563EB", fill_type="solid"
)


def read_rows(file) -> list[dict]:
    """Read the first worksheet of an .xlsx upload into row dicts.

    The first non-empty row is the header row; wholly blank rows after
    it are skipped. Raises ValidationError for unreadable files.
    """
    try:
        wb = openpyxl.load_workbook(file, read_only=True, data_only=True)
    except (InvalidFileException, BadZipFile, KeyError, OSError) as exc:
        raise ValidationError(
            f"Could not read spreadsheet: {exc}", field="file"
        ) from exc

    try:
        ws = wb.worksheets[0]
        headers = None
        rows = []
        for values in ws.iter_rows(values_only=True):
            if all(v is None or str(v).strip() == "" for v in values):
                continue
            if headers is None:
                headers = [
                    str(v).strip() if v is not None else "" for v in values
                ]
                continue
            row = {
                header: value
                for header, value in zip(headers, values)
                if header and value is not None
            }
            if row:
                rows.append(row)
                if len(rows) > settings.IMPORT_MAX_ROWS:
                    raise ValidationError(
                        f"Too many rows; the limit is "
                        f"{settings.IMPORT_MAX_ROWS}.",
                        field="file",
                    )
    finally:
        wb.close()
    return rows


def build_template(kind: str) -> BytesIO:
    """Return an .xlsx import template for ``kind`` as a BytesIO."""
    template = TEMPLATES.get(kind)
    if template is None:
        raise NotFoundError(
            f"No import template named '{kind}'.", field="kind"
        )

    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = kind.replace("-", " ").title()
    ws.append(template["headers"])
    for col_idx, header in enumerate(template["headers"], 1):
        cell = ws.cell(row=1, column=col_idx)
        cell.font = Font(bold=True, color="FFFFFF")
        cell.fill = HEADER_FILL
        ws.column_dimensions[cell.column_letter].width = max(
            14, len(header) + 4
        )
    ws.append(template["example"])

    buffer = BytesIO()
    wb.save(buffer)
    buffer.seek(0)
    return buffer
