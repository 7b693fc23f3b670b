"""JSON representations of asset tracker models.

Keys are camelCase to match the payloads the API accepts.
"""


def _iso(value):
    return value.isoformat() if value else None


def serialize_asset_type(asset_type):
    return {
        "id": asset_type.pk,
        "name": asset_type.name,
        "description": asset_type.description,
        "schema": asset_type.schema or [],
        "createdAt": _iso(asset_type.created_at),
    }


def serialize_employee(employee):
    return {
        "id": employee.pk,
        "empId": employee.emp_id,
        "name": employee.name,
        "email": employee.email,
        "branch": employee.branch,
        "department": employee.department,
        "designation": employee.designation,
        "mobile": employee.mobile,
        "status": employee.status,
        "dateOfJoining": _iso(employee.date_of_joining),
        "createdAt": _iso(employee.created_at),
    }


def serialize_asset(asset):
    return {
        "id": asset.pk,
        "assetTypeId": asset.asset_type_id,
        "assetTypeName": asset.asset_type.name,
        "serialNumber": asset.serial_number,
        "status": asset.status,
        "specifications": asset.specifications or {},
        "images": asset.images or [],
        "createdAt": _iso(asset.created_at),
        "updatedAt": _iso(asset.updated_at),
    }


def serialize_allocation(allocation):
    asset = allocation.asset
    employee = allocation.employee
    return {
        "id": allocation.pk,
        "assetId": asset.pk,
        "serialNumber": asset.serial_number,
        "assetStatus": asset.status,
        "employeeId": employee.pk,
        "empId": employee.emp_id,
        "employeeName": employee.name,
        "allocatedAt": _iso(allocation.allocated_at),
        "status": allocation.status,
        "returnDate": _iso(allocation.return_date),
        "returnReason": allocation.return_reason,
        "remarks": allocation.remarks,
        "details": allocation.details or {},
        "pdfUrl": allocation.pdf_url,
    }


def serialize_verification(verification):
    return {
        "id": verification.pk,
        "assetId": verification.asset_id,
        "serialNumber": verification.asset.serial_number,
        "verifierId": verification.verifier_id,
        "verifierName": verification.verifier.get_display_name(),
        "verifiedAt": _iso(verification.verified_at),
        "status": verification.status,
        "remarks": verification.remarks,
        "images": verification.images or [],
    }


def serialize_audit_log(entry):
    return {
        "id": entry.pk,
        "userId": entry.user_id,
        "username": entry.user.get_display_name() if entry.user else None,
        "action": entry.action,
        "entityType": entry.entity_type,
        "entityId": entry.entity_id,
        "details": entry.details,
        "ipAddress": entry.ip_address,
        "timestamp": _iso(entry.timestamp),
    }


def serialize_email_settings(config):
    """Email settings without the stored password."""
    if config is None:
        return None
    return {
        "host": config.host,
        "port": config.port,
        "useTls": config.use_tls,
        "useSsl": config.use_ssl,
        "username": config.username,
        "hasPassword": bool(config.password),
        "fromEmail": config.from_email,
        "updatedAt": _iso(config.updated_at),
    }
