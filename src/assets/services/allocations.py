"""Allocation state machine: allocate an asset and return it.

Asset.status and the Allocation rows move together inside one
transaction. Allocation takes the asset with a conditional update
(``status = Available`` -> ``Allocated``) so two concurrent requests
can never both win; the partial unique constraint on active
allocations backs this up at the database level.
"""

import logging

from django.conf import settings
from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone

from ..exceptions import (
    ConflictError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)
from ..models import Allocation, Asset, Employee
from . import audit
from .notifications import schedule_allocation_email

logger = logging.getLogger(__name__)


class _AssetContended(Exception):
    """The conditional update missed but the asset reads Available."""


def _not_available(status):
    return ConflictError(
        f"Asset is not available for allocation (current status: "
        f"{status}).",
        field="assetId",
    )


def _allocate_once(
    asset_id, employee_id, performed_by, remarks, details, pdf_url, ip_address
):
    with transaction.atomic():
        employee = Employee.objects.filter(pk=employee_id).first()
        if employee is None:
            raise NotFoundError(
                f"No employee found with ID '{employee_id}'.",
                field="employeeId",
            )
        asset = (
            Asset.objects.select_related("asset_type")
            .filter(pk=asset_id)
            .first()
        )
        if asset is None:
            raise NotFoundError(
                f"No asset found with ID '{asset_id}'.", field="assetId"
            )

        now = timezone.now()
        taken = Asset.objects.filter(
            pk=asset.pk, status=Asset.AVAILABLE
        ).update(status=Asset.ALLOCATED, updated_at=now)
        if not taken:
            current = (
                Asset.objects.filter(pk=asset.pk)
                .values_list("status", flat=True)
                .first()
            )
            if current == Asset.AVAILABLE:
                raise _AssetContended()
            raise _not_available(current)

        allocation = Allocation.objects.create(
            asset=asset,
            employee=employee,
            allocated_at=now,
            status=Allocation.ACTIVE,
            remarks=remarks or "",
            details=details or {},
            pdf_url=pdf_url or "",
        )
        asset.status = Asset.ALLOCATED
        asset.updated_at = now

        audit.record(
            performed_by,
            "Allocate Asset",
            allocation,
            details={
                **(details or {}),
                "remarks": remarks or "",
                "assetId": asset.pk,
                "serialNumber": asset.serial_number,
                "employeeId": employee.pk,
                "empId": employee.emp_id,
            },
            ip_address=ip_address,
        )
        schedule_allocation_email(allocation)
    return allocation


def allocate(
    asset_id,
    employee_id,
    performed_by,
    remarks="",
    details=None,
    ip_address=None,
    pdf_url="",
) -> Allocation:
    """Allocate an Available asset to an employee.

    Raises NotFoundError for unknown ids, ConflictError when the asset
    is not Available, and PersistenceError if the database fails.
    """
    if details is not None and not isinstance(details, dict):
        raise ValidationError("Details must be an object.", field="details")
    max_url = Allocation._meta.get_field("pdf_url").max_length
    if not isinstance(pdf_url, str) or len(pdf_url) > max_url:
        raise ValidationError(
            f"PDF URL must be a string of at most {max_url} characters.",
            field="pdfUrl",
        )

    attempts = max(1, settings.ALLOCATION_RETRY_ATTEMPTS)
    for attempt in range(1, attempts + 1):
        try:
            allocation = _allocate_once(
                asset_id,
                employee_id,
                performed_by,
                remarks,
                details,
                pdf_url,
                ip_address,
            )
        except _AssetContended:
            logger.warning(
                "Allocation of asset %s contended (attempt %d/%d)",
                asset_id,
                attempt,
                attempts,
            )
            continue
        except IntegrityError as exc:
            # Another transaction committed an Active allocation first
            logger.warning(
                "Active allocation conflict on asset %s: %s", asset_id, exc
            )
            raise ConflictError(
                "Asset already has an active allocation.", field="assetId"
            ) from exc
        except DatabaseError as exc:
            logger.exception("Allocation of asset %s failed", asset_id)
            raise PersistenceError(
                "Could not save the allocation. Please try again."
            ) from exc
        logger.info(
            "Allocated asset %s to employee %s (allocation %s)",
            allocation.asset.serial_number,
            allocation.employee.emp_id,
            allocation.pk,
        )
        return allocation
    raise ConflictError(
        "Asset is being allocated by another request. Please try again.",
        field="assetId",
    )


def return_allocation(
    allocation_id,
    return_reason,
    new_status,
    performed_by,
    details=None,
    ip_address=None,
) -> Allocation:
    """Close an Active allocation and set the asset's new status.

    ``new_status`` is the asset's condition on return and must be one
    of Asset.RETURN_STATUSES.
    """
    if new_status not in Asset.RETURN_STATUSES:
        raise ValidationError(
            f"Return status must be one of: "
            f"{', '.join(Asset.RETURN_STATUSES)}.",
            field="status",
        )
    if details is not None and not isinstance(details, dict):
        raise ValidationError("Details must be an object.", field="details")

    try:
        with transaction.atomic():
            allocation = (
                Allocation.objects.select_for_update()
                .filter(pk=allocation_id)
                .first()
            )
            if allocation is None:
                raise NotFoundError(
                    f"No allocation found with ID '{allocation_id}'.",
                    field="allocationId",
                )
            if allocation.status != Allocation.ACTIVE:
                raise ConflictError(
                    "This allocation has already been returned.",
                    field="allocationId",
                )

            now = timezone.now()
            allocation.status = Allocation.RETURNED
            allocation.return_date = now
            allocation.return_reason = return_reason or ""
            update_fields = ["status", "return_date", "return_reason"]
            if details:
                allocation.details = {
                    **(allocation.details or {}),
                    "return": details,
                }
                update_fields.append("details")
            allocation.save(update_fields=update_fields)
            Asset.objects.filter(pk=allocation.asset_id).update(
                status=new_status, updated_at=now
            )

            audit.record(
                performed_by,
                "Return Asset",
                allocation,
                details={
                    "returnReason": return_reason or "",
                    "status": new_status,
                    **(details or {}),
                },
                ip_address=ip_address,
            )
    except DatabaseError as exc:
        logger.exception("Return of allocation %s failed", allocation_id)
        raise PersistenceError(
            "Could not save the return. Please try again."
        ) from exc

    logger.info(
        "Returned allocation %s; asset now %s", allocation.pk, new_status
    )
    return allocation


def active_allocation_for(asset) -> Allocation | None:
    return (
        Allocation.objects.select_related("employee")
        .filter(asset=asset, status=Allocation.ACTIVE)
        .first()
    )
