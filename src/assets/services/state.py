"""Asset state machine and transition validation.

Covers direct status edits only. Entering and leaving Allocated is
owned by services.allocations so that Asset.status and the Active
allocation row change together.
"""

import logging

from ..exceptions import ConflictError, ValidationError
from ..models import Asset

logger = logging.getLogger(__name__)


def validate_transition(asset: Asset, new_status: str) -> None:
    """Validate and raise if the status transition is not allowed.

    Raises ValidationError for an unknown status and ConflictError
    for a known status that cannot be reached from the current one.
    """
    if new_status == asset.status:
        return  # No-op transition is always fine

    if new_status not in dict(Asset.STATUS_CHOICES):
        raise ValidationError(
            f"'{new_status}' is not a valid status.", field="status"
        )

    if new_status == Asset.ALLOCATED or asset.status == Asset.ALLOCATED:
        raise ConflictError(
            "Allocated status changes only through allocate and return.",
            field="status",
        )

    if not asset.can_transition_to(new_status):
        allowed = Asset.VALID_TRANSITIONS.get(asset.status, [])
        raise ConflictError(
            f"Cannot transition from '{asset.get_status_display()}' to "
            f"'{new_status}'. Allowed transitions: "
            f"{', '.join(allowed) or 'none'}.",
            field="status",
        )


def transition_asset(asset: Asset, new_status: str) -> Asset:
    """Validate and perform a status transition.

    Returns the updated (saved) asset.
    """
    validate_transition(asset, new_status)
    if new_status != asset.status:
        logger.info(
            "Asset %s status %s -> %s",
            asset.serial_number,
            asset.status,
            new_status,
        )
        asset.status = new_status
        asset.save(update_fields=["status", "updated_at"])
    return asset
