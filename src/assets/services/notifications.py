"""Best-effort notification of employees after allocation."""

import logging

from django.db import transaction

logger = logging.getLogger(__name__)


def _dispatch_allocation_email(allocation_id):
    from ..tasks import send_allocation_email

    try:
        send_allocation_email.delay(allocation_id)
    except Exception:
        # A broker or SMTP outage must never undo a committed allocation
        logger.exception(
            "Could not send allocation email for allocation %s",
            allocation_id,
        )


def schedule_allocation_email(allocation) -> None:
    """Queue the allocation email once the current transaction commits.

    Nothing is queued if the transaction rolls back.
    """
    if not allocation.employee.email:
        logger.debug(
            "No email for employee %s; skipping notification",
            allocation.employee.emp_id,
        )
        return
    allocation_id = allocation.pk
    transaction.on_commit(lambda: _dispatch_allocation_email(allocation_id))
