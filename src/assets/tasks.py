"""Celery tasks for the assets app."""

import logging

from celery import shared_task

from django.conf import settings
from django.core.mail import EmailMultiAlternatives, get_connection
from django.template.loader import render_to_string

logger = logging.getLogger(__name__)


def _smtp_connection(config):
    """Build a mail connection from the stored EmailSettings row."""
    return get_connection(
        backend=settings.EMAIL_BACKEND,
        host=config.host,
        port=config.port,
        username=config.username or None,
        password=config.password or None,
        use_tls=config.use_tls,
        use_ssl=config.use_ssl,
        timeout=settings.EMAIL_TIMEOUT,
    )


def send_message(config, subject, text_body, html_body, recipient_list):
    """Send one message through ``config``'s SMTP server."""
    msg = EmailMultiAlternatives(
        subject=subject,
        body=text_body,
        from_email=config.from_email or settings.DEFAULT_FROM_EMAIL,
        to=recipient_list,
        connection=_smtp_connection(config),
    )
    if html_body:
        msg.attach_alternative(html_body, "text/html")
    msg.send()


@shared_task(
    bind=True,
    autoretry_for=(OSError,),
    max_retries=3,
    retry_backoff=30,
    retry_backoff_max=300,
)
def send_allocation_email(self, allocation_id: int) -> bool:
    """Tell an employee an asset has been allocated to them.

    Returns False when there is nothing to send: no SMTP settings, no
    recipient address, or the allocation has gone.
    """
    from .models import Allocation, EmailSettings

    config = EmailSettings.get_current()
    if config is None:
        logger.info(
            "Email settings not configured; skipping allocation %s",
            allocation_id,
        )
        return False

    allocation = (
        Allocation.objects.select_related("asset__asset_type", "employee")
        .filter(pk=allocation_id)
        .first()
    )
    if allocation is None:
        logger.warning("Allocation %s no longer exists", allocation_id)
        return False
    employee = allocation.employee
    if not employee.email:
        logger.info("Employee %s has no email address", employee.emp_id)
        return False

    asset = allocation.asset
    subject = f"Asset Allocated: {asset.serial_number}"
    context = {
        "subject": subject,
        "employee_name": employee.name,
        "asset_type": asset.asset_type.name,
        "serial_number": asset.serial_number,
        "remarks": allocation.remarks,
        "site_name": settings.SITE_NAME,
    }
    send_message(
        config,
        subject,
        render_to_string("emails/allocation.txt", context),
        render_to_string("emails/allocation.html", context),
        [employee.email],
    )
    logger.info("Email sent: '%s' to %s", subject, employee.email)
    return True
