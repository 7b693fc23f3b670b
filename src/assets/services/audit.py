"""Audit trail recording."""

import logging

from django.core.serializers.json import DjangoJSONEncoder

from ..models import AuditLog

logger = logging.getLogger(__name__)

_encoder = DjangoJSONEncoder()


def _jsonable(value):
    """Coerce dates, decimals and UUIDs inside ``details`` to JSON types."""
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return _encoder.default(value)


def record(
    user,
    action: str,
    entity=None,
    entity_type: str = "",
    entity_id=None,
    details=None,
    ip_address=None,
) -> AuditLog:
    """Append one audit log entry.

    ``entity`` is a model instance; its class name and pk fill
    ``entity_type``/``entity_id`` unless given explicitly.
    """
    if entity is not None:
        entity_type = entity_type or type(entity).__name__
        entity_id = entity_id if entity_id is not None else entity.pk
    if user is not None and not getattr(user, "is_authenticated", False):
        user = None
    entry = AuditLog.objects.create(
        user=user,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        details=_jsonable(details),
        ip_address=ip_address,
    )
    logger.debug(
        "Audit: %s %s#%s by %s", action, entity_type, entity_id, user
    )
    return entry
