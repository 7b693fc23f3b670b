"""Service-layer errors raised by allocation and import operations.

Each error carries the HTTP status the JSON views answer with, so
handlers translate them without knowing which service raised.
"""


class ServiceError(Exception):
    status_code = 400

    def __init__(self, message, field=None):
        super().__init__(message)
        self.message = message
        self.field = field

    def as_dict(self):
        data = {"error": self.message}
        if self.field:
            data["field"] = self.field
        return data


class ValidationError(ServiceError):
    """Malformed or incomplete input."""

    status_code = 400


class NotFoundError(ServiceError):
    """A referenced id does not exist."""

    status_code = 404


class ConflictError(ServiceError):
    """The requested transition is illegal from the current state."""

    status_code = 409


class AuthorizationError(ServiceError):
    """The caller's role does not permit the operation."""

    status_code = 403


class PersistenceError(ServiceError):
    """The database rejected or failed a write."""

    status_code = 500


def from_django_validation(exc) -> ValidationError:
    """Convert a django.core.exceptions.ValidationError to ours.

    Only the first message is kept; its field name when there is one.
    """
    if hasattr(exc, "message_dict"):
        for field, messages in exc.message_dict.items():
            if messages:
                name = None if field == "__all__" else field
                return ValidationError(messages[0], field=name)
    messages = getattr(exc, "messages", None) or [str(exc)]
    return ValidationError(messages[0])
