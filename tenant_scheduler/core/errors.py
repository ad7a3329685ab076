"""Error kinds raised by the guard, the identity verifier and the store.

The HTTP binding maps each kind to a status code in one place
(see ``tenant_scheduler.main``); nothing below the binding knows about HTTP
beyond the ``status_code`` hint carried on the class.
"""

from typing import Any


class SchedulerError(Exception):
    """Base exception for appointment access errors."""

    status_code = 500
    retryable = False
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, details: Any = None) -> None:
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)


class ValidationError(SchedulerError):
    """Malformed or logically inconsistent input, e.g. end before start."""

    status_code = 400
    default_message = "Validation failed"


class AuthenticationError(SchedulerError):
    """The credential could not be verified or has expired."""

    status_code = 401
    default_message = "Unauthorized"


class AccessDenied(SchedulerError):
    """Authenticated, but not allowed to touch this tenant or record."""

    status_code = 403
    default_message = "Access denied"


class NotFound(SchedulerError):
    """No record at the resolved key, whatever the reason."""

    status_code = 404
    default_message = "Appointment not found"


class Conflict(SchedulerError):
    """A record already exists at the primary key being created."""

    status_code = 409
    retryable = True
    default_message = "Appointment id collision"


class StorageUnavailable(SchedulerError):
    """Transient backend failure; the caller may retry."""

    status_code = 503
    retryable = True
    default_message = "Database unavailable. Verify DATABASE_URL and database credentials."
