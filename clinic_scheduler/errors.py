# clinic_scheduler/errors.py
from __future__ import annotations

from typing import Dict, List, Optional


class SchedulerError(Exception):
    """Base class for every failure the scheduler reports back to a caller."""

    status_code = 500
    default_message = "Something went wrong. Please try again."

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"success": False, "message": self.message}


class ValidationError(SchedulerError):
    """Bad input shape or range. Carries one list of messages per field."""

    status_code = 422
    default_message = "Invalid fields."

    def __init__(self, field_errors: Dict[str, List[str]], message: Optional[str] = None):
        self.field_errors = field_errors
        super().__init__(message)

    def to_dict(self) -> dict:
        out = super().to_dict()
        out["fieldErrors"] = self.field_errors
        return out


class ConflictError(SchedulerError):
    """The slot stopped being bookable between the query and the commit."""

    status_code = 409
    default_message = "This time slot is no longer available. Please select another time."


class NotFoundError(SchedulerError):
    status_code = 404
    default_message = "Record not found."


class StoreError(SchedulerError):
    """Transient I/O failure (timeouts included)."""

    status_code = 503
    default_message = "The clinic database is temporarily unavailable. Please try again."


class NotifyError(SchedulerError):
    # Never surfaced to the booking caller; only logged.
    status_code = 502
    default_message = "Failed to send notification."
