"""
Error taxonomy for the scheduling engine.

ValidationError covers bad input (end <= start, unknown status).
LookupFailure means the persistence collaborator could not be reached.
Read-only checks fail open on LookupFailure, mutating operations surface it.
"""
from typing import Any, Optional


class SchedulingError(Exception):
    """Base class for every error raised by the engine."""


class ValidationError(SchedulingError, ValueError):
    pass


class LookupFailure(SchedulingError):
    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class AppointmentNotFound(SchedulingError, LookupError):
    def __init__(self, appointment_id: Any):
        super().__init__(f"Appointment {appointment_id} not found.")
        self.appointment_id = appointment_id


class SlotConflictError(SchedulingError):
    """Raised when a conflict is treated as blocking (strict policy)."""

    def __init__(self, report: Any, message: str = "Slot is not available."):
        super().__init__(message)
        self.report = report
