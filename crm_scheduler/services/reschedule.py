import logging
from datetime import date, datetime, time
from typing import Optional, Tuple

import pytz

from crm_scheduler.core.config import settings
from crm_scheduler.core.errors import SlotConflictError, ValidationError
from crm_scheduler.core.timeutils import TimezoneLike, localize
from crm_scheduler.schemas.appointment import Appointment, Id
from crm_scheduler.schemas.scheduling import RescheduleResult
from crm_scheduler.services.conflicts import ConflictDetector

logger = logging.getLogger(__name__)

ADVISORY = "advisory"
STRICT = "strict"


def plan_move(
    appointment: Appointment,
    new_day: date,
    new_hour: int,
    new_minute: int = 0,
    tz: TimezoneLike = None,
) -> Tuple[datetime, datetime]:
    """
    New [start, end) in UTC for a drop on (new_day, new_hour:new_minute) local time.
    The original duration is always preserved.
    """
    if not 0 <= new_hour <= 23 or not 0 <= new_minute <= 59:
        raise ValidationError(f"Invalid target time {new_hour}:{new_minute:02d}")
    local = localize(datetime.combine(new_day, time(new_hour, new_minute)), tz)
    new_start = local.astimezone(pytz.utc)
    return new_start, new_start + appointment.duration


class RescheduleCoordinator:
    """
    Moves an appointment to a new slot, keeping its duration, and re-checks
    conflicts on the appointment's resource before the write.

    With the advisory policy a conflicting move is committed and the report is
    returned as a warning; with the strict policy it raises SlotConflictError
    and nothing is written. Only start/end are touched, never status.
    """
    def __init__(self, repository, detector: Optional[ConflictDetector] = None, policy: Optional[str] = None):
        self.repository = repository
        self.detector = detector or ConflictDetector(repository)
        self.policy = policy or settings.reschedule_policy
        if self.policy not in (ADVISORY, STRICT):
            raise ValidationError(f"Unknown reschedule policy: {self.policy}")

    def reschedule(
        self,
        tenant_id: Id,
        appointment_id: Id,
        new_day: date,
        new_hour: int,
        new_minute: int = 0,
        tz: TimezoneLike = None,
        commit: bool = True,
    ) -> RescheduleResult:
        # 1. Load (LookupFailure / AppointmentNotFound propagate)
        appointment = self.repository.get_appointment(tenant_id, appointment_id)
        if appointment.status.is_terminal:
            raise ValidationError(
                f"Appointment {appointment_id} is {appointment.status.value} and cannot be moved."
            )

        # 2. Compute the new window
        new_start, new_end = plan_move(appointment, new_day, new_hour, new_minute, tz)

        # 3. Conflict check against the same resource, excluding itself
        report = self.detector.find_conflicts(
            tenant_id,
            appointment.resource_id,
            new_start,
            new_end,
            exclude_appointment_id=appointment.id,
        )
        if report.has_conflicts and self.policy == STRICT and not report.advisory:
            logger.info(f"Rejected move of appointment {appointment_id}: {report.total_count} conflict(s)")
            raise SlotConflictError(report)

        result = RescheduleResult(
            appointment_id=appointment.id,
            new_start=new_start,
            new_end=new_end,
            conflict=report if report.has_conflicts else None,
        )
        if not commit:
            return result

        # 4. Write start/end only
        self.repository.update_appointment(tenant_id, appointment.id, {"start": new_start, "end": new_end})
        logger.info(
            f"Appointment {appointment_id} moved to {new_start.isoformat()} - {new_end.isoformat()}"
            + (f" with {report.total_count} conflict(s)" if report.has_conflicts else "")
        )
        result.committed = True
        return result
