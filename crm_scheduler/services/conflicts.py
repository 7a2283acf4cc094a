"""
Conflict detection.

Two appointments conflict when their half-open intervals overlap:
    existing.start < candidate.end AND existing.end > candidate.start
so touching endpoints ([09:00,10:00) and [10:00,11:00)) never conflict.

Without a resource the check is tenant-wide and advisory only (a UI warning).
The check is read-only and takes no locks: a booking that passes it can still
race another booking for the same slot until the write is serialized at the
persistence layer.
"""
import logging
from datetime import datetime
from typing import Iterable, List, Optional

from crm_scheduler.core.config import settings
from crm_scheduler.core.errors import ValidationError
from crm_scheduler.schemas.appointment import Appointment, AppointmentStatus, Id, as_utc
from crm_scheduler.schemas.scheduling import ConflictReport

logger = logging.getLogger(__name__)


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    return a_start < b_end and a_end > b_start


def require_interval(start: datetime, end: datetime) -> None:
    if end <= start:
        raise ValidationError(f"Interval end {end.isoformat()} must be after start {start.isoformat()}")


def find_overlapping(
    appointments: Iterable[Appointment],
    tenant_id: Id,
    candidate_start: datetime,
    candidate_end: datetime,
    resource_id: Optional[Id] = None,
    exclude_appointment_id: Optional[Id] = None,
) -> List[Appointment]:
    """Every appointment in scope overlapping the candidate, ordered by start."""
    candidate_start, candidate_end = as_utc(candidate_start), as_utc(candidate_end)
    require_interval(candidate_start, candidate_end)
    matches = []
    for appt in appointments:
        if appt.tenant_id != tenant_id:
            continue
        if resource_id is not None and appt.resource_id != resource_id:
            continue
        if appt.status == AppointmentStatus.CANCELLED:
            continue
        if exclude_appointment_id is not None and appt.id == exclude_appointment_id:
            continue
        if overlaps(appt.start, appt.effective_end, candidate_start, candidate_end):
            matches.append(appt)
    matches.sort(key=lambda a: a.start)
    return matches


class ConflictDetector:
    def __init__(self, repository, preview_limit: Optional[int] = None):
        self.repository = repository
        self.preview_limit = settings.conflict_preview_limit if preview_limit is None else preview_limit

    def find_conflicts(
        self,
        tenant_id: Id,
        resource_id: Optional[Id],
        candidate_start: datetime,
        candidate_end: datetime,
        exclude_appointment_id: Optional[Id] = None,
    ) -> ConflictReport:
        """
        Returns a bounded preview of conflicting appointments plus the total count.
        Fails open: if the appointments cannot be loaded the report is empty.
        """
        candidate_start, candidate_end = as_utc(candidate_start), as_utc(candidate_end)
        require_interval(candidate_start, candidate_end)
        advisory = resource_id is None

        try:
            candidates = self.repository.get_appointments(
                tenant_id, resource_id, (candidate_start, candidate_end)
            )
        except Exception as e:
            logger.warning(f"Conflict lookup failed for tenant {tenant_id}, resource {resource_id}; failing open: {e}")
            return ConflictReport(advisory=advisory)

        matches = find_overlapping(
            candidates, tenant_id, candidate_start, candidate_end,
            resource_id=resource_id,
            exclude_appointment_id=exclude_appointment_id,
        )
        if matches:
            logger.info(
                f"{len(matches)} conflict(s) for tenant {tenant_id}, resource {resource_id} "
                f"in [{candidate_start.isoformat()}, {candidate_end.isoformat()})"
            )

        return ConflictReport(
            conflicts=matches[:self.preview_limit],
            total_count=len(matches),
            advisory=advisory,
            approximate=any(not a.has_end for a in matches),
        )
