"""
Recurring booking expansion.

Steps are fixed day counts (a "month" is 28 days, not a calendar-month walk).
Only the first instance (the series anchor) is conflict-checked and carries
the payment state captured at booking time.
"""
import logging
import math
from datetime import datetime, timedelta
from typing import Any, Dict, List

from crm_scheduler.core.errors import ValidationError
from crm_scheduler.schemas.appointment import (
    Appointment,
    AppointmentStatus,
    Id,
    Interval,
    RecurrenceAnchor,
    RecurrenceChild,
    RecurrencePattern,
    Standalone,
    as_utc,
)

logger = logging.getLogger(__name__)

STEP_DAYS: Dict[RecurrencePattern, int] = {
    RecurrencePattern.WEEKLY: 7,
    RecurrencePattern.BIWEEKLY: 14,
    RecurrencePattern.MONTHLY: 28,
}


def instance_count(pattern: Any, total_span_weeks: int) -> int:
    pattern = RecurrencePattern.parse(pattern)
    if pattern == RecurrencePattern.NONE:
        return 1
    step_weeks = STEP_DAYS[pattern] / 7
    return max(1, math.ceil(total_span_weeks / step_weeks))


def expand(
    base_start: datetime,
    duration_minutes: int,
    pattern: Any,
    total_span_weeks: int,
) -> List[Interval]:
    """
    Turns one booking request into its ordered instances.
    Instance i starts at base_start + i * step and keeps the same duration.
    """
    if duration_minutes <= 0:
        raise ValidationError(f"duration_minutes must be positive, got {duration_minutes}")

    pattern = RecurrencePattern.parse(pattern)
    base_start = as_utc(base_start)
    duration = timedelta(minutes=duration_minutes)
    step = timedelta(days=STEP_DAYS.get(pattern, 0))

    intervals = []
    for i in range(instance_count(pattern, total_span_weeks)):
        start = base_start + i * step
        intervals.append(Interval(start=start, end=start + duration))
    logger.debug(f"Expanded {pattern.value} booking at {base_start.isoformat()} into {len(intervals)} instance(s)")
    return intervals


def is_series(template: Appointment) -> bool:
    return template.recurrence_pattern != RecurrencePattern.NONE


def plan_anchor(template: Appointment, intervals: List[Interval]) -> Appointment:
    """The first instance keeps the template's status and payment state."""
    if not intervals:
        raise ValidationError("Cannot plan a booking without instances")
    first = intervals[0]
    series = RecurrenceAnchor(instance_count=len(intervals)) if is_series(template) else Standalone()
    return template.model_copy(update={"start": first.start, "end": first.end, "series": series})


def plan_children(template: Appointment, intervals: List[Interval], anchor_id: Id) -> List[Appointment]:
    """
    Later instances of a series: 'scheduled', payment 'pending', linked to the anchor.
    Created independently of each other; none of them is conflict-checked.
    """
    if not is_series(template):
        return []
    return [
        template.model_copy(update={
            "id": None,
            "start": interval.start,
            "end": interval.end,
            "status": AppointmentStatus.SCHEDULED,
            "payment_status": "pending",
            "payment_reference": None,
            "series": RecurrenceChild(anchor_id=anchor_id),
        })
        for interval in intervals[1:]
    ]
