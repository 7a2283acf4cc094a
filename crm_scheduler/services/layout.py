"""
Week calendar layout.

Maps a week of appointments onto grid coordinates: a day column, a vertical
offset from the start of business hours and a vertical extent. Units are
whatever `pixels_per_hour` is expressed in.

Callers pass appointments already filtered to the displayed week. Overlapping
appointments get independent blocks; side-by-side stacking is left to the
presentation layer.
"""
import hashlib
from datetime import date, datetime, timedelta, tzinfo
from typing import Dict, Iterable, List, Optional, Sequence, Union

from crm_scheduler.core.config import settings
from crm_scheduler.core.errors import ValidationError
from crm_scheduler.core.timeutils import TimezoneLike, resolve_tz
from crm_scheduler.schemas.appointment import Appointment, Id
from crm_scheduler.schemas.resource import ResourceResponse
from crm_scheduler.schemas.scheduling import LayoutBlock, WeekGrid

PALETTE = ['#3B82F6', '#10B981', '#F59E0B', '#EF4444', '#8B5CF6', '#EC4899']
NEUTRAL_COLOR = '#6B7280'


def _as_date(value: Union[date, datetime], tz: tzinfo) -> date:
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(tz)
        return value.date()
    return value


def week_start_for(day: Union[date, datetime], tz: TimezoneLike = None) -> date:
    """Monday of the week containing `day`."""
    d = _as_date(day, resolve_tz(tz))
    return d - timedelta(days=d.weekday())


def palette_color(resource_id: Id) -> str:
    # sha1 rather than hash(): str hashes are salted per process
    digest = hashlib.sha1(str(resource_id).encode("utf-8")).hexdigest()
    return PALETTE[int(digest, 16) % len(PALETTE)]


def color_key(resource_id: Optional[Id], roster: Optional[Dict[Id, ResourceResponse]] = None) -> str:
    """
    An explicit roster color wins; otherwise the resource id hashes into the palette,
    so reordering the roster never recolors a resource.
    """
    if resource_id is None:
        return NEUTRAL_COLOR
    if roster:
        resource = roster.get(resource_id)
        if resource is not None and resource.color:
            return resource.color
    return palette_color(resource_id)


def _check_hours(business_hour_start: int, business_hour_end: int, pixels_per_hour: float) -> None:
    if not 0 <= business_hour_start < business_hour_end <= 24:
        raise ValidationError(
            f"Invalid business hours: {business_hour_start}-{business_hour_end}"
        )
    if pixels_per_hour <= 0:
        raise ValidationError("pixels_per_hour must be positive")


def layout(
    appointments: Iterable[Appointment],
    week_start: Union[date, datetime],
    business_hour_start: int,
    business_hour_end: int,
    pixels_per_hour: float,
    roster: Optional[Sequence[ResourceResponse]] = None,
    tz: TimezoneLike = None,
    min_visual_minutes: Optional[int] = None,
) -> List[LayoutBlock]:
    """
    One block per appointment, in input order.

    day_index:    days between week_start and the appointment's local start date
    offset_units: ((hour - business_hour_start) * 60 + minute) * pixels_per_hour / 60
    extent_units: max(duration_minutes, min_visual_minutes) * pixels_per_hour / 60

    The minimum extent only affects rendering; conflict checks use real durations.
    """
    _check_hours(business_hour_start, business_hour_end, pixels_per_hour)
    zone = resolve_tz(tz)
    first_day = _as_date(week_start, zone)
    floor_minutes = settings.min_visual_minutes if min_visual_minutes is None else min_visual_minutes
    units_per_minute = pixels_per_hour / 60
    resources = {r.id: r for r in (roster or [])}

    blocks = []
    for appt in appointments:
        local_start = appt.start.astimezone(zone)
        duration_minutes = appt.duration.total_seconds() / 60
        blocks.append(LayoutBlock(
            appointment_id=appt.id,
            day_index=(local_start.date() - first_day).days,
            offset_units=((local_start.hour - business_hour_start) * 60 + local_start.minute) * units_per_minute,
            extent_units=max(duration_minutes, floor_minutes) * units_per_minute,
            color_key=color_key(appt.resource_id, resources),
        ))
    return blocks


def week_grid(
    week_start: Union[date, datetime],
    business_hour_start: int,
    business_hour_end: int,
    pixels_per_hour: float,
    tz: TimezoneLike = None,
) -> WeekGrid:
    """Day columns, hour rows and total height the blocks are drawn against."""
    _check_hours(business_hour_start, business_hour_end, pixels_per_hour)
    first_day = _as_date(week_start, resolve_tz(tz))
    return WeekGrid(
        days=[first_day + timedelta(days=i) for i in range(7)],
        hours=list(range(business_hour_start, business_hour_end)),
        height_units=(business_hour_end - business_hour_start) * pixels_per_hour,
    )
