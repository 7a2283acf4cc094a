from datetime import datetime, tzinfo
from typing import Union

import pytz

from crm_scheduler.core.config import settings

TimezoneLike = Union[str, tzinfo, None]

def resolve_tz(tz: TimezoneLike = None) -> tzinfo:
    """Timezone name or object; defaults to the configured display timezone."""
    if tz is None:
        tz = settings.timezone
    if isinstance(tz, str):
        return pytz.timezone(tz)
    return tz

def localize(naive: datetime, tz: TimezoneLike = None) -> datetime:
    """Attaches a zone to a naive wall-clock time (pytz zones need localize for DST)."""
    zone = resolve_tz(tz)
    if hasattr(zone, "localize"):
        return zone.localize(naive)
    return naive.replace(tzinfo=zone)
