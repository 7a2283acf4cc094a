from datetime import date, datetime, time, timedelta
from fastapi import APIRouter, Depends, Query
from typing import Optional
import pytz
from crm_scheduler.api.deps import get_current_tenant, get_repository, parse_id
from crm_scheduler.core.config import settings
from crm_scheduler.core.timeutils import localize
from crm_scheduler.schemas.scheduling import WeekLayoutResponse
from crm_scheduler.schemas.tenant import TenantResponse
from crm_scheduler.services.layout import layout, week_grid, week_start_for
from crm_scheduler.services.repository import AppointmentRepository

router = APIRouter()

@router.get("/week", response_model=WeekLayoutResponse)
async def get_week(
    week_of: Optional[date] = Query(None, description="Any day of the week to show; defaults to today"),
    resource_id: Optional[str] = Query(None),
    tenant: TenantResponse = Depends(get_current_tenant),
    repository: AppointmentRepository = Depends(get_repository),
):
    """
    Grid coordinates for one week (Monday to Sunday) in the tenant's timezone.
    """
    tz = tenant.timezone or settings.timezone

    # 1. Week bounds in UTC
    first_day = week_start_for(week_of or datetime.now(pytz.utc), tz)
    range_start = localize(datetime.combine(first_day, time.min), tz).astimezone(pytz.utc)
    range_end = localize(datetime.combine(first_day + timedelta(days=7), time.min), tz).astimezone(pytz.utc)

    # 2. Only appointments starting inside the week are drawn
    appointments = [
        a for a in repository.get_appointments(
            tenant.id,
            parse_id(resource_id) if resource_id else None,
            (range_start, range_end),
        )
        if range_start <= a.start < range_end
    ]
    roster = repository.list_resources(tenant.id)

    # 3. Layout
    return WeekLayoutResponse(
        grid=week_grid(first_day, settings.business_hour_start, settings.business_hour_end, settings.pixels_per_hour, tz),
        blocks=layout(
            appointments,
            first_day,
            settings.business_hour_start,
            settings.business_hour_end,
            settings.pixels_per_hour,
            roster=roster,
            tz=tz,
        ),
    )
