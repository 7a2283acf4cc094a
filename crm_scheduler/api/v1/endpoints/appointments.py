from datetime import datetime, timedelta
from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from typing import List, Optional
from crm_scheduler.api.deps import get_current_tenant, get_repository, parse_id
from crm_scheduler.core.config import settings
from crm_scheduler.schemas.appointment import Appointment, Interval
from crm_scheduler.schemas.scheduling import (
    BatchStatusRequest,
    BatchStatusResult,
    BookingRequest,
    BookingResult,
    ConflictCheckRequest,
    ConflictReport,
    DeletedAppointmentResponse,
    RecurrencePreviewRequest,
    RescheduleRequest,
    RescheduleResult,
    RestoreRequest,
    RestoreResponse,
)
from crm_scheduler.schemas.tenant import TenantResponse
from crm_scheduler.services.batch_status import BatchStatusApplier
from crm_scheduler.services.booking import BookingService
from crm_scheduler.services.conflicts import ConflictDetector
from crm_scheduler.services.notifications import notify_booking
from crm_scheduler.services.recurrence import expand
from crm_scheduler.services.repository import AppointmentRepository
from crm_scheduler.services.reschedule import RescheduleCoordinator

router = APIRouter()

@router.get("/", response_model=List[Appointment])
async def list_appointments(
    resource_id: Optional[str] = Query(None),
    start_time: Optional[datetime] = Query(None),
    end_time: Optional[datetime] = Query(None),
    tenant: TenantResponse = Depends(get_current_tenant),
    repository: AppointmentRepository = Depends(get_repository),
):
    """
    List the tenant's appointments, optionally for one resource and time window.
    """
    date_range = None
    if start_time and end_time:
        date_range = (start_time, end_time)
    return repository.get_appointments(
        tenant.id,
        parse_id(resource_id) if resource_id else None,
        date_range,
    )

@router.post("/conflicts", response_model=ConflictReport)
async def check_conflicts(
    check_in: ConflictCheckRequest,
    tenant: TenantResponse = Depends(get_current_tenant),
    repository: AppointmentRepository = Depends(get_repository),
):
    """
    Advisory overlap check for a candidate slot. Safe to call on every edit.
    """
    end = check_in.end or check_in.start + timedelta(minutes=check_in.duration_minutes)
    return ConflictDetector(repository).find_conflicts(
        tenant.id,
        check_in.resource_id,
        check_in.start,
        end,
        exclude_appointment_id=check_in.exclude_appointment_id,
    )

@router.post("/recurrence-preview", response_model=List[Interval])
async def preview_recurrence(
    preview_in: RecurrencePreviewRequest,
    tenant: TenantResponse = Depends(get_current_tenant),
):
    """
    The instances a recurring booking would create, without persisting anything.
    """
    span = preview_in.recurrence_span_weeks
    if span is None:
        span = settings.default_recurrence_span_weeks
    return expand(preview_in.start, preview_in.duration_minutes, preview_in.recurrence_pattern, span)

@router.post("/bookings", response_model=BookingResult, status_code=status.HTTP_201_CREATED)
async def create_booking(
    booking_in: BookingRequest,
    background_tasks: BackgroundTasks,
    tenant: TenantResponse = Depends(get_current_tenant),
    repository: AppointmentRepository = Depends(get_repository),
):
    """
    Book one appointment or a recurring series. Notifications go out after the response.
    """
    result = BookingService(repository).book(tenant.id, booking_in)
    background_tasks.add_task(notify_booking, result.anchor_id)
    return result

@router.post("/batch-status", response_model=BatchStatusResult)
async def batch_update_status(
    batch_in: BatchStatusRequest,
    tenant: TenantResponse = Depends(get_current_tenant),
    repository: AppointmentRepository = Depends(get_repository),
):
    """
    Apply one status to many appointments. Partial success is reported, not rolled back.
    """
    return BatchStatusApplier(repository).apply_status(tenant.id, batch_in.appointment_ids, batch_in.status)

@router.post("/restore", response_model=RestoreResponse, status_code=status.HTTP_201_CREATED)
async def restore_appointment(
    restore_in: RestoreRequest,
    tenant: TenantResponse = Depends(get_current_tenant),
    repository: AppointmentRepository = Depends(get_repository),
):
    """
    Undo a delete by re-inserting the snapshot the delete returned.
    """
    return RestoreResponse(id=repository.restore_appointment(tenant.id, restore_in.snapshot))

@router.post("/{appointment_id}/reschedule", response_model=RescheduleResult)
async def reschedule_appointment(
    appointment_id: str,
    move_in: RescheduleRequest,
    tenant: TenantResponse = Depends(get_current_tenant),
    repository: AppointmentRepository = Depends(get_repository),
):
    """
    Move an appointment to a calendar slot (tenant local time), keeping its duration.
    """
    return RescheduleCoordinator(repository).reschedule(
        tenant.id,
        parse_id(appointment_id),
        move_in.new_day,
        move_in.new_hour,
        move_in.new_minute,
        tz=tenant.timezone,
    )

@router.delete("/{appointment_id}", response_model=DeletedAppointmentResponse)
async def delete_appointment(
    appointment_id: str,
    tenant: TenantResponse = Depends(get_current_tenant),
    repository: AppointmentRepository = Depends(get_repository),
):
    """
    Hard delete. The returned snapshot backs the client's undo affordance.
    """
    snapshot = repository.delete_appointment(tenant.id, parse_id(appointment_id))
    return DeletedAppointmentResponse(snapshot=snapshot, undo_window_seconds=settings.undo_window_seconds)
