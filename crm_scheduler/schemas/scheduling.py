from datetime import date, datetime
from typing import Any, Dict, List, Optional, Set

from pydantic import BaseModel, Field, computed_field, model_validator

from crm_scheduler.schemas.appointment import Appointment, Id, RecurrencePattern


# --- Conflicts ---

class ConflictReport(BaseModel):
    conflicts: List[Appointment] = []
    total_count: int = 0
    advisory: bool = True
    approximate: bool = False

    @computed_field
    @property
    def has_conflicts(self) -> bool:
        return self.total_count > 0

    @computed_field
    @property
    def remaining_count(self) -> int:
        """Matches left out of the preview ("+ N more")."""
        return max(0, self.total_count - len(self.conflicts))


class ConflictCheckRequest(BaseModel):
    resource_id: Optional[Id] = None
    start: datetime
    end: Optional[datetime] = None
    duration_minutes: Optional[int] = Field(None, gt=0)
    exclude_appointment_id: Optional[Id] = None

    @model_validator(mode="after")
    def _end_or_duration(self):
        if self.end is None and self.duration_minutes is None:
            raise ValueError("Either end or duration_minutes is required")
        return self


# --- Recurrence / booking ---

class RecurrencePreviewRequest(BaseModel):
    start: datetime
    duration_minutes: int = Field(..., gt=0)
    recurrence_pattern: Any = RecurrencePattern.NONE
    recurrence_span_weeks: Optional[int] = Field(None, ge=0)


class BookingRequest(BaseModel):
    customer_id: Id
    service_id: Optional[Id] = None
    resource_id: Optional[Id] = None
    start: datetime
    duration_minutes: Optional[int] = Field(None, gt=0)
    recurrence_pattern: Any = RecurrencePattern.NONE
    recurrence_span_weeks: Optional[int] = Field(None, ge=0)
    notes: Optional[str] = None
    price: Optional[float] = None
    # Payment state captured upstream; only the series anchor carries it
    payment_status: Optional[str] = None
    payment_intent_id: Optional[str] = None


class BookingResult(BaseModel):
    anchor_id: Id
    instance_ids: List[Id]
    failed_instances: List[datetime] = []
    conflict: ConflictReport


# --- Reschedule ---

class RescheduleRequest(BaseModel):
    new_day: date
    new_hour: int = Field(..., ge=0, le=23)
    new_minute: int = Field(0, ge=0, le=59)


class RescheduleResult(BaseModel):
    appointment_id: Id
    new_start: datetime
    new_end: datetime
    conflict: Optional[ConflictReport] = None
    committed: bool = False


# --- Batch status ---

class BatchStatusRequest(BaseModel):
    appointment_ids: Set[Id]
    status: str


class BatchStatusResult(BaseModel):
    updated_count: int = 0
    failed_ids: List[Id] = []


# --- Calendar ---

class LayoutBlock(BaseModel):
    appointment_id: Optional[Id]
    day_index: int
    offset_units: float
    extent_units: float
    color_key: str


class WeekGrid(BaseModel):
    days: List[date]
    hours: List[int]
    height_units: float


class WeekLayoutResponse(BaseModel):
    grid: WeekGrid
    blocks: List[LayoutBlock]


# --- Delete / undo ---

class DeletedAppointmentResponse(BaseModel):
    snapshot: Dict[str, Any]
    undo_window_seconds: int


class RestoreRequest(BaseModel):
    snapshot: Dict[str, Any]


class RestoreResponse(BaseModel):
    id: Id
