import enum
import logging
from datetime import datetime, timedelta
from typing import Annotated, Any, Dict, Literal, Optional, Union

import pytz
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

logger = logging.getLogger(__name__)

Id = Union[int, str]

FALLBACK_DURATION = timedelta(minutes=60)


class AppointmentStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED})


class RecurrencePattern(str, enum.Enum):
    NONE = "none"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"

    @classmethod
    def parse(cls, value: Any) -> "RecurrencePattern":
        """Unknown or empty values degrade to NONE instead of raising."""
        if isinstance(value, cls):
            return value
        if value is None or value == "":
            return cls.NONE
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            logger.warning(f"Unknown recurrence pattern {value!r}, treating as 'none'")
            return cls.NONE


def as_utc(value: datetime) -> datetime:
    """Naive datetimes are taken to be UTC already."""
    if value.tzinfo is None:
        return pytz.utc.localize(value)
    return value.astimezone(pytz.utc)


class Interval(BaseModel):
    """Half-open time range [start, end)."""
    start: datetime
    end: datetime

    model_config = ConfigDict(frozen=True)

    @field_validator("start", "end")
    @classmethod
    def _utc(cls, v: datetime) -> datetime:
        return as_utc(v)

    @model_validator(mode="after")
    def _end_after_start(self):
        if self.end <= self.start:
            raise ValueError("end must be after start")
        return self

    @property
    def duration(self) -> timedelta:
        return self.end - self.start

    def overlaps(self, other: "Interval") -> bool:
        return self.start < other.end and self.end > other.start


# --- Series link ---
# A child can only reference an anchor id, so a series is always one level deep.

class Standalone(BaseModel):
    kind: Literal["standalone"] = "standalone"


class RecurrenceAnchor(BaseModel):
    kind: Literal["anchor"] = "anchor"
    instance_count: Optional[int] = None


class RecurrenceChild(BaseModel):
    kind: Literal["child"] = "child"
    anchor_id: Id


SeriesLink = Annotated[
    Union[Standalone, RecurrenceAnchor, RecurrenceChild],
    Field(discriminator="kind"),
]


class Appointment(BaseModel):
    id: Optional[Id] = None
    tenant_id: Id
    customer_id: Optional[Id] = None
    resource_id: Optional[Id] = None
    service_id: Optional[Id] = None
    start: datetime
    end: Optional[datetime] = None
    status: AppointmentStatus = AppointmentStatus.SCHEDULED
    recurrence_pattern: RecurrencePattern = RecurrencePattern.NONE
    series: SeriesLink = Field(default_factory=Standalone)
    notes: Optional[str] = None
    price: Optional[float] = None
    payment_status: Optional[str] = None
    payment_reference: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)

    @field_validator("start", "end")
    @classmethod
    def _utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_utc(v) if v is not None else v

    @field_validator("recurrence_pattern", mode="before")
    @classmethod
    def _pattern(cls, v: Any) -> RecurrencePattern:
        return RecurrencePattern.parse(v)

    @model_validator(mode="after")
    def _end_after_start(self):
        if self.end is not None and self.end <= self.start:
            raise ValueError("end must be after start")
        return self

    @property
    def has_end(self) -> bool:
        return self.end is not None

    @property
    def effective_end(self) -> datetime:
        """Stored end, or start + 60 min for legacy rows without one (approximate)."""
        return self.end if self.end is not None else self.start + FALLBACK_DURATION

    @property
    def duration(self) -> timedelta:
        return self.effective_end - self.start

    @property
    def interval(self) -> Interval:
        return Interval(start=self.start, end=self.effective_end)

    @property
    def anchor_id(self) -> Optional[Id]:
        """Id that groups this appointment's series, if it belongs to one."""
        if isinstance(self.series, RecurrenceChild):
            return self.series.anchor_id
        if isinstance(self.series, RecurrenceAnchor):
            return self.id
        return None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "Appointment":
        """Builds an Appointment from an `appointments` table row."""
        pattern = RecurrencePattern.parse(row.get("recurring_pattern"))
        parent_id = row.get("recurring_parent_id")
        if parent_id is not None:
            series: Any = RecurrenceChild(anchor_id=parent_id)
        elif pattern != RecurrencePattern.NONE:
            series = RecurrenceAnchor()
        else:
            series = Standalone()

        resource_id = row.get("technician_id")
        if resource_id is None:
            resource_id = row.get("assigned_technician_id")

        return cls(
            id=row.get("id"),
            tenant_id=row["tenant_id"],
            customer_id=row.get("customer_id"),
            resource_id=resource_id,
            service_id=row.get("service_id"),
            start=row["scheduled_start"],
            end=row.get("scheduled_end"),
            status=row.get("status") or AppointmentStatus.SCHEDULED,
            recurrence_pattern=pattern,
            series=series,
            notes=row.get("notes"),
            price=row.get("price"),
            payment_status=row.get("payment_status"),
            payment_reference=row.get("stripe_payment_intent_id"),
        )

    def to_row(self) -> Dict[str, Any]:
        """Inverse of from_row. `id` is left out when not yet assigned."""
        parent_id = self.series.anchor_id if isinstance(self.series, RecurrenceChild) else None
        row = {
            "tenant_id": self.tenant_id,
            "customer_id": self.customer_id,
            "technician_id": self.resource_id,
            "service_id": self.service_id,
            "scheduled_start": self.start.isoformat(),
            "scheduled_end": self.end.isoformat() if self.end is not None else None,
            "status": self.status.value,
            "notes": self.notes,
            "price": self.price,
            "payment_status": self.payment_status,
            "stripe_payment_intent_id": self.payment_reference,
            "is_recurring": self.recurrence_pattern != RecurrencePattern.NONE,
            "recurring_pattern": (
                self.recurrence_pattern.value
                if self.recurrence_pattern != RecurrencePattern.NONE else None
            ),
            "recurring_parent_id": parent_id,
        }
        if self.id is not None:
            row["id"] = self.id
        return row
