import itertools
from datetime import datetime
from typing import Any, Dict, List, Optional

import pytest
import pytz

from crm_scheduler.core.errors import AppointmentNotFound, LookupFailure
from crm_scheduler.schemas.appointment import Appointment
from crm_scheduler.schemas.resource import ResourceResponse
from crm_scheduler.schemas.service import ServiceResponse
from crm_scheduler.schemas.tenant import TenantResponse

TENANT_ID = 1
OTHER_TENANT_ID = 2


def utc(year, month, day, hour=0, minute=0) -> datetime:
    return datetime(year, month, day, hour, minute, tzinfo=pytz.utc)


class FakeRepository:
    """In-memory stand-in for AppointmentRepository with failure injection."""

    def __init__(self):
        self.appointments: Dict[Any, Appointment] = {}
        self.resources: List[ResourceResponse] = []
        self.services: Dict[Any, ServiceResponse] = {}
        self.tenant = TenantResponse(id=TENANT_ID, name="Sparkle Cleaning", timezone="UTC")
        self.failing_methods = set()
        self.failing_update_ids = set()
        self.updates: List[tuple] = []
        self.created: List[Appointment] = []
        self._ids = itertools.count(1000)

    def _maybe_fail(self, method: str):
        if method in self.failing_methods:
            raise LookupFailure(f"{method} unavailable")

    def add(self, **fields) -> Appointment:
        fields.setdefault("tenant_id", TENANT_ID)
        if "id" not in fields:
            fields["id"] = next(self._ids)
        appt = Appointment(**fields)
        self.appointments[appt.id] = appt
        return appt

    def get_appointments(self, tenant_id, resource_id=None, date_range=None) -> List[Appointment]:
        self._maybe_fail("get_appointments")
        result = []
        for appt in self.appointments.values():
            if appt.tenant_id != tenant_id:
                continue
            if resource_id is not None and appt.resource_id != resource_id:
                continue
            if date_range is not None:
                start, end = date_range
                if not (appt.start < end and (appt.end is None or appt.end > start)):
                    continue
            result.append(appt)
        return sorted(result, key=lambda a: a.start)

    def get_appointment(self, tenant_id, appointment_id) -> Appointment:
        self._maybe_fail("get_appointment")
        appt = self.appointments.get(appointment_id)
        if appt is None or appt.tenant_id != tenant_id:
            raise AppointmentNotFound(appointment_id)
        return appt

    def get_appointments_by_ids(self, tenant_id, appointment_ids) -> List[Appointment]:
        self._maybe_fail("get_appointments_by_ids")
        return [
            a for a in self.appointments.values()
            if a.id in set(appointment_ids) and a.tenant_id == tenant_id
        ]

    def create_appointment(self, appointment: Appointment):
        self._maybe_fail("create_appointment")
        new_id = next(self._ids)
        stored = appointment.model_copy(update={"id": new_id})
        self.appointments[new_id] = stored
        self.created.append(stored)
        return new_id

    def update_appointment(self, tenant_id, appointment_id, partial: Dict[str, Any]) -> None:
        self._maybe_fail("update_appointment")
        if appointment_id in self.failing_update_ids:
            raise LookupFailure(f"update of {appointment_id} failed")
        appt = self.get_appointment(tenant_id, appointment_id)
        self.appointments[appointment_id] = appt.model_copy(update=partial)
        self.updates.append((appointment_id, partial))

    def delete_appointment(self, tenant_id, appointment_id) -> Dict[str, Any]:
        self._maybe_fail("delete_appointment")
        appt = self.get_appointment(tenant_id, appointment_id)
        del self.appointments[appointment_id]
        return appt.to_row()

    def restore_appointment(self, tenant_id, snapshot: Dict[str, Any]):
        self._maybe_fail("restore_appointment")
        row = dict(snapshot, tenant_id=tenant_id)
        appt = Appointment.from_row(row)
        self.appointments[appt.id] = appt
        return appt.id

    def list_resources(self, tenant_id) -> List[ResourceResponse]:
        self._maybe_fail("list_resources")
        return [r for r in self.resources if r.tenant_id == tenant_id]

    def get_service(self, tenant_id, service_id) -> Optional[ServiceResponse]:
        return self.services.get(service_id)

    def get_tenant_for_user(self, user_id) -> Optional[TenantResponse]:
        return self.tenant


@pytest.fixture
def repo() -> FakeRepository:
    return FakeRepository()


@pytest.fixture
def monday() -> datetime:
    """2024-06-03 was a Monday."""
    return utc(2024, 6, 3)
