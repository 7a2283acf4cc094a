import enum
import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from crm_scheduler.core.errors import AppointmentNotFound, LookupFailure
from crm_scheduler.core.supabase_client import get_supabase
from crm_scheduler.schemas.appointment import Appointment, Id
from crm_scheduler.schemas.resource import ResourceResponse
from crm_scheduler.schemas.service import ServiceResponse
from crm_scheduler.schemas.tenant import TenantResponse

logger = logging.getLogger(__name__)

DateRange = Tuple[datetime, datetime]

# Domain field -> `appointments` column
FIELD_COLUMNS = {
    "start": "scheduled_start",
    "end": "scheduled_end",
    "resource_id": "technician_id",
    "customer_id": "customer_id",
    "service_id": "service_id",
    "status": "status",
    "notes": "notes",
    "payment_status": "payment_status",
    "price": "price",
}


def _column_value(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, enum.Enum):
        return value.value
    return value


class AppointmentRepository:
    """
    Persistence collaborator backed by Supabase.
    The engine never calls this directly; orchestration composes engine calls with these.
    Every client error is re-raised as LookupFailure, there are no retries here.
    """
    def __init__(self, client=None):
        self._client = client

    @property
    def client(self):
        if self._client is None:
            self._client = get_supabase()
        return self._client

    def get_appointments(
        self,
        tenant_id: Id,
        resource_id: Optional[Id] = None,
        date_range: Optional[DateRange] = None,
    ) -> List[Appointment]:
        """
        Appointments of a tenant (and resource) that may intersect `date_range`.
        Rows without an end are always included; callers apply the exact predicate.
        """
        try:
            query = self.client.table("appointments").select("*").eq("tenant_id", tenant_id)
            if resource_id is not None:
                query = query.eq("technician_id", resource_id)
            if date_range is not None:
                range_start, range_end = date_range
                query = query.lt("scheduled_start", range_end.isoformat())\
                    .or_(f"scheduled_end.gt.{range_start.isoformat()},scheduled_end.is.null")
            res = query.order("scheduled_start").execute()
        except Exception as e:
            logger.error(f"Failed to fetch appointments for tenant {tenant_id}: {e}")
            raise LookupFailure(f"Could not load appointments for tenant {tenant_id}", e) from e
        return [Appointment.from_row(row) for row in (res.data or [])]

    def get_appointment(self, tenant_id: Id, appointment_id: Id) -> Appointment:
        try:
            res = self.client.table("appointments").select("*")\
                .eq("tenant_id", tenant_id)\
                .eq("id", appointment_id)\
                .execute()
        except Exception as e:
            logger.error(f"Failed to fetch appointment {appointment_id}: {e}")
            raise LookupFailure(f"Could not load appointment {appointment_id}", e) from e
        if not res.data:
            raise AppointmentNotFound(appointment_id)
        return Appointment.from_row(res.data[0])

    def get_appointments_by_ids(self, tenant_id: Id, appointment_ids: Iterable[Id]) -> List[Appointment]:
        ids = list(appointment_ids)
        if not ids:
            return []
        try:
            res = self.client.table("appointments").select("*")\
                .eq("tenant_id", tenant_id)\
                .in_("id", ids)\
                .execute()
        except Exception as e:
            logger.error(f"Failed to fetch {len(ids)} appointments for tenant {tenant_id}: {e}")
            raise LookupFailure(f"Could not load appointments for tenant {tenant_id}", e) from e
        return [Appointment.from_row(row) for row in (res.data or [])]

    def create_appointment(self, appointment: Appointment) -> Id:
        data = appointment.to_row()
        data.pop("id", None)
        try:
            res = self.client.table("appointments").insert(data).execute()
        except Exception as e:
            logger.exception(f"Insert failed for tenant {appointment.tenant_id}: {e}")
            raise LookupFailure("Could not create appointment", e) from e
        if not res.data:
            raise LookupFailure("Insert returned no rows")
        new_id = res.data[0]["id"]
        logger.info(f"Appointment {new_id} created for tenant {appointment.tenant_id}")
        return new_id

    def update_appointment(self, tenant_id: Id, appointment_id: Id, partial: Dict[str, Any]) -> None:
        """Applies a partial update expressed in domain field names."""
        data = {}
        for field, value in partial.items():
            if field not in FIELD_COLUMNS:
                raise ValueError(f"Unknown appointment field: {field}")
            data[FIELD_COLUMNS[field]] = _column_value(value)
        try:
            res = self.client.table("appointments").update(data)\
                .eq("tenant_id", tenant_id)\
                .eq("id", appointment_id)\
                .execute()
        except Exception as e:
            logger.error(f"Update failed for appointment {appointment_id}: {e}")
            raise LookupFailure(f"Could not update appointment {appointment_id}", e) from e
        if not res.data:
            raise AppointmentNotFound(appointment_id)

    def delete_appointment(self, tenant_id: Id, appointment_id: Id) -> Dict[str, Any]:
        """Hard delete. Returns the deleted row so the client can offer an undo."""
        try:
            res = self.client.table("appointments").delete()\
                .eq("tenant_id", tenant_id)\
                .eq("id", appointment_id)\
                .execute()
        except Exception as e:
            logger.error(f"Delete failed for appointment {appointment_id}: {e}")
            raise LookupFailure(f"Could not delete appointment {appointment_id}", e) from e
        # Supabase delete returns the deleted rows; empty means not found in this tenant
        if not res.data:
            raise AppointmentNotFound(appointment_id)
        return res.data[0]

    def restore_appointment(self, tenant_id: Id, snapshot: Dict[str, Any]) -> Id:
        """Re-inserts a row previously returned by delete_appointment."""
        data = dict(snapshot)
        data["tenant_id"] = tenant_id
        try:
            res = self.client.table("appointments").insert(data).execute()
        except Exception as e:
            logger.error(f"Restore failed for tenant {tenant_id}: {e}")
            raise LookupFailure("Could not restore appointment", e) from e
        if not res.data:
            raise LookupFailure("Restore returned no rows")
        return res.data[0]["id"]

    def list_resources(self, tenant_id: Id) -> List[ResourceResponse]:
        """The roster, ordered by name."""
        try:
            res = self.client.table("technicians").select("*")\
                .eq("tenant_id", tenant_id)\
                .order("name")\
                .execute()
        except Exception as e:
            logger.error(f"Failed to fetch resources for tenant {tenant_id}: {e}")
            raise LookupFailure(f"Could not load resources for tenant {tenant_id}", e) from e
        return [ResourceResponse.model_validate(row) for row in (res.data or [])]

    def get_service(self, tenant_id: Id, service_id: Id) -> Optional[ServiceResponse]:
        try:
            res = self.client.table("services").select("*")\
                .eq("tenant_id", tenant_id)\
                .eq("id", service_id)\
                .execute()
        except Exception as e:
            logger.error(f"Failed to fetch service {service_id}: {e}")
            raise LookupFailure(f"Could not load service {service_id}", e) from e
        if not res.data:
            return None
        return ServiceResponse.model_validate(res.data[0])

    def get_tenant_for_user(self, user_id: str) -> Optional[TenantResponse]:
        try:
            res = self.client.table("tenants").select("*").eq("user_id", user_id).execute()
        except Exception as e:
            logger.error(f"Failed to resolve tenant for user {user_id}: {e}")
            raise LookupFailure("Could not resolve tenant", e) from e
        if not res.data:
            return None
        return TenantResponse.model_validate(res.data[0])
