import logging
from typing import Any, Iterable

from crm_scheduler.core.errors import AppointmentNotFound, LookupFailure, ValidationError
from crm_scheduler.schemas.appointment import AppointmentStatus, Id
from crm_scheduler.schemas.scheduling import BatchStatusResult

logger = logging.getLogger(__name__)


def parse_status(value: Any) -> AppointmentStatus:
    try:
        return AppointmentStatus(value)
    except ValueError:
        allowed = ", ".join(s.value for s in AppointmentStatus)
        raise ValidationError(f"Unknown status {value!r}. Expected one of: {allowed}")


class BatchStatusApplier:
    """
    Applies one status to a set of appointments of a single tenant.

    Records are updated one by one with no rollback: updates that succeeded
    stay committed when a later one fails, and the failures are reported.
    """
    def __init__(self, repository):
        self.repository = repository

    def apply_status(self, tenant_id: Id, appointment_ids: Iterable[Id], new_status: Any) -> BatchStatusResult:
        status = parse_status(new_status)
        ids = list(dict.fromkeys(appointment_ids))
        if not ids:
            return BatchStatusResult()

        # A failed lookup surfaces to the caller; nothing has been written yet
        found = {a.id: a for a in self.repository.get_appointments_by_ids(tenant_id, ids)}

        result = BatchStatusResult()
        for appointment_id in ids:
            appt = found.get(appointment_id)
            if appt is None:
                logger.warning(f"Appointment {appointment_id} not found in tenant {tenant_id}")
                result.failed_ids.append(appointment_id)
                continue
            if appt.status.is_terminal and appt.status != status:
                logger.warning(
                    f"Appointment {appointment_id} is {appt.status.value}; refusing change to {status.value}"
                )
                result.failed_ids.append(appointment_id)
                continue
            try:
                self.repository.update_appointment(tenant_id, appointment_id, {"status": status})
            except (LookupFailure, AppointmentNotFound) as e:
                logger.error(f"Status update failed for appointment {appointment_id}: {e}")
                result.failed_ids.append(appointment_id)
                continue
            result.updated_count += 1

        logger.info(
            f"Batch status '{status.value}' for tenant {tenant_id}: "
            f"{result.updated_count} updated, {len(result.failed_ids)} failed"
        )
        return result
