"""
Tests for services/repository.py against a mocked Supabase query builder.
"""
from unittest.mock import MagicMock

import pytest

from conftest import TENANT_ID, utc
from crm_scheduler.core.errors import AppointmentNotFound, LookupFailure
from crm_scheduler.schemas.appointment import AppointmentStatus
from crm_scheduler.services.repository import AppointmentRepository

ROW = {
    "id": 10,
    "tenant_id": TENANT_ID,
    "technician_id": 7,
    "scheduled_start": "2024-06-03T09:00:00+00:00",
    "scheduled_end": "2024-06-03T10:00:00+00:00",
    "status": "scheduled",
}


def make_client(data=None, error=None):
    query = MagicMock()
    for method in ("select", "eq", "lt", "or_", "order", "in_", "insert", "update", "delete"):
        getattr(query, method).return_value = query
    if error is not None:
        query.execute.side_effect = error
    else:
        query.execute.return_value = MagicMock(data=data)
    client = MagicMock()
    client.table.return_value = query
    return client, query


def test_get_appointments_scopes_and_parses():
    client, query = make_client([ROW])
    repo = AppointmentRepository(client)

    result = repo.get_appointments(TENANT_ID, 7, (utc(2024, 6, 3), utc(2024, 6, 10)))

    client.table.assert_called_with("appointments")
    query.eq.assert_any_call("tenant_id", TENANT_ID)
    query.eq.assert_any_call("technician_id", 7)
    query.lt.assert_called_once_with("scheduled_start", utc(2024, 6, 10).isoformat())
    or_filter = query.or_.call_args[0][0]
    assert "scheduled_end.is.null" in or_filter
    assert [a.id for a in result] == [10]
    assert result[0].resource_id == 7


def test_client_errors_become_lookup_failures():
    client, _ = make_client(error=RuntimeError("connection reset"))
    repo = AppointmentRepository(client)

    with pytest.raises(LookupFailure) as excinfo:
        repo.get_appointments(TENANT_ID)

    assert isinstance(excinfo.value.cause, RuntimeError)


def test_get_appointment_not_found():
    client, _ = make_client([])

    with pytest.raises(AppointmentNotFound):
        AppointmentRepository(client).get_appointment(TENANT_ID, 10)


def test_update_translates_domain_fields():
    client, query = make_client([ROW])

    AppointmentRepository(client).update_appointment(
        TENANT_ID, 10, {"start": utc(2024, 6, 3, 11), "status": AppointmentStatus.CONFIRMED}
    )

    query.update.assert_called_once_with({
        "scheduled_start": utc(2024, 6, 3, 11).isoformat(),
        "status": "confirmed",
    })
    query.eq.assert_any_call("tenant_id", TENANT_ID)
    query.eq.assert_any_call("id", 10)


def test_update_rejects_unknown_fields():
    client, query = make_client([ROW])

    with pytest.raises(ValueError):
        AppointmentRepository(client).update_appointment(TENANT_ID, 10, {"tenant_id": 2})
    query.update.assert_not_called()


def test_delete_returns_snapshot():
    client, query = make_client([ROW])

    snapshot = AppointmentRepository(client).delete_appointment(TENANT_ID, 10)

    assert snapshot == ROW
    query.delete.assert_called_once()


def test_delete_missing_row():
    client, _ = make_client([])

    with pytest.raises(AppointmentNotFound):
        AppointmentRepository(client).delete_appointment(TENANT_ID, 10)


def test_restore_forces_tenant():
    client, query = make_client([ROW])

    new_id = AppointmentRepository(client).restore_appointment(TENANT_ID, dict(ROW, tenant_id=999))

    assert new_id == 10
    assert query.insert.call_args[0][0]["tenant_id"] == TENANT_ID


def test_get_appointments_by_ids_skips_empty_selection():
    client, _ = make_client([ROW])

    assert AppointmentRepository(client).get_appointments_by_ids(TENANT_ID, []) == []
    client.table.assert_not_called()
