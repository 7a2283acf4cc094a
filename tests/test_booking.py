"""
Tests for services/booking.py
"""
from datetime import timedelta

import pytest

from conftest import TENANT_ID, utc
from crm_scheduler.core.config import settings
from crm_scheduler.core.errors import LookupFailure, SlotConflictError
from crm_scheduler.schemas.appointment import AppointmentStatus, RecurrenceAnchor, RecurrenceChild
from crm_scheduler.schemas.scheduling import BookingRequest
from crm_scheduler.schemas.service import ServiceResponse
from crm_scheduler.services.booking import BookingService

START = utc(2024, 6, 3, 9)


def test_weekly_booking_creates_linked_series(repo):
    request = BookingRequest(
        customer_id=3, resource_id=7, start=START, duration_minutes=60,
        recurrence_pattern="weekly", recurrence_span_weeks=4, payment_intent_id="pi_1",
    )

    result = BookingService(repo).book(TENANT_ID, request)

    assert len(result.instance_ids) == 4
    anchor, *children = repo.created
    assert anchor.id == result.anchor_id
    assert isinstance(anchor.series, RecurrenceAnchor)
    assert anchor.payment_status == "paid"
    assert anchor.payment_reference == "pi_1"
    for i, child in enumerate(children, start=1):
        assert child.series == RecurrenceChild(anchor_id=result.anchor_id)
        assert child.start == START + timedelta(days=7 * i)
        assert child.payment_status == "pending"
        assert child.status == AppointmentStatus.SCHEDULED


def test_duration_defaults_to_service(repo):
    repo.services[5] = ServiceResponse(id=5, tenant_id=TENANT_ID, name="Deep clean", duration_minutes=150)

    BookingService(repo).book(TENANT_ID, BookingRequest(customer_id=3, service_id=5, start=START))

    created, = repo.created
    assert created.duration == timedelta(minutes=150)


def test_price_defaults_to_service(repo):
    repo.services[5] = ServiceResponse(id=5, tenant_id=TENANT_ID, name="Deep clean", base_price=120.0)

    BookingService(repo).book(TENANT_ID, BookingRequest(customer_id=3, service_id=5, start=START))

    created, = repo.created
    assert created.price == 120.0
    assert created.duration == timedelta(minutes=settings.fallback_duration_minutes)


def test_explicit_price_wins_over_service(repo):
    repo.services[5] = ServiceResponse(id=5, tenant_id=TENANT_ID, name="Deep clean", base_price=120.0)

    BookingService(repo).book(TENANT_ID, BookingRequest(customer_id=3, service_id=5, start=START, price=90.0))

    created, = repo.created
    assert created.price == 90.0


def test_conflict_is_reported_but_not_blocking_by_default(repo):
    repo.add(id=1, resource_id=7, start=START, end=START + timedelta(hours=1))

    result = BookingService(repo).book(
        TENANT_ID, BookingRequest(customer_id=3, resource_id=7, start=START, duration_minutes=30)
    )

    assert result.conflict.total_count == 1
    assert len(repo.created) == 1


def test_conflict_blocks_when_configured(repo, monkeypatch):
    monkeypatch.setattr(settings, "block_conflicting_bookings", True)
    repo.add(id=1, resource_id=7, start=START, end=START + timedelta(hours=1))

    with pytest.raises(SlotConflictError):
        BookingService(repo).book(
            TENANT_ID, BookingRequest(customer_id=3, resource_id=7, start=START, duration_minutes=30)
        )
    assert repo.created == []


def test_only_anchor_is_conflict_checked(repo):
    # The third weekly instance collides, the anchor does not
    repo.add(id=1, resource_id=7, start=START + timedelta(days=14), end=START + timedelta(days=14, hours=1))

    result = BookingService(repo).book(TENANT_ID, BookingRequest(
        customer_id=3, resource_id=7, start=START, duration_minutes=60,
        recurrence_pattern="weekly", recurrence_span_weeks=4,
    ))

    assert result.conflict.total_count == 0
    assert len(result.instance_ids) == 4


def fail_on_calls(repo, monkeypatch, *calls):
    create = repo.create_appointment
    counter = {"n": 0}

    def flaky_create(appointment):
        counter["n"] += 1
        if counter["n"] in calls:
            raise LookupFailure("insert failed")
        return create(appointment)

    monkeypatch.setattr(repo, "create_appointment", flaky_create)


def test_failed_child_does_not_stop_the_series(repo, monkeypatch):
    fail_on_calls(repo, monkeypatch, 2)

    result = BookingService(repo).book(TENANT_ID, BookingRequest(
        customer_id=3, resource_id=7, start=START, duration_minutes=60,
        recurrence_pattern="weekly", recurrence_span_weeks=4,
    ))

    assert len(result.instance_ids) == 3
    assert result.failed_instances == [START + timedelta(days=7)]
    anchor, *children = repo.created
    assert anchor.id == result.anchor_id
    assert [c.start for c in children] == [START + timedelta(days=14), START + timedelta(days=21)]
    assert all(c.series == RecurrenceChild(anchor_id=result.anchor_id) for c in children)


def test_failed_anchor_aborts_the_booking(repo, monkeypatch):
    fail_on_calls(repo, monkeypatch, 1)

    with pytest.raises(LookupFailure):
        BookingService(repo).book(TENANT_ID, BookingRequest(
            customer_id=3, resource_id=7, start=START, duration_minutes=60,
            recurrence_pattern="weekly", recurrence_span_weeks=4,
        ))
    assert repo.created == []
