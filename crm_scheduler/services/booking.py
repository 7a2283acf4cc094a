import logging
from typing import Optional

from crm_scheduler.core.config import settings
from crm_scheduler.core.errors import LookupFailure, SlotConflictError
from crm_scheduler.schemas.appointment import Appointment, AppointmentStatus, Id, RecurrencePattern
from crm_scheduler.schemas.scheduling import BookingRequest, BookingResult
from crm_scheduler.schemas.service import ServiceResponse
from crm_scheduler.services.conflicts import ConflictDetector
from crm_scheduler.services.recurrence import expand, plan_anchor, plan_children

logger = logging.getLogger(__name__)


class BookingService:
    """
    Booking intake: conflict check on the first slot, recurrence expansion,
    then one insert per instance (anchor first, children linked to it).

    The check and the inserts are separate round-trips with no lock in between;
    deployments that cannot tolerate double-booking need a uniqueness constraint
    or a transactional re-check in the database.
    """
    def __init__(self, repository, detector: Optional[ConflictDetector] = None):
        self.repository = repository
        self.detector = detector or ConflictDetector(repository)

    def load_service(self, tenant_id: Id, request: BookingRequest) -> Optional[ServiceResponse]:
        if request.service_id is None:
            return None
        return self.repository.get_service(tenant_id, request.service_id)

    def resolve_duration(self, request: BookingRequest, service: Optional[ServiceResponse] = None) -> int:
        if request.duration_minutes:
            return request.duration_minutes
        if service and service.duration_minutes:
            return service.duration_minutes
        return settings.fallback_duration_minutes

    def book(self, tenant_id: Id, request: BookingRequest) -> BookingResult:
        # 1. Expand the request into its instances
        service = self.load_service(tenant_id, request)
        duration = self.resolve_duration(request, service)
        pattern = RecurrencePattern.parse(request.recurrence_pattern)
        span_weeks = request.recurrence_span_weeks
        if span_weeks is None:
            span_weeks = settings.default_recurrence_span_weeks
        intervals = expand(request.start, duration, pattern, span_weeks)

        # 2. Only the anchor slot is checked
        first = intervals[0]
        report = self.detector.find_conflicts(tenant_id, request.resource_id, first.start, first.end)
        if report.has_conflicts and not report.advisory and settings.block_conflicting_bookings:
            logger.info(f"Booking rejected for tenant {tenant_id}, resource {request.resource_id}: slot taken")
            raise SlotConflictError(report)

        price = request.price
        if price is None and service is not None:
            price = service.base_price

        payment_status = request.payment_status or ("paid" if request.payment_intent_id else "pending")
        template = Appointment(
            tenant_id=tenant_id,
            customer_id=request.customer_id,
            resource_id=request.resource_id,
            service_id=request.service_id,
            start=first.start,
            end=first.end,
            status=AppointmentStatus.SCHEDULED,
            recurrence_pattern=pattern,
            notes=request.notes,
            price=price,
            payment_status=payment_status,
            payment_reference=request.payment_intent_id,
        )

        # 3. Persist the anchor, then each child independently.
        # A failed anchor aborts the booking; a failed child is recorded and skipped.
        anchor_id = self.repository.create_appointment(plan_anchor(template, intervals))
        instance_ids = [anchor_id]
        failed_instances = []
        for child in plan_children(template, intervals, anchor_id):
            try:
                instance_ids.append(self.repository.create_appointment(child))
            except LookupFailure as e:
                logger.error(f"Failed to create instance at {child.start.isoformat()} of series {anchor_id}: {e}")
                failed_instances.append(child.start)

        logger.info(
            f"Booked {len(instance_ids)} appointment(s) for tenant {tenant_id} "
            f"({pattern.value}, anchor {anchor_id}, {len(failed_instances)} failed)"
        )
        return BookingResult(
            anchor_id=anchor_id,
            instance_ids=instance_ids,
            failed_instances=failed_instances,
            conflict=report,
        )
