"""
Surgery scheduling.

``schedule_surgery`` books the theatre slot (surgeon plus anesthesiologist)
and then creates the surgery, its task chain, its patient requirement
record and its equipment reservation as one unit. If anything after the
booking fails, the booking is deleted again before the error propagates.
"""

from __future__ import annotations

import logging
from datetime import datetime

from django.db import transaction

from surgiplan.appointments.catalog import get_event_type
from surgiplan.appointments.services.booking import BookingOrchestrator, load_location, load_resource
from surgiplan.core.exceptions import InvalidSchedulingData
from surgiplan.core.utils import log_patient_action
from surgiplan.notifications.models import Notification
from surgiplan.notifications.services import NotificationRequest, emit
from surgiplan.surgeries.models import Surgery

from .equipment import EquipmentService, get_equipment_service, surgery_day
from .readiness import ReadinessGate, notification_data
from .requirements import PatientRequirementTracker
from .tasks import TaskTemplateEngine

logger = logging.getLogger(__name__)


class SurgeryService:
    def __init__(
        self,
        bookings: BookingOrchestrator | None = None,
        equipment: EquipmentService | None = None,
        engine: TaskTemplateEngine | None = None,
        requirements: PatientRequirementTracker | None = None,
        gate: ReadinessGate | None = None,
    ):
        self._bookings = bookings
        self.equipment = equipment if equipment is not None else get_equipment_service()
        self.engine = engine or TaskTemplateEngine()
        self.requirements = requirements or PatientRequirementTracker()
        self.gate = gate or ReadinessGate(equipment=self.equipment, bookings=bookings)

    @property
    def bookings(self) -> BookingOrchestrator:
        if self._bookings is None:
            self._bookings = BookingOrchestrator()
        return self._bookings

    def schedule_surgery(
        self,
        surgeon_id: int,
        location_id: int,
        patient_id: int,
        event_type_code: str,
        surgery_date: datetime,
        duration_minutes: int | None = None,
        *,
        anesthesiologist_id: int | None = None,
        book: bool = True,
        notes: str = '',
        user=None,
        candidate_pool=None,
    ) -> Surgery:
        """Schedule a surgery; with ``book`` the slot is booked through the orchestrator first.

        Without ``book`` the surgery is recorded against an existing plan and
        ``anesthesiologist_id`` names the anesthesiologist directly.
        """
        event_type = get_event_type(event_type_code)
        if not event_type.is_surgical:
            raise InvalidSchedulingData(f'{event_type.code.value} is not a surgical procedure', field='event_type')
        if surgery_date is None or surgery_date.tzinfo is None:
            raise InvalidSchedulingData('surgery_date must be a timezone-aware datetime', field='surgery_date')

        surgeon = load_resource(surgeon_id, field='surgeon_id')
        location = load_location(location_id)
        anesthesiologist = None
        if anesthesiologist_id is not None:
            anesthesiologist = load_resource(anesthesiologist_id, field='anesthesiologist_id')

        booking = None
        if book:
            if duration_minutes is None:
                raise InvalidSchedulingData('duration_minutes is required to book the surgery', field='duration_minutes')
            booking = self.bookings.create_booking(
                surgeon.id, location.id, surgery_date, duration_minutes, event_type.code.value, notes,
                patient_id=patient_id, user=user, candidate_pool=candidate_pool,
            )
            anesthesiologist = booking.secondary_resource
        elif duration_minutes is not None:
            event_type.validate_duration(duration_minutes)

        try:
            with transaction.atomic():
                surgery = Surgery.objects.create(
                    patient_id=patient_id,
                    surgeon=surgeon,
                    anesthesiologist=anesthesiologist,
                    location=location,
                    booking=booking,
                    event_type_code=event_type.code.value,
                    surgery_date=surgery_date,
                )
                self.engine.create_task_chain(surgery.id)
                self.requirements.create_for(surgery)
                self.equipment.reserve(surgery.id, surgery_day(surgery), location)
                self._notify_scheduled(surgery)
                self.gate.enforce_deadline(surgery)
        except Exception:
            if booking is not None:
                try:
                    self.bookings.delete_booking(booking.id, user=user)
                    logger.warning('Booking %s deleted after surgery scheduling failed', booking.id)
                except Exception:
                    logger.exception('Deleting booking %s after failed surgery scheduling failed', booking.id)
            raise

        logger.info(
            'Surgery %s scheduled: %s surgeon=%s anesthesiologist=%s on %s',
            surgery.id, event_type.code.value, surgeon.id,
            getattr(anesthesiologist, 'id', None), surgery_date.isoformat(),
        )
        log_patient_action(user, 'surgery_schedule', patient_id, meta={
            'surgery_id': surgery.id,
            'booking_id': getattr(booking, 'id', None),
            'event_type': event_type.code.value,
        })
        return surgery

    def _notify_scheduled(self, surgery: Surgery) -> None:
        data = notification_data(surgery)
        for user in (surgery.surgeon, surgery.anesthesiologist):
            if user is None:
                continue
            emit(
                NotificationRequest(
                    channel=Notification.CHANNEL_EMAIL,
                    template_key='surgery_scheduled',
                    recipient=user,
                    data=data,
                    surgery=surgery,
                ),
                dedupe_key=f'surgery:{surgery.id}:scheduled:user:{user.id}',
            )
