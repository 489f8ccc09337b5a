"""
Surgery readiness gate.

A surgery is ready when four independently computed signals hold:

- consultation: COMPLETED at least ``SURGIPLAN_CONSULTATION_DEADLINE_DAYS``
  before the surgery date
- tasks: every task COMPLETED, or BLOCKED/CANCELLED (resolved out)
- equipment: the equipment collaborator reports the reservation ready
- patient: every item in ``SURGIPLAN_READINESS_PATIENT_ITEMS`` is met

Independently of explicit calls, a surgery inspected inside the deadline
while its consultation is not COMPLETED is BLOCKED and staff are notified.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from surgiplan.appointments.catalog import get_event_type
from surgiplan.appointments.models import Booking
from surgiplan.appointments.services.booking import BookingOrchestrator
from surgiplan.core.exceptions import InvalidStatusTransition, NotFound, SurgeryNotReadyError
from surgiplan.core.models import Role
from surgiplan.core.utils import log_patient_action
from surgiplan.notifications.models import Notification
from surgiplan.notifications.services import NotificationRequest, emit
from surgiplan.surgeries.models import PatientRequirement, Surgery, Task

from .equipment import EquipmentService, get_equipment_service
from .requirements import is_item_satisfied, patient_items

logger = logging.getLogger(__name__)

RESOLVED_TASK_STATUSES = (Task.STATUS_COMPLETED, Task.STATUS_BLOCKED, Task.STATUS_CANCELLED)

TRANSITIONS = {
    Surgery.STATUS_SCHEDULED: {
        Surgery.STATUS_IN_PREPARATION, Surgery.STATUS_READY, Surgery.STATUS_BLOCKED, Surgery.STATUS_CANCELLED,
    },
    Surgery.STATUS_IN_PREPARATION: {Surgery.STATUS_READY, Surgery.STATUS_BLOCKED, Surgery.STATUS_CANCELLED},
    Surgery.STATUS_READY: {
        Surgery.STATUS_IN_PREPARATION, Surgery.STATUS_COMPLETED, Surgery.STATUS_BLOCKED, Surgery.STATUS_CANCELLED,
    },
    Surgery.STATUS_BLOCKED: {Surgery.STATUS_SCHEDULED, Surgery.STATUS_IN_PREPARATION, Surgery.STATUS_CANCELLED},
    Surgery.STATUS_COMPLETED: set(),
    Surgery.STATUS_CANCELLED: set(),
}

# staff addressed by role when a surgery is blocked
BLOCK_NOTIFY_ROLES = (Role.BACKOFFICE, Role.MANAGER)


def deadline_days() -> int:
    return getattr(settings, 'SURGIPLAN_CONSULTATION_DEADLINE_DAYS', 3)


def notification_data(surgery: Surgery, **extra) -> dict:
    data = {
        'surgery_id': surgery.id,
        'patient_id': surgery.patient_id,
        'event_type': get_event_type(surgery.event_type_code).name,
        'surgery_date': surgery.surgery_date.astimezone(surgery.location.tzinfo).strftime('%Y-%m-%d %H:%M'),
        'location': surgery.location.name,
    }
    data.update(extra)
    return data


@dataclass(frozen=True)
class ReadinessReport:
    consultation: bool
    tasks: bool
    equipment: bool
    patient: bool

    @property
    def ready(self) -> bool:
        return self.consultation and self.tasks and self.equipment and self.patient

    def to_dict(self) -> dict[str, bool]:
        return {
            'consultation': self.consultation,
            'tasks': self.tasks,
            'equipment': self.equipment,
            'patient': self.patient,
            'ready': self.ready,
        }


class ReadinessGate:
    def __init__(self, equipment: EquipmentService | None = None, bookings: BookingOrchestrator | None = None):
        self.equipment = equipment if equipment is not None else get_equipment_service()
        self._bookings = bookings

    @property
    def bookings(self) -> BookingOrchestrator:
        # the orchestrator builds the calendar oracle, only needed on cancellation
        if self._bookings is None:
            self._bookings = BookingOrchestrator()
        return self._bookings

    def _surgery(self, surgery_id: int, *, for_update: bool = False) -> Surgery:
        queryset = Surgery.objects.select_related('location', 'surgeon', 'anesthesiologist')
        if for_update:
            queryset = queryset.select_for_update(of=('self',))
        surgery = queryset.filter(id=surgery_id).first()
        if surgery is None:
            raise NotFound('Surgery', surgery_id)
        return surgery

    # -----------------------------------------------------------------------
    # Signals
    # -----------------------------------------------------------------------

    def consultation_ready(self, surgery: Surgery) -> bool:
        if surgery.consultation_status != Surgery.CONSULTATION_COMPLETED or surgery.consultation_completed_at is None:
            return False
        return surgery.consultation_completed_at <= surgery.surgery_date - timedelta(days=deadline_days())

    def tasks_ready(self, surgery: Surgery) -> bool:
        return not surgery.tasks.exclude(status__in=RESOLVED_TASK_STATUSES).exists()

    def patient_ready(self, surgery: Surgery) -> bool:
        requirement = PatientRequirement.objects.filter(surgery=surgery).first()
        return all(is_item_satisfied(requirement, item) for item in patient_items())

    def _report(self, surgery: Surgery) -> ReadinessReport:
        return ReadinessReport(
            consultation=self.consultation_ready(surgery),
            tasks=self.tasks_ready(surgery),
            equipment=bool(self.equipment.check_readiness(surgery.id)),
            patient=self.patient_ready(surgery),
        )

    def readiness_report(self, surgery_id: int, now: datetime | None = None) -> ReadinessReport:
        surgery = self._surgery(surgery_id)
        self.enforce_deadline(surgery, now)
        return self._report(surgery)

    def validate_readiness(self, surgery_id: int, now: datetime | None = None) -> bool:
        return self.readiness_report(surgery_id, now).ready

    # -----------------------------------------------------------------------
    # Deadline
    # -----------------------------------------------------------------------

    def past_deadline(self, surgery: Surgery, now: datetime | None = None) -> bool:
        now = now or timezone.now()
        return (
            surgery.consultation_status != Surgery.CONSULTATION_COMPLETED
            and surgery.surgery_date <= now + timedelta(days=deadline_days())
        )

    def enforce_deadline(self, surgery: Surgery, now: datetime | None = None) -> bool:
        """Block the surgery if its consultation missed the deadline.

        Returns True only for the call that actually blocked it; blocking an
        already BLOCKED surgery is a no-op.
        """
        now = now or timezone.now()
        if surgery.is_terminal or surgery.status == Surgery.STATUS_BLOCKED or not self.past_deadline(surgery, now):
            return False

        with transaction.atomic():
            blocked = (
                Surgery.objects.filter(id=surgery.id)
                .exclude(status__in=(*Surgery.TERMINAL_STATUSES, Surgery.STATUS_BLOCKED))
                .exclude(consultation_status=Surgery.CONSULTATION_COMPLETED)
                .update(status=Surgery.STATUS_BLOCKED, blocked_at=now, updated_at=now)
            )
            if not blocked:
                return False
            surgery.status = Surgery.STATUS_BLOCKED
            surgery.blocked_at = now
            self._notify_blocked(surgery)

        logger.warning(
            'Surgery %s BLOCKED: consultation %s with surgery on %s',
            surgery.id, surgery.consultation_status, surgery.surgery_date.isoformat(),
        )
        log_patient_action(None, 'surgery_auto_block', surgery.patient_id, meta={
            'surgery_id': surgery.id,
            'consultation_status': surgery.consultation_status,
        })
        return True

    def _notify_blocked(self, surgery: Surgery) -> None:
        data = notification_data(surgery, consultation_status=surgery.consultation_status)
        stamp = surgery.blocked_at.isoformat()
        users = [surgery.surgeon, surgery.anesthesiologist]
        for user in users:
            if user is None:
                continue
            emit(
                NotificationRequest(
                    channel=Notification.CHANNEL_EMAIL,
                    template_key='surgery_blocked',
                    priority=Notification.PRIORITY_URGENT,
                    recipient=user,
                    data=data,
                    surgery=surgery,
                ),
                dedupe_key=f'surgery:{surgery.id}:blocked:{stamp}:user:{user.id}',
            )
        for role in BLOCK_NOTIFY_ROLES:
            emit(
                NotificationRequest(
                    channel=Notification.CHANNEL_EMAIL,
                    template_key='surgery_blocked',
                    priority=Notification.PRIORITY_URGENT,
                    recipient_role=role,
                    data=data,
                    surgery=surgery,
                ),
                dedupe_key=f'surgery:{surgery.id}:blocked:{stamp}:role:{role}',
            )

    def sweep(self, now: datetime | None = None) -> list[int]:
        """Block every open surgery past the consultation deadline."""
        now = now or timezone.now()
        candidates = (
            Surgery.objects.select_related('location', 'surgeon', 'anesthesiologist')
            .exclude(status__in=(*Surgery.TERMINAL_STATUSES, Surgery.STATUS_BLOCKED))
            .exclude(consultation_status=Surgery.CONSULTATION_COMPLETED)
            .filter(surgery_date__lte=now + timedelta(days=deadline_days()))
            .order_by('surgery_date', 'id')
        )
        blocked = [surgery.id for surgery in candidates if self.enforce_deadline(surgery, now)]
        if blocked:
            logger.warning('Readiness sweep blocked %s surgery(ies): %s', len(blocked), blocked)
        return blocked

    # -----------------------------------------------------------------------
    # Status updates
    # -----------------------------------------------------------------------

    def handle_status_update(self, surgery_id: int, new_status: str, *, user=None, reason: str = '') -> Surgery:
        """Move a surgery to ``new_status`` with its side effects as one unit.

        A surgery past the consultation deadline is blocked first; from then on
        only cancelling it is accepted.
        """
        if new_status not in TRANSITIONS:
            raise InvalidStatusTransition(model='Surgery', current='?', requested=new_status)

        if new_status != Surgery.STATUS_CANCELLED:
            self.enforce_deadline(self._surgery(surgery_id))

        with transaction.atomic():
            surgery = self._surgery(surgery_id, for_update=True)
            previous = surgery.status
            if previous == new_status:
                return surgery
            if new_status not in TRANSITIONS[previous]:
                raise InvalidStatusTransition(model='Surgery', current=previous, requested=new_status)
            if new_status not in (Surgery.STATUS_CANCELLED, Surgery.STATUS_BLOCKED) and self.past_deadline(surgery):
                # inside the consultation deadline a surgery may only be blocked or cancelled
                raise InvalidStatusTransition(model='Surgery', current=previous, requested=new_status)

            if new_status == Surgery.STATUS_READY:
                report = self._report(surgery)
                if not report.ready:
                    logger.info('Surgery %s not ready: %s', surgery.id, report.to_dict())
                    raise SurgeryNotReadyError(surgery_id=surgery.id, report=report.to_dict())

            surgery.status = new_status
            fields = ['status', 'updated_at']
            if new_status == Surgery.STATUS_CANCELLED:
                surgery.cancellation_reason = reason or ''
                fields.append('cancellation_reason')
            if previous == Surgery.STATUS_BLOCKED:
                surgery.blocked_at = None
                fields.append('blocked_at')
            surgery.save(update_fields=fields)

            handler = getattr(self, f'_on_{new_status.lower()}', None)
            if handler is not None:
                handler(surgery, user=user, reason=reason)

        logger.info('Surgery %s %s -> %s', surgery.id, previous, new_status)
        log_patient_action(user, 'surgery_status', surgery.patient_id, meta={
            'surgery_id': surgery.id,
            'from': previous,
            'to': new_status,
        })
        return surgery

    def _notify(self, surgery: Surgery, template_key: str, *, recipient=None, role: str = '', channel: str, **extra) -> None:
        target = f'user:{recipient.id}' if recipient is not None else f'role:{role}'
        emit(
            NotificationRequest(
                channel=channel,
                template_key=template_key,
                recipient=recipient,
                recipient_role=role,
                data=notification_data(surgery, **extra),
                surgery=surgery,
            ),
            dedupe_key=f'surgery:{surgery.id}:{template_key}:{target}',
        )

    def _on_in_preparation(self, surgery: Surgery, **kwargs) -> None:
        self.equipment.start_preparation(surgery.id)
        self._notify(surgery, 'surgery_preparation_started', recipient=surgery.surgeon, channel=Notification.CHANNEL_EMAIL)

    def _on_ready(self, surgery: Surgery, **kwargs) -> None:
        self.equipment.verify(surgery.id)
        self._notify(surgery, 'surgery_ready', role='patient', channel=Notification.CHANNEL_SMS)

    def _on_completed(self, surgery: Surgery, **kwargs) -> None:
        now = timezone.now()
        self.equipment.release(surgery.id)
        surgery.tasks.exclude(status__in=Task.CLOSED_STATUSES).update(
            status=Task.STATUS_COMPLETED, completed_at=now, updated_at=now,
        )
        if surgery.booking_id:
            Booking.objects.filter(id=surgery.booking_id).exclude(status=Booking.STATUS_CANCELLED).update(
                status=Booking.STATUS_COMPLETED, updated_at=now,
            )

    def _on_cancelled(self, surgery: Surgery, *, user=None, reason: str = '') -> None:
        now = timezone.now()
        self.equipment.release(surgery.id)
        cancelled = surgery.tasks.exclude(status__in=Task.CLOSED_STATUSES).update(
            status=Task.STATUS_CANCELLED, updated_at=now,
        )
        logger.info('Surgery %s: cancelled %s open task(s)', surgery.id, cancelled)
        self._notify(surgery, 'surgery_cancelled', role='patient', channel=Notification.CHANNEL_SMS, reason=reason)
        self._notify(
            surgery, 'surgery_cancelled', recipient=surgery.surgeon, channel=Notification.CHANNEL_EMAIL, reason=reason,
        )
        # calendar side last: a calendar failure rolls back everything above
        if surgery.booking_id:
            self.bookings.cancel_booking(surgery.booking_id, user=user)
