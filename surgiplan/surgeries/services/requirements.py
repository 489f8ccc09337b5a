"""
Patient requirement tracking (bloodwork, ECG, medications, instructions).

bloodwork / ecg move PENDING -> SUBMITTED -> VERIFIED, SUBMITTED -> REJECTED
(resubmission allowed), and PENDING -> EXPIRED once their due date passes.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from surgiplan.core.exceptions import InvalidSchedulingData, InvalidStatusTransition, NotFound
from surgiplan.notifications.services import NotificationRequest, emit
from surgiplan.surgeries.models import PatientRequirement, Surgery
from surgiplan.surgeries.task_templates import TASK_TEMPLATES, TaskType

logger = logging.getLogger(__name__)

SUBMISSION_TRANSITIONS = {
    PatientRequirement.SUBMISSION_PENDING: {PatientRequirement.SUBMISSION_SUBMITTED, PatientRequirement.SUBMISSION_EXPIRED},
    PatientRequirement.SUBMISSION_SUBMITTED: {PatientRequirement.SUBMISSION_VERIFIED, PatientRequirement.SUBMISSION_REJECTED},
    PatientRequirement.SUBMISSION_REJECTED: {PatientRequirement.SUBMISSION_SUBMITTED},
    PatientRequirement.SUBMISSION_EXPIRED: {PatientRequirement.SUBMISSION_SUBMITTED},
    PatientRequirement.SUBMISSION_VERIFIED: set(),
}


def _bloodwork_lead_days() -> int:
    return next(t.days_before_surgery for t in TASK_TEMPLATES if t.type is TaskType.BLOODWORK)


def is_item_satisfied(requirement: PatientRequirement | None, item: str) -> bool:
    """Whether one patient item counts as met for readiness."""
    if requirement is None:
        return False
    if item in PatientRequirement.SUBMISSION_ITEMS:
        return getattr(requirement, f'{item}_status') == PatientRequirement.SUBMISSION_VERIFIED
    if item == 'medications':
        return (
            requirement.medications_status != PatientRequirement.MEDICATIONS_REQUIRES_ADJUSTMENT
            and requirement.medications_last_reviewed_at is not None
        )
    if item == 'instructions':
        return requirement.instructions_status in (
            PatientRequirement.INSTRUCTIONS_ACKNOWLEDGED,
            PatientRequirement.INSTRUCTIONS_COMPLETED,
        )
    raise InvalidSchedulingData(f'unknown patient requirement {item!r}', field='item')


def patient_items() -> tuple[str, ...]:
    return tuple(getattr(settings, 'SURGIPLAN_READINESS_PATIENT_ITEMS', PatientRequirement.SUBMISSION_ITEMS))


class PatientRequirementTracker:
    def create_for(self, surgery: Surgery) -> PatientRequirement:
        due = surgery.surgery_date - timedelta(days=_bloodwork_lead_days())
        requirement, _ = PatientRequirement.objects.get_or_create(
            surgery=surgery,
            defaults={'bloodwork_due_date': due, 'ecg_due_date': due},
        )
        return requirement

    def _get_for_update(self, surgery_id: int) -> PatientRequirement:
        requirement = (
            PatientRequirement.objects.select_for_update()
            .select_related('surgery')
            .filter(surgery_id=surgery_id)
            .first()
        )
        if requirement is None:
            raise NotFound('PatientRequirement', surgery_id)
        return requirement

    def _move(self, surgery_id: int, item: str, new_status: str, **fields) -> PatientRequirement:
        if item not in PatientRequirement.SUBMISSION_ITEMS:
            raise InvalidSchedulingData(f'{item!r} is not a submission requirement', field='item')
        with transaction.atomic():
            requirement = self._get_for_update(surgery_id)
            current = getattr(requirement, f'{item}_status')
            if new_status not in SUBMISSION_TRANSITIONS[current]:
                raise InvalidStatusTransition(model=f'PatientRequirement.{item}', current=current, requested=new_status)
            setattr(requirement, f'{item}_status', new_status)
            for name, value in fields.items():
                setattr(requirement, f'{item}_{name}', value)
            requirement.save()
        logger.info('Surgery %s: %s %s -> %s', surgery_id, item, current, new_status)
        return requirement

    def submit(self, surgery_id: int, item: str) -> PatientRequirement:
        return self._move(surgery_id, item, PatientRequirement.SUBMISSION_SUBMITTED, submitted_at=timezone.now())

    def verify(self, surgery_id: int, item: str, *, user=None, results=None, notes: str = '') -> PatientRequirement:
        return self._move(
            surgery_id, item, PatientRequirement.SUBMISSION_VERIFIED,
            verified_at=timezone.now(), verified_by=user, results=results, notes=notes,
        )

    def reject(self, surgery_id: int, item: str, *, user=None, notes: str = '') -> PatientRequirement:
        return self._move(surgery_id, item, PatientRequirement.SUBMISSION_REJECTED, notes=notes)

    def expire_overdue(self, now: datetime | None = None) -> int:
        """PENDING bloodwork/ECG past their due date become EXPIRED."""
        now = now or timezone.now()
        expired = 0
        for item in PatientRequirement.SUBMISSION_ITEMS:
            expired += PatientRequirement.objects.filter(**{
                f'{item}_status': PatientRequirement.SUBMISSION_PENDING,
                f'{item}_due_date__lt': now,
            }).exclude(
                surgery__status__in=Surgery.TERMINAL_STATUSES,
            ).update(**{f'{item}_status': PatientRequirement.SUBMISSION_EXPIRED, 'updated_at': now})
        if expired:
            logger.info('Expired %s overdue patient submission(s)', expired)
        return expired

    def record_medications(self, surgery_id: int, status: str, medications: list | None = None) -> PatientRequirement:
        if status not in dict(PatientRequirement.MEDICATIONS_CHOICES):
            raise InvalidSchedulingData(f'unknown medication status {status!r}', field='medications_status')
        with transaction.atomic():
            requirement = self._get_for_update(surgery_id)
            requirement.medications_status = status
            requirement.current_medications = list(medications or [])
            requirement.medications_last_reviewed_at = timezone.now()
            requirement.save()
        return requirement

    def send_instructions(self, surgery_id: int, *, patient_email: str = '') -> PatientRequirement:
        with transaction.atomic():
            requirement = self._get_for_update(surgery_id)
            if requirement.instructions_status != PatientRequirement.INSTRUCTIONS_NOT_SENT:
                return requirement
            requirement.instructions_status = PatientRequirement.INSTRUCTIONS_SENT
            requirement.instructions_sent_at = timezone.now()
            requirement.save()
            surgery = requirement.surgery
            emit(
                NotificationRequest(
                    channel='email',
                    template_key='patient_instructions',
                    recipient_role='patient',
                    surgery=surgery,
                    data={
                        'patient_id': surgery.patient_id,
                        'patient_email': patient_email,
                        'surgery_id': surgery.id,
                        'surgery_date': surgery.surgery_date.isoformat(),
                    },
                ),
                dedupe_key=f'surgery:{surgery.id}:instructions',
            )
        return requirement

    def _instructions(self, surgery_id: int, allowed: tuple[str, ...], new_status: str) -> PatientRequirement:
        with transaction.atomic():
            requirement = self._get_for_update(surgery_id)
            current = requirement.instructions_status
            if current == new_status:
                return requirement
            if current not in allowed:
                raise InvalidStatusTransition(model='PatientRequirement.instructions', current=current, requested=new_status)
            requirement.instructions_status = new_status
            if new_status == PatientRequirement.INSTRUCTIONS_ACKNOWLEDGED:
                requirement.instructions_acknowledged_at = timezone.now()
            requirement.save()
        return requirement

    def acknowledge_instructions(self, surgery_id: int) -> PatientRequirement:
        return self._instructions(
            surgery_id, (PatientRequirement.INSTRUCTIONS_SENT,), PatientRequirement.INSTRUCTIONS_ACKNOWLEDGED,
        )

    def complete_instructions(self, surgery_id: int) -> PatientRequirement:
        return self._instructions(
            surgery_id,
            (PatientRequirement.INSTRUCTIONS_SENT, PatientRequirement.INSTRUCTIONS_ACKNOWLEDGED),
            PatientRequirement.INSTRUCTIONS_COMPLETED,
        )
