"""Pre-surgery consultation lifecycle: NOT_SCHEDULED -> SCHEDULED -> COMPLETED."""

from __future__ import annotations

import logging
from datetime import datetime

from django.db import transaction
from django.utils import timezone

from surgiplan.core.exceptions import InvalidSchedulingData, InvalidStatusTransition, NotFound
from surgiplan.core.utils import log_patient_action
from surgiplan.surgeries.models import Surgery, Task
from surgiplan.surgeries.task_templates import TaskType

from .tasks import TaskDependencyGraph

logger = logging.getLogger(__name__)


class ConsultationTracker:
    def __init__(self, graph: TaskDependencyGraph | None = None):
        self.graph = graph or TaskDependencyGraph()

    def _get_for_update(self, surgery_id: int) -> Surgery:
        surgery = Surgery.objects.select_for_update().filter(id=surgery_id).first()
        if surgery is None:
            raise NotFound('Surgery', surgery_id)
        if surgery.is_terminal:
            raise InvalidStatusTransition(model='Surgery', current=surgery.status, requested='consultation update')
        return surgery

    def schedule(self, surgery_id: int, at: datetime, *, user=None) -> Surgery:
        if at is None or timezone.is_naive(at):
            raise InvalidSchedulingData('consultation time must be timezone-aware', field='scheduled_at')
        with transaction.atomic():
            surgery = self._get_for_update(surgery_id)
            if surgery.consultation_status == Surgery.CONSULTATION_COMPLETED:
                raise InvalidStatusTransition(
                    model='Consultation', current=surgery.consultation_status,
                    requested=Surgery.CONSULTATION_SCHEDULED,
                )
            surgery.consultation_status = Surgery.CONSULTATION_SCHEDULED
            surgery.consultation_scheduled_at = at
            surgery.save(update_fields=['consultation_status', 'consultation_scheduled_at', 'updated_at'])

        logger.info('Surgery %s: consultation scheduled for %s', surgery.id, at.isoformat())
        log_patient_action(user, 'consultation_schedule', surgery.patient_id, meta={'surgery_id': surgery.id})
        return surgery

    def complete(self, surgery_id: int, completed_at: datetime | None = None, by=None) -> Surgery:
        """Record the consultation as held and complete the CONSULTATION task."""
        completed_at = completed_at or timezone.now()
        with transaction.atomic():
            surgery = self._get_for_update(surgery_id)
            if surgery.consultation_status == Surgery.CONSULTATION_COMPLETED:
                return surgery
            surgery.consultation_status = Surgery.CONSULTATION_COMPLETED
            surgery.consultation_completed_at = completed_at
            surgery.consultation_completed_by = by if getattr(by, 'is_authenticated', False) else None
            surgery.save(update_fields=[
                'consultation_status', 'consultation_completed_at', 'consultation_completed_by', 'updated_at',
            ])

            task = (
                Task.objects.filter(surgery=surgery, type=TaskType.CONSULTATION.value)
                .exclude(status__in=Task.CLOSED_STATUSES)
                .first()
            )
            if task is not None:
                self.graph.update_task_status(task.id, Task.STATUS_COMPLETED, user=by)

        logger.info('Surgery %s: consultation completed at %s', surgery.id, completed_at.isoformat())
        log_patient_action(by, 'consultation_complete', surgery.patient_id, meta={'surgery_id': surgery.id})
        return surgery

    def expire(self, surgery_id: int) -> Surgery:
        with transaction.atomic():
            surgery = self._get_for_update(surgery_id)
            if surgery.consultation_status == Surgery.CONSULTATION_COMPLETED:
                raise InvalidStatusTransition(
                    model='Consultation', current=surgery.consultation_status,
                    requested=Surgery.CONSULTATION_EXPIRED,
                )
            surgery.consultation_status = Surgery.CONSULTATION_EXPIRED
            surgery.save(update_fields=['consultation_status', 'updated_at'])
        logger.info('Surgery %s: consultation expired', surgery.id)
        return surgery
