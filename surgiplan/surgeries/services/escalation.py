"""
Time-based escalation rules, evaluated by the periodic sweeps.

Days are counted between local calendar dates in the surgery location's
time zone. Every notification carries a deterministic dedupe key, so a
sweep may run any number of times.

    14 days out, consultation NOT_SCHEDULED  -> e-mail (high) to backoffice
    <= 13 days out, still NOT_SCHEDULED      -> dashboard + SMS (urgent) to backoffice and managers
    inside the consultation deadline          -> surgery BLOCKED (see ReadinessGate)
"""

from __future__ import annotations

import logging
from datetime import datetime

from django.utils import timezone

from surgiplan.core.models import Role
from surgiplan.notifications.models import Notification
from surgiplan.notifications.services import NotificationRequest, emit
from surgiplan.surgeries.models import Surgery, Task

from .readiness import ReadinessGate, notification_data

logger = logging.getLogger(__name__)

FIRST_NOTICE_DAYS = 14
URGENT_NOTICE_DAYS = 13

OPEN_TASK_STATUSES = (Task.STATUS_PENDING, Task.STATUS_IN_PROGRESS, Task.STATUS_OVERDUE)


def days_until(moment: datetime, now: datetime, tz) -> int:
    return (moment.astimezone(tz).date() - now.astimezone(tz).date()).days


class EscalationRules:
    def __init__(self, gate: ReadinessGate | None = None):
        self.gate = gate or ReadinessGate()

    def evaluate(self, surgery: Surgery, now: datetime | None = None) -> list[str]:
        """Apply every rule to one surgery; returns the names of the rules that fired."""
        now = now or timezone.now()
        fired = []
        if surgery.is_terminal:
            return fired

        if self.gate.enforce_deadline(surgery, now):
            fired.append('blocked')
            return fired

        if surgery.status == Surgery.STATUS_BLOCKED:
            return fired
        if surgery.consultation_status != Surgery.CONSULTATION_NOT_SCHEDULED:
            return fired

        days_left = days_until(surgery.surgery_date, now, surgery.location.tzinfo)
        data = notification_data(surgery, days_left=days_left)
        if days_left == FIRST_NOTICE_DAYS:
            created = emit(
                NotificationRequest(
                    channel=Notification.CHANNEL_EMAIL,
                    template_key='consultation_not_scheduled',
                    priority=Notification.PRIORITY_HIGH,
                    recipient_role=Role.BACKOFFICE,
                    data=data,
                    surgery=surgery,
                ),
                dedupe_key=f'surgery:{surgery.id}:consultation_not_scheduled',
            )
            if created is not None:
                fired.append('consultation_not_scheduled')
        elif days_left <= URGENT_NOTICE_DAYS:
            created = [
                emit(
                    NotificationRequest(
                        channel=channel,
                        template_key='consultation_not_scheduled_urgent',
                        priority=Notification.PRIORITY_URGENT,
                        recipient_role=role,
                        data=data,
                        surgery=surgery,
                    ),
                    dedupe_key=f'surgery:{surgery.id}:consultation_not_scheduled_urgent:{channel}:{role}',
                )
                for role in (Role.BACKOFFICE, Role.MANAGER)
                for channel in (Notification.CHANNEL_DASHBOARD, Notification.CHANNEL_SMS)
            ]
            if any(n is not None for n in created):
                fired.append('consultation_not_scheduled_urgent')

        if fired:
            logger.info('Surgery %s escalation: %s (%s days left)', surgery.id, fired, days_left)
        return fired

    def sweep(self, now: datetime | None = None) -> dict[str, int]:
        now = now or timezone.now()
        result = {'evaluated': 0, 'blocked': 0, 'escalated': 0}
        surgeries = (
            Surgery.objects.select_related('location', 'surgeon', 'anesthesiologist')
            .exclude(status__in=Surgery.TERMINAL_STATUSES)
            .exclude(consultation_status=Surgery.CONSULTATION_COMPLETED)
            .order_by('surgery_date', 'id')
        )
        for surgery in surgeries:
            fired = self.evaluate(surgery, now)
            result['evaluated'] += 1
            if 'blocked' in fired:
                result['blocked'] += 1
            elif fired:
                result['escalated'] += 1
        return result

    def _reminder_recipients(self, surgery: Surgery, roles) -> list[tuple[object, str]]:
        recipients = []
        for role in roles:
            if role == Role.SURGEON:
                recipients.append((surgery.surgeon, ''))
            elif role == Role.ANESTHESIOLOGIST and surgery.anesthesiologist is not None:
                recipients.append((surgery.anesthesiologist, ''))
            else:
                recipients.append((None, role))
        return recipients

    def send_task_reminders(self, now: datetime | None = None) -> int:
        """Remind recipients once a task's due date is ``triggerDays`` away or closer."""
        now = now or timezone.now()
        sent = 0
        tasks = (
            Task.objects.select_related('surgery__location', 'surgery__surgeon', 'surgery__anesthesiologist')
            .filter(status__in=OPEN_TASK_STATUSES, due_date__gte=now)
            .exclude(surgery__status__in=Surgery.TERMINAL_STATUSES)
            .order_by('due_date', 'id')
        )
        for task in tasks:
            surgery = task.surgery
            days_left = days_until(task.due_date, now, surgery.location.tzinfo)
            for config in task.notifications:
                if days_left > config['triggerDays']:
                    continue
                due = task.due_date.astimezone(surgery.location.tzinfo).strftime('%Y-%m-%d')
                data = notification_data(
                    surgery,
                    task_id=task.id,
                    task_title=task.title,
                    due_date=due,
                    message=f'Reminder: "{task.title}" for surgery #{surgery.id} is due on {due}.',
                )
                for user, role in self._reminder_recipients(surgery, config['recipients']):
                    target = f'user:{user.id}' if user is not None else f'role:{role}'
                    created = emit(
                        NotificationRequest(
                            channel=config['channel'],
                            template_key=config['template'],
                            priority=Notification.PRIORITY_NORMAL,
                            recipient=user,
                            recipient_role=role,
                            data=data,
                            surgery=surgery,
                        ),
                        dedupe_key=f'task:{task.id}:{config["template"]}:{due}:{target}',
                    )
                    if created is not None:
                        sent += 1
        if sent:
            logger.info('Queued %s task reminder(s)', sent)
        return sent
