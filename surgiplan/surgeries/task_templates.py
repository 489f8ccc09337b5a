"""
Fixed task template catalog.

Every scheduled surgery gets one task per template; ``due_date`` is the
surgery date minus ``days_before_surgery``. Templates are kept ordered
earliest-first (largest ``days_before_surgery`` first).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class TaskType(str, Enum):
    CONSULTATION = 'CONSULTATION'
    SURGICAL_PLANNING = 'SURGICAL_PLANNING'
    BLOODWORK = 'BLOODWORK'
    PRESCRIPTIONS = 'PRESCRIPTIONS'
    ANESTHESIA_CLEARANCE = 'ANESTHESIA_CLEARANCE'
    PATIENT_INSTRUCTIONS = 'PATIENT_INSTRUCTIONS'
    EQUIPMENT_CHECK = 'EQUIPMENT_CHECK'


class TaskPriority(str, Enum):
    LOW = 'LOW'
    MEDIUM = 'MEDIUM'
    HIGH = 'HIGH'
    URGENT = 'URGENT'


@dataclass(frozen=True)
class NotificationConfig:
    channel: str
    trigger_days: int
    recipients: tuple[str, ...]
    template: str

    def to_dict(self) -> dict:
        return {
            'channel': self.channel,
            'triggerDays': self.trigger_days,
            'recipients': list(self.recipients),
            'template': self.template,
        }


@dataclass(frozen=True)
class TaskTemplate:
    type: TaskType
    title: str
    description: str
    days_before_surgery: int
    priority: TaskPriority
    dependencies: tuple[TaskType, ...] = ()
    notifications: tuple[NotificationConfig, ...] = ()
    required_roles: tuple[str, ...] = ()


TASK_TEMPLATES: tuple[TaskTemplate, ...] = tuple(sorted(
    (
        TaskTemplate(
            type=TaskType.CONSULTATION,
            title='Pre-Surgery Consultation',
            description='Initial consultation to discuss procedure and requirements',
            days_before_surgery=14,
            priority=TaskPriority.HIGH,
            notifications=(
                NotificationConfig('email', 1, ('surgeon', 'patient'), 'consultation_reminder'),
            ),
            required_roles=('surgeon',),
        ),
        TaskTemplate(
            type=TaskType.SURGICAL_PLANNING,
            title='Surgical Planning',
            description='Finalize the surgical plan, implants and theatre setup',
            days_before_surgery=10,
            priority=TaskPriority.MEDIUM,
            dependencies=(TaskType.CONSULTATION,),
            notifications=(
                NotificationConfig('email', 2, ('surgeon',), 'surgical_planning_due'),
            ),
            required_roles=('surgeon',),
        ),
        TaskTemplate(
            type=TaskType.BLOODWORK,
            title='Pre-Surgery Blood Tests',
            description='Complete required blood work and analysis',
            days_before_surgery=7,
            priority=TaskPriority.HIGH,
            dependencies=(TaskType.CONSULTATION,),
            notifications=(
                NotificationConfig('sms', 2, ('patient',), 'bloodwork_reminder'),
            ),
            required_roles=('staff',),
        ),
        TaskTemplate(
            type=TaskType.PRESCRIPTIONS,
            title='Prescriptions',
            description='Issue pre- and post-operative prescriptions',
            days_before_surgery=6,
            priority=TaskPriority.MEDIUM,
            dependencies=(TaskType.CONSULTATION,),
            notifications=(
                NotificationConfig('email', 1, ('surgeon',), 'prescriptions_due'),
            ),
            required_roles=('surgeon',),
        ),
        TaskTemplate(
            type=TaskType.ANESTHESIA_CLEARANCE,
            title='Anesthesia Clearance',
            description='Obtain clearance from anesthesiologist',
            days_before_surgery=5,
            priority=TaskPriority.HIGH,
            dependencies=(TaskType.BLOODWORK,),
            notifications=(
                NotificationConfig('email', 1, ('anesthesiologist',), 'anesthesia_clearance_required'),
            ),
            required_roles=('anesthesiologist',),
        ),
        TaskTemplate(
            type=TaskType.PATIENT_INSTRUCTIONS,
            title='Patient Instructions',
            description='Send and confirm pre-operative instructions with the patient',
            days_before_surgery=3,
            priority=TaskPriority.MEDIUM,
            dependencies=(TaskType.PRESCRIPTIONS,),
            notifications=(
                NotificationConfig('sms', 1, ('patient',), 'patient_instructions_reminder'),
            ),
            required_roles=('staff',),
        ),
        TaskTemplate(
            type=TaskType.EQUIPMENT_CHECK,
            title='Equipment Check',
            description='Verify reserved equipment and kits are complete and sterile',
            days_before_surgery=2,
            priority=TaskPriority.HIGH,
            dependencies=(TaskType.SURGICAL_PLANNING,),
            notifications=(
                NotificationConfig('email', 1, ('staff',), 'equipment_check_due'),
            ),
            required_roles=('staff',),
        ),
    ),
    key=lambda template: -template.days_before_surgery,
))

TASK_TYPE_CHOICES = [(t.value, t.value) for t in TaskType]
TASK_PRIORITY_CHOICES = [(p.value, p.value) for p in TaskPriority]
