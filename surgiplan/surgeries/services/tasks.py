"""
Task chain creation and the task dependency graph.

A task may only be COMPLETED once every task type listed in its
``dependencies`` has a COMPLETED sibling on the same surgery. Completing a
task activates (PENDING -> IN_PROGRESS) every waiting task whose
dependencies are now all met.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from django.db import transaction
from django.utils import timezone

from surgiplan.core.exceptions import DependencyNotMetError, InvalidSchedulingData, InvalidStatusTransition, NotFound
from surgiplan.surgeries.models import Surgery, Task
from surgiplan.surgeries.task_templates import TASK_TEMPLATES, TaskTemplate

logger = logging.getLogger(__name__)

TRANSITIONS = {
    Task.STATUS_PENDING: {
        Task.STATUS_IN_PROGRESS, Task.STATUS_COMPLETED, Task.STATUS_OVERDUE,
        Task.STATUS_BLOCKED, Task.STATUS_CANCELLED,
    },
    Task.STATUS_IN_PROGRESS: {Task.STATUS_COMPLETED, Task.STATUS_OVERDUE, Task.STATUS_BLOCKED, Task.STATUS_CANCELLED},
    Task.STATUS_OVERDUE: {Task.STATUS_IN_PROGRESS, Task.STATUS_COMPLETED, Task.STATUS_BLOCKED, Task.STATUS_CANCELLED},
    Task.STATUS_BLOCKED: {Task.STATUS_PENDING, Task.STATUS_IN_PROGRESS, Task.STATUS_CANCELLED},
    Task.STATUS_COMPLETED: set(),
    Task.STATUS_CANCELLED: set(),
}


class TaskTemplateEngine:
    def __init__(self, templates: tuple[TaskTemplate, ...] = TASK_TEMPLATES):
        self.templates = templates

    def build_tasks(self, surgery: Surgery) -> list[Task]:
        return [
            Task(
                surgery=surgery,
                type=template.type.value,
                title=template.title,
                description=template.description,
                due_date=surgery.surgery_date - timedelta(days=template.days_before_surgery),
                status=Task.STATUS_PENDING,
                priority=template.priority.value,
                dependencies=[dependency.value for dependency in template.dependencies],
                notifications=[config.to_dict() for config in template.notifications],
                required_roles=list(template.required_roles),
            )
            for template in self.templates
        ]

    def create_task_chain(self, surgery_id: int) -> list[Task]:
        """Insert the whole chain for a surgery in one batch, earliest task first."""
        with transaction.atomic():
            surgery = Surgery.objects.select_for_update().filter(id=surgery_id).first()
            if surgery is None:
                raise NotFound('Surgery', surgery_id)
            if surgery.tasks.exists():
                raise InvalidSchedulingData(f'Surgery {surgery_id} already has a task chain', field='surgery_id')
            tasks = Task.objects.bulk_create(self.build_tasks(surgery))

        logger.info('Created %s tasks for surgery %s', len(tasks), surgery_id)
        return tasks


def missing_dependencies(task: Task) -> list[str]:
    if not task.dependencies:
        return []
    completed = set(
        Task.objects.filter(
            surgery_id=task.surgery_id,
            type__in=task.dependencies,
            status=Task.STATUS_COMPLETED,
        ).values_list('type', flat=True)
    )
    return [dependency for dependency in task.dependencies if dependency not in completed]


class TaskDependencyGraph:
    def update_task_status(self, task_id: int, new_status: str, *, user=None, notes: str | None = None) -> Task:
        if new_status not in TRANSITIONS:
            raise InvalidSchedulingData(f'Unknown task status {new_status!r}', field='status')

        with transaction.atomic():
            task = Task.objects.select_for_update().filter(id=task_id).first()
            if task is None:
                raise NotFound('Task', task_id)
            if task.status == new_status:
                return task
            if new_status not in TRANSITIONS[task.status]:
                raise InvalidStatusTransition(model='Task', current=task.status, requested=new_status)

            if new_status == Task.STATUS_COMPLETED:
                missing = missing_dependencies(task)
                if missing:
                    logger.info('Task %s completion rejected, missing %s', task.id, missing)
                    raise DependencyNotMetError(task_id=task.id, missing=missing)
                task.completed_at = timezone.now()
                task.completed_by = user if getattr(user, 'is_authenticated', False) else None

            previous = task.status
            task.status = new_status
            if notes is not None:
                task.notes = notes
            task.save()
            logger.info('Task %s (%s) %s -> %s', task.id, task.type, previous, new_status)

            if new_status == Task.STATUS_COMPLETED:
                self.activate_dependents(task)
        return task

    def activate_dependents(self, completed: Task) -> list[Task]:
        pending = (
            Task.objects.filter(surgery_id=completed.surgery_id, status=Task.STATUS_PENDING)
            .exclude(id=completed.id)
            .exclude(surgery__status__in=Surgery.TERMINAL_STATUSES)
            .values_list('id', 'dependencies')
        )
        # JSON containment lookups are not portable across backends
        candidate_ids = [task_id for task_id, dependencies in pending if completed.type in dependencies]
        if not candidate_ids:
            return []

        waiting = Task.objects.select_for_update().filter(id__in=candidate_ids).order_by('id')
        activated = []
        for task in waiting:
            if task.status != Task.STATUS_PENDING or missing_dependencies(task):
                continue
            task.status = Task.STATUS_IN_PROGRESS
            task.save(update_fields=['status', 'updated_at'])
            activated.append(task)
        if activated:
            logger.info(
                'Completing task %s activated %s',
                completed.id, ', '.join(f'{t.id} ({t.type})' for t in activated),
            )
        return activated

    def get_task_timeline(self, surgery_id: int, now: datetime | None = None) -> list[Task]:
        """All tasks of a surgery by due date; ``effective_status`` derives OVERDUE on read."""
        if not Surgery.objects.filter(id=surgery_id).exists():
            raise NotFound('Surgery', surgery_id)
        now = now or timezone.now()
        tasks = list(Task.objects.filter(surgery_id=surgery_id).order_by('due_date', 'id'))
        for task in tasks:
            overdue = task.status in (Task.STATUS_PENDING, Task.STATUS_IN_PROGRESS) and task.due_date < now
            task.effective_status = Task.STATUS_OVERDUE if overdue else task.status
        return tasks
