"""
Task template engine and dependency graph tests.
"""

from __future__ import annotations

from datetime import timedelta
from unittest import mock

from django.db import DatabaseError
from django.test import TestCase

from surgiplan.core.exceptions import (
    DependencyNotMetError,
    InvalidSchedulingData,
    InvalidStatusTransition,
    NotFound,
)
from surgiplan.surgeries.models import Surgery, Task
from surgiplan.surgeries.services.tasks import TaskDependencyGraph, TaskTemplateEngine
from surgiplan.surgeries.task_templates import TASK_TEMPLATES, TaskType

from .support import NOW, SurgeryTestMixin


class TaskTemplateEngineTests(SurgeryTestMixin, TestCase):
    def test_creates_one_pending_task_per_template(self):
        surgery = self.make_surgery(30, chain=False)

        tasks = TaskTemplateEngine().create_task_chain(surgery.id)

        self.assertEqual(len(tasks), len(TASK_TEMPLATES))
        self.assertEqual(Task.objects.filter(surgery=surgery).count(), 7)
        self.assertTrue(all(t.status == Task.STATUS_PENDING for t in tasks))
        self.assertEqual(tasks[0].type, TaskType.CONSULTATION.value)
        self.assertEqual(tasks[-1].type, TaskType.EQUIPMENT_CHECK.value)

    def test_due_dates_dependencies_and_notifications(self):
        surgery = self.make_surgery(30)

        bloodwork = self.task(surgery, TaskType.BLOODWORK)
        self.assertEqual(bloodwork.due_date, surgery.surgery_date - timedelta(days=7))
        self.assertEqual(bloodwork.dependencies, ['CONSULTATION'])
        self.assertEqual(bloodwork.priority, 'HIGH')
        self.assertEqual(bloodwork.notifications, [{
            'channel': 'sms',
            'triggerDays': 2,
            'recipients': ['patient'],
            'template': 'bloodwork_reminder',
        }])

        consultation = self.task(surgery, TaskType.CONSULTATION)
        self.assertEqual(consultation.due_date, surgery.surgery_date - timedelta(days=14))
        self.assertEqual(consultation.dependencies, [])

    def test_due_dates_are_non_decreasing_in_chain_order(self):
        surgery = self.make_surgery(30)
        due_dates = list(Task.objects.filter(surgery=surgery).order_by('due_date').values_list('due_date', flat=True))
        self.assertEqual(due_dates, sorted(due_dates))

    def test_second_chain_for_same_surgery_is_rejected(self):
        surgery = self.make_surgery(30)
        with self.assertRaises(InvalidSchedulingData):
            TaskTemplateEngine().create_task_chain(surgery.id)
        self.assertEqual(Task.objects.filter(surgery=surgery).count(), 7)

    def test_unknown_surgery(self):
        with self.assertRaises(NotFound):
            TaskTemplateEngine().create_task_chain(123456)

    def test_failed_batch_leaves_no_tasks(self):
        surgery = self.make_surgery(30, chain=False)
        with mock.patch.object(Task.objects, 'bulk_create', side_effect=DatabaseError('disk full')):
            with self.assertRaises(DatabaseError):
                TaskTemplateEngine().create_task_chain(surgery.id)
        self.assertFalse(Task.objects.filter(surgery=surgery).exists())


class TaskDependencyGraphTests(SurgeryTestMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.graph = TaskDependencyGraph()
        self.surgery = self.make_surgery(30)

    def test_completion_rejected_until_dependencies_completed(self):
        bloodwork = self.task(self.surgery, TaskType.BLOODWORK)

        with self.assertRaises(DependencyNotMetError) as ctx:
            self.graph.update_task_status(bloodwork.id, Task.STATUS_COMPLETED)

        self.assertEqual(ctx.exception.missing, ['CONSULTATION'])
        bloodwork.refresh_from_db()
        self.assertEqual(bloodwork.status, Task.STATUS_PENDING)
        self.assertIsNone(bloodwork.completed_at)

        consultation = self.task(self.surgery, TaskType.CONSULTATION)
        self.graph.update_task_status(consultation.id, Task.STATUS_COMPLETED)
        task = self.graph.update_task_status(bloodwork.id, Task.STATUS_COMPLETED, user=self.admin)

        self.assertEqual(task.status, Task.STATUS_COMPLETED)
        self.assertEqual(task.completed_by, self.admin)
        self.assertIsNotNone(task.completed_at)

    def test_completing_consultation_activates_bloodwork(self):
        consultation = self.task(self.surgery, TaskType.CONSULTATION)

        self.graph.update_task_status(consultation.id, Task.STATUS_COMPLETED)

        self.assertEqual(self.task(self.surgery, TaskType.BLOODWORK).status, Task.STATUS_IN_PROGRESS)
        self.assertEqual(self.task(self.surgery, TaskType.SURGICAL_PLANNING).status, Task.STATUS_IN_PROGRESS)
        self.assertEqual(self.task(self.surgery, TaskType.PRESCRIPTIONS).status, Task.STATUS_IN_PROGRESS)
        # depends on BLOODWORK, not yet completed
        self.assertEqual(self.task(self.surgery, TaskType.ANESTHESIA_CLEARANCE).status, Task.STATUS_PENDING)

    def test_activation_ignores_tasks_whose_own_dependencies_are_open(self):
        other = self.make_surgery(40)
        consultation = self.task(self.surgery, TaskType.CONSULTATION)

        self.graph.update_task_status(consultation.id, Task.STATUS_COMPLETED)

        self.assertEqual(self.task(other, TaskType.BLOODWORK).status, Task.STATUS_PENDING)

    def test_activation_skips_cancelled_surgeries(self):
        other = self.make_surgery(40)
        self.graph.update_task_status(self.task(other, TaskType.CONSULTATION).id, Task.STATUS_COMPLETED)
        Task.objects.filter(surgery=other, type=TaskType.BLOODWORK.value).update(status=Task.STATUS_PENDING)
        Surgery.objects.filter(id=other.id).update(status=Surgery.STATUS_CANCELLED)

        self.graph.update_task_status(self.task(self.surgery, TaskType.CONSULTATION).id, Task.STATUS_COMPLETED)

        self.assertEqual(self.task(other, TaskType.BLOODWORK).status, Task.STATUS_PENDING)

    def test_activation_stays_within_the_completed_task_surgery(self):
        other = self.make_surgery(40)
        self.graph.update_task_status(self.task(other, TaskType.CONSULTATION).id, Task.STATUS_COMPLETED)
        # dependencies met but never activated
        Task.objects.filter(surgery=other, type=TaskType.BLOODWORK.value).update(status=Task.STATUS_PENDING)

        activated = self.graph.activate_dependents(self.task(self.surgery, TaskType.CONSULTATION))

        self.assertEqual(activated, [])
        self.assertEqual(self.task(other, TaskType.BLOODWORK).status, Task.STATUS_PENDING)

    def test_closed_task_cannot_reopen(self):
        consultation = self.task(self.surgery, TaskType.CONSULTATION)
        self.graph.update_task_status(consultation.id, Task.STATUS_COMPLETED)

        with self.assertRaises(InvalidStatusTransition):
            self.graph.update_task_status(consultation.id, Task.STATUS_PENDING)

    def test_same_status_is_a_no_op(self):
        consultation = self.task(self.surgery, TaskType.CONSULTATION)
        task = self.graph.update_task_status(consultation.id, Task.STATUS_PENDING)
        self.assertEqual(task.status, Task.STATUS_PENDING)

    def test_unknown_status_and_task(self):
        consultation = self.task(self.surgery, TaskType.CONSULTATION)
        with self.assertRaises(InvalidSchedulingData):
            self.graph.update_task_status(consultation.id, 'DONE')
        with self.assertRaises(NotFound):
            self.graph.update_task_status(999999, Task.STATUS_COMPLETED)

    def test_overdue_task_can_still_complete(self):
        consultation = self.task(self.surgery, TaskType.CONSULTATION)
        self.graph.update_task_status(consultation.id, Task.STATUS_OVERDUE)
        task = self.graph.update_task_status(consultation.id, Task.STATUS_COMPLETED)
        self.assertEqual(task.status, Task.STATUS_COMPLETED)

    def test_timeline_derives_overdue_on_read(self):
        # 20 days before the surgery: CONSULTATION (due -14) is not yet overdue
        timeline = self.graph.get_task_timeline(self.surgery.id, now=self.surgery.surgery_date - timedelta(days=20))
        self.assertTrue(all(t.effective_status == Task.STATUS_PENDING for t in timeline))

        # 12 days before: CONSULTATION is past due, SURGICAL_PLANNING (due -10) is not
        timeline = self.graph.get_task_timeline(self.surgery.id, now=self.surgery.surgery_date - timedelta(days=12))
        by_type = {t.type: t for t in timeline}
        self.assertEqual(by_type['CONSULTATION'].effective_status, Task.STATUS_OVERDUE)
        self.assertEqual(by_type['CONSULTATION'].status, Task.STATUS_PENDING)
        self.assertEqual(by_type['SURGICAL_PLANNING'].effective_status, Task.STATUS_PENDING)
        self.assertEqual(
            Task.objects.get(id=by_type['CONSULTATION'].id).status, Task.STATUS_PENDING,
        )

    def test_timeline_keeps_completed_status(self):
        consultation = self.task(self.surgery, TaskType.CONSULTATION)
        self.graph.update_task_status(consultation.id, Task.STATUS_COMPLETED)
        timeline = self.graph.get_task_timeline(self.surgery.id, now=self.surgery.surgery_date)
        self.assertEqual(timeline[0].effective_status, Task.STATUS_COMPLETED)

    def test_timeline_unknown_surgery(self):
        with self.assertRaises(NotFound):
            self.graph.get_task_timeline(999999, now=NOW)
