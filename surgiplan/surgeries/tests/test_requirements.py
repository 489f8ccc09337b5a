"""
Patient requirement and consultation tracking tests.
"""

from __future__ import annotations

from datetime import timedelta

from django.test import TestCase

from surgiplan.core.exceptions import InvalidSchedulingData, InvalidStatusTransition, NotFound
from surgiplan.notifications.models import Notification
from surgiplan.surgeries.models import PatientRequirement, Surgery, Task
from surgiplan.surgeries.services.consultation import ConsultationTracker
from surgiplan.surgeries.services.requirements import PatientRequirementTracker, is_item_satisfied
from surgiplan.surgeries.task_templates import TaskType

from .support import NOW, SurgeryTestMixin


class PatientRequirementTests(SurgeryTestMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.tracker = PatientRequirementTracker()
        self.surgery = self.make_surgery(30)

    def requirement(self):
        return PatientRequirement.objects.get(surgery=self.surgery)

    def test_due_dates_follow_bloodwork_task(self):
        requirement = self.requirement()
        self.assertEqual(requirement.bloodwork_due_date, self.surgery.surgery_date - timedelta(days=7))
        self.assertEqual(requirement.ecg_due_date, self.surgery.surgery_date - timedelta(days=7))
        self.assertEqual(requirement.bloodwork_status, PatientRequirement.SUBMISSION_PENDING)

    def test_create_for_is_idempotent(self):
        self.assertEqual(self.tracker.create_for(self.surgery).id, self.requirement().id)

    def test_submit_then_verify(self):
        self.tracker.submit(self.surgery.id, 'bloodwork')
        requirement = self.tracker.verify(
            self.surgery.id, 'bloodwork', user=self.admin, results={'hb': 14.1}, notes='ok',
        )

        self.assertEqual(requirement.bloodwork_status, PatientRequirement.SUBMISSION_VERIFIED)
        self.assertEqual(requirement.bloodwork_verified_by, self.admin)
        self.assertEqual(requirement.bloodwork_results, {'hb': 14.1})
        self.assertIsNotNone(requirement.bloodwork_submitted_at)
        self.assertTrue(is_item_satisfied(requirement, 'bloodwork'))
        self.assertFalse(is_item_satisfied(requirement, 'ecg'))

    def test_verify_requires_submission(self):
        with self.assertRaises(InvalidStatusTransition):
            self.tracker.verify(self.surgery.id, 'ecg', user=self.admin)

    def test_rejected_item_can_be_resubmitted(self):
        self.tracker.submit(self.surgery.id, 'ecg')
        self.tracker.reject(self.surgery.id, 'ecg', notes='unreadable')
        requirement = self.tracker.submit(self.surgery.id, 'ecg')

        self.assertEqual(requirement.ecg_status, PatientRequirement.SUBMISSION_SUBMITTED)
        self.assertEqual(requirement.ecg_notes, 'unreadable')

    def test_unknown_item_and_surgery(self):
        with self.assertRaises(InvalidSchedulingData):
            self.tracker.submit(self.surgery.id, 'xray')
        with self.assertRaises(NotFound):
            self.tracker.submit(999999, 'ecg')

    def test_expire_overdue(self):
        self.tracker.submit(self.surgery.id, 'ecg')
        after_due = self.surgery.surgery_date - timedelta(days=6)

        self.assertEqual(self.tracker.expire_overdue(after_due), 1)

        requirement = self.requirement()
        self.assertEqual(requirement.bloodwork_status, PatientRequirement.SUBMISSION_EXPIRED)
        self.assertEqual(requirement.ecg_status, PatientRequirement.SUBMISSION_SUBMITTED)
        self.assertEqual(self.tracker.expire_overdue(after_due), 0)

    def test_expire_skips_items_not_yet_due_and_cancelled_surgeries(self):
        self.assertEqual(self.tracker.expire_overdue(NOW), 0)

        Surgery.objects.filter(id=self.surgery.id).update(status=Surgery.STATUS_CANCELLED)
        self.assertEqual(self.tracker.expire_overdue(self.surgery.surgery_date), 0)

    def test_record_medications(self):
        requirement = self.tracker.record_medications(
            self.surgery.id, PatientRequirement.MEDICATIONS_CURRENT, [{'name': 'Aspirin', 'dose': '100mg'}],
        )
        self.assertEqual(requirement.current_medications, [{'name': 'Aspirin', 'dose': '100mg'}])
        self.assertIsNotNone(requirement.medications_last_reviewed_at)
        self.assertTrue(is_item_satisfied(requirement, 'medications'))

        with self.assertRaises(InvalidSchedulingData):
            self.tracker.record_medications(self.surgery.id, 'MAYBE')

    def test_instructions_lifecycle(self):
        with self.assertRaises(InvalidStatusTransition):
            self.tracker.acknowledge_instructions(self.surgery.id)

        self.tracker.send_instructions(self.surgery.id, patient_email='patient@test.local')
        self.tracker.send_instructions(self.surgery.id, patient_email='patient@test.local')

        notifications = Notification.objects.filter(surgery=self.surgery, template_key='patient_instructions')
        self.assertEqual(notifications.count(), 1)
        self.assertEqual(notifications.get().data['patient_email'], 'patient@test.local')

        requirement = self.tracker.acknowledge_instructions(self.surgery.id)
        self.assertIsNotNone(requirement.instructions_acknowledged_at)
        self.assertTrue(is_item_satisfied(requirement, 'instructions'))

        requirement = self.tracker.complete_instructions(self.surgery.id)
        self.assertEqual(requirement.instructions_status, PatientRequirement.INSTRUCTIONS_COMPLETED)

    def test_missing_record_is_not_satisfied(self):
        self.assertFalse(is_item_satisfied(None, 'bloodwork'))


class ConsultationTrackerTests(SurgeryTestMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.tracker = ConsultationTracker()
        self.surgery = self.make_surgery(30)

    def test_schedule(self):
        at = self.surgery.surgery_date - timedelta(days=14)
        surgery = self.tracker.schedule(self.surgery.id, at, user=self.admin)

        self.assertEqual(surgery.consultation_status, Surgery.CONSULTATION_SCHEDULED)
        self.assertEqual(surgery.consultation_scheduled_at, at)

    def test_schedule_requires_aware_datetime(self):
        with self.assertRaises(InvalidSchedulingData):
            self.tracker.schedule(self.surgery.id, (NOW + timedelta(days=5)).replace(tzinfo=None))

    def test_complete_completes_task_and_activates_dependents(self):
        completed_at = self.surgery.surgery_date - timedelta(days=14)

        surgery = self.tracker.complete(self.surgery.id, completed_at, by=self.surgeon)

        self.assertEqual(surgery.consultation_status, Surgery.CONSULTATION_COMPLETED)
        self.assertEqual(surgery.consultation_completed_at, completed_at)
        self.assertEqual(surgery.consultation_completed_by, self.surgeon)
        self.assertEqual(self.task(surgery, TaskType.CONSULTATION).status, Task.STATUS_COMPLETED)
        self.assertEqual(self.task(surgery, TaskType.BLOODWORK).status, Task.STATUS_IN_PROGRESS)

    def test_complete_twice_keeps_first_completion(self):
        first = self.surgery.surgery_date - timedelta(days=14)
        self.tracker.complete(self.surgery.id, first)
        surgery = self.tracker.complete(self.surgery.id, first + timedelta(days=1))
        self.assertEqual(surgery.consultation_completed_at, first)

    def test_completed_consultation_cannot_expire_or_reschedule(self):
        self.tracker.complete(self.surgery.id)
        with self.assertRaises(InvalidStatusTransition):
            self.tracker.expire(self.surgery.id)
        with self.assertRaises(InvalidStatusTransition):
            self.tracker.schedule(self.surgery.id, NOW)

    def test_expire(self):
        surgery = self.tracker.expire(self.surgery.id)
        self.assertEqual(surgery.consultation_status, Surgery.CONSULTATION_EXPIRED)

    def test_cancelled_surgery_is_read_only(self):
        Surgery.objects.filter(id=self.surgery.id).update(status=Surgery.STATUS_CANCELLED)
        with self.assertRaises(InvalidStatusTransition):
            self.tracker.complete(self.surgery.id)
