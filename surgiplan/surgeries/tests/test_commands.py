from __future__ import annotations

from datetime import timedelta
from io import StringIO

from django.core.management import call_command
from django.test import TestCase
from django.utils import timezone

from surgiplan.surgeries import tasks
from surgiplan.surgeries.models import PatientRequirement, Surgery

from .support import SurgeryTestMixin


class PeriodicEntryPointTests(SurgeryTestMixin, TestCase):
    def test_readiness_sweep_command_blocks_due_surgery(self):
        surgery = self.make_surgery(2, now=timezone.now())
        out = StringIO()

        call_command('readiness_sweep', stdout=out)

        self.assertIn('blocked=1', out.getvalue())
        surgery.refresh_from_db()
        self.assertEqual(surgery.status, Surgery.STATUS_BLOCKED)

    def test_readiness_sweep_task_is_idempotent(self):
        self.make_surgery(2, now=timezone.now())
        self.assertEqual(tasks.readiness_sweep()['blocked'], 1)
        self.assertEqual(tasks.readiness_sweep()['blocked'], 0)

    def test_expire_patient_requirements(self):
        surgery = self.make_surgery(5, now=timezone.now())
        out = StringIO()

        call_command('expire_patient_requirements', stdout=out)

        self.assertIn('expired=2', out.getvalue())
        requirement = PatientRequirement.objects.get(surgery=surgery)
        self.assertEqual(requirement.ecg_status, PatientRequirement.SUBMISSION_EXPIRED)
        self.assertEqual(tasks.expire_patient_requirements(), 0)

    def test_send_task_reminders(self):
        # CONSULTATION falls due in twelve hours, inside its one-day trigger
        self.make_surgery(14, now=timezone.now() + timedelta(hours=12))
        out = StringIO()

        call_command('send_task_reminders', stdout=out)

        self.assertIn('queued=2', out.getvalue())
        self.assertEqual(tasks.send_task_reminders(), 0)
