"""Shared fixtures for surgery readiness tests."""

from __future__ import annotations

from datetime import datetime, timedelta

from surgiplan.appointments.models import Booking
from surgiplan.appointments.tests.support import VIENNA, SchedulingTestMixin
from surgiplan.core.models import Role
from surgiplan.surgeries.models import PatientRequirement, Surgery, Task
from surgiplan.surgeries.services.requirements import PatientRequirementTracker
from surgiplan.surgeries.services.tasks import TaskTemplateEngine

# fixed "now" passed explicitly to every time-dependent call
NOW = datetime(2030, 1, 1, 10, 0, tzinfo=VIENNA)


class FakeEquipment:
    """Equipment collaborator with a switchable readiness answer."""

    def __init__(self, ready: bool = True):
        self.ready = ready
        self.calls: list[tuple[str, int]] = []

    def reserve(self, surgery_id, date, location):
        self.calls.append(('reserve', surgery_id))
        return []

    def check_readiness(self, surgery_id):
        return self.ready

    def start_preparation(self, surgery_id):
        self.calls.append(('start_preparation', surgery_id))

    def verify(self, surgery_id):
        self.calls.append(('verify', surgery_id))

    def release(self, surgery_id):
        self.calls.append(('release', surgery_id))


class SurgeryTestMixin(SchedulingTestMixin):
    """Adds staff roles and a helper creating a surgery with its task chain."""

    def setUp(self):
        super().setUp()
        self.role_staff, _ = Role.objects.get_or_create(name=Role.STAFF, defaults={'label': 'Staff'})
        self.role_backoffice, _ = Role.objects.get_or_create(name=Role.BACKOFFICE, defaults={'label': 'Back office'})
        self.role_manager, _ = Role.objects.get_or_create(name=Role.MANAGER, defaults={'label': 'Manager'})
        self.backoffice = self.make_user('backoffice1', self.role_backoffice)
        self.manager = self.make_user('manager1', self.role_manager)
        self.equipment = FakeEquipment()

    def make_surgery(self, days_ahead=30, *, now=NOW, code='RHINOPLASTY', chain=True, **fields):
        fields.setdefault('anesthesiologist', self.anesthesiologist1)
        surgery = Surgery.objects.create(
            patient_id=4711,
            surgeon=self.surgeon,
            location=self.location,
            event_type_code=code,
            surgery_date=now + timedelta(days=days_ahead),
            **fields,
        )
        if chain:
            TaskTemplateEngine().create_task_chain(surgery.id)
            PatientRequirementTracker().create_for(surgery)
        return surgery

    def task(self, surgery, task_type) -> Task:
        return Task.objects.get(surgery=surgery, type=getattr(task_type, 'value', task_type))

    def complete_consultation(self, surgery, days_before=5):
        surgery.consultation_status = Surgery.CONSULTATION_COMPLETED
        surgery.consultation_completed_at = surgery.surgery_date - timedelta(days=days_before)
        surgery.save()

    def complete_all_tasks(self, surgery):
        surgery.tasks.update(status=Task.STATUS_COMPLETED)

    def verify_patient(self, surgery):
        PatientRequirement.objects.filter(surgery=surgery).update(
            bloodwork_status=PatientRequirement.SUBMISSION_VERIFIED,
            ecg_status=PatientRequirement.SUBMISSION_VERIFIED,
        )

    def make_booking(self, days_ahead=30, *, now=NOW, duration=120):
        start = now + timedelta(days=days_ahead)
        return Booking.objects.create(
            resource=self.surgeon,
            secondary_resource=self.anesthesiologist1,
            location=self.location,
            patient_id=4711,
            event_type_code='RHINOPLASTY',
            start_time=start,
            end_time=start + timedelta(minutes=duration),
            external_event_ref='evt-surgeon',
            secondary_external_event_ref='evt-anest',
        )
