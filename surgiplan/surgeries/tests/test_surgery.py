"""
SurgeryService tests: booking plus surgery setup as one unit.
"""

from __future__ import annotations

from datetime import time, timedelta
from unittest import mock

from django.db import DatabaseError
from django.test import TestCase
from django.utils import timezone

from surgiplan.appointments.models import Booking
from surgiplan.appointments.services.booking import BookingOrchestrator
from surgiplan.appointments.tests.support import vienna
from surgiplan.core.exceptions import AvailabilityConflictError, InvalidSchedulingData
from surgiplan.core.models import AuditLog
from surgiplan.notifications.models import Notification
from surgiplan.surgeries.models import PatientRequirement, Surgery, Task
from surgiplan.surgeries.services.surgery import SurgeryService
from surgiplan.surgeries.services.tasks import TaskTemplateEngine

from .support import SurgeryTestMixin


class SurgeryServiceTests(SurgeryTestMixin, TestCase):
    def setUp(self):
        super().setUp()
        self.add_template(self.surgeon, day_of_week=0, start=time(8, 0), end=time(12, 0))
        for anesthesiologist in (self.anesthesiologist1, self.anesthesiologist2):
            self.add_template(anesthesiologist, day_of_week=0, start=time(7, 0), end=time(17, 0))
        self.service = SurgeryService(
            bookings=BookingOrchestrator(calendar=self.calendar),
            equipment=self.equipment,
        )

    def schedule(self, **overrides):
        kwargs = {
            'surgeon_id': self.surgeon.id,
            'location_id': self.location.id,
            'patient_id': 4711,
            'event_type_code': 'RHINOPLASTY',
            'surgery_date': vienna(8, 0),
            'duration_minutes': 120,
            'user': self.admin,
        }
        kwargs.update(overrides)
        return self.service.schedule_surgery(**kwargs)

    def test_schedule_books_and_sets_up_everything(self):
        surgery = self.schedule()

        self.assertEqual(surgery.status, Surgery.STATUS_SCHEDULED)
        self.assertEqual(surgery.anesthesiologist, self.anesthesiologist1)
        self.assertEqual(surgery.booking.resource, self.surgeon)
        self.assertEqual(surgery.booking.secondary_resource, self.anesthesiologist1)
        self.assertEqual(Task.objects.filter(surgery=surgery).count(), 7)
        self.assertTrue(PatientRequirement.objects.filter(surgery=surgery).exists())
        self.assertIn(('reserve', surgery.id), self.equipment.calls)
        self.assertEqual(len(self.calendar.events), 2)

        notifications = Notification.objects.filter(surgery=surgery, template_key='surgery_scheduled')
        self.assertEqual({n.recipient_id for n in notifications}, {self.surgeon.id, self.anesthesiologist1.id})
        self.assertTrue(AuditLog.objects.filter(action='surgery_schedule', patient_id=4711).exists())

    def test_non_surgical_event_type_rejected(self):
        with self.assertRaises(InvalidSchedulingData):
            self.schedule(event_type_code='AESTHETIC_CONSULT', duration_minutes=30)
        self.assertFalse(Booking.objects.exists())
        self.assertFalse(Surgery.objects.exists())

    def test_booking_requires_duration(self):
        with self.assertRaises(InvalidSchedulingData):
            self.schedule(duration_minutes=None)

    def test_unavailable_slot_creates_nothing(self):
        with self.assertRaises(AvailabilityConflictError):
            self.schedule(surgery_date=vienna(11, 0))
        self.assertFalse(Surgery.objects.exists())
        self.assertEqual(self.calendar.events, {})

    def test_failure_after_booking_deletes_the_booking(self):
        with mock.patch.object(TaskTemplateEngine, 'create_task_chain', side_effect=DatabaseError('boom')):
            with self.assertRaises(DatabaseError):
                self.schedule()

        self.assertFalse(Surgery.objects.exists())
        self.assertFalse(Booking.objects.exists())
        self.assertEqual(self.calendar.events, {})
        self.assertEqual(len(self.calendar.deleted), 2)

    def test_record_without_booking(self):
        surgery = self.schedule(book=False, duration_minutes=None, anesthesiologist_id=self.anesthesiologist2.id)

        self.assertIsNone(surgery.booking)
        self.assertEqual(surgery.anesthesiologist, self.anesthesiologist2)
        self.assertFalse(Booking.objects.exists())
        self.assertEqual(Task.objects.filter(surgery=surgery).count(), 7)

    def test_surgery_inside_deadline_is_blocked_at_once(self):
        surgery = self.schedule(book=False, surgery_date=timezone.now() + timedelta(days=2))

        surgery.refresh_from_db()
        self.assertEqual(surgery.status, Surgery.STATUS_BLOCKED)
        self.assertTrue(Notification.objects.filter(surgery=surgery, template_key='surgery_blocked').exists())
